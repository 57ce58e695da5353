"""Pipeline module for the Wine Discovery Pipeline."""

from wine_discovery.pipeline.orchestrator import (
    WineDiscoveryPipeline,
    DiscoveryStateDict,
    discover_wine,
)

__all__ = [
    "WineDiscoveryPipeline",
    "DiscoveryStateDict",
    "discover_wine",
]
