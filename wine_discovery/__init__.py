"""
Wine Discovery Pipeline.

Resolves a free-text (winery, name, vintage) triple into a normalized,
validated wine record using a local cache, web search, and structured
extraction with Claude or a deterministic heuristic fallback.
"""

__version__ = "1.0.0"
__author__ = "Wine Discovery Team"

# Lazy imports to avoid circular dependencies
def get_pipeline():
    """Get the WineDiscoveryPipeline class (lazy import)."""
    from wine_discovery.pipeline.orchestrator import WineDiscoveryPipeline
    return WineDiscoveryPipeline

__all__ = ["get_pipeline", "__version__"]
