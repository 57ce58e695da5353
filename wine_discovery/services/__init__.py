"""
Services package for the Wine Discovery Pipeline.

This package contains all service classes for external API integrations
and core business rules.

Services:
    - SearchService: Multi-provider web and image search
    - ClaudeService: Model-backed extraction using Anthropic Claude
    - ValidationService: Business-rule gate before persistence
    - ImageEnricher: Best-effort bottle image lookup

Providers:
    - SerperProvider: Primary search provider using Serper.dev
    - SerpAPIProvider: Secondary search provider using SerpAPI
"""

from wine_discovery.services.search_service import (
    # Service
    SearchService,
    # Providers
    SearchProvider,
    SerperProvider,
    SerpAPIProvider,
    # Models
    SearchPayload,
    OrganicResult,
    # Exceptions
    ProviderError,
    RateLimitError,
)
from wine_discovery.services.llm_service import (
    ClaudeService,
    ClaudeServiceError,
    MaxRetriesExceededError,
)
from wine_discovery.services.validation_service import (
    ValidationService,
    ValidationOutcome,
)
from wine_discovery.services.image_enricher import ImageEnricher

__all__ = [
    # Search
    "SearchService",
    "SearchProvider",
    "SerperProvider",
    "SerpAPIProvider",
    "SearchPayload",
    "OrganicResult",
    "ProviderError",
    "RateLimitError",
    # LLM
    "ClaudeService",
    "ClaudeServiceError",
    "MaxRetriesExceededError",
    # Validation
    "ValidationService",
    "ValidationOutcome",
    # Enrichment
    "ImageEnricher",
]
