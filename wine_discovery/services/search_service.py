"""
Multi-provider web search service for wine discovery.

This module provides a unified interface for web and image search through
Serper (primary) and SerpAPI (secondary).

Features:
    - Abstract SearchProvider base class for extensibility
    - Provider implementations with automatic failover
    - Bounded tenacity retries on transport errors
    - Uniform SearchUnavailableError when no provider can answer
    - Structured logging

Example:
    >>> async with SearchService() as service:
    ...     payload = await service.text_search("Tabor Winery Adama 2018 wine")
    ...     image = await service.image_search("Tabor Winery Adama 2018 wine bottle")
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx
from pydantic import BaseModel, Field
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from wine_discovery.config.settings import Settings, get_settings
from wine_discovery.utils.logger import get_logger
from wine_discovery.utils.retry import SearchUnavailableError

logger = get_logger(__name__)


# =============================================================================
# Data Models for Search Results
# =============================================================================

class OrganicResult(BaseModel):
    """A single organic web search result."""

    title: str = ""
    snippet: str = ""
    link: str = ""
    position: int = Field(default=1, ge=1)


class SearchPayload(BaseModel):
    """Normalized text search response from any provider."""

    query: str
    provider: str
    organic: list[OrganicResult] = Field(default_factory=list)
    raw: dict[str, Any] = Field(default_factory=dict, repr=False)
    search_duration_ms: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.organic

    @property
    def first(self) -> Optional[OrganicResult]:
        return self.organic[0] if self.organic else None


# =============================================================================
# Custom Exceptions
# =============================================================================

class ProviderError(Exception):
    """Base exception for provider errors."""
    pass


class RateLimitError(ProviderError):
    """Raised when rate limit is exceeded."""
    pass


# =============================================================================
# Abstract Search Provider
# =============================================================================

class SearchProvider(ABC):
    """
    Abstract base class for search providers.

    All search providers must implement these core methods for
    standardized access to search functionality.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name identifier."""
        pass

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """Check if provider is properly configured with API keys."""
        pass

    async def connect(self) -> None:
        """Initialize HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.settings.search_timeout_seconds),
                limits=httpx.Limits(
                    max_keepalive_connections=5,
                    max_connections=10,
                ),
                transport=self._transport,
            )

    async def disconnect(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "SearchProvider":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()

    async def _request(self, method: str, url: str, **kwargs) -> dict[str, Any]:
        """
        Send a request with bounded retries on transport errors.

        HTTP error statuses and undecodable bodies are not retried.
        """
        if not self._client:
            await self.connect()

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
                stop=stop_after_attempt(self.settings.search_max_attempts),
                wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
                reraise=True,
            ):
                with attempt:
                    response = await self._client.request(method, url, **kwargs)
                    response.raise_for_status()
                    data = response.json()
        except httpx.HTTPStatusError as e:
            error_msg = f"HTTP {e.response.status_code}: {e.response.text[:200]}"
            logger.error(f"{self.name} request failed", error=error_msg)
            if e.response.status_code == 429:
                raise RateLimitError(f"{self.name} rate limit exceeded: {error_msg}") from e
            raise ProviderError(f"{self.name} error: {error_msg}") from e
        except httpx.HTTPError as e:
            logger.error(f"{self.name} transport error", error=str(e), error_type=type(e).__name__)
            raise ProviderError(f"{self.name} transport error: {e}") from e
        except ValueError as e:
            raise ProviderError(f"{self.name} returned a non-JSON body: {e}") from e

        if not isinstance(data, dict):
            raise ProviderError(f"{self.name} returned an unexpected body")
        return data

    @abstractmethod
    async def text_search(self, query: str, limit: int) -> SearchPayload:
        """Run a web search and return organic results."""
        pass

    @abstractmethod
    async def image_search(self, query: str) -> Optional[str]:
        """Run an image search and return the first image URL, if any."""
        pass

    @staticmethod
    def _parse_organic(results: list[dict], limit: int) -> list[OrganicResult]:
        items = []
        for index, item in enumerate(results[:limit]):
            if not isinstance(item, dict):
                continue
            items.append(OrganicResult(
                title=item.get("title") or "",
                snippet=item.get("snippet") or "",
                link=item.get("link") or "",
                position=item.get("position") or index + 1,
            ))
        return items


# =============================================================================
# Serper Provider (Primary)
# =============================================================================

class SerperProvider(SearchProvider):
    """
    Serper.dev provider for Google web and image search.

    Primary provider. Requests are JSON POSTs authenticated by the
    X-API-KEY header.
    """

    @property
    def name(self) -> str:
        return "serper"

    @property
    def is_configured(self) -> bool:
        return self.settings.serper_api_key is not None

    def _get_headers(self) -> dict[str, str]:
        if not self.settings.serper_api_key:
            raise ProviderError("Serper API key not configured")
        return {
            "X-API-KEY": self.settings.serper_api_key.get_secret_value(),
            "Content-Type": "application/json",
        }

    @property
    def base_url(self) -> str:
        return self.settings.serper_base_url.rstrip("/")

    async def text_search(self, query: str, limit: int) -> SearchPayload:
        start_time = time.time()
        data = await self._request(
            "POST",
            f"{self.base_url}/search",
            json={"q": query, "num": limit},
            headers=self._get_headers(),
        )
        payload = SearchPayload(
            query=query,
            provider=self.name,
            organic=self._parse_organic(data.get("organic") or [], limit),
            raw=data,
            search_duration_ms=int((time.time() - start_time) * 1000),
        )
        logger.info(
            "Serper search completed",
            query=query,
            results_count=len(payload.organic),
            duration_ms=payload.search_duration_ms,
        )
        return payload

    async def image_search(self, query: str) -> Optional[str]:
        data = await self._request(
            "POST",
            f"{self.base_url}/images",
            json={"q": query, "num": 1},
            headers=self._get_headers(),
        )
        for image in data.get("images") or []:
            if isinstance(image, dict) and image.get("imageUrl"):
                return image["imageUrl"]
        return None


# =============================================================================
# SerpAPI Provider (Secondary)
# =============================================================================

class SerpAPIProvider(SearchProvider):
    """
    SerpAPI provider for Google web and image search.

    Secondary provider, used when Serper is not configured or fails.
    """

    BASE_URL = "https://serpapi.com/search"

    @property
    def name(self) -> str:
        return "serpapi"

    @property
    def is_configured(self) -> bool:
        return self.settings.serpapi_api_key is not None

    def _get_api_key(self) -> str:
        """Get API key from settings."""
        if not self.settings.serpapi_api_key:
            raise ProviderError("SerpAPI API key not configured")
        return self.settings.serpapi_api_key.get_secret_value()

    async def text_search(self, query: str, limit: int) -> SearchPayload:
        start_time = time.time()
        data = await self._request(
            "GET",
            self.BASE_URL,
            params={
                "engine": "google",
                "q": query,
                "num": limit,
                "api_key": self._get_api_key(),
            },
        )
        payload = SearchPayload(
            query=query,
            provider=self.name,
            organic=self._parse_organic(data.get("organic_results") or [], limit),
            raw=data,
            search_duration_ms=int((time.time() - start_time) * 1000),
        )
        logger.info(
            "SerpAPI search completed",
            query=query,
            results_count=len(payload.organic),
            duration_ms=payload.search_duration_ms,
        )
        return payload

    async def image_search(self, query: str) -> Optional[str]:
        data = await self._request(
            "GET",
            self.BASE_URL,
            params={
                "engine": "google_images",
                "q": query,
                "api_key": self._get_api_key(),
            },
        )
        for image in data.get("images_results") or []:
            if isinstance(image, dict) and image.get("original"):
                return image["original"]
        return None


# =============================================================================
# Unified Search Service
# =============================================================================

class SearchService:
    """
    Unified search service orchestrating multiple providers.

    Features:
        - Automatic failover between providers in priority order
        - Uniform SearchUnavailableError when every provider fails
        - No state carried between requests

    Example:
        >>> async with SearchService() as service:
        ...     payload = await service.text_search("Tabor Winery Adama 2018 wine")
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        providers: Optional[list[SearchProvider]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the search service.

        Args:
            settings: Application settings
            providers: Explicit provider list, in priority order
            transport: httpx transport shared by the default providers
        """
        self.settings = settings or get_settings()
        if providers is None:
            candidates = [
                SerperProvider(settings=self.settings, transport=transport),
                SerpAPIProvider(settings=self.settings, transport=transport),
            ]
            providers = [p for p in candidates if p.is_configured]
        self._providers = providers

    @property
    def providers(self) -> list[SearchProvider]:
        return list(self._providers)

    @property
    def is_configured(self) -> bool:
        return bool(self._providers)

    async def __aenter__(self) -> "SearchService":
        for provider in self._providers:
            await provider.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close all provider connections."""
        for provider in self._providers:
            await provider.disconnect()

    async def _try_providers(self, method_name: str, *args, **kwargs) -> Any:
        """Try method across providers with failover."""
        if not self._providers:
            raise SearchUnavailableError(
                "No search providers configured. Please set SERPER_API_KEY or SERPAPI_API_KEY"
            )

        last_error = None
        for provider in self._providers:
            try:
                method = getattr(provider, method_name)
                return await method(*args, **kwargs)

            except RateLimitError as e:
                logger.warning(
                    "Provider rate limited, trying next",
                    provider=provider.name,
                    error=str(e),
                )
                last_error = e

            except ProviderError as e:
                logger.warning(
                    "Provider error, trying next",
                    provider=provider.name,
                    error=str(e),
                )
                last_error = e

        raise SearchUnavailableError(f"All search providers failed: {last_error}")

    # =========================================================================
    # Public API Methods
    # =========================================================================

    async def text_search(self, query: str, limit: Optional[int] = None) -> SearchPayload:
        """
        Search the web for a wine query.

        Args:
            query: Search query string
            limit: Maximum organic results (defaults to MAX_SEARCH_RESULTS)

        Returns:
            SearchPayload, possibly with no organic results

        Raises:
            SearchUnavailableError: No provider configured or all failed
        """
        return await self._try_providers(
            "text_search", query, limit or self.settings.max_search_results
        )

    async def image_search(self, query: str) -> Optional[str]:
        """
        Search for a representative image.

        Returns:
            The first image URL, or None when the search found nothing

        Raises:
            SearchUnavailableError: No provider configured or all failed
        """
        return await self._try_providers("image_search", query)


# =============================================================================
# Module Exports
# =============================================================================

__all__ = [
    # Service
    "SearchService",
    # Providers
    "SearchProvider",
    "SerperProvider",
    "SerpAPIProvider",
    # Models
    "SearchPayload",
    "OrganicResult",
    # Exceptions
    "ProviderError",
    "RateLimitError",
]
