"""
Wine field extraction strategies.

This module turns a search payload into a candidate WineRecord. The
orchestrator only sees the WineExtractor interface; which strategy backs
it is decided once by create_extractor() from settings.

Strategies:
    - AIWineExtractor: Claude reads the organic results and returns JSON
    - HeuristicWineExtractor: catalog and regex detectors on the top result
    - FallbackWineExtractor: AI first, heuristic on extraction failure

Example:
    >>> extractor = create_extractor(settings)
    >>> candidate = await extractor.extract(request, payload)
    >>> print(candidate.grapes, candidate.alcohol_content)
"""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from typing import Any, Optional

from pydantic import ValidationError

from wine_discovery.config.settings import Settings, get_settings
from wine_discovery.extractors.catalog import WineCatalog
from wine_discovery.extractors.heuristics import (
    AlcoholParser,
    GrapeDetector,
    RegionDetector,
    WineTypeClassifier,
)
from wine_discovery.extractors.prompts import (
    WINE_EXTRACTION_CONFIG,
    format_wine_extraction_prompt,
)
from wine_discovery.models.schemas import (
    UNKNOWN,
    DiscoveryRequest,
    WineRecord,
    WineSource,
    WineType,
)
from wine_discovery.services.llm_service import ClaudeService, ClaudeServiceError, extract_json
from wine_discovery.services.search_service import SearchPayload
from wine_discovery.utils.logger import get_logger
from wine_discovery.utils.retry import (
    AppTimeoutError,
    ExtractionFailedError,
    call_with_timeout,
)

logger = get_logger(__name__)


# =============================================================================
# Extractor Interface
# =============================================================================

class WineExtractor(ABC):
    """Turns a search payload into a candidate wine record."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    async def extract(self, request: DiscoveryRequest, payload: SearchPayload) -> WineRecord:
        """
        Build a candidate record for the requested wine.

        Raises:
            ExtractionFailedError: No candidate could be produced
        """
        pass


# =============================================================================
# Heuristic Strategy
# =============================================================================

class HeuristicWineExtractor(WineExtractor):
    """
    Deterministic extraction from the first organic result.

    Identity fields come from the request. Grapes, alcohol, region and
    type are read from the top result's snippet (region also from its title).
    """

    def __init__(self, catalog: Optional[WineCatalog] = None):
        self.catalog = catalog or WineCatalog.default()
        self.grapes = GrapeDetector(self.catalog)
        self.regions = RegionDetector(self.catalog)

    @property
    def name(self) -> str:
        return "heuristic"

    async def extract(self, request: DiscoveryRequest, payload: SearchPayload) -> WineRecord:
        top = payload.first
        if top is None:
            raise ExtractionFailedError("No organic search results to extract from")

        snippet = top.snippet or ""
        region, country = self.regions.detect(snippet, top.title or "")

        candidate = WineRecord(
            winery=request.winery,
            wine_name=request.wine_name,
            vintage=request.vintage,
            grapes=self.grapes.detect(snippet),
            region=region,
            country=country,
            alcohol_content=AlcoholParser.parse(snippet),
            wine_type=WineTypeClassifier.classify(snippet),
            source=WineSource.HEURISTIC,
        )

        logger.debug(
            "Heuristic extraction completed",
            grapes=candidate.grapes,
            region=candidate.region,
            alcohol=candidate.alcohol_content,
            wine_type=candidate.wine_type,
        )
        return candidate


# =============================================================================
# AI Strategy
# =============================================================================

class AIWineExtractor(WineExtractor):
    """
    Claude-backed extraction over all organic results.

    The natural key (winery, wine name, vintage) always comes from the
    request; the model only fills attributes. Omitted attributes fall back
    to 'Unknown' / empty / None.
    """

    def __init__(
        self,
        llm_service: ClaudeService,
        settings: Optional[Settings] = None,
    ):
        self.llm = llm_service
        self.settings = settings or get_settings()

    @property
    def name(self) -> str:
        return "ai"

    async def extract(self, request: DiscoveryRequest, payload: SearchPayload) -> WineRecord:
        if payload.is_empty:
            raise ExtractionFailedError("No organic search results to extract from")

        system_prompt, user_prompt = format_wine_extraction_prompt(
            request.winery, request.wine_name, request.vintage, payload
        )

        try:
            response = await call_with_timeout(
                self.llm.complete(
                    user_prompt,
                    system=system_prompt,
                    max_tokens=WINE_EXTRACTION_CONFIG.recommended_max_tokens,
                ),
                self.settings.extraction_timeout_seconds,
                "ai_extraction",
            )
        except (ClaudeServiceError, AppTimeoutError) as e:
            logger.warning("AI extraction call failed", error=str(e), error_type=type(e).__name__)
            raise ExtractionFailedError(f"Model call failed: {e}") from e

        return self.parse_response(response, request, payload)

    def parse_response(
        self,
        response: str,
        request: DiscoveryRequest,
        payload: Optional[SearchPayload] = None,
    ) -> WineRecord:
        """Map a model response onto a candidate record."""
        try:
            data = json.loads(extract_json(response))
        except json.JSONDecodeError as e:
            logger.warning("AI response is not valid JSON", error=str(e), response=response[:200])
            raise ExtractionFailedError(f"Malformed model response: {e}") from e

        if not isinstance(data, dict):
            raise ExtractionFailedError("Model response is not a JSON object")

        wine_type = WineType.parse(data.get("type"))
        if wine_type is None and payload is not None and payload.first is not None:
            wine_type = WineTypeClassifier.classify(payload.first.snippet)

        reported = (
            _text_or(data.get("winery"), request.winery),
            _text_or(data.get("wineName"), request.wine_name),
            _vintage_or(data.get("vintage"), request.vintage),
        )
        if reported != request.natural_key:
            logger.info(
                "Model reported a different identity, keeping the requested one",
                requested=list(request.natural_key),
                reported=list(reported),
            )

        try:
            return WineRecord(
                winery=request.winery,
                wine_name=request.wine_name,
                vintage=request.vintage,
                grapes=_grape_list(data.get("grapes")),
                region=_text_or(data.get("region"), UNKNOWN),
                country=_text_or(data.get("country"), UNKNOWN),
                alcohol_content=_to_float(data.get("alcoholContent")),
                wine_type=wine_type or WineType.RED,
                source=WineSource.AI,
            )
        except ValidationError as e:
            raise ExtractionFailedError(f"Model response has invalid fields: {e}") from e


def _text_or(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _vintage_or(value: Any, default: str) -> str:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return str(int(value))
    return _text_or(value, default)


def _grape_list(value: Any) -> list[str]:
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, list):
        return []
    return [g.strip() for g in value if isinstance(g, str) and g.strip()]


def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        match = re.search(r"\d+(?:[.,]\d+)?", value)
        if match:
            return float(match.group(0).replace(",", "."))
    return None


# =============================================================================
# Fallback Composition
# =============================================================================

class FallbackWineExtractor(WineExtractor):
    """Tries the primary strategy and falls back on ExtractionFailedError."""

    def __init__(self, primary: WineExtractor, fallback: WineExtractor):
        self.primary = primary
        self.fallback = fallback

    @property
    def name(self) -> str:
        return f"{self.primary.name}+{self.fallback.name}"

    async def extract(self, request: DiscoveryRequest, payload: SearchPayload) -> WineRecord:
        try:
            return await self.primary.extract(request, payload)
        except ExtractionFailedError as e:
            logger.warning(
                "Primary extraction failed, using fallback",
                primary=self.primary.name,
                fallback=self.fallback.name,
                error=str(e),
            )
            return await self.fallback.extract(request, payload)


# =============================================================================
# Factory
# =============================================================================

def create_extractor(
    settings: Optional[Settings] = None,
    llm_service: Optional[ClaudeService] = None,
) -> WineExtractor:
    """
    Select the extraction strategy from settings.

    'ai' and 'auto' degrade to the heuristic strategy when no model
    backend is available.
    """
    settings = settings or get_settings()
    heuristic = HeuristicWineExtractor(
        WineCatalog.default(settings.extra_grape_varieties, settings.extra_wine_regions)
    )

    if settings.extraction_strategy == "heuristic":
        return heuristic

    ai_available = llm_service is not None or settings.ai_extraction_available
    if not settings.ai_extraction_enabled or not ai_available:
        logger.warning(
            "AI extraction unavailable, using heuristic extraction",
            strategy=settings.extraction_strategy,
            ai_extraction_enabled=settings.ai_extraction_enabled,
        )
        return heuristic

    ai = AIWineExtractor(llm_service or ClaudeService(settings=settings), settings=settings)
    if settings.extraction_strategy == "ai":
        return ai
    return FallbackWineExtractor(ai, heuristic)


__all__ = [
    "WineExtractor",
    "HeuristicWineExtractor",
    "AIWineExtractor",
    "FallbackWineExtractor",
    "create_extractor",
]
