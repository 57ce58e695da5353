"""
Discovery pipeline orchestrator using LangGraph.

Coordinates one wine discovery run as a state machine: cache lookup,
web search, field extraction, validation, image enrichment and idempotent
persistence.

Features:
    - Stateful execution with LangGraph StateGraph
    - Conditional edges for cache hits and recoverable failures
    - Per-call timeouts on every external dependency
    - Duplicate-write recovery for concurrent discovery of the same wine
    - Per-node timing and structured logging bound to a run id
    - Testing hooks for step-by-step execution

Graph structure:
    cache_check --hit--> END
        |
       miss
        v
     search ---> extract ---> validate ---> enrich ---> persist ---> END
        |           |            |
        +-----------+------------+--> handle_failure ---> END
"""

import operator
import time
from functools import wraps
from typing import Annotated, Any, Callable, Literal, Optional, TypedDict
from uuid import uuid4

from langgraph.graph import END, StateGraph

from wine_discovery.config.settings import Settings, get_settings
from wine_discovery.extractors.query_builder import build_query
from wine_discovery.extractors.wine_extractor import WineExtractor, create_extractor
from wine_discovery.models.schemas import (
    DiscoveryFailure,
    DiscoveryRequest,
    DiscoveryResult,
    DiscoveryStage,
    FailureReason,
    RejectionReason,
    WineRecord,
    WineSource,
)
from wine_discovery.services.image_enricher import ImageEnricher
from wine_discovery.services.llm_service import ClaudeService
from wine_discovery.services.search_service import SearchPayload, SearchService
from wine_discovery.services.validation_service import ValidationService
from wine_discovery.storage.repository import WineStore, create_wine_store
from wine_discovery.utils.logger import LogContext, get_logger
from wine_discovery.utils.retry import (
    AppError,
    DiscoveryInternalError,
    DuplicateWineError,
    ErrorHandler,
    ValidationRejectedError,
    call_with_timeout,
)

logger = get_logger(__name__)


# =============================================================================
# Constants and Configuration
# =============================================================================

# Room for the heuristic fallback after a model call uses its full budget
HEURISTIC_GRACE_SECONDS = 5.0


# =============================================================================
# Pipeline State Definition (TypedDict for LangGraph)
# =============================================================================

class DiscoveryStateDict(TypedDict, total=False):
    """
    TypedDict-based discovery state for LangGraph.

    Models are carried as plain dicts (model_dump) between nodes.
    """
    # Identifiers
    run_id: str

    # Input
    request: dict  # Serialized DiscoveryRequest

    # Step outputs
    payload: Optional[dict]  # Serialized SearchPayload
    candidate: Optional[dict]  # Serialized WineRecord before persistence
    wine: Optional[dict]  # Serialized WineRecord returned to the caller
    failure: Optional[dict]  # Serialized DiscoveryFailure

    # Status tracking
    current_step: str
    cache_hit: bool
    conflict_recovered: bool

    # Error handling (uses operator.add for accumulation)
    errors: Annotated[list[str], operator.add]

    # Metadata
    step_timings: dict  # Node name -> duration_ms


# =============================================================================
# Decorators for Node Execution
# =============================================================================

def track_timing(func: Callable):
    """Decorator to track node execution timing."""
    @wraps(func)
    async def wrapper(self, state: DiscoveryStateDict) -> dict[str, Any]:
        start_time = time.time()
        node_name = func.__name__.replace("_node", "").lstrip("_")

        logger.debug(f"Starting node: {node_name}")

        try:
            result = await func(self, state)
        except Exception as e:
            duration_ms = int((time.time() - start_time) * 1000)
            logger.error(
                f"Node failed: {node_name}",
                duration_ms=duration_ms,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        duration_ms = int((time.time() - start_time) * 1000)
        step_timings = state.get("step_timings", {}).copy()
        step_timings[node_name] = duration_ms
        result["step_timings"] = step_timings

        logger.debug(f"Completed node: {node_name}", duration_ms=duration_ms)
        return result

    return wrapper


def _failure(
    reason: FailureReason,
    stage: DiscoveryStage,
    detail: str,
    rejection: Optional[RejectionReason] = None,
) -> dict[str, Any]:
    failure = DiscoveryFailure(reason=reason, stage=stage, detail=detail, rejection=rejection)
    return {
        "failure": failure.model_dump(),
        "errors": [f"{stage.value}: {detail}"],
        "current_step": DiscoveryStage.FAILED.value,
    }


# =============================================================================
# Main Pipeline Class
# =============================================================================

class WineDiscoveryPipeline:
    """
    LangGraph-based wine discovery pipeline.

    Every recoverable problem ends the run with a DiscoveryFailure; anything
    else is raised as DiscoveryInternalError.

    Example:
        >>> async with WineDiscoveryPipeline() as pipeline:
        ...     result = await pipeline.discover("Tabor Winery", "Adama", "2018")
        ...     if result.succeeded:
        ...         print(result.wine.region)
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[WineStore] = None,
        search_service: Optional[SearchService] = None,
        extractor: Optional[WineExtractor] = None,
        validator: Optional[ValidationService] = None,
        image_enricher: Optional[ImageEnricher] = None,
        llm_service: Optional[ClaudeService] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            settings: Application settings (uses defaults if not provided)
            store: Wine cache (built from DATABASE_URL if not provided)
            search_service: Search client (built from settings if not provided)
            extractor: Extraction strategy (chosen by create_extractor if not provided)
            validator: Business-rule validator
            image_enricher: Bottle image lookup
            llm_service: Claude client handed to the AI extraction strategy
        """
        self.settings = settings or get_settings()

        self._owns_store = store is None
        self._owns_search = search_service is None
        self._owns_llm = extractor is None and llm_service is None
        self.store = store or create_wine_store(self.settings)
        self.search = search_service or SearchService(settings=self.settings)
        self.extractor = extractor or create_extractor(self.settings, llm_service=llm_service)
        self.validator = validator or ValidationService()
        self.image_enricher = image_enricher or ImageEnricher(self.search, settings=self.settings)

        self._graph = self._build_graph()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    def _build_graph(self):
        """Build the LangGraph state machine with all nodes and edges."""
        graph = StateGraph(DiscoveryStateDict)

        # Add nodes
        graph.add_node("cache_check", self._cache_check_node)
        graph.add_node("search", self._search_node)
        graph.add_node("extract", self._extract_node)
        graph.add_node("validate", self._validate_node)
        graph.add_node("enrich", self._enrich_node)
        graph.add_node("persist", self._persist_node)
        graph.add_node("handle_failure", self._handle_failure_node)

        # Set entry point
        graph.set_entry_point("cache_check")

        graph.add_conditional_edges(
            "cache_check",
            self._route_after_cache,
            {"hit": END, "miss": "search"},
        )
        for node, next_node in (("search", "extract"), ("extract", "validate"), ("validate", "enrich")):
            graph.add_conditional_edges(
                node,
                self._route_on_failure,
                {"continue": next_node, "failure": "handle_failure"},
            )

        graph.add_edge("enrich", "persist")
        graph.add_edge("persist", END)
        graph.add_edge("handle_failure", END)

        return graph.compile()

    def _route_after_cache(self, state: DiscoveryStateDict) -> Literal["hit", "miss"]:
        return "hit" if state.get("cache_hit") else "miss"

    def _route_on_failure(self, state: DiscoveryStateDict) -> Literal["continue", "failure"]:
        return "failure" if state.get("failure") else "continue"

    # =========================================================================
    # Node Implementations
    # =========================================================================

    @track_timing
    async def _cache_check_node(self, state: DiscoveryStateDict) -> dict[str, Any]:
        """Node 1: Return the stored wine for this natural key, if any."""
        request = DiscoveryRequest.model_validate(state["request"])
        cached = await self.store.find_by_key(*request.natural_key)

        if cached is None:
            logger.info("Cache miss")
            return {"cache_hit": False, "current_step": DiscoveryStage.SEARCHING.value}

        logger.info("Cache hit", wine_id=cached.id)
        return {
            "cache_hit": True,
            "wine": cached.model_dump(),
            "current_step": DiscoveryStage.DONE.value,
        }

    @track_timing
    async def _search_node(self, state: DiscoveryStateDict) -> dict[str, Any]:
        """Node 2: Web search for the wine."""
        request = DiscoveryRequest.model_validate(state["request"])
        query = build_query(request.winery, request.wine_name, request.vintage)

        try:
            payload = await call_with_timeout(
                self.search.text_search(query),
                self.settings.search_timeout_seconds,
                "text_search",
            )
        except AppError as e:
            reason = ErrorHandler.categorize_error(e, stage="search")
            if reason is None:
                raise
            logger.warning("Search unavailable", query=query, error=str(e))
            return _failure(reason, DiscoveryStage.SEARCHING, str(e))

        if payload.is_empty:
            logger.info("Search returned no results", query=query, provider=payload.provider)
            return _failure(
                FailureReason.NO_SEARCH_RESULTS,
                DiscoveryStage.SEARCHING,
                f"No search results for '{query}'",
            )

        return {
            "payload": payload.model_dump(),
            "current_step": DiscoveryStage.EXTRACTING.value,
        }

    @track_timing
    async def _extract_node(self, state: DiscoveryStateDict) -> dict[str, Any]:
        """Node 3: Turn the search payload into a candidate wine."""
        request = DiscoveryRequest.model_validate(state["request"])
        payload = SearchPayload.model_validate(state["payload"])

        try:
            candidate = await call_with_timeout(
                self.extractor.extract(request, payload),
                self.settings.extraction_timeout_seconds + HEURISTIC_GRACE_SECONDS,
                "extraction",
            )
        except AppError as e:
            reason = ErrorHandler.categorize_error(e, stage="extract")
            if reason is None:
                raise
            logger.warning("Extraction failed", extractor=self.extractor.name, error=str(e))
            return _failure(reason, DiscoveryStage.EXTRACTING, str(e))

        logger.info(
            "Candidate extracted",
            extractor=self.extractor.name,
            source=candidate.source,
        )
        return {
            "candidate": candidate.model_dump(),
            "current_step": DiscoveryStage.VALIDATING.value,
        }

    @track_timing
    async def _validate_node(self, state: DiscoveryStateDict) -> dict[str, Any]:
        """Node 4: Gate persistence on the business rules."""
        candidate = WineRecord.model_validate(state["candidate"])

        try:
            self.validator.ensure_valid(candidate)
        except ValidationRejectedError as e:
            return _failure(
                FailureReason.VALIDATION_REJECTED,
                DiscoveryStage.VALIDATING,
                e.message,
                rejection=e.reason,
            )

        return {
            "candidate": candidate.model_dump(),
            "current_step": DiscoveryStage.ENRICHING.value,
        }

    @track_timing
    async def _enrich_node(self, state: DiscoveryStateDict) -> dict[str, Any]:
        """Node 5: Best-effort image lookup; never fails the run."""
        candidate = WineRecord.model_validate(state["candidate"])
        await self.image_enricher.enrich(candidate)
        return {
            "candidate": candidate.model_dump(),
            "current_step": DiscoveryStage.PERSISTING.value,
        }

    @track_timing
    async def _persist_node(self, state: DiscoveryStateDict) -> dict[str, Any]:
        """Node 6: Store the wine, or adopt the record a concurrent run stored first."""
        candidate = WineRecord.model_validate(state["candidate"])

        try:
            saved = await self.store.save(candidate)
        except DuplicateWineError:
            existing = await self.store.find_by_key(*candidate.natural_key)
            if existing is None:
                raise DiscoveryInternalError(
                    f"Store reported a duplicate for {candidate.display_name} but has no such record",
                    run_id=state.get("run_id"),
                )
            logger.info("Concurrent discovery detected, returning stored wine", wine_id=existing.id)
            return {
                "wine": existing.model_dump(),
                "conflict_recovered": True,
                "current_step": DiscoveryStage.DONE.value,
            }

        logger.info("Wine stored", wine_id=saved.id)
        return {
            "wine": saved.model_dump(),
            "current_step": DiscoveryStage.DONE.value,
        }

    @track_timing
    async def _handle_failure_node(self, state: DiscoveryStateDict) -> dict[str, Any]:
        """Node 7: Log the failure; the result is built from state by discover()."""
        failure = state.get("failure") or {}
        logger.warning(
            "Discovery failed",
            reason=failure.get("reason"),
            rejection=failure.get("rejection"),
            detail=failure.get("detail"),
        )
        return {"current_step": DiscoveryStage.FAILED.value}

    # =========================================================================
    # Public API
    # =========================================================================

    async def discover(
        self,
        winery: str,
        wine_name: str,
        vintage: Optional[str] = None,
        run_id: Optional[str] = None,
    ) -> DiscoveryResult:
        """
        Resolve a wine, from the cache or by discovering it.

        Args:
            winery: Producer name as typed by the user
            wine_name: Wine name as typed by the user
            vintage: Year, 'NV', or None for non-vintage
            run_id: Optional run ID for log correlation

        Returns:
            DiscoveryResult carrying either the wine or a DiscoveryFailure

        Raises:
            DiscoveryInternalError: On any unexpected fault
        """
        run_id = run_id or uuid4().hex
        request = DiscoveryRequest(winery=winery, wine_name=wine_name, vintage=vintage)

        initial_state: DiscoveryStateDict = {
            "run_id": run_id,
            "request": request.model_dump(),
            "payload": None,
            "candidate": None,
            "wine": None,
            "failure": None,
            "current_step": DiscoveryStage.CACHE_CHECK.value,
            "cache_hit": False,
            "conflict_recovered": False,
            "errors": [],
            "step_timings": {},
        }

        with LogContext(
            run_id=run_id,
            winery=request.winery,
            wine_name=request.wine_name,
            vintage=request.vintage,
        ):
            logger.info("Starting discovery run")
            try:
                final_state = await self._graph.ainvoke(initial_state)
                result = self._to_result(run_id, final_state)
            except DiscoveryInternalError:
                raise
            except Exception as e:
                logger.error(
                    "Discovery failed with unexpected error",
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise DiscoveryInternalError(
                    f"Unexpected discovery error: {e}", run_id=run_id
                ) from e

            logger.info(
                "Discovery run finished",
                succeeded=result.succeeded,
                cache_hit=result.cache_hit,
                conflict_recovered=result.conflict_recovered,
                duration_ms=sum(result.step_timings.values()),
            )
            return result

    @staticmethod
    def _to_result(run_id: str, state: DiscoveryStateDict) -> DiscoveryResult:
        wine = state.get("wine")
        failure = state.get("failure")
        if wine is None and failure is None:
            raise DiscoveryInternalError("Discovery ended without a wine or a failure", run_id=run_id)
        return DiscoveryResult(
            run_id=run_id,
            wine=WineRecord.model_validate(wine) if wine else None,
            failure=DiscoveryFailure.model_validate(failure) if failure else None,
            cache_hit=state.get("cache_hit", False),
            conflict_recovered=state.get("conflict_recovered", False),
            step_timings=state.get("step_timings", {}),
        )

    async def run_step(
        self,
        step_name: str,
        state: DiscoveryStateDict,
    ) -> DiscoveryStateDict:
        """
        Execute a single pipeline step (for testing/debugging).

        Args:
            step_name: Name of the step to execute
            state: Current pipeline state

        Returns:
            Updated pipeline state
        """
        node_methods = {
            "cache_check": self._cache_check_node,
            "search": self._search_node,
            "extract": self._extract_node,
            "validate": self._validate_node,
            "enrich": self._enrich_node,
            "persist": self._persist_node,
            "handle_failure": self._handle_failure_node,
        }

        if step_name not in node_methods:
            raise ValueError(f"Unknown step: {step_name}")

        result = await node_methods[step_name](state)

        # Merge result into state
        updated_state = {**state, **result}
        if "errors" in result:
            updated_state["errors"] = state.get("errors", []) + result["errors"]
        return updated_state

    # =========================================================================
    # Read-only Queries
    # =========================================================================

    async def get_wine(self, wine_id: int) -> Optional[WineRecord]:
        return await self.store.get_by_id(wine_id)

    async def find_by_winery_contains(self, text: str) -> list[WineRecord]:
        return await self.store.find_by_winery_contains(text)

    async def find_by_name_contains(self, text: str) -> list[WineRecord]:
        return await self.store.find_by_name_contains(text)

    async def find_all_validated(self) -> list[WineRecord]:
        return await self.store.find_all_validated()

    async def find_by_country(self, country: str) -> list[WineRecord]:
        return await self.store.find_by_country(country)

    async def find_by_region(self, region: str) -> list[WineRecord]:
        return await self.store.find_by_region(region)

    async def find_by_source(self, source: WineSource) -> list[WineRecord]:
        return await self.store.find_by_source(source)

    # =========================================================================
    # Cleanup
    # =========================================================================

    async def close(self) -> None:
        """Close the connections this pipeline opened."""
        if self._owns_search:
            await self.search.close()
        if self._owns_llm:
            llm = getattr(self.extractor, "llm", None) or getattr(
                getattr(self.extractor, "primary", None), "llm", None
            )
            if llm is not None:
                await llm.close()
        if self._owns_store:
            await self.store.close()


# =============================================================================
# Convenience Functions
# =============================================================================

async def discover_wine(
    winery: str,
    wine_name: str,
    vintage: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> DiscoveryResult:
    """
    Convenience function to discover a single wine.

    Example:
        >>> result = await discover_wine("Tabor Winery", "Adama", "2018")
        >>> print(result.wine.grapes)
    """
    async with WineDiscoveryPipeline(settings=settings) as pipeline:
        return await pipeline.discover(winery, wine_name, vintage)
