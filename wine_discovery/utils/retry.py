"""
Resilient error handling utilities.

Provides the application exception hierarchy, timeout wrapping for external
calls, and centralized error categorization.
"""

import asyncio
from typing import Awaitable, Optional, TypeVar

from wine_discovery.models.schemas import FailureReason, RejectionReason
from wine_discovery.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# =============================================================================
# Custom Exceptions
# =============================================================================

class AppError(Exception):
    """Base application exception."""
    pass

class ConfigurationError(AppError):
    pass

class AppTimeoutError(AppError):
    def __init__(self, operation: str, seconds: float):
        self.operation = operation
        self.seconds = seconds
        super().__init__(f"{operation} timed out after {seconds:.1f}s")

class SearchUnavailableError(AppError):
    """No search provider could serve the request."""
    pass

class NoSearchResultsError(AppError):
    """The search succeeded but returned no organic results."""
    pass

class ExtractionFailedError(AppError):
    """No structured candidate could be extracted from a search payload."""
    pass

class ValidationRejectedError(AppError):
    def __init__(self, reason: RejectionReason, message: str):
        self.reason = reason
        self.message = message
        super().__init__(message)

class DuplicateWineError(AppError):
    """A record with the same natural key already exists."""

    def __init__(self, key: tuple[str, str, str]):
        self.key = key
        super().__init__(f"Wine already exists: {' / '.join(key)}")

class DiscoveryInternalError(AppError):
    """Unexpected fault inside a discovery run."""

    def __init__(self, message: str, run_id: Optional[str] = None):
        self.run_id = run_id
        super().__init__(message)

# =============================================================================
# Timeouts
# =============================================================================

async def call_with_timeout(
    awaitable: Awaitable[T],
    seconds: float,
    operation: str,
) -> T:
    """
    Await an external call, converting a timeout into AppTimeoutError.

    Args:
        awaitable: Coroutine for the external call.
        seconds: Time budget for the call.
        operation: Name used in the error and log event.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError:
        logger.warning("external_call_timeout", operation=operation, timeout_seconds=seconds)
        raise AppTimeoutError(operation, seconds) from None

# =============================================================================
# Error Handler
# =============================================================================

class ErrorHandler:
    """Centralized error handling and categorization."""

    @staticmethod
    def categorize_error(error: Exception, stage: Optional[str] = None) -> Optional[FailureReason]:
        """
        Map an exception raised inside a discovery stage to a failure reason.

        Returns None for faults that are not recoverable discovery outcomes.
        """
        if isinstance(error, SearchUnavailableError):
            return FailureReason.SEARCH_UNAVAILABLE
        if isinstance(error, NoSearchResultsError):
            return FailureReason.NO_SEARCH_RESULTS
        if isinstance(error, ExtractionFailedError):
            return FailureReason.EXTRACTION_FAILED
        if isinstance(error, ValidationRejectedError):
            return FailureReason.VALIDATION_REJECTED
        if isinstance(error, DuplicateWineError):
            return FailureReason.PERSISTENCE_CONFLICT
        if isinstance(error, AppTimeoutError):
            # A timeout means the stage's backend is unavailable
            if stage == "search":
                return FailureReason.SEARCH_UNAVAILABLE
            if stage == "extract":
                return FailureReason.EXTRACTION_FAILED
        return None
