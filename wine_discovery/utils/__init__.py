"""Utils module for the Wine Discovery Pipeline."""

from wine_discovery.utils.logger import get_logger, setup_logging, LogContext
from wine_discovery.utils.retry import (
    call_with_timeout,
    ErrorHandler,
    AppError,
    ConfigurationError,
    AppTimeoutError,
    SearchUnavailableError,
    NoSearchResultsError,
    ExtractionFailedError,
    ValidationRejectedError,
    DuplicateWineError,
    DiscoveryInternalError,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "LogContext",
    "call_with_timeout",
    "ErrorHandler",
    "AppError",
    "ConfigurationError",
    "AppTimeoutError",
    "SearchUnavailableError",
    "NoSearchResultsError",
    "ExtractionFailedError",
    "ValidationRejectedError",
    "DuplicateWineError",
    "DiscoveryInternalError",
]
