import asyncio

import pytest

from wine_discovery.models.schemas import FailureReason, RejectionReason
from wine_discovery.utils.retry import (
    AppTimeoutError,
    DiscoveryInternalError,
    DuplicateWineError,
    ErrorHandler,
    ExtractionFailedError,
    NoSearchResultsError,
    SearchUnavailableError,
    ValidationRejectedError,
    call_with_timeout,
)


@pytest.mark.asyncio
async def test_call_with_timeout_returns_value():
    async def quick():
        return "ok"

    assert await call_with_timeout(quick(), 1.0, "quick") == "ok"


@pytest.mark.asyncio
async def test_call_with_timeout_raises_app_timeout():
    async def slow():
        await asyncio.sleep(1)

    with pytest.raises(AppTimeoutError) as exc:
        await call_with_timeout(slow(), 0.01, "slow_call")
    assert exc.value.operation == "slow_call"
    assert "timed out" in str(exc.value)


@pytest.mark.asyncio
async def test_call_with_timeout_propagates_errors():
    async def broken():
        raise SearchUnavailableError("down")

    with pytest.raises(SearchUnavailableError):
        await call_with_timeout(broken(), 1.0, "broken")


@pytest.mark.parametrize("error,stage,expected", [
    (SearchUnavailableError("x"), None, FailureReason.SEARCH_UNAVAILABLE),
    (NoSearchResultsError("x"), None, FailureReason.NO_SEARCH_RESULTS),
    (ExtractionFailedError("x"), None, FailureReason.EXTRACTION_FAILED),
    (ValidationRejectedError(RejectionReason.BLANK_WINERY, "x"), None, FailureReason.VALIDATION_REJECTED),
    (DuplicateWineError(("a", "b", "NV")), None, FailureReason.PERSISTENCE_CONFLICT),
    (AppTimeoutError("text_search", 1), "search", FailureReason.SEARCH_UNAVAILABLE),
    (AppTimeoutError("extraction", 1), "extract", FailureReason.EXTRACTION_FAILED),
    (AppTimeoutError("other", 1), None, None),
    (ValueError("x"), "search", None),
])
def test_categorize_error(error, stage, expected):
    assert ErrorHandler.categorize_error(error, stage=stage) == expected


def test_exception_details():
    duplicate = DuplicateWineError(("Tabor Winery", "Adama", "2018"))
    assert duplicate.key == ("Tabor Winery", "Adama", "2018")
    assert "Tabor Winery / Adama / 2018" in str(duplicate)

    internal = DiscoveryInternalError("boom", run_id="run-1")
    assert internal.run_id == "run-1"

    rejected = ValidationRejectedError(RejectionReason.INVALID_VINTAGE, "vintage out of range")
    assert rejected.reason == RejectionReason.INVALID_VINTAGE
    assert rejected.message == "vintage out of range"
