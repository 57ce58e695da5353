"""
Validation service for candidate wine records.

Applies the business rules that gate persistence, in a fixed order,
stopping at the first violation.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from wine_discovery.models.schemas import (
    MAX_ALCOHOL,
    MIN_ALCOHOL,
    MIN_VINTAGE_YEAR,
    NON_VINTAGE,
    RejectionReason,
    WineRecord,
)
from wine_discovery.utils.logger import get_logger
from wine_discovery.utils.retry import ValidationRejectedError

logger = get_logger(__name__)


@dataclass(frozen=True)
class ValidationOutcome:
    """Result of validating a candidate."""
    accepted: bool
    reason: Optional[RejectionReason] = None
    message: str = ""

    @classmethod
    def accept(cls) -> "ValidationOutcome":
        return cls(accepted=True)

    @classmethod
    def reject(cls, reason: RejectionReason, message: str) -> "ValidationOutcome":
        return cls(accepted=False, reason=reason, message=message)


class ValidationService:
    """
    Service for validating candidate wines before they are stored.

    Rules, in order:
        1. winery is not blank
        2. wine name is not blank
        3. vintage is 'NV' (any case) or a year between 1900 and the current year
        4. alcohol content, when present, is between 5 and 22

    Example:
        >>> service = ValidationService(current_year=lambda: 2024)
        >>> service.validate(WineRecord(winery="Tabor", wine_name="Adama", vintage="2025")).reason.value
        'invalid_vintage'
    """

    YEAR_PATTERN = re.compile(r"^[0-9]+$")

    def __init__(self, current_year: Optional[Callable[[], int]] = None):
        self._current_year = current_year or (lambda: datetime.now().year)

    def validate(self, record: WineRecord) -> ValidationOutcome:
        """Check a candidate; marks it validated when every rule passes."""
        outcome = self._check(record)
        if outcome.accepted:
            record.validated = True
        else:
            logger.warning(
                "Validation failed",
                reason=outcome.reason.value,
                detail=outcome.message,
                winery=record.winery,
                wine_name=record.wine_name,
            )
        return outcome

    def ensure_valid(self, record: WineRecord) -> WineRecord:
        """Validate a candidate, raising ValidationRejectedError on the first violation."""
        outcome = self.validate(record)
        if not outcome.accepted:
            raise ValidationRejectedError(outcome.reason, outcome.message)
        return record

    def _check(self, record: WineRecord) -> ValidationOutcome:
        if not record.winery or not record.winery.strip():
            return ValidationOutcome.reject(RejectionReason.BLANK_WINERY, "winery is empty")

        if not record.wine_name or not record.wine_name.strip():
            return ValidationOutcome.reject(RejectionReason.BLANK_WINE_NAME, "wine name is empty")

        vintage = (record.vintage or "").strip()
        if not vintage:
            return ValidationOutcome.reject(RejectionReason.INVALID_VINTAGE, "vintage is empty")
        if vintage.upper() != NON_VINTAGE:
            if not self.YEAR_PATTERN.match(vintage):
                return ValidationOutcome.reject(
                    RejectionReason.INVALID_VINTAGE,
                    f"vintage is not a year: {vintage}",
                )
            year = int(vintage)
            current_year = self._current_year()
            if year < MIN_VINTAGE_YEAR or year > current_year:
                return ValidationOutcome.reject(
                    RejectionReason.INVALID_VINTAGE,
                    f"vintage out of range [{MIN_VINTAGE_YEAR}, {current_year}]: {year}",
                )

        alcohol = record.alcohol_content
        if alcohol is not None and not (MIN_ALCOHOL <= alcohol <= MAX_ALCOHOL):
            return ValidationOutcome.reject(
                RejectionReason.ALCOHOL_OUT_OF_RANGE,
                f"alcohol content out of range [{MIN_ALCOHOL:g}, {MAX_ALCOHOL:g}]: {alcohol}",
            )

        return ValidationOutcome.accept()
