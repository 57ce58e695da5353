"""
Pydantic models and schemas for the Wine Discovery Pipeline.

This module defines all data structures used throughout the pipeline,
ensuring type safety, validation, and serialization consistency.

Models:
    - DiscoveryRequest: Free-text (winery, name, vintage) input
    - WineRecord: The discovered, validated and cached wine
    - DiscoveryFailure: Structured reason a discovery run did not produce a wine
    - DiscoveryResult: Uniform outcome of a discovery run
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional, Self

from pydantic import (
    BaseModel as PydanticBaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)


NON_VINTAGE = "NV"
UNKNOWN = "Unknown"
MIN_VINTAGE_YEAR = 1900
MIN_ALCOHOL = 5.0
MAX_ALCOHOL = 22.0


# =============================================================================
# Base Configuration
# =============================================================================

class BaseModel(PydanticBaseModel):
    """Base model with common configuration for all schemas."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=False,
        populate_by_name=True,
        use_enum_values=True,
    )

    def to_json(self, **kwargs) -> str:
        """Serialize model to JSON string using the public camelCase names."""
        return self.model_dump_json(indent=2, by_alias=True, **kwargs)

    def to_dict(self, **kwargs) -> dict[str, Any]:
        """Serialize model to dictionary."""
        return self.model_dump(**kwargs)

    @classmethod
    def from_json(cls, json_str: str) -> Self:
        """Deserialize model from JSON string."""
        return cls.model_validate_json(json_str)


class TimestampMixin(BaseModel):
    """Mixin for models that need timestamp tracking."""

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        alias="createdAt",
        description="Record creation timestamp (UTC)",
    )
    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        alias="updatedAt",
        description="Last update timestamp (UTC)",
    )

    @field_serializer("created_at", "updated_at", when_used="json")
    def serialize_datetime(self, value: Optional[datetime]) -> Optional[str]:
        """Serialize datetime to ISO format string."""
        if not value:
            return None
        # Naive values are UTC
        if value.tzinfo is None:
            return value.isoformat() + "Z"
        return value.isoformat()


# =============================================================================
# Enums
# =============================================================================

class WineType(str, Enum):
    """Wine style classification."""
    RED = "RED"
    WHITE = "WHITE"
    ROSE = "ROSÉ"
    SPARKLING = "SPARKLING"
    DESSERT = "DESSERT"
    FORTIFIED = "FORTIFIED"

    @classmethod
    def parse(cls, value: Any) -> Optional["WineType"]:
        """Map free text such as 'rose', 'Rosé' or 'white' onto a member."""
        if not isinstance(value, str) or not value.strip():
            return None
        text = value.strip().upper()
        if text in ("ROSE", "ROSÉ"):
            return cls.ROSE
        try:
            return cls(text)
        except ValueError:
            return None


class WineSource(str, Enum):
    """Provenance of a wine record."""
    AI = "AI"
    HEURISTIC = "HEURISTIC"
    MANUAL = "MANUAL"
    IMPORT = "IMPORT"


class DiscoveryStage(str, Enum):
    """Discovery state machine stages."""
    CACHE_CHECK = "cache_check"
    SEARCHING = "searching"
    EXTRACTING = "extracting"
    VALIDATING = "validating"
    ENRICHING = "enriching"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


class FailureReason(str, Enum):
    """Why a discovery run could not produce a wine."""
    SEARCH_UNAVAILABLE = "search_unavailable"
    NO_SEARCH_RESULTS = "no_search_results"
    EXTRACTION_FAILED = "extraction_failed"
    VALIDATION_REJECTED = "validation_rejected"
    PERSISTENCE_CONFLICT = "persistence_conflict"


class RejectionReason(str, Enum):
    """Business rule a candidate wine violated, in evaluation order."""
    BLANK_WINERY = "blank_winery"
    BLANK_WINE_NAME = "blank_wine_name"
    INVALID_VINTAGE = "invalid_vintage"
    ALCOHOL_OUT_OF_RANGE = "alcohol_out_of_range"


# =============================================================================
# Input Models
# =============================================================================

class DiscoveryRequest(BaseModel):
    """
    Input model for a wine discovery request.

    A missing or blank vintage is normalized to the non-vintage token.

    Example:
        >>> request = DiscoveryRequest(winery="Tabor Winery", wine_name="Adama")
        >>> request.vintage
        'NV'
    """

    winery: str = Field(default="", max_length=255, examples=["Tabor Winery"])
    wine_name: str = Field(default="", alias="wineName", max_length=255, examples=["Adama"])
    vintage: str = Field(default=NON_VINTAGE, max_length=16, examples=["2018", "NV"])

    @field_validator("winery", "wine_name", mode="before")
    @classmethod
    def none_to_empty(cls, v: Optional[str]) -> str:
        return "" if v is None else v

    @field_validator("vintage", mode="before")
    @classmethod
    def default_vintage(cls, v: Optional[Any]) -> str:
        """Normalize missing vintages to 'NV' and numeric vintages to strings."""
        if v is None:
            return NON_VINTAGE
        v = str(v).strip()
        return v or NON_VINTAGE

    @property
    def is_non_vintage(self) -> bool:
        return self.vintage.upper() == NON_VINTAGE

    @property
    def natural_key(self) -> tuple[str, str, str]:
        return (self.winery, self.wine_name, self.vintage)


# =============================================================================
# Wine Record
# =============================================================================

class WineRecord(TimestampMixin):
    """
    A discovered wine.

    The triple (winery, wine_name, vintage) is the natural key. Alcohol bounds
    are a business rule checked by the validation service, so out-of-range
    candidates can still be represented and rejected.

    Example:
        >>> wine = WineRecord(winery="Tabor Winery", wine_name="Adama", vintage="2018")
        >>> wine.wine_type
        'RED'
    """

    id: Optional[int] = Field(default=None, description="Store-assigned identity")
    winery: str = Field(default="", max_length=255)
    wine_name: str = Field(default="", alias="wineName", max_length=255)
    vintage: str = Field(default=NON_VINTAGE, max_length=16)
    grapes: list[str] = Field(default_factory=list)
    region: str = Field(default=UNKNOWN, max_length=255)
    country: str = Field(default=UNKNOWN, max_length=255)
    alcohol_content: Optional[float] = Field(default=None, alias="alcoholContent")
    wine_type: WineType = Field(default=WineType.RED, alias="type")
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    source: WineSource = Field(default=WineSource.AI)
    validated: bool = Field(default=False)

    @field_validator("winery", "wine_name", mode="before")
    @classmethod
    def none_to_empty(cls, v: Optional[str]) -> str:
        return "" if v is None else v

    @field_validator("vintage", mode="before")
    @classmethod
    def vintage_to_str(cls, v: Optional[Any]) -> str:
        if v is None:
            return ""
        if isinstance(v, float) and v.is_integer():
            v = int(v)
        return str(v).strip()

    @field_validator("region", "country", mode="before")
    @classmethod
    def unknown_if_blank(cls, v: Optional[str]) -> str:
        if v is None or (isinstance(v, str) and not v.strip()):
            return UNKNOWN
        return v

    @field_validator("grapes", mode="before")
    @classmethod
    def dedupe_grapes(cls, v: Optional[list[Any]]) -> list[str]:
        """Drop blanks and duplicates while preserving first-seen order."""
        if not v:
            return []
        if isinstance(v, str):
            v = [v]
        cleaned = [str(g).strip() for g in v if g is not None and str(g).strip()]
        return list(dict.fromkeys(cleaned))

    @field_validator("wine_type", mode="before")
    @classmethod
    def parse_wine_type(cls, v: Any) -> Any:
        if isinstance(v, WineType):
            return v
        return WineType.parse(v) or WineType.RED

    @property
    def natural_key(self) -> tuple[str, str, str]:
        return (self.winery, self.wine_name, self.vintage)

    @property
    def display_name(self) -> str:
        return f"{self.winery} {self.wine_name} {self.vintage}".strip()


# =============================================================================
# Outcome Models
# =============================================================================

class DiscoveryFailure(BaseModel):
    """Structured 'could not discover wine' outcome."""

    reason: FailureReason
    message: str = "Could not discover wine details. Please manually enter the wine information."
    detail: Optional[str] = None
    rejection: Optional[RejectionReason] = None
    stage: Optional[DiscoveryStage] = None


class DiscoveryResult(BaseModel):
    """
    Uniform outcome of a discovery run: either a wine or a failure.

    Example:
        >>> result = await pipeline.discover("Tabor Winery", "Adama", "2018")
        >>> if result.succeeded:
        ...     print(result.wine.region)
    """

    run_id: str
    wine: Optional[WineRecord] = None
    failure: Optional[DiscoveryFailure] = None
    cache_hit: bool = False
    conflict_recovered: bool = False
    step_timings: dict[str, int] = Field(default_factory=dict)

    @model_validator(mode="after")
    def exactly_one_outcome(self) -> Self:
        if (self.wine is None) == (self.failure is None):
            raise ValueError("DiscoveryResult needs exactly one of wine or failure")
        return self

    @property
    def succeeded(self) -> bool:
        return self.wine is not None
