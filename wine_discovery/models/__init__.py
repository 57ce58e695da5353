"""Data models module for the Wine Discovery Pipeline."""

from wine_discovery.models.schemas import (
    # Base Models
    BaseModel,
    TimestampMixin,

    # Enums
    WineType,
    WineSource,
    DiscoveryStage,
    FailureReason,
    RejectionReason,

    # Input Models
    DiscoveryRequest,

    # Wine Models
    WineRecord,

    # Outcome Models
    DiscoveryFailure,
    DiscoveryResult,

    # Constants
    NON_VINTAGE,
    UNKNOWN,
)

__all__ = [
    # Base Models
    "BaseModel",
    "TimestampMixin",

    # Enums
    "WineType",
    "WineSource",
    "DiscoveryStage",
    "FailureReason",
    "RejectionReason",

    # Input Models
    "DiscoveryRequest",

    # Wine Models
    "WineRecord",

    # Outcome Models
    "DiscoveryFailure",
    "DiscoveryResult",

    # Constants
    "NON_VINTAGE",
    "UNKNOWN",
]
