from metarboard.models.blob import KvBlob
from metarboard.models.observation import (
    CloudLayer,
    FlightCategory,
    Observation,
    ReportKind,
    TafPeriod,
    TafReport,
)
from metarboard.models.outage import (
    Ledger,
    LedgerUpdateResult,
    OutageEvent,
    StationStats,
    StationStatus,
    StationUpdate,
)

__all__ = [
    "CloudLayer",
    "FlightCategory",
    "KvBlob",
    "Ledger",
    "LedgerUpdateResult",
    "Observation",
    "OutageEvent",
    "ReportKind",
    "StationStats",
    "StationStatus",
    "StationUpdate",
    "TafPeriod",
    "TafReport",
]
