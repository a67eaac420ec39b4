"""Outage ledger models.

The ledger is persisted as a single JSON document: a status snapshot per
station plus an append-only log of outage intervals. Statistics are derived
from the log on demand and never stored.
"""

from pydantic import BaseModel, Field


class OutageEvent(BaseModel):
    """One maintenance-flag outage for one station.

    ``end_epoch_ms`` is None while the outage is ongoing. Times come from the
    METAR observation itself, not from when the ledger processed it.
    """

    station_id: str
    station_name: str
    start_epoch_ms: int
    start_zulu: str = ""
    end_epoch_ms: int | None = None
    end_zulu: str | None = None
    duration_minutes: int | None = None

    @property
    def is_open(self) -> bool:
        return self.end_epoch_ms is None


class StationStatus(BaseModel):
    has_flag: bool
    last_seen_wall_clock_ms: int
    last_observation_epoch_ms: int
    last_observation_zulu: str = ""
    station_name: str


class Ledger(BaseModel):
    station_status: dict[str, StationStatus] = Field(default_factory=dict)
    outage_log: list[OutageEvent] = Field(default_factory=list)


class StationUpdate(BaseModel):
    """One station's flag sample, as submitted to the ledger."""

    station_id: str = Field(..., min_length=1)
    station_name: str = ""
    has_flag: bool
    observation_epoch_ms: int
    observation_zulu: str = ""


class StationStats(BaseModel):
    station_id: str
    station_name: str
    total_outages: int = 0
    total_downtime_minutes: int = 0
    average_downtime_minutes: int = 0
    longest_outage_minutes: int = 0
    first_outage_epoch_ms: int | None = None
    last_outage_epoch_ms: int | None = None
    currently_down: bool = False
    current_outage_start_epoch_ms: int | None = None
    downtime_percentage: float = 0.0


class LedgerUpdateResult(BaseModel):
    """Outcome of one read-modify-write cycle.

    ``ok`` is False when the write failed; the caller decides whether to retry.
    """

    ok: bool
    events_opened: int = 0
    events_closed: int = 0
    error: str | None = None
