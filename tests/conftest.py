"""Shared test fixtures for the metarboard test suite.

The ledger tests run against an in-memory blob store with a fixed clock, so
the state machine and statistics are exercised without a database. Provider
calls are answered by ``httpx.MockTransport`` handlers rather than the network.
"""

from typing import Any

import pytest

from metarboard.models.observation import CloudLayer, FlightCategory, Observation, ReportKind
from metarboard.models.outage import OutageEvent, StationUpdate
from metarboard.services.blob_store import BlobStore, BlobStoreError, InMemoryBlobStore
from metarboard.services.ledger import OutageLedger

# 2025-08-14 12:00:00 UTC
T0_MS = 1_755_172_800_000
MINUTE_MS = 60_000


# ── Factory helpers ───────────────────────────────────────────────────────────


def make_awc_record(
    icao: str = "KORD",
    raw: str = "KORD 141151Z 27010KT 10SM FEW250 25/12 A3001 RMK AO2",
    **overrides: Any,
) -> dict[str, Any]:
    """A METAR record shaped like the aviationweather.gov JSON API."""
    record = {
        "icaoId": icao,
        "rawOb": raw,
        "name": "Chicago/O'Hare Intl, IL, US",
        "lat": 41.9602,
        "lon": -87.9316,
        "elev": 200,
        "obsTime": T0_MS // 1000,
        "reportTime": "2025-08-14T12:00:00.000Z",
        "temp": 25.0,
        "dewp": 12.0,
        "wdir": 270,
        "wspd": 10,
        "wgst": None,
        "visib": "10+",
        "altim": 1016.5,
        "fltCat": "VFR",
        "clouds": [{"cover": "FEW", "base": 25000}],
        "wxString": None,
        "metarType": "METAR",
    }
    record.update(overrides)
    return record


def make_observation(
    station_id: str = "KORD",
    observation_zulu: str = "141151Z",
    observation_epoch_ms: int = T0_MS,
    has_maintenance_flag: bool = False,
    station_name: str | None = None,
    raw_text: str | None = None,
) -> Observation:
    """Create an Observation for testing."""
    raw = raw_text or f"{station_id} {observation_zulu} 27010KT 10SM CLR 25/12 A3001"
    if has_maintenance_flag and not raw.endswith("$"):
        raw += " $"
    return Observation(
        station_id=station_id,
        raw_text=raw,
        station_name=station_name or station_id,
        latitude=41.96,
        longitude=-87.93,
        elevation_meters=60.96,
        observed_at_iso="2025-08-14T12:00:00+00:00",
        observation_zulu=observation_zulu,
        observation_epoch_ms=observation_epoch_ms,
        wind_direction_deg=270,
        wind_speed_kt=10,
        wind_gust_kt=None,
        visibility_statute_miles=10.0,
        temperature_c=25.0,
        dewpoint_c=12.0,
        altimeter_in_hg=30.01,
        flight_category=FlightCategory.VFR,
        clouds=[CloudLayer("FEW", 25000)],
        weather_phenomena=[],
        has_maintenance_flag=has_maintenance_flag,
        report_kind=ReportKind.METAR,
    )


def make_update(
    station_id: str = "KXXX",
    has_flag: bool = False,
    epoch_ms: int = T0_MS,
    zulu: str = "141200Z",
    station_name: str = "Test Field",
) -> StationUpdate:
    return StationUpdate(
        station_id=station_id,
        station_name=station_name,
        has_flag=has_flag,
        observation_epoch_ms=epoch_ms,
        observation_zulu=zulu,
    )


def make_event(
    station_id: str = "KXXX",
    start_ms: int = T0_MS,
    duration_minutes: int | None = None,
) -> OutageEvent:
    """A closed event when ``duration_minutes`` is given, otherwise an open one."""
    event = OutageEvent(station_id=station_id, station_name="Test Field", start_epoch_ms=start_ms)
    if duration_minutes is not None:
        event.end_epoch_ms = start_ms + duration_minutes * MINUTE_MS
        event.duration_minutes = duration_minutes
    return event


class FailingBlobStore(BlobStore):
    """Store whose reads and/or writes raise, to exercise failure paths."""

    def __init__(self, fail_get: bool = False, fail_set: bool = False, initial: str | None = None):
        self.fail_get = fail_get
        self.fail_set = fail_set
        self.blob = initial
        self.set_calls = 0

    async def get(self, key: str) -> str | None:
        if self.fail_get:
            raise BlobStoreError("connection refused")
        return self.blob

    async def set(self, key: str, blob: str) -> None:
        self.set_calls += 1
        if self.fail_set:
            raise BlobStoreError("read-only replica")
        self.blob = blob

    async def delete(self, key: str) -> None:
        if self.fail_set:
            raise BlobStoreError("read-only replica")
        self.blob = None


class FixedClock:
    """Wall clock for the ledger; tests move it explicitly."""

    def __init__(self, now_ms: int = T0_MS):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms


# ── Fixtures ──────────────────────────────────────────────────────────────────


@pytest.fixture
def memory_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def ledger(memory_store: InMemoryBlobStore, clock: FixedClock) -> OutageLedger:
    """A ledger over an empty in-memory store with a controllable clock."""
    return OutageLedger(memory_store, key="test-ledger", max_events=1000, clock=clock)
