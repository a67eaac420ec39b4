"""Outage ledger — turns repeated maintenance-flag samples into outage intervals.

Each station is either UP (no ``$``) or DOWN (``$``). Every batch of samples is
diffed against the stored per-station status:

- UP -> DOWN appends an open OutageEvent starting at the sample's report time.
- DOWN -> UP closes the station's open event at the sample's report time.
- No change only refreshes the status snapshot.

The ledger document is read whole, mutated in memory, and written back whole
under a single key. The outage log is capped (oldest dropped first), and all
statistics are recomputed from it on demand.

Within one process, read-modify-write cycles are serialized by a lock on the
ledger instance. Separate processes sharing a store race last-writer-wins.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterable, Sequence

from pydantic import ValidationError

from metarboard.core.config import settings
from metarboard.models.observation import Observation
from metarboard.models.outage import (
    Ledger,
    LedgerUpdateResult,
    OutageEvent,
    StationStats,
    StationStatus,
    StationUpdate,
)
from metarboard.services.blob_store import BlobStore, BlobStoreError
from metarboard.services.decoder import round_half_up

logger = logging.getLogger(__name__)

MS_PER_MINUTE = 60_000

RANKABLE_FIELDS = frozenset({
    "total_outages",
    "total_downtime_minutes",
    "average_downtime_minutes",
    "longest_outage_minutes",
    "downtime_percentage",
    "first_outage_epoch_ms",
    "last_outage_epoch_ms",
})


def _now_ms() -> int:
    return int(time.time() * 1000)


def outage_duration_minutes(start_ms: int, end_ms: int) -> int:
    return max(0, round_half_up((end_ms - start_ms) / MS_PER_MINUTE))


# ── Pure state transitions ────────────────────────────────────────────────────


def _find_open_event(ledger: Ledger, station_id: str) -> OutageEvent | None:
    for event in reversed(ledger.outage_log):
        if event.station_id == station_id and event.is_open:
            return event
    return None


def apply_updates_to_ledger(
    ledger: Ledger,
    updates: Iterable[StationUpdate],
    now_ms: int,
    open_on_first_sight: bool = False,
) -> tuple[int, int]:
    """Apply samples in order, transition by transition. Mutates ``ledger``.

    A station seen for the first time is only registered, unless
    ``open_on_first_sight`` is set, in which case a first sample that is
    already flagged opens an event starting at that sample.

    Returns:
        (events_opened, events_closed)
    """
    opened = closed = 0

    for update in updates:
        current = ledger.station_status.get(update.station_id)
        if current is None:
            was_down = None if not open_on_first_sight else False
        else:
            was_down = current.has_flag

        if was_down is not None and was_down != update.has_flag:
            if update.has_flag:
                if _find_open_event(ledger, update.station_id) is None:
                    ledger.outage_log.append(
                        OutageEvent(
                            station_id=update.station_id,
                            station_name=update.station_name or update.station_id,
                            start_epoch_ms=update.observation_epoch_ms,
                            start_zulu=update.observation_zulu,
                        )
                    )
                    opened += 1
            else:
                event = _find_open_event(ledger, update.station_id)
                if event is not None:
                    event.end_epoch_ms = update.observation_epoch_ms
                    event.end_zulu = update.observation_zulu
                    event.duration_minutes = outage_duration_minutes(
                        event.start_epoch_ms, update.observation_epoch_ms
                    )
                    closed += 1
                else:
                    logger.debug("%s recovered with no open outage to close", update.station_id)

        ledger.station_status[update.station_id] = StationStatus(
            has_flag=update.has_flag,
            last_seen_wall_clock_ms=now_ms,
            last_observation_epoch_ms=update.observation_epoch_ms,
            last_observation_zulu=update.observation_zulu,
            station_name=update.station_name or update.station_id,
        )

    return opened, closed


def trim_outage_log(ledger: Ledger, max_events: int) -> int:
    """Drop the oldest events beyond ``max_events``. Returns how many were dropped."""
    excess = len(ledger.outage_log) - max_events
    if excess <= 0:
        return 0
    del ledger.outage_log[:excess]
    return excess


def updates_from_observations(observations: Iterable[Observation]) -> list[StationUpdate]:
    return [
        StationUpdate(
            station_id=obs.station_id,
            station_name=obs.station_name,
            has_flag=obs.has_maintenance_flag,
            observation_epoch_ms=obs.observation_epoch_ms,
            observation_zulu=obs.observation_zulu,
        )
        for obs in observations
    ]


# ── Derived statistics ────────────────────────────────────────────────────────


def _downtime_percentage(total_minutes: int, first_start_ms: int, now_ms: int) -> float:
    elapsed_minutes = (now_ms - first_start_ms) / MS_PER_MINUTE
    if elapsed_minutes <= 0:
        return 0.0
    pct = 100.0 * total_minutes / elapsed_minutes
    return round_half_up(min(100.0, max(0.0, pct)) * 10) / 10


def compute_station_stats(
    events: Sequence[OutageEvent],
    now_ms: int | None = None,
) -> list[StationStats]:
    """Per-station leaderboard rows, in order of each station's first event.

    Only stations with at least one outage appear. Averages and the longest
    outage consider closed events only; the downtime percentage is total
    closed downtime over the time since the station's first outage.
    """
    now_ms = now_ms if now_ms is not None else _now_ms()

    grouped: dict[str, list[OutageEvent]] = {}
    for event in events:
        grouped.setdefault(event.station_id, []).append(event)

    rows = []
    for station_id, station_events in grouped.items():
        durations = [e.duration_minutes for e in station_events if e.duration_minutes is not None]
        starts = [e.start_epoch_ms for e in station_events]
        open_events = [e for e in station_events if e.is_open]
        total = sum(durations)
        first_start = min(starts)

        rows.append(
            StationStats(
                station_id=station_id,
                station_name=station_events[0].station_name,
                total_outages=len(station_events),
                total_downtime_minutes=total,
                average_downtime_minutes=round_half_up(total / len(durations)) if durations else 0,
                longest_outage_minutes=max(durations) if durations else 0,
                first_outage_epoch_ms=first_start,
                last_outage_epoch_ms=max(starts),
                currently_down=bool(open_events),
                current_outage_start_epoch_ms=open_events[-1].start_epoch_ms if open_events else None,
                downtime_percentage=(
                    _downtime_percentage(total, first_start, now_ms) if durations else 0.0
                ),
            )
        )
    return rows


def rank_stations(
    stats: Iterable[StationStats],
    sort_field: str = "total_outages",
    descending: bool = True,
    currently_down_only: bool = False,
) -> list[StationStats]:
    if sort_field not in RANKABLE_FIELDS:
        raise ValueError(f"Cannot rank by {sort_field!r}")
    rows = [s for s in stats if s.currently_down or not currently_down_only]
    return sorted(rows, key=lambda s: getattr(s, sort_field) or 0, reverse=descending)


def recent_outages(events: Iterable[OutageEvent], limit: int = 50) -> list[OutageEvent]:
    """Newest outages first, by start time."""
    return sorted(events, key=lambda e: e.start_epoch_ms, reverse=True)[:limit]


# ── Persistent ledger ─────────────────────────────────────────────────────────


class OutageLedger:
    """The ledger document in a blob store, plus the operations over it."""

    def __init__(
        self,
        store: BlobStore,
        key: str | None = None,
        max_events: int | None = None,
        open_on_first_sight: bool = False,
        clock: Callable[[], int] = _now_ms,
    ):
        self._store = store
        self.key = key or settings.ledger_key
        self.max_events = max_events or settings.ledger_max_events
        self.open_on_first_sight = open_on_first_sight
        self._clock = clock
        self._lock = asyncio.Lock()

    def _parse(self, blob: str | None) -> Ledger:
        if not blob:
            return Ledger()
        try:
            return Ledger.model_validate_json(blob)
        except ValidationError:
            logger.error("Stored ledger under %s is unreadable; starting empty", self.key)
            return Ledger()

    async def load(self) -> Ledger:
        """Current ledger. A store failure reads as an empty ledger."""
        try:
            blob = await self._store.get(self.key)
        except BlobStoreError:
            logger.exception("Ledger read failed; serving empty history")
            return Ledger()
        return self._parse(blob)

    async def apply_updates(self, updates: Sequence[StationUpdate]) -> LedgerUpdateResult:
        """Diff one batch of samples into the ledger and persist it.

        Store failures come back as ``ok=False``; the in-memory changes are
        discarded and nothing is retried here.
        """
        async with self._lock:
            try:
                ledger = self._parse(await self._store.get(self.key))
            except BlobStoreError as exc:
                # never write over history that could not be read
                logger.error("Ledger read failed, update of %d samples not applied: %s", len(updates), exc)
                return LedgerUpdateResult(ok=False, error=str(exc))

            opened, closed = apply_updates_to_ledger(
                ledger, updates, self._clock(), self.open_on_first_sight
            )
            dropped = trim_outage_log(ledger, self.max_events)
            if dropped:
                logger.info("Outage log over cap, dropped %d oldest events", dropped)

            try:
                await self._store.set(self.key, ledger.model_dump_json())
            except BlobStoreError as exc:
                logger.error("Ledger write failed, %d samples not persisted: %s", len(updates), exc)
                return LedgerUpdateResult(ok=False, error=str(exc))

        if opened or closed:
            logger.info("Ledger updated: %d outages opened, %d closed", opened, closed)
        return LedgerUpdateResult(ok=True, events_opened=opened, events_closed=closed)

    async def clear(self) -> bool:
        async with self._lock:
            try:
                await self._store.delete(self.key)
            except BlobStoreError:
                logger.exception("Ledger clear failed")
                return False
        logger.info("Ledger cleared")
        return True

    async def station_stats(self) -> list[StationStats]:
        ledger = await self.load()
        return compute_station_stats(ledger.outage_log, self._clock())

    async def recent_outages(self, limit: int = 50) -> list[OutageEvent]:
        ledger = await self.load()
        return recent_outages(ledger.outage_log, limit)
