"""Batch collector — every current US METAR, one per station.

The data API has no "all stations" query, so we fan out over the state
selectors in fixed-size groups: each group's requests run concurrently, groups
run one after another. That caps outbound concurrency at the group size without
a semaphore.

A failed state contributes nothing and is logged; the rest of the sweep still
returns. Stations near state borders show up under more than one state, so the
merged result is deduplicated, keeping the freshest report.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence

import httpx

from metarboard.core.config import settings
from metarboard.models.observation import Observation
from metarboard.services import awc_client

logger = logging.getLogger(__name__)

US_STATES: tuple[str, ...] = (
    "al", "ak", "az", "ar", "ca", "co", "ct", "de", "fl", "ga",
    "hi", "id", "il", "in", "ia", "ks", "ky", "la", "me", "md",
    "ma", "mi", "mn", "ms", "mo", "mt", "ne", "nv", "nh", "nj",
    "nm", "ny", "nc", "nd", "oh", "ok", "or", "pa", "ri", "sc",
    "sd", "tn", "tx", "ut", "vt", "va", "wa", "wv", "wi", "wy", "dc",
)


def chunked(items: Sequence[str], size: int) -> list[Sequence[str]]:
    if size < 1:
        raise ValueError("batch size must be at least 1")
    return [items[i:i + size] for i in range(0, len(items), size)]


def _freshness_key(obs: Observation) -> str:
    # Zulu tokens are fixed-width zero-padded, so string order is time order.
    return obs.observation_zulu or ""


def merge_observations(observations: Iterable[Observation]) -> dict[str, Observation]:
    """Keep one observation per station: the greatest Zulu time wins.

    Ties keep the one seen first, so merging an observation with itself is a
    no-op.
    """
    by_station: dict[str, Observation] = {}
    for obs in observations:
        existing = by_station.get(obs.station_id)
        if existing is None or _freshness_key(obs) > _freshness_key(existing):
            by_station[obs.station_id] = obs
    return by_station


async def _fetch_partition(state: str, client: httpx.AsyncClient) -> list[Observation]:
    """Fetch one state, converting any failure into an empty result."""
    try:
        return await awc_client.fetch_partition(state, client=client)
    except (awc_client.ProviderError, httpx.HTTPError, ValueError) as exc:
        logger.warning("Partition @%s failed, continuing without it: %s", state, exc)
        return []


async def collect_all_observations(
    partitions: Sequence[str] = US_STATES,
    batch_size: int | None = None,
    client: httpx.AsyncClient | None = None,
) -> list[Observation]:
    """Sweep every partition and return deduplicated observations (unordered).

    Holds no state between calls; a retry is a fresh sweep.
    """
    size = batch_size or settings.collector_batch_size

    if client is None:
        async with awc_client.create_client() as own_client:
            collected = await _sweep(partitions, size, own_client)
    else:
        collected = await _sweep(partitions, size, client)

    merged = merge_observations(collected)
    logger.info(
        "Collected %d reports from %d partitions -> %d stations",
        len(collected), len(partitions), len(merged),
    )
    return list(merged.values())


async def _sweep(
    partitions: Sequence[str],
    size: int,
    client: httpx.AsyncClient,
) -> list[Observation]:
    collected: list[Observation] = []
    failed = 0
    for group in chunked(partitions, size):
        results = await asyncio.gather(*(_fetch_partition(s, client) for s in group))
        for result in results:
            if not result:
                failed += 1
            collected.extend(result)
    if failed:
        logger.info("%d of %d partitions returned no reports", failed, len(partitions))
    return collected
