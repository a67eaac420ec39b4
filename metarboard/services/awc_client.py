"""Client for the NOAA Aviation Weather Center (AWC) data API.

Two query shapes are supported, both with an ``hours`` recency window:

- explicit station ids: ``ids=KORD,KJFK``
- a partition key: ``ids=@il`` (every station in a US state)

Docs: https://aviationweather.gov/data/api/
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from typing import Any

import httpx

from metarboard.core.config import settings
from metarboard.models.observation import Observation, TafReport
from metarboard.services.decoder import (
    decode_metar_records,
    decode_taf_record,
    parse_raw_metars,
)

logger = logging.getLogger(__name__)

_STATION_ID_RE = re.compile(r"^[A-Z0-9]{4}$")


class ProviderError(Exception):
    def __init__(self, status: int, detail: str):
        self.status = status
        self.detail = detail
        super().__init__(f"AWC {status}: {detail}")


class InvalidStationQuery(ValueError):
    """A caller-supplied station identifier is not a 4-character id."""


def normalize_station_ids(ids: str | Iterable[str]) -> list[str]:
    """Upper-case, trim, and shape-check station ids before any network call.

    Accepts a comma/space separated string or an iterable of ids.
    """
    if isinstance(ids, str):
        ids = re.split(r"[,\s]+", ids)
    cleaned = [i.strip().upper() for i in ids if i and i.strip()]
    if not cleaned:
        raise InvalidStationQuery("No station ids supplied")
    bad = [i for i in cleaned if not _STATION_ID_RE.match(i)]
    if bad:
        raise InvalidStationQuery(f"Invalid station id(s): {', '.join(bad)}")
    return cleaned


def create_client() -> httpx.AsyncClient:
    """HTTP client with the provider's timeout and User-Agent applied."""
    return httpx.AsyncClient(
        timeout=settings.awc_request_timeout,
        headers={"User-Agent": settings.awc_user_agent},
    )


def _wrap_transport_error(exc: httpx.TransportError) -> ProviderError:
    return ProviderError(0, f"Cannot reach {settings.awc_api_base}: {exc}")


async def _get(
    endpoint: str,
    params: dict[str, Any],
    client: httpx.AsyncClient | None = None,
) -> httpx.Response:
    url = f"{settings.awc_api_base.rstrip('/')}/{endpoint}"
    try:
        if client is None:
            async with create_client() as own_client:
                resp = await own_client.get(url, params=params)
        else:
            resp = await client.get(url, params=params)
    except httpx.TransportError as exc:
        raise _wrap_transport_error(exc) from exc

    if not resp.is_success:
        raise ProviderError(resp.status_code, resp.text[:200])
    return resp


def _json_array(resp: httpx.Response) -> list[Any]:
    # 204 No Content: the query matched no reports
    if resp.status_code == 204 or not resp.content.strip():
        return []
    try:
        data = resp.json()
    except ValueError as exc:
        raise ProviderError(resp.status_code, f"Invalid JSON response: {exc}") from exc
    if not isinstance(data, list):
        raise ProviderError(resp.status_code, "Expected a JSON array of reports")
    return data


async def fetch_metar_records(
    ids_param: str,
    hours: int | None = None,
    client: httpx.AsyncClient | None = None,
) -> list[dict[str, Any]]:
    """GET /metar?format=json — raw provider records, undecoded."""
    params = {
        "ids": ids_param,
        "format": "json",
        "hours": hours or settings.metar_default_hours,
    }
    resp = await _get("metar", params, client)
    records = _json_array(resp)
    logger.debug("Fetched %d METAR records for %s", len(records), ids_param)
    return records


async def fetch_metars(
    station_ids: str | Iterable[str],
    hours: int | None = None,
    client: httpx.AsyncClient | None = None,
) -> list[Observation]:
    """Latest METARs for explicit station ids.

    Raises:
        InvalidStationQuery: before any request if an id is malformed.
        ProviderError: on transport failure or a non-2xx response.
    """
    ids = normalize_station_ids(station_ids)
    records = await fetch_metar_records(",".join(ids), hours, client)
    return decode_metar_records(records)


async def fetch_partition(
    state: str,
    hours: int | None = None,
    client: httpx.AsyncClient | None = None,
) -> list[Observation]:
    """Every METAR in one US state, using the ``@xx`` selector."""
    records = await fetch_metar_records(
        f"@{state.lower()}", hours or settings.partition_hours, client
    )
    return decode_metar_records(records)


async def fetch_raw_metars(
    station_ids: str | Iterable[str],
    hours: int | None = None,
    client: httpx.AsyncClient | None = None,
) -> list[Observation]:
    """GET /metar?format=raw — decoded from the report text alone."""
    ids = normalize_station_ids(station_ids)
    params = {
        "ids": ",".join(ids),
        "format": "raw",
        "hours": hours or settings.metar_default_hours,
    }
    resp = await _get("metar", params, client)
    return parse_raw_metars(resp.text)


async def fetch_tafs(
    station_ids: str | Iterable[str],
    client: httpx.AsyncClient | None = None,
) -> list[TafReport]:
    """GET /taf?format=json — current TAFs with derived period categories."""
    ids = normalize_station_ids(station_ids)
    resp = await _get("taf", {"ids": ",".join(ids), "format": "json"}, client)

    reports = []
    for record in _json_array(resp):
        if not isinstance(record, dict):
            continue
        taf = decode_taf_record(record)
        if taf is not None:
            reports.append(taf)
    return reports
