"""REST API routes for reports and the maintenance-outage ledger."""

import logging
from typing import Literal

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, status

from metarboard.api.schemas import (
    ClearResponse,
    ErrorResponse,
    LeaderboardResponse,
    LedgerResponse,
    ObservationResponse,
    RefreshResponse,
    TafReportResponse,
    UpdateResponse,
)
from metarboard.models.observation import Observation, TafReport
from metarboard.models.outage import OutageEvent, StationUpdate
from metarboard.services import awc_client
from metarboard.services.collector import collect_all_observations
from metarboard.services.ledger import (
    OutageLedger,
    RANKABLE_FIELDS,
    rank_stations,
    updates_from_observations,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_ledger(request: Request) -> OutageLedger:
    """The ledger built in the app lifespan."""
    return request.app.state.ledger


# ── Reports ───────────────────────────────────────────────────────────────────


@router.get(
    "/metar",
    response_model=list[ObservationResponse],
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    summary="Latest METARs for explicit stations",
)
async def get_metars(
    ids: str = Query(..., description="Comma-separated 4-character station ids", examples=["KORD,KJFK"]),
    hours: int = Query(default=2, ge=1, le=72),
) -> list[Observation]:
    return await awc_client.fetch_metars(ids, hours)


@router.get(
    "/metar/raw",
    response_model=list[ObservationResponse],
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    summary="METARs decoded from the raw report text",
)
async def get_raw_metars(
    ids: str = Query(..., description="Comma-separated 4-character station ids"),
    hours: int = Query(default=2, ge=1, le=72),
) -> list[Observation]:
    return await awc_client.fetch_raw_metars(ids, hours)


@router.get(
    "/metar/all",
    response_model=list[ObservationResponse],
    summary="Every current US METAR, one per station",
    description=(
        "Sweeps all US states in groups of concurrent requests. States that fail "
        "are skipped, so the result may be partial."
    ),
)
async def get_all_metars() -> list[Observation]:
    return await collect_all_observations()


@router.get(
    "/taf",
    response_model=list[TafReportResponse],
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    summary="Current TAFs for explicit stations",
)
async def get_tafs(
    ids: str = Query(..., description="Comma-separated 4-character station ids"),
) -> list[TafReport]:
    return await awc_client.fetch_tafs(ids)


# ── Maintenance ledger ────────────────────────────────────────────────────────


@router.get(
    "/maintenance",
    response_model=LedgerResponse,
    summary="Station status snapshot and outage log",
)
async def get_maintenance(ledger: OutageLedger = Depends(get_ledger)) -> LedgerResponse:
    data = await ledger.load()
    return LedgerResponse(station_status=data.station_status, outage_log=data.outage_log)


@router.post(
    "/maintenance",
    response_model=UpdateResponse,
    responses={500: {"model": ErrorResponse, "description": "Ledger could not be persisted"}},
    summary="Apply a batch of station flag samples",
)
async def post_maintenance(
    updates: list[StationUpdate] = Body(...),
    ledger: OutageLedger = Depends(get_ledger),
) -> UpdateResponse:
    result = await ledger.apply_updates(updates)
    if not result.ok:
        raise HTTPException(status_code=500, detail="Failed to persist data")
    return UpdateResponse(
        success=True,
        events_opened=result.events_opened,
        events_closed=result.events_closed,
    )


@router.delete(
    "/maintenance",
    response_model=ClearResponse,
    responses={500: {"model": ErrorResponse}},
    summary="Clear the ledger",
)
async def delete_maintenance(ledger: OutageLedger = Depends(get_ledger)) -> ClearResponse:
    if not await ledger.clear():
        raise HTTPException(status_code=500, detail="Failed to clear")
    return ClearResponse(success=True)


@router.get(
    "/maintenance/stats",
    response_model=LeaderboardResponse,
    summary="Downtime leaderboard",
)
async def get_leaderboard(
    sort: str = Query(default="total_outages", description=f"One of {sorted(RANKABLE_FIELDS)}"),
    direction: Literal["asc", "desc"] = "desc",
    currently_down: bool = Query(default=False, description="Only stations down right now"),
    ledger: OutageLedger = Depends(get_ledger),
) -> LeaderboardResponse:
    if sort not in RANKABLE_FIELDS:
        raise HTTPException(status_code=400, detail=f"Cannot sort by {sort!r}")
    stats = await ledger.station_stats()
    ranked = rank_stations(
        stats,
        sort_field=sort,
        descending=direction == "desc",
        currently_down_only=currently_down,
    )
    return LeaderboardResponse(sort=sort, direction=direction, stations=ranked)


@router.get(
    "/maintenance/recent",
    response_model=list[OutageEvent],
    summary="Most recent outages, newest first",
)
async def get_recent_outages(
    limit: int = Query(default=50, ge=1, le=1000),
    ledger: OutageLedger = Depends(get_ledger),
) -> list[OutageEvent]:
    return await ledger.recent_outages(limit)


@router.post(
    "/maintenance/refresh",
    response_model=RefreshResponse,
    status_code=status.HTTP_200_OK,
    responses={500: {"model": ErrorResponse}},
    summary="Sweep all US METARs and apply their flags to the ledger",
)
async def refresh_maintenance(ledger: OutageLedger = Depends(get_ledger)) -> RefreshResponse:
    observations = await collect_all_observations()
    result = await ledger.apply_updates(updates_from_observations(observations))
    if not result.ok:
        raise HTTPException(status_code=500, detail="Failed to persist data")
    logger.info("Manual refresh: %d stations", len(observations))
    return RefreshResponse(
        success=True,
        stations=len(observations),
        events_opened=result.events_opened,
        events_closed=result.events_closed,
    )
