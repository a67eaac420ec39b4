"""FastAPI application entry point for the METAR board service.

Serves decoded METAR/TAF reports for US airports from aviationweather.gov and
keeps a ledger of maintenance-flag ($) outages per station, with a downtime
leaderboard derived from it.

The refresh loop, when enabled, runs as a background task that sweeps every US
METAR and feeds the ledger on a fixed interval.
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from metarboard.api.routes import router
from metarboard.core import database
from metarboard.core.config import settings
from metarboard.core.errors import register_error_handlers
from metarboard.core.middleware import RequestLoggingMiddleware
from metarboard.services import refresh_cron
from metarboard.services.blob_store import BlobStore, InMemoryBlobStore, SqlBlobStore
from metarboard.services.ledger import OutageLedger

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

logger = logging.getLogger(__name__)


async def build_blob_store() -> BlobStore:
    if settings.blob_store_backend == "memory":
        logger.info("Using in-memory blob store; the ledger will not survive restarts")
        return InMemoryBlobStore()
    await database.create_tables()
    return SqlBlobStore(database.async_session_factory)


@asynccontextmanager
async def lifespan(app: FastAPI):
    store = await build_blob_store()
    app.state.ledger = OutageLedger(
        store,
        key=settings.ledger_key,
        max_events=settings.ledger_max_events,
        open_on_first_sight=settings.ledger_open_on_first_sight,
    )

    refresh_task = None
    if settings.refresh_cron_enabled:
        logger.info("Starting refresh loop background task")
        refresh_task = asyncio.create_task(refresh_cron.run_refresh_loop(app.state.ledger))
    yield
    if refresh_task is not None:
        refresh_cron.stop()
        refresh_task.cancel()
        try:
            await refresh_task
        except asyncio.CancelledError:
            pass
        logger.info("Refresh loop shut down")


app = FastAPI(
    title="METAR Board",
    description=(
        "Decoded aviation weather reports (METAR/TAF) for US airports and a "
        "leaderboard of station maintenance-flag downtime."
    ),
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

register_error_handlers(app)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix="/api/v1", tags=["metar"])


@app.get("/health", tags=["ops"])
async def health_check() -> dict:
    return {"status": "ok", "service": "metarboard"}
