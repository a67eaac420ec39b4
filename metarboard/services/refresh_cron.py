"""Background refresh loop — sweeps all US METARs and feeds the outage ledger.

Plays the part of the dashboard's hourly timer:
1. Run the batch collector.
2. Turn each station's maintenance flag into a ledger sample.
3. Apply the batch to the ledger.

Runs as an asyncio background task managed by FastAPI's lifespan, and only
when ``refresh_cron_enabled`` is set.
"""

from __future__ import annotations

import asyncio
import logging

from metarboard.core.config import settings
from metarboard.models.outage import LedgerUpdateResult
from metarboard.services.collector import collect_all_observations
from metarboard.services.ledger import OutageLedger, updates_from_observations

logger = logging.getLogger(__name__)

_running = False


async def refresh_once(ledger: OutageLedger) -> LedgerUpdateResult:
    """One sweep: collect, then apply every station's flag to the ledger."""
    observations = await collect_all_observations()
    if not observations:
        logger.warning("Sweep returned no observations; ledger left untouched")
        return LedgerUpdateResult(ok=True)
    return await ledger.apply_updates(updates_from_observations(observations))


async def run_refresh_loop(ledger: OutageLedger) -> None:
    """Main loop — runs until cancelled or stopped."""
    global _running
    _running = True
    interval = settings.refresh_interval_seconds
    logger.info("Refresh loop started (interval=%ds)", interval)

    while _running:
        try:
            result = await refresh_once(ledger)
            if not result.ok:
                logger.warning("Refresh tick could not persist the ledger: %s", result.error)
        except asyncio.CancelledError:
            break
        except Exception:
            logger.exception("Refresh tick failed unexpectedly")

        try:
            await asyncio.sleep(interval)
        except asyncio.CancelledError:
            break

    logger.info("Refresh loop stopped")


def stop() -> None:
    global _running
    _running = False
