"""Tests for the background refresh loop."""

from unittest.mock import AsyncMock, patch

import pytest

from metarboard.core.config import settings
from metarboard.models.outage import LedgerUpdateResult
from metarboard.services import refresh_cron
from metarboard.services.ledger import OutageLedger, updates_from_observations
from tests.conftest import MINUTE_MS, T0_MS, FailingBlobStore, FixedClock, make_observation


class TestRefreshOnce:
    @pytest.mark.asyncio
    async def test_applies_sweep_to_ledger(self, ledger):
        await ledger.apply_updates(
            updates_from_observations([make_observation("KORD", "141151Z", T0_MS)])
        )
        sweep = [make_observation("KORD", "141251Z", T0_MS + 60 * MINUTE_MS, has_maintenance_flag=True)]
        with patch.object(refresh_cron, "collect_all_observations", AsyncMock(return_value=sweep)):
            result = await refresh_cron.refresh_once(ledger)

        assert result.ok is True
        assert result.events_opened == 1
        [event] = (await ledger.load()).outage_log
        assert event.start_zulu == "141251Z"

    @pytest.mark.asyncio
    async def test_empty_sweep_leaves_ledger_alone(self):
        store = FailingBlobStore()
        ledger = OutageLedger(store, key="k", clock=FixedClock())
        with patch.object(refresh_cron, "collect_all_observations", AsyncMock(return_value=[])):
            result = await refresh_cron.refresh_once(ledger)
        assert result.ok is True
        assert store.set_calls == 0


class TestRefreshLoop:
    @pytest.mark.asyncio
    async def test_runs_until_stopped(self, ledger, monkeypatch):
        monkeypatch.setattr(settings, "refresh_interval_seconds", 0)
        ticks = 0

        async def tick(_ledger):
            nonlocal ticks
            ticks += 1
            if ticks == 3:
                refresh_cron.stop()
            return LedgerUpdateResult(ok=True)

        with patch.object(refresh_cron, "refresh_once", side_effect=tick):
            await refresh_cron.run_refresh_loop(ledger)

        assert ticks == 3

    @pytest.mark.asyncio
    async def test_failed_tick_does_not_kill_loop(self, ledger, monkeypatch):
        monkeypatch.setattr(settings, "refresh_interval_seconds", 0)
        ticks = 0

        async def tick(_ledger):
            nonlocal ticks
            ticks += 1
            if ticks == 1:
                raise RuntimeError("sweep exploded")
            refresh_cron.stop()
            return LedgerUpdateResult(ok=False, error="read-only replica")

        with patch.object(refresh_cron, "refresh_once", side_effect=tick):
            await refresh_cron.run_refresh_loop(ledger)

        assert ticks == 2
