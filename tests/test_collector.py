"""Tests for the batch collector: merge rules, batching, partial failure."""

import asyncio
from unittest.mock import patch

import httpx
import pytest

from metarboard.services import awc_client
from metarboard.services.collector import (
    US_STATES,
    chunked,
    collect_all_observations,
    merge_observations,
)
from tests.conftest import make_observation


class TestMerge:
    def test_freshest_report_wins(self):
        older = make_observation("KXXX", "141151Z")
        newer = make_observation("KXXX", "141251Z", has_maintenance_flag=True)
        merged = merge_observations([older, newer])
        assert merged["KXXX"] is newer

        merged = merge_observations([newer, older])
        assert merged["KXXX"] is newer

    def test_tie_keeps_first_seen(self):
        first = make_observation("KXXX", "141151Z")
        second = make_observation("KXXX", "141151Z", has_maintenance_flag=True)
        assert merge_observations([first, second])["KXXX"] is first

    def test_merge_is_idempotent(self):
        obs = [make_observation("KAAA", "141151Z"), make_observation("KBBB", "141152Z")]
        once = merge_observations(obs)
        twice = merge_observations(list(once.values()) + obs)
        assert once == twice

    def test_missing_zulu_loses(self):
        undated = make_observation("KXXX", "")
        dated = make_observation("KXXX", "010000Z")
        assert merge_observations([undated, dated])["KXXX"] is dated

    def test_one_entry_per_station(self):
        obs = [make_observation(s, "141151Z") for s in ["KAAA", "KBBB", "KAAA", "KCCC", "KBBB"]]
        assert sorted(merge_observations(obs)) == ["KAAA", "KBBB", "KCCC"]


class TestChunked:
    def test_partition_count_and_sizes(self):
        groups = chunked(US_STATES, 10)
        assert len(US_STATES) == 51
        assert [len(g) for g in groups] == [10, 10, 10, 10, 10, 1]

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            chunked(US_STATES, 0)


class TestCollectAllObservations:
    @pytest.mark.asyncio
    async def test_batches_cap_concurrency(self):
        in_flight = 0
        peak = 0
        calls: list[str] = []

        async def fake_fetch(state, client=None):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            calls.append(state)
            await asyncio.sleep(0)
            in_flight -= 1
            return [make_observation(f"K{state.upper()}X", "141151Z")]

        with patch.object(awc_client, "fetch_partition", side_effect=fake_fetch):
            async with httpx.AsyncClient() as client:
                observations = await collect_all_observations(batch_size=10, client=client)

        assert peak == 10
        assert sorted(calls) == sorted(US_STATES)
        assert len(observations) == 51

    @pytest.mark.asyncio
    async def test_failed_partitions_are_skipped(self):
        async def fake_fetch(state, client=None):
            if state == "il":
                raise awc_client.ProviderError(502, "bad gateway")
            if state == "in":
                raise httpx.ReadTimeout("slow")
            return [make_observation(f"K{state.upper()}X", "141151Z")]

        with patch.object(awc_client, "fetch_partition", side_effect=fake_fetch):
            async with httpx.AsyncClient() as client:
                observations = await collect_all_observations(
                    partitions=("il", "in", "oh"), client=client
                )

        assert [o.station_id for o in observations] == ["KOHX"]

    @pytest.mark.asyncio
    async def test_border_stations_deduplicated(self):
        async def fake_fetch(state, client=None):
            zulu = {"ny": "141151Z", "nj": "141251Z"}[state]
            return [make_observation("KEWR", zulu), make_observation(f"K{state.upper()}A", zulu)]

        with patch.object(awc_client, "fetch_partition", side_effect=fake_fetch):
            async with httpx.AsyncClient() as client:
                observations = await collect_all_observations(partitions=("ny", "nj"), client=client)

        by_id = {o.station_id: o for o in observations}
        assert sorted(by_id) == ["KEWR", "KNJA", "KNYA"]
        assert by_id["KEWR"].observation_zulu == "141251Z"

    @pytest.mark.asyncio
    async def test_everything_failing_returns_empty(self):
        async def fake_fetch(state, client=None):
            raise awc_client.ProviderError(0, "unreachable")

        with patch.object(awc_client, "fetch_partition", side_effect=fake_fetch):
            async with httpx.AsyncClient() as client:
                assert await collect_all_observations(partitions=("il", "oh"), client=client) == []

    @pytest.mark.asyncio
    async def test_end_to_end_over_mock_transport(self):
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            state = request.url.params["ids"]
            seen.append(state)
            station = "K" + state[1:].upper() + "Z"
            return httpx.Response(200, json=[
                {"icaoId": station, "rawOb": f"{station} 141151Z 27010KT 10SM CLR 25/12 A3001 $",
                 "obsTime": 1_755_172_260},
            ])

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            observations = await collect_all_observations(partitions=("il", "oh"), client=client)

        assert sorted(seen) == ["@il", "@oh"]
        assert sorted(o.station_id for o in observations) == ["KILZ", "KOHZ"]
        assert all(o.has_maintenance_flag for o in observations)
