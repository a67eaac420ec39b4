#!/usr/bin/env python3
"""CLI script to run one METAR sweep and feed the outage ledger.

Usage:
    python scripts/sweep_outages.py --top 15
    python scripts/sweep_outages.py --states il,in,oh --dry-run

This script:
1. Fetches current METARs for every (or the selected) US state.
2. Reports how many stations carry the maintenance flag right now.
3. Applies the flags to the ledger in the configured database (unless --dry-run).
4. Prints the downtime leaderboard.

Suitable for a cron job when the service's own refresh loop is disabled.
"""

import argparse
import asyncio
import sys

from metarboard.core import database
from metarboard.services.blob_store import SqlBlobStore
from metarboard.services.collector import US_STATES, collect_all_observations
from metarboard.services.ledger import OutageLedger, rank_stations, updates_from_observations


async def sweep(states: tuple[str, ...], top: int, dry_run: bool) -> int:
    print(f"Sweeping {len(states)} partitions...")
    observations = await collect_all_observations(partitions=states)
    flagged = sorted(o.station_id for o in observations if o.has_maintenance_flag)
    print(f"  {len(observations)} stations, {len(flagged)} with maintenance flag")
    if flagged:
        print("  flagged: " + " ".join(flagged[:40]) + (" ..." if len(flagged) > 40 else ""))

    if dry_run:
        return 0

    await database.create_tables()
    ledger = OutageLedger(SqlBlobStore(database.async_session_factory))
    result = await ledger.apply_updates(updates_from_observations(observations))
    if not result.ok:
        print(f"Ledger write failed: {result.error}", file=sys.stderr)
        return 1
    print(f"Ledger: {result.events_opened} outages opened, {result.events_closed} closed")

    stats = rank_stations(await ledger.station_stats(), "total_outages")
    print(f"\nTop {top} stations by outage count:")
    for row in stats[:top]:
        state = "DOWN" if row.currently_down else "up"
        print(
            f"  {row.station_id} {row.station_name[:30]:<30} outages={row.total_outages:<3} "
            f"total={row.total_downtime_minutes}m avg={row.average_downtime_minutes}m "
            f"down%={row.downtime_percentage:.1f} [{state}]"
        )
    return 0


def main():
    parser = argparse.ArgumentParser(description="Sweep US METARs into the outage ledger")
    parser.add_argument("--states", default=None, help="Comma-separated state codes (default: all)")
    parser.add_argument("--top", type=int, default=10, help="Leaderboard rows to print")
    parser.add_argument("--dry-run", action="store_true", help="Fetch only, do not touch the ledger")
    args = parser.parse_args()

    states = tuple(s.strip().lower() for s in args.states.split(",")) if args.states else US_STATES
    return asyncio.run(sweep(states, args.top, args.dry_run))


if __name__ == "__main__":
    sys.exit(main())
