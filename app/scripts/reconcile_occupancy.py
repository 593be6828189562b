"""
Recompute rooms.occupied_beds from active allocations and fix any drift.

Usage:
  python -m app.scripts.reconcile_occupancy
  python -m app.scripts.reconcile_occupancy --hostel-id 5
"""

import argparse
import asyncio
from typing import Optional

from app.core.logging_config import setup_logging
from app.core.scope import ScopeFilter
from app.db.session import AsyncSessionLocal
from app.api.v1.rooms import service as rooms_service


async def run(hostel_id: Optional[int]) -> None:
    async with AsyncSessionLocal() as session:
        result = await rooms_service.reconcile_occupancy(session, ScopeFilter.admin(), hostel_id=hostel_id)

    if not result.corrections:
        print(f"Checked {result.rooms_checked} room(s). All counters match.")
        return
    for c in result.corrections:
        print(f"  room {c.room_number} (hostel {c.hostel_id}): {c.recorded_beds} -> {c.actual_beds}")
    print(f"Checked {result.rooms_checked} room(s). Corrected {len(result.corrections)}.")


def main() -> None:
    parser = argparse.ArgumentParser(description="Reconcile room occupancy counters")
    parser.add_argument("--hostel-id", type=int, default=None, help="Only this hostel")
    args = parser.parse_args()
    setup_logging()
    asyncio.run(run(args.hostel_id))


if __name__ == "__main__":
    main()
