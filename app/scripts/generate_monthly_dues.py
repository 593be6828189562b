"""
Monthly dues job: generate dues for a billing period, then roll unpaid balances of the
previous period into it. Safe to re-run; existing dues and finished carry-forwards are skipped.

Schedule it on the 1st of every month (cron: 0 0 1 * *).

Usage:
  python -m app.scripts.generate_monthly_dues
  python -m app.scripts.generate_monthly_dues --month 2025-12
  python -m app.scripts.generate_monthly_dues --month 2025-12 --hostel-id 5 --no-carry-forward
"""

import argparse
import asyncio
import sys
from datetime import date
from typing import Optional

from app.core.exceptions import ServiceError
from app.core.logging_config import setup_logging
from app.core.periods import period_of
from app.core.scope import ScopeFilter
from app.db.session import AsyncSessionLocal
from app.api.v1.dues import service as dues_service


async def run(month: str, hostel_id: Optional[int], carry_forward: bool) -> int:
    async with AsyncSessionLocal() as session:
        try:
            result = await dues_service.generate_dues(
                session,
                ScopeFilter.admin(),
                month,
                hostel_id=hostel_id,
                carry_forward_previous=carry_forward,
            )
        except ServiceError as e:
            print(f"Due generation failed: {e.message}", file=sys.stderr)
            return 1

    for h in result.hostels:
        print(
            f"  hostel {h.hostel_id}: {h.dues_created} created, {h.dues_existing} already existed, "
            f"{h.students_skipped} student(s) without a room skipped"
        )
    print(f"Done. Created {result.total_created} due(s) for {month}.")
    if result.carry_forward is not None:
        cf = result.carry_forward
        print(f"Carried {cf.carried_count} balance(s) totalling {cf.carried_total} from {cf.from_month}.")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate monthly student dues")
    parser.add_argument("--month", default=None, help="Billing period YYYY-MM (default: current month)")
    parser.add_argument("--hostel-id", type=int, default=None, help="Only this hostel")
    parser.add_argument(
        "--no-carry-forward",
        action="store_true",
        help="Do not roll the previous period's unpaid balances forward",
    )
    args = parser.parse_args()
    setup_logging()
    month = args.month or period_of(date.today())
    sys.exit(asyncio.run(run(month, args.hostel_id, not args.no_carry_forward)))


if __name__ == "__main__":
    main()
