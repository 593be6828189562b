"""
Delete students that have been Inactive longer than the retention window
(INACTIVE_RETENTION_DAYS, default 30), with their dues, payments and allocations.

Usage:
  python -m app.scripts.cleanup_inactive_students
  python -m app.scripts.cleanup_inactive_students --days 60 --hostel-id 5
"""

import argparse
import asyncio
from typing import Optional

from app.core.logging_config import setup_logging
from app.db.session import AsyncSessionLocal
from app.api.v1.students import service as students_service


async def run(days: Optional[int], hostel_id: Optional[int]) -> None:
    async with AsyncSessionLocal() as session:
        result = await students_service.cleanup_inactive_students(
            session, retention_days=days, hostel_id=hostel_id
        )
    print(f"Deleted {result.students_deleted} student(s) inactive since before {result.cutoff_date}.")


def main() -> None:
    parser = argparse.ArgumentParser(description="Delete long-inactive students")
    parser.add_argument("--days", type=int, default=None, help="Retention window in days")
    parser.add_argument("--hostel-id", type=int, default=None, help="Only this hostel")
    args = parser.parse_args()
    setup_logging()
    asyncio.run(run(args.days, args.hostel_id))


if __name__ == "__main__":
    main()
