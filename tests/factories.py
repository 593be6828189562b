"""Seed helpers shared by the test modules."""

from datetime import date
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine

from app.auth.security import create_access_token
from app.core.enums import FeeFrequency, StudentStatus
from app.core.models import FeeStructure, Hostel, Room, RoomAllocation, Student
from app.db.session import Base


def auth_headers(user_id: int, role_id: int, hostel_id: Optional[int] = None) -> Dict[str, str]:
    subject = {"user_id": user_id, "role_id": role_id, "email": f"user{user_id}@example.com"}
    if hostel_id is not None:
        subject["hostel_id"] = hostel_id
    return {"Authorization": f"Bearer {create_access_token(subject=subject)}"}


# --- Seed helpers ---
async def make_hostel(db: AsyncSession, name: str = "Green PG") -> Hostel:
    hostel = Hostel(hostel_name=name, is_active=True)
    db.add(hostel)
    await db.commit()
    return hostel


async def make_room(
    db: AsyncSession,
    hostel: Hostel,
    room_number: str = "101",
    capacity: int = 2,
    rent_per_bed: Decimal = Decimal("4800"),
) -> Room:
    room = Room(
        hostel_id=hostel.hostel_id,
        room_number=room_number,
        capacity=capacity,
        rent_per_bed=rent_per_bed,
        occupied_beds=0,
    )
    db.add(room)
    await db.commit()
    return room


async def make_category(
    db: AsyncSession,
    hostel: Hostel,
    fee_type: str = "Monthly Rent",
    amount: Decimal = Decimal("0"),
    frequency: FeeFrequency = FeeFrequency.MONTHLY,
) -> FeeStructure:
    fs = FeeStructure(hostel_id=hostel.hostel_id, fee_type=fee_type, amount=amount, frequency=frequency.value)
    db.add(fs)
    await db.commit()
    return fs


async def make_student(
    db: AsyncSession,
    hostel: Hostel,
    room: Optional[Room] = None,
    monthly_rent: Optional[Decimal] = None,
    first_name: str = "Ravi",
    status: StudentStatus = StudentStatus.ACTIVE,
    inactive_date: Optional[date] = None,
) -> Student:
    """Student with an active allocation in room (if given); keeps the room counter in step."""
    student = Student(
        hostel_id=hostel.hostel_id,
        first_name=first_name,
        status=status.value,
        admission_date=date(2025, 10, 1),
        inactive_date=inactive_date,
    )
    db.add(student)
    await db.flush()
    if room is not None:
        db.add(
            RoomAllocation(
                student_id=student.student_id,
                room_id=room.room_id,
                hostel_id=hostel.hostel_id,
                monthly_rent=monthly_rent if monthly_rent is not None else room.rent_per_bed,
                allocation_date=date(2025, 10, 1),
                is_active=True,
            )
        )
        if status == StudentStatus.ACTIVE:
            room.occupied_beds = (room.occupied_beds or 0) + 1
    await db.commit()
    return student



async def build_file_engine(path, serialize_writers: bool = False) -> AsyncEngine:
    """
    SQLite database in a file, so every session gets its own connection and
    transactions interleave for real.

    SQLite ignores SELECT ... FOR UPDATE. With serialize_writers each transaction
    opens with BEGIN IMMEDIATE instead, which makes a second writer wait for the
    first to commit, the way row locks order them on Postgres.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{path}", echo=False)
    if serialize_writers:

        @event.listens_for(engine.sync_engine, "connect")
        def _no_driver_transactions(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine.sync_engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine
