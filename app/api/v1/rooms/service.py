"""Rooms service: room master, live occupancy, occupancy reconciliation."""

import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import StudentStatus
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.models import Room, RoomAllocation, Student
from app.core.money import to_decimal
from app.core.scope import ScopeFilter
from app.db.transaction import run_in_transaction
from app.api.v1.hostels.service import get_hostel_for_scope

from .schemas import (
    OccupancyCorrection,
    ReconcileOccupancyResponse,
    RoomCreate,
    RoomResponse,
    RoomUpdate,
)

logger = logging.getLogger(__name__)


def _room_to_response(room: Room, occupied: int) -> RoomResponse:
    return RoomResponse(
        room_id=room.room_id,
        hostel_id=room.hostel_id,
        room_number=room.room_number,
        floor_number=room.floor_number,
        capacity=room.capacity,
        rent_per_bed=to_decimal(room.rent_per_bed),
        occupied_beds=occupied,
        available_beds=max(room.capacity - occupied, 0),
        created_at=room.created_at,
        updated_at=room.updated_at,
    )


async def occupied_counts(
    db: AsyncSession,
    room_ids: Optional[Iterable[int]] = None,
    hostel_id: Optional[int] = None,
) -> Dict[int, int]:
    """Live occupancy per room: active allocations (no checkout) of Active students."""
    stmt = (
        select(RoomAllocation.room_id, func.count(RoomAllocation.allocation_id))
        .join(Student, Student.student_id == RoomAllocation.student_id)
        .where(
            RoomAllocation.is_active.is_(True),
            RoomAllocation.checkout_date.is_(None),
            Student.status == StudentStatus.ACTIVE.value,
        )
        .group_by(RoomAllocation.room_id)
    )
    if room_ids is not None:
        stmt = stmt.where(RoomAllocation.room_id.in_(list(room_ids)))
    if hostel_id is not None:
        stmt = stmt.where(RoomAllocation.hostel_id == hostel_id)
    return {room_id: count for room_id, count in (await db.execute(stmt)).all()}


async def lock_room(db: AsyncSession, room_id: int) -> Room:
    room = (
        await db.execute(select(Room).where(Room.room_id == room_id).with_for_update())
    ).scalar_one_or_none()
    if room is None:
        raise NotFoundError("Room not found")
    return room


async def get_room_for_scope(db: AsyncSession, scope: ScopeFilter, room_id: int) -> Room:
    room = await db.get(Room, room_id)
    if room is None:
        raise NotFoundError("Room not found")
    scope.ensure_can_access(room.hostel_id)
    return room


async def create_room(db: AsyncSession, scope: ScopeFilter, payload: RoomCreate) -> RoomResponse:
    hostel_id = scope.require_hostel_id(payload.hostel_id)
    await get_hostel_for_scope(db, scope, hostel_id)

    existing = (
        await db.execute(
            select(Room.room_id).where(Room.hostel_id == hostel_id, Room.room_number == payload.room_number)
        )
    ).scalar_one_or_none()
    if existing is not None:
        raise ConflictError(f"Room {payload.room_number} already exists in this hostel")

    async def work() -> Room:
        room = Room(
            hostel_id=hostel_id,
            room_number=payload.room_number,
            floor_number=payload.floor_number,
            capacity=payload.capacity,
            rent_per_bed=payload.rent_per_bed,
            occupied_beds=0,
        )
        db.add(room)
        await db.flush()
        return room

    room = await run_in_transaction(db, work, operation="room creation")
    await db.refresh(room)
    return _room_to_response(room, 0)


async def list_rooms(
    db: AsyncSession,
    scope: ScopeFilter,
    hostel_id: Optional[int] = None,
    available_only: bool = False,
) -> List[RoomResponse]:
    stmt = scope.apply(select(Room), Room.hostel_id, hostel_id).order_by(Room.hostel_id, Room.room_number)
    rooms = (await db.execute(stmt)).scalars().all()
    counts = await occupied_counts(db, room_ids=[r.room_id for r in rooms]) if rooms else {}
    out = [_room_to_response(r, counts.get(r.room_id, 0)) for r in rooms]
    if available_only:
        out = [r for r in out if r.available_beds > 0]
    return out


async def get_room(db: AsyncSession, scope: ScopeFilter, room_id: int) -> RoomResponse:
    room = await get_room_for_scope(db, scope, room_id)
    counts = await occupied_counts(db, room_ids=[room_id])
    return _room_to_response(room, counts.get(room_id, 0))


async def update_room(
    db: AsyncSession,
    scope: ScopeFilter,
    room_id: int,
    payload: RoomUpdate,
) -> RoomResponse:
    await get_room_for_scope(db, scope, room_id)

    async def work() -> int:
        room = await lock_room(db, room_id)
        occupied = (await occupied_counts(db, room_ids=[room_id])).get(room_id, 0)
        if payload.capacity is not None:
            if payload.capacity < occupied:
                raise ValidationError(
                    f"Capacity {payload.capacity} is below current occupancy {occupied}"
                )
            room.capacity = payload.capacity
        if payload.floor_number is not None:
            room.floor_number = payload.floor_number
        if payload.rent_per_bed is not None:
            room.rent_per_bed = payload.rent_per_bed
        return occupied

    occupied = await run_in_transaction(db, work, operation="room update")
    room = await db.get(Room, room_id)
    await db.refresh(room)
    return _room_to_response(room, occupied)


async def reconcile_occupancy(
    db: AsyncSession,
    scope: ScopeFilter,
    hostel_id: Optional[int] = None,
) -> ReconcileOccupancyResponse:
    """
    Overwrite every drifted rooms.occupied_beds with the live allocation count.
    Rooms are locked while compared, so a concurrent allocation either lands before
    the count or waits for the correction to commit.
    """

    async def work() -> ReconcileOccupancyResponse:
        stmt = scope.apply(select(Room), Room.hostel_id, hostel_id).order_by(Room.room_id).with_for_update()
        rooms = (await db.execute(stmt)).scalars().all()
        counts = await occupied_counts(db, room_ids=[r.room_id for r in rooms]) if rooms else {}
        corrections: List[OccupancyCorrection] = []
        for room in rooms:
            actual = counts.get(room.room_id, 0)
            if (room.occupied_beds or 0) != actual:
                corrections.append(
                    OccupancyCorrection(
                        room_id=room.room_id,
                        hostel_id=room.hostel_id,
                        room_number=room.room_number,
                        recorded_beds=room.occupied_beds or 0,
                        actual_beds=actual,
                    )
                )
                room.occupied_beds = actual
        return ReconcileOccupancyResponse(rooms_checked=len(rooms), corrections=corrections)

    result = await run_in_transaction(db, work, operation="occupancy reconciliation")
    for c in result.corrections:
        logger.info(
            "Corrected occupancy of room %s (hostel %s): %d -> %d",
            c.room_number, c.hostel_id, c.recorded_beds, c.actual_beds,
            extra={"hostel_id": c.hostel_id},
        )
    return result
