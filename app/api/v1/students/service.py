"""Students service: admission, room allocation, checkout, retention cleanup.

Allocation and checkout keep rooms.occupied_beds in step with the allocation rows in the
same transaction, with the room row locked.
"""

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.audit import log_fee_audit
from app.core.config import settings
from app.core.enums import StudentStatus
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.models import (
    PaymentAllocation,
    Room,
    RoomAllocation,
    Student,
    StudentDue,
    StudentFeePayment,
)
from app.core.money import ZERO, to_decimal
from app.core.scope import ScopeFilter
from app.db.transaction import run_in_transaction
from app.api.v1.hostels.service import get_hostel_for_scope
from app.api.v1.rooms.service import lock_room, occupied_counts

from .schemas import (
    AllocateRoomRequest,
    CheckoutRequest,
    CleanupResult,
    RoomAllocationResponse,
    StudentCreate,
    StudentResponse,
    StudentUpdate,
)

logger = logging.getLogger(__name__)


def _allocation_to_response(
    allocation: Optional[RoomAllocation],
    room_number: Optional[str] = None,
) -> Optional[RoomAllocationResponse]:
    if allocation is None:
        return None
    return RoomAllocationResponse(
        allocation_id=allocation.allocation_id,
        student_id=allocation.student_id,
        room_id=allocation.room_id,
        room_number=room_number,
        hostel_id=allocation.hostel_id,
        monthly_rent=to_decimal(allocation.monthly_rent),
        allocation_date=allocation.allocation_date,
        checkout_date=allocation.checkout_date,
        is_active=bool(allocation.is_active),
    )


def _student_to_response(
    student: Student,
    allocation: Optional[RoomAllocation] = None,
    room_number: Optional[str] = None,
    outstanding: Optional[Decimal] = None,
) -> StudentResponse:
    return StudentResponse(
        student_id=student.student_id,
        hostel_id=student.hostel_id,
        first_name=student.first_name,
        last_name=student.last_name,
        full_name=student.full_name,
        phone=student.phone,
        email=student.email,
        status=student.status,
        admission_date=student.admission_date,
        inactive_date=student.inactive_date,
        allocation=_allocation_to_response(allocation, room_number),
        outstanding_balance=outstanding,
        created_at=student.created_at,
        updated_at=student.updated_at,
    )


async def get_student_for_scope(db: AsyncSession, scope: ScopeFilter, student_id: int) -> Student:
    student = await db.get(Student, student_id)
    if student is None:
        raise NotFoundError("Student not found")
    scope.ensure_can_access(student.hostel_id)
    return student


async def _lock_student(db: AsyncSession, student_id: int) -> Student:
    return (
        await db.execute(select(Student).where(Student.student_id == student_id).with_for_update())
    ).scalar_one()


async def _active_allocation(
    db: AsyncSession,
    student_id: int,
    for_update: bool = False,
) -> Optional[RoomAllocation]:
    stmt = select(RoomAllocation).where(
        RoomAllocation.student_id == student_id,
        RoomAllocation.is_active.is_(True),
        RoomAllocation.checkout_date.is_(None),
    )
    if for_update:
        stmt = stmt.with_for_update()
    return (await db.execute(stmt)).scalar_one_or_none()


async def _outstanding(db: AsyncSession, student_ids: List[int]) -> Dict[int, Decimal]:
    if not student_ids:
        return {}
    rows = (
        await db.execute(
            select(StudentDue.student_id, func.coalesce(func.sum(StudentDue.balance_amount), 0))
            .where(StudentDue.student_id.in_(student_ids), StudentDue.is_paid.is_(False))
            .group_by(StudentDue.student_id)
        )
    ).all()
    return {sid: to_decimal(total) for sid, total in rows}


async def _close_allocation(db: AsyncSession, allocation: RoomAllocation, on: date) -> None:
    room = await lock_room(db, allocation.room_id)
    allocation.is_active = False
    allocation.checkout_date = on
    room.occupied_beds = max((room.occupied_beds or 0) - 1, 0)


async def _allocate(
    db: AsyncSession,
    student: Student,
    room_id: int,
    monthly_rent: Optional[Decimal],
    allocation_date: date,
    changed_by: Optional[int],
) -> Tuple[RoomAllocation, Room]:
    if student.status != StudentStatus.ACTIVE.value:
        raise ValidationError("Only Active students can be allocated a room")

    current = await _active_allocation(db, student.student_id, for_update=True)
    if current is not None and current.room_id == room_id:
        raise ConflictError("Student is already allocated to this room")

    room = await lock_room(db, room_id)
    if room.hostel_id != student.hostel_id:
        raise ValidationError("Room belongs to a different hostel")
    occupied = (await occupied_counts(db, room_ids=[room_id])).get(room_id, 0)
    if occupied >= room.capacity:
        raise ConflictError(f"Room {room.room_number} is full ({occupied}/{room.capacity})")

    if current is not None:
        # Room change: the old bed is released in the same transaction.
        await _close_allocation(db, current, allocation_date)

    allocation = RoomAllocation(
        student_id=student.student_id,
        room_id=room.room_id,
        hostel_id=room.hostel_id,
        monthly_rent=monthly_rent if monthly_rent is not None else to_decimal(room.rent_per_bed),
        allocation_date=allocation_date,
        is_active=True,
    )
    db.add(allocation)
    room.occupied_beds = occupied + 1
    await db.flush()
    await log_fee_audit(
        db, room.hostel_id, "room_allocations", allocation.allocation_id,
        "ALLOCATE",
        {"room_id": current.room_id} if current is not None else None,
        {"room_id": room.room_id, "monthly_rent": str(allocation.monthly_rent)},
        changed_by,
    )
    return allocation, room


async def admit_student(
    db: AsyncSession,
    scope: ScopeFilter,
    payload: StudentCreate,
    changed_by: Optional[int] = None,
) -> StudentResponse:
    hostel_id = scope.require_hostel_id(payload.hostel_id)
    await get_hostel_for_scope(db, scope, hostel_id)

    async def work() -> Tuple[Student, Optional[RoomAllocation], Optional[Room]]:
        student = Student(
            hostel_id=hostel_id,
            first_name=payload.first_name.strip(),
            last_name=payload.last_name,
            phone=payload.phone,
            email=payload.email,
            status=StudentStatus.ACTIVE.value,
            admission_date=payload.admission_date or date.today(),
        )
        db.add(student)
        await db.flush()
        if payload.room_id is None:
            return student, None, None
        allocation, room = await _allocate(
            db, student, payload.room_id, payload.monthly_rent, student.admission_date, changed_by
        )
        return student, allocation, room

    student, allocation, room = await run_in_transaction(db, work, operation="student admission")
    await db.refresh(student)
    logger.info("Admitted student %s to hostel %s", student.student_id, hostel_id, extra={"hostel_id": hostel_id})
    return _student_to_response(
        student, allocation, room.room_number if room is not None else None, ZERO
    )


async def list_students(
    db: AsyncSession,
    scope: ScopeFilter,
    hostel_id: Optional[int] = None,
    status_filter: Optional[str] = None,
    search: Optional[str] = None,
) -> List[StudentResponse]:
    stmt = (
        select(Student, RoomAllocation, Room.room_number)
        .outerjoin(
            RoomAllocation,
            (RoomAllocation.student_id == Student.student_id)
            & RoomAllocation.is_active.is_(True)
            & RoomAllocation.checkout_date.is_(None),
        )
        .outerjoin(Room, Room.room_id == RoomAllocation.room_id)
    )
    stmt = scope.apply(stmt, Student.hostel_id, hostel_id)
    if status_filter:
        if status_filter not in (StudentStatus.ACTIVE.value, StudentStatus.INACTIVE.value):
            raise ValidationError("status must be Active or Inactive")
        stmt = stmt.where(Student.status == status_filter)
    if search:
        like = f"%{search.strip()}%"
        stmt = stmt.where(
            or_(Student.first_name.ilike(like), Student.last_name.ilike(like), Student.phone.ilike(like))
        )
    rows = (await db.execute(stmt.order_by(Student.student_id))).all()
    outstanding = await _outstanding(db, [s.student_id for s, _, _ in rows])
    return [
        _student_to_response(s, a, room_number, outstanding.get(s.student_id, ZERO))
        for s, a, room_number in rows
    ]


async def get_student(db: AsyncSession, scope: ScopeFilter, student_id: int) -> StudentResponse:
    student = await get_student_for_scope(db, scope, student_id)
    allocation = await _active_allocation(db, student_id)
    room_number = None
    if allocation is not None:
        room = await db.get(Room, allocation.room_id)
        room_number = room.room_number if room is not None else None
    outstanding = await _outstanding(db, [student_id])
    return _student_to_response(student, allocation, room_number, outstanding.get(student_id, ZERO))


async def update_student(
    db: AsyncSession,
    scope: ScopeFilter,
    student_id: int,
    payload: StudentUpdate,
) -> StudentResponse:
    await get_student_for_scope(db, scope, student_id)
    data = payload.model_dump(exclude_unset=True)

    async def work() -> Student:
        student = await _lock_student(db, student_id)
        for field, value in data.items():
            setattr(student, field, value)
        return student

    await run_in_transaction(db, work, operation="student update")
    return await get_student(db, scope, student_id)


async def allocate_room(
    db: AsyncSession,
    scope: ScopeFilter,
    student_id: int,
    payload: AllocateRoomRequest,
    changed_by: Optional[int] = None,
) -> RoomAllocationResponse:
    await get_student_for_scope(db, scope, student_id)

    async def work() -> Tuple[RoomAllocation, Room]:
        return await _allocate(
            db,
            await _lock_student(db, student_id),
            payload.room_id,
            payload.monthly_rent,
            payload.allocation_date or date.today(),
            changed_by,
        )

    allocation, room = await run_in_transaction(db, work, operation="room allocation")
    logger.info(
        "Allocated student %s to room %s", student_id, room.room_number,
        extra={"hostel_id": room.hostel_id},
    )
    return _allocation_to_response(allocation, room.room_number)


async def checkout_student(
    db: AsyncSession,
    scope: ScopeFilter,
    student_id: int,
    payload: CheckoutRequest,
    changed_by: Optional[int] = None,
) -> StudentResponse:
    """Close the active allocation, free the bed and mark the student Inactive."""
    await get_student_for_scope(db, scope, student_id)
    checkout_date = payload.checkout_date or date.today()

    async def work() -> Student:
        student = await _lock_student(db, student_id)
        if student.status == StudentStatus.INACTIVE.value:
            raise ConflictError("Student is already checked out")
        allocation = await _active_allocation(db, student_id, for_update=True)
        if allocation is not None:
            if checkout_date < allocation.allocation_date:
                raise ValidationError("Checkout date is before the allocation date")
            await _close_allocation(db, allocation, checkout_date)
            await log_fee_audit(
                db, student.hostel_id, "room_allocations", allocation.allocation_id,
                "CHECKOUT", {"room_id": allocation.room_id}, {"checkout_date": checkout_date.isoformat()},
                changed_by,
            )
        student.status = StudentStatus.INACTIVE.value
        student.inactive_date = checkout_date
        return student

    student = await run_in_transaction(db, work, operation="student checkout")
    logger.info("Checked out student %s", student_id, extra={"hostel_id": student.hostel_id})
    return await get_student(db, scope, student_id)


async def cleanup_inactive_students(
    db: AsyncSession,
    retention_days: Optional[int] = None,
    hostel_id: Optional[int] = None,
    today: Optional[date] = None,
) -> CleanupResult:
    """
    Hard-delete students that have been Inactive for longer than the retention window,
    together with their dues, payments and allocations.
    """
    days = settings.inactive_retention_days if retention_days is None else retention_days
    cutoff = (today or date.today()) - timedelta(days=days)

    async def work() -> int:
        stmt = select(Student.student_id).where(
            Student.status == StudentStatus.INACTIVE.value,
            Student.inactive_date.is_not(None),
            Student.inactive_date < cutoff,
        )
        if hostel_id is not None:
            stmt = stmt.where(Student.hostel_id == hostel_id)
        ids = list((await db.execute(stmt)).scalars().all())
        if not ids:
            return 0

        payment_ids = select(StudentFeePayment.payment_id).where(StudentFeePayment.student_id.in_(ids))
        due_ids = select(StudentDue.due_id).where(StudentDue.student_id.in_(ids))
        await db.execute(
            delete(PaymentAllocation).where(
                or_(PaymentAllocation.payment_id.in_(payment_ids), PaymentAllocation.due_id.in_(due_ids))
            )
        )
        await db.execute(delete(StudentFeePayment).where(StudentFeePayment.student_id.in_(ids)))
        await db.execute(delete(StudentDue).where(StudentDue.student_id.in_(ids)))
        await db.execute(delete(RoomAllocation).where(RoomAllocation.student_id.in_(ids)))
        await db.execute(delete(Student).where(Student.student_id.in_(ids)))
        return len(ids)

    deleted = await run_in_transaction(db, work, operation="inactive student cleanup")
    logger.info("Deleted %d inactive student(s) older than %s", deleted, cutoff)
    return CleanupResult(students_deleted=deleted, cutoff_date=cutoff)
