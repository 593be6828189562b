"""Rollback and retry behaviour of run_in_transaction and the services built on it."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.dues import service as dues_service
from app.api.v1.payments import service as payments_service
from app.api.v1.payments.schemas import PaymentCreate
from app.api.v1.students import service as students_service
from app.api.v1.students.schemas import AllocateRoomRequest, StudentUpdate
from app.core.config import settings
from app.core.enums import PaymentMode
from app.core.exceptions import ConflictError, PersistenceError
from app.core.models import FeeAuditLog, Hostel, Room, RoomAllocation, StudentDue, StudentFeePayment
from app.core.money import ZERO
from app.core.scope import ScopeFilter
from app.db.transaction import run_in_transaction

from factories import make_category, make_room, make_student


def _locked() -> OperationalError:
    return OperationalError("COMMIT", {}, Exception("database is locked"))


@pytest.fixture(autouse=True)
def one_retry(monkeypatch) -> None:
    monkeypatch.setattr(settings, "lock_retry_attempts", 1)


@pytest.fixture()
def flaky_commit(monkeypatch, db_session: AsyncSession):
    """Make the next `failures` commits on db_session raise a lock error; returns the call counter."""

    def install(failures: int):
        calls = {"commit": 0}
        real_commit = db_session.commit

        async def commit() -> None:
            calls["commit"] += 1
            if calls["commit"] <= failures:
                raise _locked()
            await real_commit()

        monkeypatch.setattr(db_session, "commit", commit)
        return calls

    return install


@pytest.fixture()
async def billed_student(db_session: AsyncSession, hostel: Hostel, admin_scope: ScopeFilter):
    """(student_id, due_id) for one student owing 3000 rent for 2025-11."""
    room = await make_room(db_session, hostel, rent_per_bed=Decimal("3000"))
    await make_category(db_session, hostel, "Monthly Rent")
    student = await make_student(db_session, hostel, room, Decimal("3000"))
    await dues_service.generate_dues(db_session, admin_scope, "2025-11", carry_forward_previous=False)
    due_id = (
        await db_session.execute(select(StudentDue.due_id).where(StudentDue.student_id == student.student_id))
    ).scalar_one()
    return student.student_id, due_id


async def _balance(db: AsyncSession, due_id: int) -> Decimal:
    due = (
        await db.execute(
            select(StudentDue).where(StudentDue.due_id == due_id).execution_options(populate_existing=True)
        )
    ).scalar_one()
    return due.balance_amount


async def _count(db: AsyncSession, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


def _payment(student_id: int, amount: str) -> PaymentCreate:
    return PaymentCreate(
        student_id=student_id,
        amount=Decimal(amount),
        payment_date=date(2025, 11, 20),
        payment_mode=PaymentMode.CASH,
    )


@pytest.mark.asyncio
async def test_payment_succeeds_after_one_lock_failure(
    db_session: AsyncSession, admin_scope: ScopeFilter, billed_student, flaky_commit
) -> None:
    student_id, due_id = billed_student
    calls = flaky_commit(1)

    payment = await payments_service.record_payment(
        db_session, admin_scope, _payment(student_id, "1500"), collected_by=1
    )

    assert calls["commit"] == 2
    assert payment.amount_paid == Decimal("1500")
    assert [a.balance_after for a in payment.allocations] == [Decimal("1500")]
    assert await _balance(db_session, due_id) == Decimal("1500")
    assert await _count(db_session, StudentFeePayment) == 1


@pytest.mark.asyncio
async def test_payment_gives_up_after_two_lock_failures(
    db_session: AsyncSession, admin_scope: ScopeFilter, billed_student, flaky_commit
) -> None:
    student_id, due_id = billed_student
    audit_rows = await _count(db_session, FeeAuditLog)
    calls = flaky_commit(2)

    with pytest.raises(PersistenceError):
        await payments_service.record_payment(
            db_session, admin_scope, _payment(student_id, "1500"), collected_by=1
        )

    assert calls["commit"] == 2
    assert await _balance(db_session, due_id) == Decimal("3000")
    assert await _count(db_session, StudentFeePayment) == 0
    assert await _count(db_session, FeeAuditLog) == audit_rows


@pytest.mark.asyncio
async def test_room_allocation_survives_one_lock_failure(
    db_session: AsyncSession, hostel: Hostel, admin_scope: ScopeFilter, flaky_commit
) -> None:
    room = await make_room(db_session, hostel, capacity=2)
    student = await make_student(db_session, hostel, None)
    room_id, student_id = room.room_id, student.student_id
    flaky_commit(1)

    allocation = await students_service.allocate_room(
        db_session, admin_scope, student_id,
        AllocateRoomRequest(room_id=room_id, allocation_date=date(2025, 11, 1)),
        changed_by=1,
    )

    assert allocation.room_id == room_id
    assert allocation.monthly_rent == Decimal("4800")
    assert await _count(db_session, RoomAllocation) == 1
    occupied = (
        await db_session.execute(
            select(Room.occupied_beds).where(Room.room_id == room_id).execution_options(populate_existing=True)
        )
    ).scalar_one()
    assert occupied == 1


@pytest.mark.asyncio
async def test_student_update_survives_one_lock_failure(
    db_session: AsyncSession, hostel: Hostel, admin_scope: ScopeFilter, flaky_commit
) -> None:
    student = await make_student(db_session, hostel, None, first_name="Ravi")
    student_id = student.student_id
    flaky_commit(1)

    updated = await students_service.update_student(
        db_session, admin_scope, student_id, StudentUpdate(first_name="Ravindra", phone="9800000000")
    )

    assert updated.first_name == "Ravindra"
    assert updated.phone == "9800000000"


@pytest.mark.asyncio
async def test_lock_failures_are_retried_then_surface_as_persistence_error(db_session: AsyncSession) -> None:
    attempts = []

    async def work() -> None:
        attempts.append(1)
        raise _locked()

    with pytest.raises(PersistenceError):
        await run_in_transaction(db_session, work, operation="payment recording")
    assert len(attempts) == 2

    attempts.clear()
    with pytest.raises(PersistenceError):
        await run_in_transaction(db_session, work, operation="payment recording", retries=0)
    assert len(attempts) == 1


@pytest.mark.asyncio
async def test_unique_violation_becomes_conflict_and_is_rolled_back(
    db_session: AsyncSession, hostel: Hostel, billed_student
) -> None:
    student_id, due_id = billed_student
    category_id = (
        await db_session.execute(select(StudentDue.fee_category_id).where(StudentDue.due_id == due_id))
    ).scalar_one()
    hostel_id = hostel.hostel_id

    async def work() -> None:
        duplicate = StudentDue(
            student_id=student_id,
            hostel_id=hostel_id,
            fee_category_id=category_id,
            due_month="2025-11",
            due_amount=Decimal("3000"),
            paid_amount=ZERO,
            carried_amount=ZERO,
            due_date=date(2025, 11, 5),
            is_carried_forward=False,
        )
        duplicate.refresh_balance()
        db_session.add(duplicate)
        await db_session.flush()

    with pytest.raises(ConflictError):
        await run_in_transaction(db_session, work, operation="due generation")

    assert await _count(db_session, StudentDue) == 1
    assert await _balance(db_session, due_id) == Decimal("3000")
