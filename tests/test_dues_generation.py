from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from app.api.v1.dues import service as dues_service
from app.core.enums import FeeFrequency
from app.core.exceptions import ForbiddenError, NotFoundError
from app.core.models import Hostel, StudentDue
from app.core.scope import ScopeFilter

from factories import make_category, make_hostel, make_room, make_student


async def _dues(db: AsyncSession, period: str):
    return (
        await db.execute(
            select(StudentDue).where(StudentDue.due_month == period).order_by(StudentDue.due_id)
        )
    ).scalars().all()


@pytest.mark.asyncio
async def test_generates_one_due_per_student_and_monthly_category(
    db_session: AsyncSession, hostel: Hostel, admin_scope: ScopeFilter
) -> None:
    room = await make_room(db_session, hostel, capacity=3, rent_per_bed=Decimal("4800"))
    rent = await make_category(db_session, hostel, "Monthly Rent")
    power = await make_category(db_session, hostel, "Electricity", Decimal("300"))
    await make_category(db_session, hostel, "Deposit", Decimal("5000"), FeeFrequency.ONE_TIME)
    a = await make_student(db_session, hostel, room, Decimal("4800"), first_name="Asha")
    b = await make_student(db_session, hostel, room, Decimal("5000"), first_name="Bala")
    await make_student(db_session, hostel, None, first_name="Chitra")  # no room

    result = await dues_service.generate_dues(
        db_session, admin_scope, "2025-11", carry_forward_previous=False
    )

    assert result.total_created == 4
    [h] = result.hostels
    assert h.students_count == 2
    assert h.students_skipped == 1
    assert h.categories_count == 2

    dues = await _dues(db_session, "2025-11")
    amounts = {(d.student_id, d.fee_category_id): d.due_amount for d in dues}
    assert amounts[(a.student_id, rent.fee_structure_id)] == Decimal("4800")
    assert amounts[(b.student_id, rent.fee_structure_id)] == Decimal("5000")
    assert amounts[(a.student_id, power.fee_structure_id)] == Decimal("300")
    for d in dues:
        assert d.due_date == date(2025, 11, 15)
        assert d.balance_amount == d.due_amount - d.paid_amount
        assert d.is_paid is False
        assert d.status == "unpaid"


@pytest.mark.asyncio
async def test_generation_is_idempotent(
    db_session: AsyncSession, hostel: Hostel, admin_scope: ScopeFilter
) -> None:
    room = await make_room(db_session, hostel)
    await make_category(db_session, hostel, "Monthly Rent")
    await make_student(db_session, hostel, room)

    first = await dues_service.generate_dues(db_session, admin_scope, "2025-11")
    second = await dues_service.generate_dues(db_session, admin_scope, "2025-11")

    assert first.total_created == 1
    assert second.total_created == 0
    assert second.hostels[0].dues_existing == 1
    count = (
        await db_session.execute(select(func.count(StudentDue.due_id)).where(StudentDue.due_month == "2025-11"))
    ).scalar()
    assert count == 1


@pytest.mark.asyncio
async def test_inactive_category_is_not_billed(
    db_session: AsyncSession, hostel: Hostel, admin_scope: ScopeFilter
) -> None:
    room = await make_room(db_session, hostel)
    await make_category(db_session, hostel, "Monthly Rent")
    laundry = await make_category(db_session, hostel, "Laundry", Decimal("200"))
    laundry.is_active = False
    await db_session.commit()
    await make_student(db_session, hostel, room)

    result = await dues_service.generate_dues(db_session, admin_scope, "2025-11")

    assert result.total_created == 1
    assert all(d.fee_category_id != laundry.fee_structure_id for d in await _dues(db_session, "2025-11"))


@pytest.mark.asyncio
async def test_owner_generates_only_for_own_hostel(
    db_session: AsyncSession, hostel: Hostel, other_hostel: Hostel
) -> None:
    for h in (hostel, other_hostel):
        room = await make_room(db_session, h)
        await make_category(db_session, h, "Monthly Rent")
        await make_student(db_session, h, room)

    owner = ScopeFilter.owner(hostel.hostel_id)
    result = await dues_service.generate_dues(db_session, owner, "2025-11")

    assert [h.hostel_id for h in result.hostels] == [hostel.hostel_id]
    assert {d.hostel_id for d in await _dues(db_session, "2025-11")} == {hostel.hostel_id}

    with pytest.raises(ForbiddenError):
        await dues_service.generate_dues(db_session, owner, "2025-11", hostel_id=other_hostel.hostel_id)


@pytest.mark.asyncio
async def test_unknown_hostel_is_not_found(db_session: AsyncSession, admin_scope: ScopeFilter) -> None:
    with pytest.raises(NotFoundError):
        await dues_service.generate_dues(db_session, admin_scope, "2025-11", hostel_id=999)


@pytest.mark.asyncio
async def test_list_dues_filters_by_status(
    db_session: AsyncSession, hostel: Hostel, admin_scope: ScopeFilter
) -> None:
    room = await make_room(db_session, hostel)
    await make_category(db_session, hostel, "Monthly Rent")
    student = await make_student(db_session, hostel, room, first_name="Asha")
    await dues_service.generate_dues(db_session, admin_scope, "2025-11")

    unpaid = await dues_service.list_dues(db_session, admin_scope, status_filter="unpaid")
    paid = await dues_service.list_dues(db_session, admin_scope, status_filter="paid")

    assert len(unpaid) == 1
    assert unpaid[0].student_name == "Asha"
    assert unpaid[0].fee_type == "Monthly Rent"
    assert paid == []
    mine = await dues_service.get_student_dues(db_session, admin_scope, student.student_id)
    assert [d.due_month for d in mine] == ["2025-11"]


@pytest.mark.asyncio
async def test_generation_fills_gaps_around_a_concurrent_insert(file_engine: AsyncEngine, monkeypatch) -> None:
    sessions = async_sessionmaker(bind=file_engine, class_=AsyncSession, expire_on_commit=False)
    async with sessions() as seed:
        hostel = await make_hostel(seed)
        room = await make_room(seed, hostel, capacity=2)
        rent = await make_category(seed, hostel, "Monthly Rent")
        a = await make_student(seed, hostel, room, Decimal("4800"), first_name="Asha")
        b = await make_student(seed, hostel, room, Decimal("5000"), first_name="Bala")
        hostel_id, rent_id, a_id, b_id = hostel.hostel_id, rent.fee_structure_id, a.student_id, b.student_id

    inserted = []

    async with sessions() as db:
        real_flush = db.flush

        async def flush(*args, **kwargs):
            # Another run commits Asha's due after this run has read what exists
            if not inserted:
                async with sessions() as other:
                    due = StudentDue(
                        student_id=a_id,
                        hostel_id=hostel_id,
                        fee_category_id=rent_id,
                        due_month="2025-11",
                        due_amount=Decimal("4800"),
                        paid_amount=Decimal("0"),
                        carried_amount=Decimal("0"),
                        due_date=date(2025, 11, 15),
                        is_carried_forward=False,
                    )
                    due.refresh_balance()
                    other.add(due)
                    await other.commit()
                inserted.append(a_id)
            await real_flush(*args, **kwargs)

        monkeypatch.setattr(db, "flush", flush)
        result = await dues_service.generate_dues(
            db, ScopeFilter.admin(user_id=1), "2025-11", carry_forward_previous=False
        )

    assert inserted == [a_id]
    [res] = result.hostels
    assert res.dues_created == 1
    assert res.dues_existing == 1
    assert result.total_created == 1

    async with sessions() as check:
        rows = (
            await check.execute(
                select(StudentDue.student_id, StudentDue.due_amount)
                .where(StudentDue.due_month == "2025-11")
                .order_by(StudentDue.student_id)
            )
        ).all()
    assert [(r[0], r[1]) for r in rows] == [(a_id, Decimal("4800")), (b_id, Decimal("5000"))]
