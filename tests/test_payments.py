import asyncio
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from app.api.v1.dues import service as dues_service
from app.api.v1.payments import service as payments_service
from app.api.v1.payments.schemas import PaymentCreate
from app.core.enums import PaymentMode
from app.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from app.core.models import FeeAuditLog, Hostel, StudentDue, StudentFeePayment
from app.core.scope import ScopeFilter

from factories import make_category, make_hostel, make_room, make_student


async def _due(db: AsyncSession, student_id: int, period: str, category_id: int) -> StudentDue:
    due = (
        await db.execute(
            select(StudentDue).where(
                StudentDue.student_id == student_id,
                StudentDue.due_month == period,
                StudentDue.fee_category_id == category_id,
            )
        )
    ).scalar_one()
    await db.refresh(due)
    return due


def _pay(student_id: int, amount: str, **kwargs) -> PaymentCreate:
    return PaymentCreate(
        student_id=student_id,
        amount=Decimal(amount),
        payment_date=kwargs.pop("payment_date", date(2025, 11, 20)),
        payment_mode=PaymentMode.UPI,
        **kwargs,
    )


@pytest.fixture()
async def rent_setup(db_session: AsyncSession, hostel: Hostel, admin_scope: ScopeFilter):
    room = await make_room(db_session, hostel, rent_per_bed=Decimal("4800"))
    rent = await make_category(db_session, hostel, "Monthly Rent")
    student = await make_student(db_session, hostel, room, Decimal("4800"))
    await dues_service.generate_dues(db_session, admin_scope, "2025-11", carry_forward_previous=False)
    return student, rent


@pytest.mark.asyncio
async def test_partial_then_full_payment(
    db_session: AsyncSession, admin_scope: ScopeFilter, rent_setup
) -> None:
    student, rent = rent_setup

    first = await payments_service.record_payment(db_session, admin_scope, _pay(student.student_id, "2000"), collected_by=1)
    due = await _due(db_session, student.student_id, "2025-11", rent.fee_structure_id)
    assert due.paid_amount == Decimal("2000")
    assert due.balance_amount == Decimal("2800")
    assert due.is_paid is False
    assert due.status == "partial"
    assert first.receipt_number.startswith("RCP-20251120-")
    assert [(a.due_id, a.amount, a.balance_after) for a in first.allocations] == [
        (due.due_id, Decimal("2000"), Decimal("2800"))
    ]

    await payments_service.record_payment(
        db_session, admin_scope, _pay(student.student_id, "2800", payment_date=date(2025, 11, 25))
    )
    due = await _due(db_session, student.student_id, "2025-11", rent.fee_structure_id)
    assert due.balance_amount == Decimal("0")
    assert due.is_paid is True
    assert due.paid_date == date(2025, 11, 25)


@pytest.mark.asyncio
async def test_waterfall_settles_oldest_period_first(
    db_session: AsyncSession, hostel: Hostel, admin_scope: ScopeFilter
) -> None:
    room = await make_room(db_session, hostel, rent_per_bed=Decimal("3000"))
    rent = await make_category(db_session, hostel, "Monthly Rent")
    student = await make_student(db_session, hostel, room, Decimal("3000"))
    await dues_service.generate_dues(db_session, admin_scope, "2025-10", carry_forward_previous=False)
    await dues_service.generate_dues(db_session, admin_scope, "2025-11", carry_forward_previous=False)

    payment = await payments_service.record_payment(db_session, admin_scope, _pay(student.student_id, "4000"))

    october = await _due(db_session, student.student_id, "2025-10", rent.fee_structure_id)
    november = await _due(db_session, student.student_id, "2025-11", rent.fee_structure_id)
    assert october.is_paid is True and october.balance_amount == Decimal("0")
    assert november.paid_amount == Decimal("1000")
    assert november.balance_amount == Decimal("2000")
    assert [a.due_month for a in payment.allocations] == ["2025-10", "2025-11"]


@pytest.mark.asyncio
async def test_target_due_and_category_are_settled_first(
    db_session: AsyncSession, hostel: Hostel, admin_scope: ScopeFilter
) -> None:
    room = await make_room(db_session, hostel, rent_per_bed=Decimal("3000"))
    rent = await make_category(db_session, hostel, "Monthly Rent")
    power = await make_category(db_session, hostel, "Electricity", Decimal("300"))
    student = await make_student(db_session, hostel, room, Decimal("3000"))
    await dues_service.generate_dues(db_session, admin_scope, "2025-10", carry_forward_previous=False)
    await dues_service.generate_dues(db_session, admin_scope, "2025-11", carry_forward_previous=False)

    await payments_service.record_payment(
        db_session, admin_scope, _pay(student.student_id, "300", fee_category_id=power.fee_structure_id)
    )
    oct_power = await _due(db_session, student.student_id, "2025-10", power.fee_structure_id)
    oct_rent = await _due(db_session, student.student_id, "2025-10", rent.fee_structure_id)
    assert oct_power.is_paid is True
    assert oct_rent.paid_amount == Decimal("0")

    nov_rent = await _due(db_session, student.student_id, "2025-11", rent.fee_structure_id)
    await payments_service.record_payment(
        db_session, admin_scope, _pay(student.student_id, "1000", due_id=nov_rent.due_id)
    )
    nov_rent = await _due(db_session, student.student_id, "2025-11", rent.fee_structure_id)
    oct_rent = await _due(db_session, student.student_id, "2025-10", rent.fee_structure_id)
    assert nov_rent.paid_amount == Decimal("1000")
    assert oct_rent.paid_amount == Decimal("0")


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", ["0", "-50"])
async def test_non_positive_amount_is_rejected(
    db_session: AsyncSession, admin_scope: ScopeFilter, rent_setup, amount: str
) -> None:
    student, _ = rent_setup
    with pytest.raises(ValidationError) as exc:
        await payments_service.record_payment(db_session, admin_scope, _pay(student.student_id, amount))
    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_overpayment_is_rejected_and_nothing_is_written(
    db_session: AsyncSession, admin_scope: ScopeFilter, rent_setup
) -> None:
    student, rent = rent_setup
    student_id, rent_id = student.student_id, rent.fee_structure_id
    with pytest.raises(ValidationError):
        await payments_service.record_payment(db_session, admin_scope, _pay(student_id, "5000"))

    # the failed payment rolled back the session; reload by id
    due = await _due(db_session, student_id, "2025-11", rent_id)
    assert due.paid_amount == Decimal("0")
    assert (await db_session.execute(select(func.count(StudentFeePayment.payment_id)))).scalar() == 0


@pytest.mark.asyncio
async def test_two_half_payments_settle_exactly(
    db_session: AsyncSession, hostel: Hostel, admin_scope: ScopeFilter
) -> None:
    room = await make_room(db_session, hostel, rent_per_bed=Decimal("3000"))
    rent = await make_category(db_session, hostel, "Monthly Rent")
    student = await make_student(db_session, hostel, room, Decimal("3000"))
    await dues_service.generate_dues(db_session, admin_scope, "2025-11", carry_forward_previous=False)

    await payments_service.record_payment(db_session, admin_scope, _pay(student.student_id, "1500"))
    await payments_service.record_payment(db_session, admin_scope, _pay(student.student_id, "1500"))

    due = await _due(db_session, student.student_id, "2025-11", rent.fee_structure_id)
    assert due.balance_amount == Decimal("0")
    assert due.paid_amount == Decimal("3000")
    assert due.is_paid is True

    with pytest.raises(ValidationError):
        await payments_service.record_payment(db_session, admin_scope, _pay(student.student_id, "1"))


@pytest.mark.asyncio
async def test_balance_invariant_and_audit_rows(
    db_session: AsyncSession, admin_scope: ScopeFilter, rent_setup
) -> None:
    student, _ = rent_setup
    payment = await payments_service.record_payment(db_session, admin_scope, _pay(student.student_id, "1234.50"))

    for due in (await db_session.execute(select(StudentDue))).scalars().all():
        await db_session.refresh(due)
        assert due.balance_amount == due.due_amount - due.paid_amount
        assert due.is_paid == (due.balance_amount <= 0)

    actions = [
        tuple(r)
        for r in (
            await db_session.execute(
                select(FeeAuditLog.reference_table, FeeAuditLog.action_type).where(FeeAuditLog.action_type != "CREATE")
            )
        ).all()
    ]
    assert ("student_dues", "PAYMENT") in actions
    payment_audit = (
        await db_session.execute(
            select(FeeAuditLog).where(
                FeeAuditLog.reference_table == "student_fee_payments",
                FeeAuditLog.reference_id == payment.payment_id,
            )
        )
    ).scalar_one()
    assert payment_audit.new_value["amount_paid"] == "1234.50"


@pytest.mark.asyncio
async def test_owner_cannot_pay_for_other_hostel(
    db_session: AsyncSession, other_hostel: Hostel, rent_setup
) -> None:
    student, _ = rent_setup
    with pytest.raises(ForbiddenError):
        await payments_service.record_payment(
            db_session, ScopeFilter.owner(other_hostel.hostel_id), _pay(student.student_id, "100")
        )


@pytest.mark.asyncio
async def test_unknown_target_due_is_not_found(
    db_session: AsyncSession, admin_scope: ScopeFilter, rent_setup
) -> None:
    student, _ = rent_setup
    with pytest.raises(NotFoundError):
        await payments_service.record_payment(db_session, admin_scope, _pay(student.student_id, "100", due_id=9999))


@pytest.mark.asyncio
async def test_history_and_receipt(
    db_session: AsyncSession, admin_scope: ScopeFilter, rent_setup
) -> None:
    student, _ = rent_setup
    first = await payments_service.record_payment(
        db_session, admin_scope, _pay(student.student_id, "1000", payment_date=date(2025, 11, 10))
    )
    second = await payments_service.record_payment(
        db_session, admin_scope, _pay(student.student_id, "500", payment_date=date(2025, 11, 12))
    )

    history = await payments_service.get_payment_history(db_session, admin_scope, student.student_id)
    assert [p.payment_id for p in history] == [second.payment_id, first.payment_id]
    assert history[0].allocations[0].fee_type == "Monthly Rent"

    receipt = await payments_service.get_receipt(db_session, admin_scope, first.payment_id)
    assert receipt.receipt_number == first.receipt_number
    assert receipt.student_name == "Ravi"
    assert receipt.outstanding_after == Decimal("3300")


@pytest.mark.asyncio
async def test_simultaneous_payments_never_overdraw(serialized_file_engine: AsyncEngine) -> None:
    sessions = async_sessionmaker(bind=serialized_file_engine, class_=AsyncSession, expire_on_commit=False)
    admin = ScopeFilter.admin(user_id=1)
    async with sessions() as seed:
        hostel = await make_hostel(seed)
        room = await make_room(seed, hostel, rent_per_bed=Decimal("3000"))
        await make_category(seed, hostel, "Monthly Rent")
        student = await make_student(seed, hostel, room, Decimal("3000"))
        await dues_service.generate_dues(seed, admin, "2025-11", carry_forward_previous=False)
        student_id = student.student_id

    async def pay():
        async with sessions() as db:
            return await payments_service.record_payment(db, admin, _pay(student_id, "1500"), collected_by=1)

    first, second = await asyncio.gather(pay(), pay())

    assert first.payment_id != second.payment_id
    assert sorted(p.allocations[0].balance_after for p in (first, second)) == [Decimal("0"), Decimal("1500")]
    async with sessions() as check:
        due = (await check.execute(select(StudentDue).where(StudentDue.student_id == student_id))).scalar_one()
        payments = (
            await check.execute(
                select(func.count()).select_from(StudentFeePayment).where(StudentFeePayment.student_id == student_id)
            )
        ).scalar_one()
    assert due.balance_amount == Decimal("0")
    assert due.is_paid is True
    assert payments == 2
