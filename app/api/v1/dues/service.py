"""Dues service: monthly due generation, carry-forward of unpaid balances, dues queries."""

import logging
from decimal import Decimal
from typing import List, Optional, Set, Tuple

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.audit import due_snapshot, log_fee_audit
from app.core.config import settings
from app.core.enums import DueStatus, FeeFrequency, StudentStatus
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.models import FeeStructure, Hostel, RoomAllocation, Student, StudentDue
from app.core.money import ZERO, to_decimal
from app.core.periods import due_date_for, next_period, parse_period, previous_period
from app.core.scope import ScopeFilter
from app.db.transaction import run_in_transaction
from app.api.v1.students.service import get_student_for_scope

from .schemas import (
    CarriedDueItem,
    CarryForwardResponse,
    GenerateDuesResponse,
    HostelGenerationResult,
    StudentDueResponse,
)

logger = logging.getLogger(__name__)


def _due_to_response(
    due: StudentDue,
    fee_type: Optional[str] = None,
    student_name: Optional[str] = None,
) -> StudentDueResponse:
    return StudentDueResponse(
        due_id=due.due_id,
        student_id=due.student_id,
        hostel_id=due.hostel_id,
        fee_category_id=due.fee_category_id,
        fee_type=fee_type,
        student_name=student_name,
        due_month=due.due_month,
        due_amount=to_decimal(due.due_amount),
        paid_amount=to_decimal(due.paid_amount),
        balance_amount=to_decimal(due.balance_amount),
        is_paid=bool(due.is_paid),
        status=due.status,
        due_date=due.due_date,
        paid_date=due.paid_date,
        is_carried_forward=bool(due.is_carried_forward),
        carried_from_month=due.carried_from_month,
        carried_amount=to_decimal(due.carried_amount),
        carried_to_month=due.carried_to_month,
        created_at=due.created_at,
        updated_at=due.updated_at,
    )


def billing_amount(category: FeeStructure, allocation: Optional[RoomAllocation]) -> Decimal:
    """Amount billed for one category. Rent comes from the student's allocation, not the category."""
    if category.fee_type == settings.rent_fee_type:
        return to_decimal(allocation.monthly_rent) if allocation is not None else ZERO
    return to_decimal(category.amount)


async def _hostel_ids_in_scope(
    db: AsyncSession,
    scope: ScopeFilter,
    hostel_id: Optional[int],
) -> List[int]:
    stmt = select(Hostel.hostel_id).where(Hostel.is_active.is_(True))
    stmt = scope.apply(stmt, Hostel.hostel_id, hostel_id).order_by(Hostel.hostel_id)
    ids = list((await db.execute(stmt)).scalars().all())
    if hostel_id is not None and not ids:
        raise NotFoundError("Hostel not found")
    if not scope.is_admin and not ids:
        raise NotFoundError("Hostel not found")
    return ids


async def _active_allocation(db: AsyncSession, student_id: int) -> Optional[RoomAllocation]:
    return (
        await db.execute(
            select(RoomAllocation).where(
                RoomAllocation.student_id == student_id,
                RoomAllocation.is_active.is_(True),
                RoomAllocation.checkout_date.is_(None),
            )
        )
    ).scalar_one_or_none()


# --- Due generation ---
async def _generate_for_hostel(
    db: AsyncSession,
    hostel_id: int,
    period: str,
    changed_by: Optional[int],
) -> HostelGenerationResult:
    result = HostelGenerationResult(hostel_id=hostel_id)

    rows = (
        await db.execute(
            select(Student, RoomAllocation)
            .outerjoin(
                RoomAllocation,
                and_(
                    RoomAllocation.student_id == Student.student_id,
                    RoomAllocation.is_active.is_(True),
                    RoomAllocation.checkout_date.is_(None),
                ),
            )
            .where(
                Student.hostel_id == hostel_id,
                Student.status == StudentStatus.ACTIVE.value,
            )
            .order_by(Student.student_id)
        )
    ).all()
    allocated = [(s, a) for s, a in rows if a is not None]
    result.students_skipped = len(rows) - len(allocated)
    result.students_count = len(allocated)

    categories = (
        await db.execute(
            select(FeeStructure).where(
                FeeStructure.hostel_id == hostel_id,
                FeeStructure.is_active.is_(True),
                FeeStructure.frequency == FeeFrequency.MONTHLY.value,
            ).order_by(FeeStructure.fee_structure_id)
        )
    ).scalars().all()
    result.categories_count = len(categories)
    if not allocated or not categories:
        return result

    existing: Set[Tuple[int, int]] = {
        (r[0], r[1])
        for r in (
            await db.execute(
                select(StudentDue.student_id, StudentDue.fee_category_id).where(
                    StudentDue.hostel_id == hostel_id,
                    StudentDue.due_month == period,
                )
            )
        ).all()
    }

    due_date = due_date_for(period, settings.due_day_of_month)
    created: List[StudentDue] = []
    for student, allocation in allocated:
        for category in categories:
            if (student.student_id, category.fee_structure_id) in existing:
                result.dues_existing += 1
                continue
            amount = billing_amount(category, allocation)
            due = StudentDue(
                student_id=student.student_id,
                hostel_id=hostel_id,
                fee_category_id=category.fee_structure_id,
                due_month=period,
                due_amount=amount,
                paid_amount=ZERO,
                carried_amount=ZERO,
                due_date=due_date,
                is_carried_forward=False,
            )
            due.refresh_balance()
            db.add(due)
            created.append(due)

    # Unique (student_id, fee_category_id, due_month) rejects rows a concurrent run already inserted
    await db.flush()
    for due in created:
        await log_fee_audit(
            db, hostel_id, "student_dues", due.due_id,
            "CREATE", None,
            {"student_id": due.student_id, "fee_category_id": due.fee_category_id, "due_month": period, "due_amount": str(due.due_amount)},
            changed_by,
        )
    result.dues_created = len(created)
    return result


async def generate_dues(
    db: AsyncSession,
    scope: ScopeFilter,
    period: str,
    hostel_id: Optional[int] = None,
    carry_forward_previous: bool = True,
    changed_by: Optional[int] = None,
) -> GenerateDuesResponse:
    """
    Create the dues of a billing period for every in-scope hostel. Safe to re-run:
    existing (student, category, period) dues are left untouched.
    """
    parse_period(period)
    hostel_ids = await _hostel_ids_in_scope(db, scope, hostel_id)

    results: List[HostelGenerationResult] = []
    for hid in hostel_ids:
        async def work(hid=hid) -> HostelGenerationResult:
            return await _generate_for_hostel(db, hid, period, changed_by)

        try:
            res = await run_in_transaction(db, work, operation="due generation")
        except ConflictError:
            # A concurrent run inserted some of the same dues; re-read and fill the gaps.
            logger.info("Due generation for hostel %s, %s raced another run; retrying", hid, period)
            try:
                res = await run_in_transaction(db, work, operation="due generation")
            except ConflictError:
                logger.warning("Due generation for hostel %s, %s skipped after repeated conflicts", hid, period)
                res = HostelGenerationResult(hostel_id=hid)
        logger.info(
            "Generated dues for hostel %s, %s: %d created, %d existing, %d students skipped",
            hid, period, res.dues_created, res.dues_existing, res.students_skipped,
            extra={"hostel_id": hid, "period": period},
        )
        results.append(res)

    carry: Optional[CarryForwardResponse] = None
    if carry_forward_previous:
        carry = await carry_forward(
            db, scope, previous_period(period), hostel_id=hostel_id, changed_by=changed_by
        )

    return GenerateDuesResponse(
        due_month=period,
        hostels=results,
        total_created=sum(r.dues_created for r in results),
        carry_forward=carry,
    )


# --- Carry-forward ---
async def _carry_target_base(db: AsyncSession, source: StudentDue) -> Decimal:
    """What the generator would bill for the target period, so a later generation run can skip the row."""
    category = await db.get(FeeStructure, source.fee_category_id)
    if category is None or not category.is_active or category.frequency != FeeFrequency.MONTHLY.value:
        return ZERO
    student = await db.get(Student, source.student_id)
    if student is None or student.status != StudentStatus.ACTIVE.value:
        return ZERO
    allocation = await _active_allocation(db, source.student_id)
    if allocation is None:
        return ZERO
    return billing_amount(category, allocation)


async def _carry_forward_work(
    db: AsyncSession,
    scope: ScopeFilter,
    from_month: str,
    to_month: str,
    hostel_id: Optional[int],
    changed_by: Optional[int],
) -> List[CarriedDueItem]:
    stmt = (
        select(StudentDue)
        .where(
            StudentDue.due_month == from_month,
            StudentDue.balance_amount > 0,
            StudentDue.carried_to_month.is_(None),
        )
        .order_by(StudentDue.due_id)
        .with_for_update()
    )
    stmt = scope.apply(stmt, StudentDue.hostel_id, hostel_id)
    sources = (await db.execute(stmt)).scalars().all()

    items: List[CarriedDueItem] = []
    for source in sources:
        amount = to_decimal(source.balance_amount)
        target = (
            await db.execute(
                select(StudentDue)
                .where(
                    StudentDue.student_id == source.student_id,
                    StudentDue.fee_category_id == source.fee_category_id,
                    StudentDue.due_month == to_month,
                )
                .with_for_update()
            )
        ).scalar_one_or_none()

        if target is None:
            base = await _carry_target_base(db, source)
            target = StudentDue(
                student_id=source.student_id,
                hostel_id=source.hostel_id,
                fee_category_id=source.fee_category_id,
                due_month=to_month,
                due_amount=base + amount,
                paid_amount=ZERO,
                carried_amount=amount,
                due_date=due_date_for(to_month, settings.due_day_of_month),
                is_carried_forward=True,
                carried_from_month=from_month,
            )
            target.refresh_balance()
            db.add(target)
            await db.flush()
            old_target = None
        else:
            old_target = due_snapshot(target)
            target.due_amount = to_decimal(target.due_amount) + amount
            target.carried_amount = to_decimal(target.carried_amount) + amount
            target.is_carried_forward = True
            target.carried_from_month = from_month
            target.refresh_balance()

        old_source = due_snapshot(source)
        # Balance moves out of the closed period; the source settles at zero.
        source.due_amount = to_decimal(source.due_amount) - amount
        source.carried_to_month = to_month
        source.refresh_balance()

        await log_fee_audit(
            db, source.hostel_id, "student_dues", source.due_id,
            "CARRY_FORWARD", old_source, due_snapshot(source), changed_by,
        )
        await log_fee_audit(
            db, target.hostel_id, "student_dues", target.due_id,
            "CARRY_FORWARD", old_target,
            {**due_snapshot(target), "carried_from_month": from_month},
            changed_by,
        )
        items.append(
            CarriedDueItem(
                source_due_id=source.due_id,
                target_due_id=target.due_id,
                student_id=source.student_id,
                fee_category_id=source.fee_category_id,
                amount=amount,
            )
        )
    return items


async def carry_forward(
    db: AsyncSession,
    scope: ScopeFilter,
    from_month: str,
    hostel_id: Optional[int] = None,
    changed_by: Optional[int] = None,
) -> CarryForwardResponse:
    """
    Roll every unpaid balance of from_month into the next period's due of the same
    student and category. Dues already carried (carried_to_month set) are skipped,
    so running this twice changes nothing.
    """
    to_month = next_period(from_month)
    if hostel_id is not None:
        await _hostel_ids_in_scope(db, scope, hostel_id)

    async def work() -> List[CarriedDueItem]:
        return await _carry_forward_work(db, scope, from_month, to_month, hostel_id, changed_by)

    items = await run_in_transaction(db, work, operation="carry-forward")
    total = sum((i.amount for i in items), ZERO)
    if items:
        logger.info(
            "Carried %d balance(s) totalling %s from %s to %s",
            len(items), total, from_month, to_month,
            extra={"period": from_month},
        )
    return CarryForwardResponse(
        from_month=from_month,
        to_month=to_month,
        carried_count=len(items),
        carried_total=total,
        items=items,
    )


# --- Queries ---
async def list_dues(
    db: AsyncSession,
    scope: ScopeFilter,
    hostel_id: Optional[int] = None,
    student_id: Optional[int] = None,
    due_month: Optional[str] = None,
    status_filter: Optional[str] = None,
) -> List[StudentDueResponse]:
    stmt = (
        select(StudentDue, FeeStructure.fee_type, Student.first_name, Student.last_name)
        .join(FeeStructure, StudentDue.fee_category_id == FeeStructure.fee_structure_id)
        .join(Student, StudentDue.student_id == Student.student_id)
    )
    stmt = scope.apply(stmt, StudentDue.hostel_id, hostel_id)
    if student_id is not None:
        stmt = stmt.where(StudentDue.student_id == student_id)
    if due_month:
        parse_period(due_month)
        stmt = stmt.where(StudentDue.due_month == due_month)
    if status_filter:
        if status_filter == DueStatus.paid.value:
            stmt = stmt.where(StudentDue.is_paid.is_(True), StudentDue.carried_to_month.is_(None))
        elif status_filter == DueStatus.carried.value:
            stmt = stmt.where(StudentDue.carried_to_month.is_not(None))
        elif status_filter == DueStatus.partial.value:
            stmt = stmt.where(StudentDue.is_paid.is_(False), StudentDue.paid_amount > 0)
        elif status_filter == DueStatus.unpaid.value:
            stmt = stmt.where(StudentDue.is_paid.is_(False), StudentDue.paid_amount == 0)
        else:
            raise ValidationError("status must be one of: unpaid, partial, paid, carried")
    stmt = stmt.order_by(StudentDue.due_month, StudentDue.student_id, StudentDue.due_id)
    rows = (await db.execute(stmt)).all()
    return [
        _due_to_response(due, fee_type, " ".join(p for p in (first, last) if p))
        for due, fee_type, first, last in rows
    ]


async def get_student_dues(
    db: AsyncSession,
    scope: ScopeFilter,
    student_id: int,
    outstanding_only: bool = False,
) -> List[StudentDueResponse]:
    student = await get_student_for_scope(db, scope, student_id)
    dues = await list_dues(db, scope, hostel_id=student.hostel_id, student_id=student_id)
    if outstanding_only:
        dues = [d for d in dues if not d.is_paid]
    return dues
