"""Payments service: waterfall allocation of a payment over a student's dues, history, receipts.

A payment, the due updates it causes, its allocation lines and the audit rows are one
transaction. Due rows are read FOR UPDATE so two payments for the same student serialize.
"""

import logging
import uuid
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.audit import due_snapshot, log_fee_audit
from app.core.exceptions import NotFoundError, ValidationError
from app.core.models import (
    FeeStructure,
    Hostel,
    PaymentAllocation,
    StudentDue,
    StudentFeePayment,
)
from app.core.money import ZERO, round_money, to_decimal
from app.core.scope import ScopeFilter
from app.db.transaction import run_in_transaction
from app.api.v1.students.service import get_student_for_scope

from .schemas import (
    PaymentAllocationResponse,
    PaymentCreate,
    PaymentResponse,
    ReceiptResponse,
)

logger = logging.getLogger(__name__)


def _generate_receipt_number(payment_date: date) -> str:
    return f"RCP-{payment_date:%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


def _payment_to_response(
    payment: StudentFeePayment,
    fee_types: Optional[Dict[int, str]] = None,
) -> PaymentResponse:
    fee_types = fee_types or {}
    return PaymentResponse(
        payment_id=payment.payment_id,
        student_id=payment.student_id,
        hostel_id=payment.hostel_id,
        amount_paid=to_decimal(payment.amount_paid),
        payment_date=payment.payment_date,
        payment_mode=payment.payment_mode,
        transaction_reference=payment.transaction_reference,
        receipt_number=payment.receipt_number,
        remarks=payment.remarks,
        collected_by=payment.collected_by,
        created_at=payment.created_at,
        allocations=[
            PaymentAllocationResponse(
                due_id=line.due_id,
                due_month=line.due.due_month,
                fee_category_id=line.due.fee_category_id,
                fee_type=fee_types.get(line.due.fee_category_id),
                amount=to_decimal(line.amount),
                balance_after=to_decimal(line.balance_after),
            )
            for line in payment.allocations
        ],
    )


async def _fee_type_names(db: AsyncSession, payments: List[StudentFeePayment]) -> Dict[int, str]:
    ids = {line.due.fee_category_id for p in payments for line in p.allocations}
    if not ids:
        return {}
    rows = (
        await db.execute(
            select(FeeStructure.fee_structure_id, FeeStructure.fee_type).where(
                FeeStructure.fee_structure_id.in_(ids)
            )
        )
    ).all()
    return {fid: name for fid, name in rows}


def _payment_query():
    return select(StudentFeePayment).options(
        selectinload(StudentFeePayment.allocations).selectinload(PaymentAllocation.due)
    )


def allocation_order(
    dues: List[StudentDue],
    due_id: Optional[int] = None,
    fee_category_id: Optional[int] = None,
) -> List[StudentDue]:
    """
    Order in which a payment settles outstanding dues: the target due, then the target
    category oldest first, then everything else oldest first. dues must already be
    sorted by (due_month, due_date, due_id).
    """
    ordered: List[StudentDue] = []
    if due_id is not None:
        ordered.extend(d for d in dues if d.due_id == due_id)
    if fee_category_id is not None:
        ordered.extend(d for d in dues if d.fee_category_id == fee_category_id and d not in ordered)
    ordered.extend(d for d in dues if d not in ordered)
    return ordered


async def record_payment(
    db: AsyncSession,
    scope: ScopeFilter,
    payload: PaymentCreate,
    collected_by: Optional[int] = None,
) -> PaymentResponse:
    amount = round_money(payload.amount)
    if amount <= ZERO:
        raise ValidationError("Payment amount must be greater than zero")
    student = await get_student_for_scope(db, scope, payload.student_id)
    # A retried attempt starts after a rollback that expires every loaded row; work only uses ids.
    student_id, hostel_id = student.student_id, student.hostel_id
    payment_date = payload.payment_date or date.today()

    async def work() -> StudentFeePayment:
        outstanding = (
            await db.execute(
                select(StudentDue)
                .where(
                    StudentDue.student_id == student_id,
                    StudentDue.is_paid.is_(False),
                    StudentDue.balance_amount > 0,
                )
                .order_by(StudentDue.due_month, StudentDue.due_date, StudentDue.due_id)
                .with_for_update()
            )
        ).scalars().all()

        if payload.due_id is not None:
            target = await db.get(StudentDue, payload.due_id)
            if target is None or target.student_id != student_id:
                raise NotFoundError("Due not found for this student")
            if target.is_paid:
                raise ValidationError("Due is already paid")

        total_outstanding = sum((to_decimal(d.balance_amount) for d in outstanding), ZERO)
        if total_outstanding <= ZERO:
            raise ValidationError("Student has no outstanding dues")
        if amount > total_outstanding:
            raise ValidationError(
                f"Payment amount {amount} exceeds outstanding balance {total_outstanding}"
            )

        payment = StudentFeePayment(
            student_id=student_id,
            hostel_id=hostel_id,
            amount_paid=amount,
            payment_date=payment_date,
            payment_mode=payload.payment_mode.value,
            transaction_reference=(payload.transaction_reference or "").strip() or None,
            receipt_number=_generate_receipt_number(payment_date),
            remarks=payload.remarks,
            collected_by=collected_by,
        )
        db.add(payment)
        await db.flush()

        remaining = amount
        for due in allocation_order(list(outstanding), payload.due_id, payload.fee_category_id):
            if remaining <= ZERO:
                break
            balance = to_decimal(due.balance_amount)
            applied = min(remaining, balance)
            if applied <= ZERO:
                continue
            old = due_snapshot(due)
            due.paid_amount = to_decimal(due.paid_amount) + applied
            due.refresh_balance()
            if due.is_paid:
                due.paid_date = payment_date
            remaining -= applied
            db.add(
                PaymentAllocation(
                    payment_id=payment.payment_id,
                    due_id=due.due_id,
                    amount=applied,
                    balance_after=due.balance_amount,
                )
            )
            await log_fee_audit(
                db, due.hostel_id, "student_dues", due.due_id,
                "PAYMENT", old, due_snapshot(due), collected_by,
            )

        await log_fee_audit(
            db, payment.hostel_id, "student_fee_payments", payment.payment_id,
            "CREATE", None,
            {
                "student_id": payment.student_id,
                "amount_paid": str(amount),
                "payment_mode": payment.payment_mode,
                "receipt_number": payment.receipt_number,
            },
            collected_by,
        )
        return payment

    payment = await run_in_transaction(db, work, operation="payment recording")
    logger.info(
        "Recorded payment %s of %s for student %s",
        payment.receipt_number, amount, student_id,
        extra={"hostel_id": hostel_id, "user_id": collected_by},
    )
    return await get_payment(db, scope, payment.payment_id)


async def get_payment(db: AsyncSession, scope: ScopeFilter, payment_id: int) -> PaymentResponse:
    payment = (
        await db.execute(
            _payment_query()
            .where(StudentFeePayment.payment_id == payment_id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if payment is None:
        raise NotFoundError("Payment not found")
    scope.ensure_can_access(payment.hostel_id)
    return _payment_to_response(payment, await _fee_type_names(db, [payment]))


async def get_payment_history(
    db: AsyncSession,
    scope: ScopeFilter,
    student_id: int,
) -> List[PaymentResponse]:
    student = await get_student_for_scope(db, scope, student_id)
    stmt = (
        _payment_query()
        .where(StudentFeePayment.student_id == student.student_id)
        .order_by(StudentFeePayment.payment_date.desc(), StudentFeePayment.payment_id.desc())
    )
    payments = list((await db.execute(stmt)).scalars().all())
    names = await _fee_type_names(db, payments)
    return [_payment_to_response(p, names) for p in payments]


async def list_payments(
    db: AsyncSession,
    scope: ScopeFilter,
    hostel_id: Optional[int] = None,
    student_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    payment_mode: Optional[str] = None,
) -> List[PaymentResponse]:
    stmt = scope.apply(_payment_query(), StudentFeePayment.hostel_id, hostel_id)
    if student_id is not None:
        stmt = stmt.where(StudentFeePayment.student_id == student_id)
    if date_from is not None:
        stmt = stmt.where(StudentFeePayment.payment_date >= date_from)
    if date_to is not None:
        stmt = stmt.where(StudentFeePayment.payment_date <= date_to)
    if payment_mode:
        stmt = stmt.where(StudentFeePayment.payment_mode == payment_mode.strip().upper())
    stmt = stmt.order_by(StudentFeePayment.payment_date.desc(), StudentFeePayment.payment_id.desc())
    payments = list((await db.execute(stmt)).scalars().all())
    names = await _fee_type_names(db, payments)
    return [_payment_to_response(p, names) for p in payments]


async def get_receipt(db: AsyncSession, scope: ScopeFilter, payment_id: int) -> ReceiptResponse:
    payment = await get_payment(db, scope, payment_id)
    student = await get_student_for_scope(db, scope, payment.student_id)
    hostel = await db.get(Hostel, payment.hostel_id)
    outstanding = (
        await db.execute(
            select(func.coalesce(func.sum(StudentDue.balance_amount), 0)).where(
                StudentDue.student_id == payment.student_id,
                StudentDue.is_paid.is_(False),
            )
        )
    ).scalar()
    return ReceiptResponse(
        receipt_number=payment.receipt_number,
        hostel_id=payment.hostel_id,
        hostel_name=hostel.hostel_name if hostel is not None else None,
        student_id=student.student_id,
        student_name=student.full_name,
        payment=payment,
        outstanding_after=to_decimal(outstanding),
    )
