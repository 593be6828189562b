"""Reports service: dashboard stats, monthly profit and loss, occupancy, dues report and Excel export."""

import io
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from openpyxl import Workbook
from openpyxl.styles import Font
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import StudentStatus
from app.core.models import Expense, Hostel, Income, Room, Student, StudentDue, StudentFeePayment
from app.core.money import ZERO, round_money, to_decimal
from app.core.periods import format_period, parse_period, period_bounds, period_of
from app.core.scope import ScopeFilter
from app.api.v1.dues import service as dues_service
from app.api.v1.rooms.service import occupied_counts

from .schemas import (
    DashboardResponse,
    DuesReportResponse,
    HostelOccupancy,
    MonthlyProfitLoss,
    ProfitLossResponse,
)

DUES_EXPORT_HEADERS = [
    "Due ID",
    "Student ID",
    "Student",
    "Fee Type",
    "Month",
    "Due Date",
    "Due Amount",
    "Paid Amount",
    "Balance",
    "Status",
    "Carried From",
    "Carried To",
]


def _rate(occupied: int, beds: int) -> float:
    return round(occupied * 100.0 / beds, 2) if beds else 0.0


async def _sum(db: AsyncSession, stmt) -> Decimal:
    return to_decimal((await db.execute(stmt)).scalar())


async def dashboard(
    db: AsyncSession,
    scope: ScopeFilter,
    hostel_id: Optional[int] = None,
    month: Optional[str] = None,
) -> DashboardResponse:
    month = month or period_of(date.today())
    first, last = period_bounds(month)
    effective = scope.effective_hostel_id(hostel_id)

    rooms_stmt = scope.apply(
        select(func.count(Room.room_id), func.coalesce(func.sum(Room.capacity), 0)), Room.hostel_id, hostel_id
    )
    total_rooms, total_beds = (await db.execute(rooms_stmt)).one()
    occupied = sum((await occupied_counts(db, hostel_id=effective)).values())

    active_students = (
        await db.execute(
            scope.apply(
                select(func.count(Student.student_id)).where(Student.status == StudentStatus.ACTIVE.value),
                Student.hostel_id,
                hostel_id,
            )
        )
    ).scalar() or 0

    fee_collections = await _sum(
        db,
        scope.apply(
            select(func.coalesce(func.sum(StudentFeePayment.amount_paid), 0)).where(
                StudentFeePayment.payment_date >= first, StudentFeePayment.payment_date <= last
            ),
            StudentFeePayment.hostel_id,
            hostel_id,
        ),
    )
    other_income = await _sum(
        db,
        scope.apply(
            select(func.coalesce(func.sum(Income.amount), 0)).where(
                Income.income_date >= first, Income.income_date <= last
            ),
            Income.hostel_id,
            hostel_id,
        ),
    )
    expenses = await _sum(
        db,
        scope.apply(
            select(func.coalesce(func.sum(Expense.amount), 0)).where(
                Expense.expense_date >= first, Expense.expense_date <= last
            ),
            Expense.hostel_id,
            hostel_id,
        ),
    )
    pending_count, pending_amount = (
        await db.execute(
            scope.apply(
                select(
                    func.count(StudentDue.due_id),
                    func.coalesce(func.sum(StudentDue.balance_amount), 0),
                ).where(StudentDue.is_paid.is_(False)),
                StudentDue.hostel_id,
                hostel_id,
            )
        )
    ).one()

    total_beds = int(total_beds or 0)
    total_income = fee_collections + other_income
    return DashboardResponse(
        hostel_id=effective,
        month=month,
        total_rooms=total_rooms or 0,
        total_beds=total_beds,
        occupied_beds=occupied,
        available_beds=max(total_beds - occupied, 0),
        occupancy_rate=_rate(occupied, total_beds),
        active_students=active_students,
        fee_collections=round_money(fee_collections),
        other_income=round_money(other_income),
        total_income=round_money(total_income),
        total_expenses=round_money(expenses),
        net_profit=round_money(total_income - expenses),
        pending_dues_count=pending_count or 0,
        pending_dues_amount=round_money(pending_amount),
    )


async def _bucket_by_month(db: AsyncSession, stmt) -> Dict[str, Decimal]:
    out: Dict[str, Decimal] = {}
    for day, amount in (await db.execute(stmt)).all():
        key = period_of(day)
        out[key] = out.get(key, ZERO) + to_decimal(amount)
    return out


async def profit_loss(
    db: AsyncSession,
    scope: ScopeFilter,
    year: int,
    hostel_id: Optional[int] = None,
) -> ProfitLossResponse:
    first, last = date(year, 1, 1), date(year, 12, 31)
    fees = await _bucket_by_month(
        db,
        scope.apply(
            select(StudentFeePayment.payment_date, StudentFeePayment.amount_paid).where(
                StudentFeePayment.payment_date >= first, StudentFeePayment.payment_date <= last
            ),
            StudentFeePayment.hostel_id,
            hostel_id,
        ),
    )
    income = await _bucket_by_month(
        db,
        scope.apply(
            select(Income.income_date, Income.amount).where(Income.income_date >= first, Income.income_date <= last),
            Income.hostel_id,
            hostel_id,
        ),
    )
    expenses = await _bucket_by_month(
        db,
        scope.apply(
            select(Expense.expense_date, Expense.amount).where(
                Expense.expense_date >= first, Expense.expense_date <= last
            ),
            Expense.hostel_id,
            hostel_id,
        ),
    )

    months: List[MonthlyProfitLoss] = []
    for m in range(1, 13):
        key = format_period(year, m)
        total_income = fees.get(key, ZERO) + income.get(key, ZERO)
        spent = expenses.get(key, ZERO)
        months.append(
            MonthlyProfitLoss(
                month=key,
                fee_collections=round_money(fees.get(key, ZERO)),
                other_income=round_money(income.get(key, ZERO)),
                total_income=round_money(total_income),
                total_expenses=round_money(spent),
                net_profit=round_money(total_income - spent),
            )
        )
    total_income = sum((m.total_income for m in months), ZERO)
    total_expenses = sum((m.total_expenses for m in months), ZERO)
    return ProfitLossResponse(
        hostel_id=scope.effective_hostel_id(hostel_id),
        year=year,
        months=months,
        total_income=total_income,
        total_expenses=total_expenses,
        net_profit=total_income - total_expenses,
    )


async def occupancy_report(
    db: AsyncSession,
    scope: ScopeFilter,
    hostel_id: Optional[int] = None,
) -> List[HostelOccupancy]:
    stmt = (
        select(
            Hostel.hostel_id,
            Hostel.hostel_name,
            func.count(Room.room_id),
            func.coalesce(func.sum(Room.capacity), 0),
        )
        .outerjoin(Room, Room.hostel_id == Hostel.hostel_id)
        .group_by(Hostel.hostel_id, Hostel.hostel_name)
        .order_by(Hostel.hostel_id)
    )
    stmt = scope.apply(stmt, Hostel.hostel_id, hostel_id)
    rows = (await db.execute(stmt)).all()

    live = await occupied_counts(db, hostel_id=scope.effective_hostel_id(hostel_id))
    room_hostel = dict(
        (await db.execute(select(Room.room_id, Room.hostel_id).where(Room.room_id.in_(list(live))))).all()
    ) if live else {}
    occupied_by_hostel: Dict[int, int] = {}
    for room_id, count in live.items():
        hid = room_hostel.get(room_id)
        occupied_by_hostel[hid] = occupied_by_hostel.get(hid, 0) + count

    out: List[HostelOccupancy] = []
    for hid, name, rooms, beds in rows:
        beds = int(beds or 0)
        occupied = occupied_by_hostel.get(hid, 0)
        out.append(
            HostelOccupancy(
                hostel_id=hid,
                hostel_name=name,
                total_rooms=rooms or 0,
                total_beds=beds,
                occupied_beds=occupied,
                available_beds=max(beds - occupied, 0),
                occupancy_rate=_rate(occupied, beds),
            )
        )
    return out


async def dues_report(
    db: AsyncSession,
    scope: ScopeFilter,
    hostel_id: Optional[int] = None,
    due_month: Optional[str] = None,
    status_filter: Optional[str] = None,
) -> DuesReportResponse:
    if due_month:
        parse_period(due_month)
    items = await dues_service.list_dues(
        db, scope, hostel_id=hostel_id, due_month=due_month, status_filter=status_filter
    )
    return DuesReportResponse(
        items=items,
        total_due=sum((i.due_amount for i in items), ZERO),
        total_paid=sum((i.paid_amount for i in items), ZERO),
        total_balance=sum((i.balance_amount for i in items), ZERO),
    )


async def build_dues_excel(
    db: AsyncSession,
    scope: ScopeFilter,
    hostel_id: Optional[int] = None,
    due_month: Optional[str] = None,
    status_filter: Optional[str] = None,
) -> bytes:
    report = await dues_report(db, scope, hostel_id=hostel_id, due_month=due_month, status_filter=status_filter)
    wb = Workbook()
    ws = wb.active
    ws.title = "Dues"
    ws.append(DUES_EXPORT_HEADERS)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for d in report.items:
        ws.append(
            [
                d.due_id,
                d.student_id,
                d.student_name,
                d.fee_type,
                d.due_month,
                d.due_date,
                float(d.due_amount),
                float(d.paid_amount),
                float(d.balance_amount),
                d.status.value,
                d.carried_from_month or "",
                d.carried_to_month or "",
            ]
        )
    ws.append([])
    ws.append(
        ["Total", None, None, None, None, None,
         float(report.total_due), float(report.total_paid), float(report.total_balance)]
    )
    bio = io.BytesIO()
    wb.save(bio)
    return bio.getvalue()
