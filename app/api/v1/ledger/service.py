"""Income and expense ledger service. Entries are hostel-scoped and independent of student dues."""

from datetime import date
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.core.models import Expense, Income
from app.core.scope import ScopeFilter
from app.db.transaction import run_in_transaction
from app.api.v1.hostels.service import get_hostel_for_scope

from .schemas import ExpenseCreate, ExpenseResponse, IncomeCreate, IncomeResponse


# --- Income ---
async def create_income(
    db: AsyncSession,
    scope: ScopeFilter,
    payload: IncomeCreate,
    created_by: Optional[int] = None,
) -> IncomeResponse:
    hostel_id = scope.require_hostel_id(payload.hostel_id)
    await get_hostel_for_scope(db, scope, hostel_id)

    async def work() -> Income:
        income = Income(
            hostel_id=hostel_id,
            income_date=payload.income_date,
            amount=payload.amount,
            source=payload.source.strip(),
            payment_mode=payload.payment_mode.value,
            receipt_number=payload.receipt_number,
            description=payload.description,
            created_by=created_by,
        )
        db.add(income)
        await db.flush()
        return income

    income = await run_in_transaction(db, work, operation="income entry")
    await db.refresh(income)
    return IncomeResponse.model_validate(income)


async def list_income(
    db: AsyncSession,
    scope: ScopeFilter,
    hostel_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> List[IncomeResponse]:
    stmt = scope.apply(select(Income), Income.hostel_id, hostel_id)
    if date_from is not None:
        stmt = stmt.where(Income.income_date >= date_from)
    if date_to is not None:
        stmt = stmt.where(Income.income_date <= date_to)
    rows = (await db.execute(stmt.order_by(Income.income_date.desc(), Income.income_id.desc()))).scalars().all()
    return [IncomeResponse.model_validate(r) for r in rows]


async def delete_income(db: AsyncSession, scope: ScopeFilter, income_id: int) -> None:
    income = await db.get(Income, income_id)
    if income is None:
        raise NotFoundError("Income entry not found")
    scope.ensure_can_access(income.hostel_id)

    async def work() -> None:
        await db.execute(delete(Income).where(Income.income_id == income_id))

    await run_in_transaction(db, work, operation="income deletion")


# --- Expenses ---
async def create_expense(
    db: AsyncSession,
    scope: ScopeFilter,
    payload: ExpenseCreate,
    created_by: Optional[int] = None,
) -> ExpenseResponse:
    hostel_id = scope.require_hostel_id(payload.hostel_id)
    await get_hostel_for_scope(db, scope, hostel_id)

    async def work() -> Expense:
        expense = Expense(
            hostel_id=hostel_id,
            expense_date=payload.expense_date,
            amount=payload.amount,
            category=payload.category.strip(),
            payment_mode=payload.payment_mode.value,
            vendor_name=payload.vendor_name,
            bill_number=payload.bill_number,
            description=payload.description,
            created_by=created_by,
        )
        db.add(expense)
        await db.flush()
        return expense

    expense = await run_in_transaction(db, work, operation="expense entry")
    await db.refresh(expense)
    return ExpenseResponse.model_validate(expense)


async def list_expenses(
    db: AsyncSession,
    scope: ScopeFilter,
    hostel_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    category: Optional[str] = None,
) -> List[ExpenseResponse]:
    stmt = scope.apply(select(Expense), Expense.hostel_id, hostel_id)
    if date_from is not None:
        stmt = stmt.where(Expense.expense_date >= date_from)
    if date_to is not None:
        stmt = stmt.where(Expense.expense_date <= date_to)
    if category:
        stmt = stmt.where(Expense.category == category)
    rows = (await db.execute(stmt.order_by(Expense.expense_date.desc(), Expense.expense_id.desc()))).scalars().all()
    return [ExpenseResponse.model_validate(r) for r in rows]


async def delete_expense(db: AsyncSession, scope: ScopeFilter, expense_id: int) -> None:
    expense = await db.get(Expense, expense_id)
    if expense is None:
        raise NotFoundError("Expense entry not found")
    scope.ensure_can_access(expense.hostel_id)

    async def work() -> None:
        await db.execute(delete(Expense).where(Expense.expense_id == expense_id))

    await run_in_transaction(db, work, operation="expense deletion")
