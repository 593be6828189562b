from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_scope
from app.core.exceptions import ServiceError
from app.core.scope import ScopeFilter
from app.db.session import get_db

from .schemas import ExpenseCreate, ExpenseResponse
from . import service

router = APIRouter(prefix="/api/v1/expenses", tags=["expenses"])


@router.post("", response_model=ExpenseResponse, status_code=status.HTTP_201_CREATED)
async def create_expense(
    payload: ExpenseCreate,
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> ExpenseResponse:
    try:
        return await service.create_expense(db, scope, payload, created_by=scope.user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[ExpenseResponse])
async def list_expenses(
    hostel_id: Optional[int] = Query(None, description="Admins only"),
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    category: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> List[ExpenseResponse]:
    try:
        return await service.list_expenses(
            db, scope, hostel_id=hostel_id, date_from=date_from, date_to=date_to, category=category
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_expense(
    expense_id: int,
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> None:
    try:
        await service.delete_expense(db, scope, expense_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
