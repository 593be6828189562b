from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_scope
from app.core.exceptions import ServiceError
from app.core.scope import ScopeFilter
from app.db.session import get_db

from .schemas import IncomeCreate, IncomeResponse
from . import service

router = APIRouter(prefix="/api/v1/income", tags=["income"])


@router.post("", response_model=IncomeResponse, status_code=status.HTTP_201_CREATED)
async def create_income(
    payload: IncomeCreate,
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> IncomeResponse:
    try:
        return await service.create_income(db, scope, payload, created_by=scope.user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[IncomeResponse])
async def list_income(
    hostel_id: Optional[int] = Query(None, description="Admins only"),
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> List[IncomeResponse]:
    try:
        return await service.list_income(db, scope, hostel_id=hostel_id, date_from=date_from, date_to=date_to)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{income_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_income(
    income_id: int,
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> None:
    try:
        await service.delete_income(db, scope, income_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
