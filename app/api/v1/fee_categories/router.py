"""Fee categories router."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_scope
from app.core.exceptions import ServiceError
from app.core.scope import ScopeFilter
from app.db.session import get_db

from .schemas import FeeCategoryCreate, FeeCategoryResponse, FeeCategoryUpdate
from . import service

router = APIRouter(prefix="/api/v1/fee-categories", tags=["fee-categories"])


@router.post("", response_model=FeeCategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_fee_category(
    payload: FeeCategoryCreate,
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> FeeCategoryResponse:
    try:
        return await service.create_fee_category(db, scope, payload, changed_by=scope.user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[FeeCategoryResponse])
async def list_fee_categories(
    hostel_id: Optional[int] = Query(None, description="Admins only"),
    active_only: bool = Query(True, description="Return only active categories by default"),
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> List[FeeCategoryResponse]:
    try:
        return await service.list_fee_categories(db, scope, hostel_id=hostel_id, active_only=active_only)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/{fee_structure_id}", response_model=FeeCategoryResponse)
async def update_fee_category(
    fee_structure_id: int,
    payload: FeeCategoryUpdate,
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> FeeCategoryResponse:
    try:
        return await service.update_fee_category(db, scope, fee_structure_id, payload, changed_by=scope.user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{fee_structure_id}", response_model=FeeCategoryResponse)
async def deactivate_fee_category(
    fee_structure_id: int,
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> FeeCategoryResponse:
    try:
        return await service.deactivate_fee_category(db, scope, fee_structure_id, changed_by=scope.user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
