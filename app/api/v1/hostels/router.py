"""Hostels router."""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_scope
from app.auth.rbac import require_admin
from app.core.exceptions import ServiceError
from app.core.scope import ScopeFilter
from app.db.session import get_db

from .schemas import HostelCreate, HostelResponse, HostelUpdate
from . import service

router = APIRouter(prefix="/api/v1/hostels", tags=["hostels"])


@router.post(
    "",
    response_model=HostelResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_hostel(
    payload: HostelCreate,
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> HostelResponse:
    try:
        return await service.create_hostel(db, scope, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[HostelResponse])
async def list_hostels(
    active_only: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> List[HostelResponse]:
    return await service.list_hostels(db, scope, active_only=active_only)


@router.get("/{hostel_id}", response_model=HostelResponse)
async def get_hostel(
    hostel_id: int,
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> HostelResponse:
    try:
        return await service.get_hostel(db, scope, hostel_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{hostel_id}",
    response_model=HostelResponse,
    dependencies=[Depends(require_admin)],
)
async def update_hostel(
    hostel_id: int,
    payload: HostelUpdate,
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> HostelResponse:
    try:
        return await service.update_hostel(db, scope, hostel_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
