"""Students router: admission, lookup, room allocation, checkout."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_scope
from app.core.exceptions import ServiceError
from app.core.scope import ScopeFilter
from app.db.session import get_db

from .schemas import (
    AllocateRoomRequest,
    CheckoutRequest,
    RoomAllocationResponse,
    StudentCreate,
    StudentResponse,
    StudentUpdate,
)
from . import service

router = APIRouter(prefix="/api/v1/students", tags=["students"])


@router.post("", response_model=StudentResponse, status_code=status.HTTP_201_CREATED)
async def admit_student(
    payload: StudentCreate,
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> StudentResponse:
    try:
        return await service.admit_student(db, scope, payload, changed_by=scope.user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[StudentResponse])
async def list_students(
    hostel_id: Optional[int] = Query(None, description="Admins only"),
    status_filter: Optional[str] = Query(None, alias="status", description="Active or Inactive"),
    search: Optional[str] = Query(None, description="Name or phone"),
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> List[StudentResponse]:
    try:
        return await service.list_students(
            db, scope, hostel_id=hostel_id, status_filter=status_filter, search=search
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/{student_id}", response_model=StudentResponse)
async def get_student(
    student_id: int,
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> StudentResponse:
    try:
        return await service.get_student(db, scope, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/{student_id}", response_model=StudentResponse)
async def update_student(
    student_id: int,
    payload: StudentUpdate,
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> StudentResponse:
    try:
        return await service.update_student(db, scope, student_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{student_id}/allocate", response_model=RoomAllocationResponse)
async def allocate_room(
    student_id: int,
    payload: AllocateRoomRequest,
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> RoomAllocationResponse:
    try:
        return await service.allocate_room(db, scope, student_id, payload, changed_by=scope.user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{student_id}/checkout", response_model=StudentResponse)
async def checkout_student(
    student_id: int,
    payload: Optional[CheckoutRequest] = None,
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> StudentResponse:
    try:
        return await service.checkout_student(
            db, scope, student_id, payload or CheckoutRequest(), changed_by=scope.user_id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
