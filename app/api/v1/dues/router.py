"""Dues router: generate, carry forward, list, per-student ledger."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_scope
from app.core.exceptions import ServiceError
from app.core.scope import ScopeFilter
from app.db.session import get_db

from .schemas import (
    CarryForwardRequest,
    CarryForwardResponse,
    GenerateDuesRequest,
    GenerateDuesResponse,
    StudentDueResponse,
)
from . import service

router = APIRouter(prefix="/api/v1/dues", tags=["dues"])


@router.post(
    "/generate",
    response_model=GenerateDuesResponse,
    status_code=status.HTTP_201_CREATED,
)
async def generate_dues(
    payload: GenerateDuesRequest,
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> GenerateDuesResponse:
    try:
        return await service.generate_dues(
            db,
            scope,
            payload.due_month,
            hostel_id=payload.hostel_id,
            carry_forward_previous=payload.carry_forward_previous,
            changed_by=scope.user_id,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/carry-forward", response_model=CarryForwardResponse)
async def carry_forward(
    payload: CarryForwardRequest,
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> CarryForwardResponse:
    try:
        return await service.carry_forward(
            db, scope, payload.from_month, hostel_id=payload.hostel_id, changed_by=scope.user_id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[StudentDueResponse])
async def list_dues(
    hostel_id: Optional[int] = Query(None, description="Admins only"),
    student_id: Optional[int] = None,
    due_month: Optional[str] = Query(None, description="YYYY-MM"),
    status_filter: Optional[str] = Query(None, alias="status", description="unpaid, partial, paid or carried"),
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> List[StudentDueResponse]:
    try:
        return await service.list_dues(
            db,
            scope,
            hostel_id=hostel_id,
            student_id=student_id,
            due_month=due_month,
            status_filter=status_filter,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/student/{student_id}", response_model=List[StudentDueResponse])
async def get_student_dues(
    student_id: int,
    outstanding_only: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> List[StudentDueResponse]:
    try:
        return await service.get_student_dues(db, scope, student_id, outstanding_only=outstanding_only)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
