"""Rooms router: room master and occupancy reconciliation."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_scope
from app.core.exceptions import ServiceError
from app.core.scope import ScopeFilter
from app.db.session import get_db

from .schemas import ReconcileOccupancyResponse, RoomCreate, RoomResponse, RoomUpdate
from . import service

router = APIRouter(prefix="/api/v1/rooms", tags=["rooms"])


@router.post("", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
async def create_room(
    payload: RoomCreate,
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> RoomResponse:
    try:
        return await service.create_room(db, scope, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[RoomResponse])
async def list_rooms(
    hostel_id: Optional[int] = Query(None, description="Admins only"),
    available_only: bool = Query(False, description="Only rooms with a free bed"),
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> List[RoomResponse]:
    try:
        return await service.list_rooms(db, scope, hostel_id=hostel_id, available_only=available_only)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/reconcile-occupancy", response_model=ReconcileOccupancyResponse)
async def reconcile_occupancy(
    hostel_id: Optional[int] = Query(None, description="Admins only"),
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> ReconcileOccupancyResponse:
    try:
        return await service.reconcile_occupancy(db, scope, hostel_id=hostel_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/{room_id}", response_model=RoomResponse)
async def get_room(
    room_id: int,
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> RoomResponse:
    try:
        return await service.get_room(db, scope, room_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/{room_id}", response_model=RoomResponse)
async def update_room(
    room_id: int,
    payload: RoomUpdate,
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> RoomResponse:
    try:
        return await service.update_room(db, scope, room_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
