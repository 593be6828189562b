"""Rooms schemas."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class RoomCreate(BaseModel):
    hostel_id: Optional[int] = Field(None, description="Required for admins; owners use their own hostel")
    room_number: str = Field(..., min_length=1, max_length=20)
    floor_number: Optional[int] = None
    capacity: int = Field(..., gt=0)
    rent_per_bed: Decimal = Field(..., ge=0)


class RoomUpdate(BaseModel):
    floor_number: Optional[int] = None
    capacity: Optional[int] = Field(None, gt=0)
    rent_per_bed: Optional[Decimal] = Field(None, ge=0)


class RoomResponse(BaseModel):
    room_id: int
    hostel_id: int
    room_number: str
    floor_number: Optional[int] = None
    capacity: int
    rent_per_bed: Decimal
    occupied_beds: int = Field(..., description="Live count of active allocations of Active students")
    available_beds: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class OccupancyCorrection(BaseModel):
    room_id: int
    hostel_id: int
    room_number: str
    recorded_beds: int
    actual_beds: int


class ReconcileOccupancyResponse(BaseModel):
    rooms_checked: int
    corrections: List[OccupancyCorrection]
