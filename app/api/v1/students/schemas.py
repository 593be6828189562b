"""Students schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class StudentCreate(BaseModel):
    hostel_id: Optional[int] = Field(None, description="Required for admins; owners use their own hostel")
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = Field(None, max_length=255)
    admission_date: Optional[date] = None
    room_id: Optional[int] = Field(None, description="Allocate a bed at admission")
    monthly_rent: Optional[Decimal] = Field(None, ge=0, description="Defaults to the room's rent_per_bed")


class StudentUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = Field(None, max_length=255)


class AllocateRoomRequest(BaseModel):
    room_id: int
    monthly_rent: Optional[Decimal] = Field(None, ge=0, description="Defaults to the room's rent_per_bed")
    allocation_date: Optional[date] = None


class CheckoutRequest(BaseModel):
    checkout_date: Optional[date] = None


class RoomAllocationResponse(BaseModel):
    allocation_id: int
    student_id: int
    room_id: int
    room_number: Optional[str] = None
    hostel_id: int
    monthly_rent: Decimal
    allocation_date: date
    checkout_date: Optional[date] = None
    is_active: bool

    class Config:
        from_attributes = True


class StudentResponse(BaseModel):
    student_id: int
    hostel_id: int
    first_name: str
    last_name: Optional[str] = None
    full_name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    status: str
    admission_date: date
    inactive_date: Optional[date] = None
    allocation: Optional[RoomAllocationResponse] = None
    outstanding_balance: Optional[Decimal] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CleanupResult(BaseModel):
    students_deleted: int
    cutoff_date: date
