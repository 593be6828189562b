"""Hostels schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class HostelCreate(BaseModel):
    hostel_name: str = Field(..., min_length=1, max_length=255)
    address: Optional[str] = None
    owner_user_id: Optional[int] = Field(None, description="User id of the owner bound to this hostel")


class HostelUpdate(BaseModel):
    hostel_name: Optional[str] = Field(None, min_length=1, max_length=255)
    address: Optional[str] = None
    owner_user_id: Optional[int] = None
    is_active: Optional[bool] = None


class HostelResponse(BaseModel):
    hostel_id: int
    hostel_name: str
    address: Optional[str] = None
    owner_user_id: Optional[int] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True
