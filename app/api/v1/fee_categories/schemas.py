"""Fee category schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from app.core.enums import FeeFrequency


class FeeCategoryCreate(BaseModel):
    hostel_id: Optional[int] = Field(None, description="Required for admins; owners use their own hostel")
    fee_type: str = Field(..., min_length=1, max_length=100, description="e.g. Monthly Rent, Electricity")
    amount: Decimal = Field(..., ge=0)
    frequency: FeeFrequency = FeeFrequency.MONTHLY


class FeeCategoryUpdate(BaseModel):
    fee_type: Optional[str] = Field(None, min_length=1, max_length=100)
    amount: Optional[Decimal] = Field(None, ge=0)
    frequency: Optional[FeeFrequency] = None
    is_active: Optional[bool] = None


class FeeCategoryResponse(BaseModel):
    fee_structure_id: int
    hostel_id: int
    fee_type: str
    amount: Decimal
    frequency: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
