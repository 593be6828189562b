"""Dues schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from app.core.enums import DueStatus
from app.core.periods import PERIOD_PATTERN


class GenerateDuesRequest(BaseModel):
    due_month: str = Field(..., pattern=PERIOD_PATTERN, description="Billing period, YYYY-MM")
    hostel_id: Optional[int] = Field(None, description="Admins only; owners are pinned to their hostel")
    carry_forward_previous: bool = Field(
        True, description="Also roll unpaid balances of the previous period into this one"
    )


class CarryForwardRequest(BaseModel):
    from_month: str = Field(..., pattern=PERIOD_PATTERN, description="Period being closed, YYYY-MM")
    hostel_id: Optional[int] = None


class HostelGenerationResult(BaseModel):
    hostel_id: int
    students_count: int = 0
    categories_count: int = 0
    dues_created: int = 0
    dues_existing: int = 0
    students_skipped: int = 0


class GenerateDuesResponse(BaseModel):
    due_month: str
    hostels: List[HostelGenerationResult]
    total_created: int
    carry_forward: Optional["CarryForwardResponse"] = None


class CarriedDueItem(BaseModel):
    source_due_id: int
    target_due_id: int
    student_id: int
    fee_category_id: int
    amount: Decimal


class CarryForwardResponse(BaseModel):
    from_month: str
    to_month: str
    carried_count: int
    carried_total: Decimal
    items: List[CarriedDueItem]


class StudentDueResponse(BaseModel):
    due_id: int
    student_id: int
    hostel_id: int
    fee_category_id: int
    fee_type: Optional[str] = None
    student_name: Optional[str] = None
    due_month: str
    due_amount: Decimal
    paid_amount: Decimal
    balance_amount: Decimal
    is_paid: bool
    status: DueStatus
    due_date: date
    paid_date: Optional[date] = None
    is_carried_forward: bool
    carried_from_month: Optional[str] = None
    carried_amount: Decimal
    carried_to_month: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


GenerateDuesResponse.model_rebuild()
