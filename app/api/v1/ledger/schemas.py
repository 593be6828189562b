"""Income and expense ledger schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from app.core.enums import PaymentMode


class IncomeCreate(BaseModel):
    hostel_id: Optional[int] = Field(None, description="Required for admins; owners use their own hostel")
    income_date: date
    amount: Decimal = Field(..., gt=0)
    source: str = Field(..., min_length=1, max_length=100)
    payment_mode: PaymentMode = PaymentMode.CASH
    receipt_number: Optional[str] = Field(None, max_length=40)
    description: Optional[str] = None


class IncomeResponse(BaseModel):
    income_id: int
    hostel_id: int
    income_date: date
    amount: Decimal
    source: str
    payment_mode: str
    receipt_number: Optional[str] = None
    description: Optional[str] = None
    created_by: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ExpenseCreate(BaseModel):
    hostel_id: Optional[int] = Field(None, description="Required for admins; owners use their own hostel")
    expense_date: date
    amount: Decimal = Field(..., gt=0)
    category: str = Field(..., min_length=1, max_length=100, description="e.g. Electricity, Salary, Maintenance")
    payment_mode: PaymentMode = PaymentMode.CASH
    vendor_name: Optional[str] = Field(None, max_length=255)
    bill_number: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = None


class ExpenseResponse(BaseModel):
    expense_id: int
    hostel_id: int
    expense_date: date
    amount: Decimal
    category: str
    payment_mode: str
    vendor_name: Optional[str] = None
    bill_number: Optional[str] = None
    description: Optional[str] = None
    created_by: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True
