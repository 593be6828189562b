"""Payments schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from app.core.enums import PaymentMode


class PaymentCreate(BaseModel):
    student_id: int
    amount: Decimal = Field(..., description="Must be greater than zero")
    payment_date: Optional[date] = None
    payment_mode: PaymentMode = PaymentMode.CASH
    due_id: Optional[int] = Field(None, description="Settle this due first")
    fee_category_id: Optional[int] = Field(None, description="Then dues of this category, oldest first")
    transaction_reference: Optional[str] = Field(None, max_length=100)
    remarks: Optional[str] = None


class PaymentAllocationResponse(BaseModel):
    due_id: int
    due_month: str
    fee_category_id: int
    fee_type: Optional[str] = None
    amount: Decimal
    balance_after: Decimal


class PaymentResponse(BaseModel):
    payment_id: int
    student_id: int
    hostel_id: int
    amount_paid: Decimal
    payment_date: date
    payment_mode: str
    transaction_reference: Optional[str] = None
    receipt_number: str
    remarks: Optional[str] = None
    collected_by: Optional[int] = None
    created_at: datetime
    allocations: List[PaymentAllocationResponse] = []

    class Config:
        from_attributes = True


class ReceiptResponse(BaseModel):
    """Printable receipt: the payment, what it settled and what is still owed."""

    receipt_number: str
    hostel_id: int
    hostel_name: Optional[str] = None
    student_id: int
    student_name: str
    payment: PaymentResponse
    outstanding_after: Decimal
