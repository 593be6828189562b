"""Report schemas: dashboard, profit and loss, occupancy, dues."""

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel

from app.api.v1.dues.schemas import StudentDueResponse


class DashboardResponse(BaseModel):
    hostel_id: Optional[int] = None
    month: str
    total_rooms: int
    total_beds: int
    occupied_beds: int
    available_beds: int
    occupancy_rate: float
    active_students: int
    fee_collections: Decimal
    other_income: Decimal
    total_income: Decimal
    total_expenses: Decimal
    net_profit: Decimal
    pending_dues_count: int
    pending_dues_amount: Decimal


class MonthlyProfitLoss(BaseModel):
    month: str
    fee_collections: Decimal
    other_income: Decimal
    total_income: Decimal
    total_expenses: Decimal
    net_profit: Decimal


class ProfitLossResponse(BaseModel):
    hostel_id: Optional[int] = None
    year: int
    months: List[MonthlyProfitLoss]
    total_income: Decimal
    total_expenses: Decimal
    net_profit: Decimal


class HostelOccupancy(BaseModel):
    hostel_id: int
    hostel_name: str
    total_rooms: int
    total_beds: int
    occupied_beds: int
    available_beds: int
    occupancy_rate: float


class DuesReportResponse(BaseModel):
    items: List[StudentDueResponse]
    total_due: Decimal
    total_paid: Decimal
    total_balance: Decimal
