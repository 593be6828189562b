from app.core.models.hostel import Hostel
from app.core.models.student import Student
from app.core.models.room import Room, RoomAllocation
from app.core.models.fee_structure import FeeStructure
from app.core.models.student_due import StudentDue
from app.core.models.student_fee_payment import PaymentAllocation, StudentFeePayment
from app.core.models.income import Income
from app.core.models.expense import Expense
from app.core.models.fee_audit_log import FeeAuditLog

__all__ = [
    "Hostel",
    "Student",
    "Room",
    "RoomAllocation",
    "FeeStructure",
    "StudentDue",
    "StudentFeePayment",
    "PaymentAllocation",
    "Income",
    "Expense",
    "FeeAuditLog",
]
