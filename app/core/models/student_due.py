"""Student due: one billed amount per (student, fee category, billing period)."""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from app.core.enums import DueStatus
from app.core.money import ZERO, to_decimal
from app.db.session import Base


class StudentDue(Base):
    """
    balance_amount == due_amount - paid_amount and is_paid == (balance_amount <= 0) at all times.
    Never assign the amount columns directly; change them and call refresh_balance().

    Carry-forward: carried_amount is the part of due_amount rolled in from carried_from_month.
    On the source row carried_to_month marks that its balance has been moved out.
    """

    __tablename__ = "student_dues"
    __table_args__ = (
        UniqueConstraint("student_id", "fee_category_id", "due_month", name="uq_student_dues_student_category_month"),
        CheckConstraint("due_amount >= 0", name="due_non_negative"),
        CheckConstraint("paid_amount >= 0", name="paid_non_negative"),
    )

    due_id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(Integer, ForeignKey("students.student_id", ondelete="CASCADE"), nullable=False, index=True)
    hostel_id = Column(Integer, ForeignKey("hostels.hostel_id", ondelete="RESTRICT"), nullable=False, index=True)
    fee_category_id = Column(
        Integer,
        ForeignKey("fee_structure.fee_structure_id", ondelete="RESTRICT"),
        nullable=False,
    )
    due_month = Column(String(7), nullable=False, index=True)  # YYYY-MM
    due_amount = Column(Numeric(12, 2), nullable=False)
    paid_amount = Column(Numeric(12, 2), nullable=False, default=0)
    balance_amount = Column(Numeric(12, 2), nullable=False)
    is_paid = Column(Boolean, nullable=False, default=False)
    due_date = Column(Date, nullable=False)
    paid_date = Column(Date, nullable=True)
    is_carried_forward = Column(Boolean, nullable=False, default=False)
    carried_from_month = Column(String(7), nullable=True)
    carried_amount = Column(Numeric(12, 2), nullable=False, default=0)
    carried_to_month = Column(String(7), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    student = relationship("Student")
    fee_category = relationship("FeeStructure")

    def refresh_balance(self) -> None:
        self.due_amount = to_decimal(self.due_amount)
        self.paid_amount = to_decimal(self.paid_amount)
        self.balance_amount = self.due_amount - self.paid_amount
        self.is_paid = self.balance_amount <= ZERO
        if not self.is_paid:
            self.paid_date = None

    @property
    def status(self) -> str:
        # Settled by moving the balance to carried_to_month, not by payment
        if self.carried_to_month is not None:
            return DueStatus.carried.value
        if self.is_paid:
            return DueStatus.paid.value
        if to_decimal(self.paid_amount) > ZERO:
            return DueStatus.partial.value
        return DueStatus.unpaid.value
