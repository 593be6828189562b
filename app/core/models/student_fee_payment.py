"""Fee payments and the dues each payment was applied to."""

from datetime import datetime

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from app.db.session import Base


class StudentFeePayment(Base):
    """Payment received from a student. Immutable once created; hostel_id is always the student's hostel."""

    __tablename__ = "student_fee_payments"
    __table_args__ = (
        CheckConstraint("amount_paid > 0", name="amount_positive"),
    )

    payment_id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(Integer, ForeignKey("students.student_id", ondelete="CASCADE"), nullable=False, index=True)
    hostel_id = Column(Integer, ForeignKey("hostels.hostel_id", ondelete="RESTRICT"), nullable=False, index=True)
    amount_paid = Column(Numeric(12, 2), nullable=False)
    payment_date = Column(Date, nullable=False, index=True)
    payment_mode = Column(String(30), nullable=False)  # CASH, UPI, CARD, BANK, CHEQUE
    transaction_reference = Column(String(100), nullable=True)
    receipt_number = Column(String(40), nullable=False, unique=True)
    remarks = Column(Text, nullable=True)
    collected_by = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    student = relationship("Student")
    allocations = relationship(
        "PaymentAllocation",
        back_populates="payment",
        cascade="all, delete-orphan",
        order_by="PaymentAllocation.allocation_id",
    )


class PaymentAllocation(Base):
    """Portion of a payment applied to one due (receipt / audit line)."""

    __tablename__ = "payment_allocations"
    __table_args__ = (
        CheckConstraint("amount > 0", name="amount_positive"),
    )

    allocation_id = Column(Integer, primary_key=True, autoincrement=True)
    payment_id = Column(
        Integer,
        ForeignKey("student_fee_payments.payment_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    due_id = Column(Integer, ForeignKey("student_dues.due_id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    balance_after = Column(Numeric(12, 2), nullable=False)  # due balance once this line was applied

    payment = relationship("StudentFeePayment", back_populates="allocations")
    due = relationship("StudentDue")
