from datetime import datetime

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text

from app.db.session import Base


class Income(Base):
    """Hostel income outside student dues (parking, laundry, deposits forfeited)."""

    __tablename__ = "income"
    __table_args__ = (
        CheckConstraint("amount > 0", name="amount_positive"),
    )

    income_id = Column(Integer, primary_key=True, autoincrement=True)
    hostel_id = Column(Integer, ForeignKey("hostels.hostel_id", ondelete="CASCADE"), nullable=False, index=True)
    income_date = Column(Date, nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    source = Column(String(100), nullable=False)
    payment_mode = Column(String(30), nullable=False)
    receipt_number = Column(String(40), nullable=True)
    description = Column(Text, nullable=True)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
