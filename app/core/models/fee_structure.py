"""Fee category master (Monthly Rent, Electricity, Maintenance, Deposit). Hostel-scoped."""

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import relationship

from app.core.enums import FeeFrequency
from app.db.session import Base


class FeeStructure(Base):
    """Hostel-scoped fee category. Soft delete via is_active."""

    __tablename__ = "fee_structure"
    __table_args__ = (
        UniqueConstraint("hostel_id", "fee_type", name="uq_fee_structure_hostel_fee_type"),
        CheckConstraint("frequency IN ('Monthly','One-Time')", name="frequency"),
        CheckConstraint("amount >= 0", name="amount_non_negative"),
    )

    fee_structure_id = Column(Integer, primary_key=True, autoincrement=True)
    hostel_id = Column(Integer, ForeignKey("hostels.hostel_id", ondelete="CASCADE"), nullable=False, index=True)
    fee_type = Column(String(100), nullable=False)
    # Nominal amount; the rent category is billed from the allocation's monthly_rent instead
    amount = Column(Numeric(12, 2), nullable=False)
    frequency = Column(String(20), nullable=False, default=FeeFrequency.MONTHLY.value)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    hostel = relationship("Hostel")
