"""Fee audit log: append-only record of every dues/payment mutation."""

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String

from app.db.session import Base


class FeeAuditLog(Base):
    """Before/after snapshot of a ledger change. Never updated or deleted by the application."""

    __tablename__ = "fee_audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    hostel_id = Column(Integer, ForeignKey("hostels.hostel_id", ondelete="CASCADE"), nullable=False, index=True)
    reference_table = Column(String(50), nullable=False)
    reference_id = Column(Integer, nullable=False)
    action_type = Column(String(30), nullable=False)  # CREATE, UPDATE, CARRY_FORWARD, RECONCILE, DELETE
    old_value = Column(JSON, nullable=True)
    new_value = Column(JSON, nullable=True)
    changed_by = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
