from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text

from app.db.session import Base


class Hostel(Base):
    """Tenant boundary. Every student, room, fee and ledger row belongs to exactly one hostel."""

    __tablename__ = "hostels"

    hostel_id = Column(Integer, primary_key=True, autoincrement=True)
    hostel_name = Column(String(255), nullable=False)
    address = Column(Text, nullable=True)
    owner_user_id = Column(Integer, nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
