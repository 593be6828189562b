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

from app.db.session import Base


class Room(Base):
    """
    Room in a hostel. occupied_beds is a denormalized counter: it must equal the number of
    active allocations (checkout_date IS NULL) of Active students. Allocation and checkout
    update it in the same transaction as the allocation row.
    """

    __tablename__ = "rooms"
    __table_args__ = (
        UniqueConstraint("hostel_id", "room_number", name="uq_rooms_hostel_room_number"),
        CheckConstraint("capacity > 0", name="capacity_positive"),
        CheckConstraint("occupied_beds >= 0", name="occupied_non_negative"),
    )

    room_id = Column(Integer, primary_key=True, autoincrement=True)
    hostel_id = Column(Integer, ForeignKey("hostels.hostel_id", ondelete="RESTRICT"), nullable=False, index=True)
    room_number = Column(String(20), nullable=False)
    floor_number = Column(Integer, nullable=True)
    capacity = Column(Integer, nullable=False)
    rent_per_bed = Column(Numeric(12, 2), nullable=False)
    occupied_beds = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    hostel = relationship("Hostel")


class RoomAllocation(Base):
    """Binds a student to a room for a date range. At most one active allocation per student."""

    __tablename__ = "room_allocations"

    allocation_id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(Integer, ForeignKey("students.student_id", ondelete="CASCADE"), nullable=False, index=True)
    room_id = Column(Integer, ForeignKey("rooms.room_id", ondelete="RESTRICT"), nullable=False, index=True)
    hostel_id = Column(Integer, ForeignKey("hostels.hostel_id", ondelete="RESTRICT"), nullable=False, index=True)
    monthly_rent = Column(Numeric(12, 2), nullable=False)
    allocation_date = Column(Date, nullable=False)
    checkout_date = Column(Date, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    student = relationship("Student", backref="allocations")
    room = relationship("Room")
