from datetime import datetime

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.core.enums import StudentStatus
from app.db.session import Base


class Student(Base):
    """
    Resident of a hostel. Checkout moves status to Inactive (inactive_date set);
    the retention job hard-deletes Inactive students after the grace period.
    """

    __tablename__ = "students"
    __table_args__ = (
        CheckConstraint("status IN ('Active','Inactive')", name="status"),
    )

    student_id = Column(Integer, primary_key=True, autoincrement=True)
    hostel_id = Column(Integer, ForeignKey("hostels.hostel_id", ondelete="RESTRICT"), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=True)
    phone = Column(String(20), nullable=True)
    email = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default=StudentStatus.ACTIVE.value)
    admission_date = Column(Date, nullable=False)
    inactive_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    hostel = relationship("Hostel")

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)
