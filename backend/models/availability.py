"""Availability model definitions."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from backend.database import Base
from backend.models.appointment import utc_now


class DoctorAvailability(Base):
    """Represents one recurring weekly availability window of a doctor."""
    __tablename__ = "doctor_availability"

    id = Column(Integer, primary_key=True)
    doctor_id = Column(String, nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)  # Monday=0 .. Sunday=6
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    is_available = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
