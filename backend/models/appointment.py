"""Appointment model definitions."""

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from sqlalchemy import Column, Date, DateTime, Integer, String
from backend.database import Base


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class AppointmentStatus(str, Enum):
    PENDING = 'PENDING'
    CONFIRMED = 'CONFIRMED'
    CANCELLED = 'CANCELLED'
    COMPLETED = 'COMPLETED'


# Statuses that hold a slot on the doctor's calendar.
ACTIVE_STATUSES = (AppointmentStatus.PENDING.value, AppointmentStatus.CONFIRMED.value)


class Appointment(Base):
    """Represents a booked appointment between a patient and a doctor."""
    __tablename__ = "appointments"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    patient_id = Column(String, nullable=False, index=True)
    doctor_id = Column(String, nullable=False, index=True)
    appointment_date = Column(Date, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    status = Column(String, nullable=False, default=AppointmentStatus.PENDING.value)
    reason = Column(String)
    notes = Column(String)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now)
    version = Column(Integer, nullable=False, default=1)
