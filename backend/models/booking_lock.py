"""Lock rows serializing bookings for one doctor on one date."""

from sqlalchemy import Column, Date, String
from backend.database import Base


class BookingLock(Base):
    __tablename__ = "booking_locks"

    doctor_id = Column(String, primary_key=True)
    lock_date = Column(Date, primary_key=True)
