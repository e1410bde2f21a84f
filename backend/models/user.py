"""User model definitions."""

from sqlalchemy import Column, String
from backend.database import Base


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(String, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    role = Column(String)  # patient/doctor/admin
