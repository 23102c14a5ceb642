"""Lawyer model definitions."""

from sqlalchemy import Boolean, Column, Integer, String
from backend.database import Base


class Lawyer(Base):
    """A staff member who can be assigned consultations."""
    __tablename__ = "lawyers"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String)
    specialty = Column(String)
    bio = Column(String)
    image_url = Column(String)
    is_active = Column(Boolean, default=True, nullable=False)
    reminder_minutes_before = Column(Integer, default=20)
