"""Staff account model definitions."""

from sqlalchemy import Column, DateTime, Integer, String, func
from backend.database import Base


class User(Base):
    """A portal account known to the external auth provider."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String)
    role = Column(String, default="staff")  # staff/admin
    created_at = Column(DateTime, server_default=func.now())
