"""Company settings and newsletter subscription models."""

from sqlalchemy import Column, DateTime, Integer, String, func
from backend.database import Base


class CompanySettings(Base):
    __tablename__ = "company_settings"

    id = Column(Integer, primary_key=True)
    name = Column(String)
    rnc = Column(String)
    phone = Column(String)
    email = Column(String)
    address = Column(String)
    logo_url = Column(String)


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True)
    email = Column(String, unique=True, index=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
