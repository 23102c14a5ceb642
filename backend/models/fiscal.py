"""Fiscal receipt (NCF) model definitions."""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String, func
from backend.database import Base


class TaxSequence(Base):
    """A range of fiscal receipt numbers authorised for one document type."""
    __tablename__ = "tax_sequences"

    id = Column(Integer, primary_key=True)
    created_at = Column(DateTime, server_default=func.now())
    prefix = Column(String(3), nullable=False, index=True)
    description = Column(String)
    current_value = Column(Integer, nullable=False, default=0)
    end_value = Column(Integer, nullable=False)
    expiration_date = Column(Date)
    status = Column(String, nullable=False, default='active')  # active/expired/depleted


class NcfIssuanceLog(Base):
    """Append-only audit row written for every issued fiscal code."""
    __tablename__ = "ncf_issuance_log"

    id = Column(Integer, primary_key=True)
    ncf_code = Column(String, nullable=False, unique=True)
    ncf_type = Column(String(3), nullable=False)
    client_rnc = Column(String)
    client_name = Column(String)
    payment_id = Column(Integer, ForeignKey("payments.id"))
    issued_at = Column(DateTime, nullable=False)
    amount = Column(Numeric(10, 2))
