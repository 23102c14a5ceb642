"""Appointment and payment model definitions."""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Time,
    func,
    text,
)
from backend.database import Base


APPOINTMENT_STATUSES = ('pending', 'confirmed', 'cancelled')
MEETING_TYPES = ('whatsapp', 'meet')
PAYMENT_METHODS = ('paypal', 'transfer')
PAYMENT_STATUSES = ('pending', 'confirmed', 'rejected')


class Appointment(Base):
    """Represents a booked video consultation."""
    __tablename__ = "appointments"
    __table_args__ = (
        Index('idx_appointments_date_status', 'date', 'status'),
        # At most one live appointment may start at a given date and time.
        Index(
            'uq_appointments_active_slot',
            'date',
            'time',
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
    )

    id = Column(Integer, primary_key=True)
    created_at = Column(DateTime, server_default=func.now())
    date = Column(Date, nullable=False)
    time = Column(Time, nullable=False)
    duration_minutes = Column(Integer)
    meeting_type = Column(String, default='meet')
    status = Column(String, default='pending', nullable=False)
    client_name = Column(String)
    client_email = Column(String)
    client_phone = Column(String)
    reason = Column(String)
    total_price = Column(Numeric(10, 2))
    appointment_code = Column(String, index=True)
    lawyer_id = Column(Integer, ForeignKey("lawyers.id"))
    reminder_sent = Column(Boolean, default=False, nullable=False)


class Payment(Base):
    """Payment attached to an appointment, carrying its fiscal receipt number."""
    __tablename__ = "payments"
    __table_args__ = (
        # A PayPal order pays for exactly one booking.
        Index(
            'uq_payments_paypal_transaction',
            'transaction_id',
            unique=True,
            postgresql_where=text("method = 'paypal'"),
            sqlite_where=text("method = 'paypal'"),
        ),
    )

    id = Column(Integer, primary_key=True)
    created_at = Column(DateTime, server_default=func.now())
    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=False, index=True)
    amount = Column(Numeric(10, 2))
    currency = Column(String, default='USD')
    method = Column(String)
    status = Column(String, default='pending')
    transaction_id = Column(String)
    ncf_number = Column(String, unique=True)
    ncf_type = Column(String)
    proof_url = Column(String)
    company_rnc_snapshot = Column(String)
    client_rnc = Column(String)
