import logging
import secrets
from datetime import date, datetime, time
from decimal import Decimal

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import require_staff
from backend.core import config
from backend.database import get_db
from backend.models.appointment import (
    APPOINTMENT_STATUSES,
    MEETING_TYPES,
    PAYMENT_METHODS,
    Appointment,
    Payment,
)
from backend.models.company import CompanySettings
from backend.models.lawyer import Lawyer
from backend.models.user import User
from backend.routes.availability_routes import DATABASE_UNAVAILABLE_DETAIL, ensure_database_ready
from backend.routes.responses import (
    FISCAL_CONFIGURATION_MESSAGE,
    allocation_error_message,
    error_response,
    integrity_violation,
)
from backend.services import paypal
from backend.services.availability import fetch_busy_intervals, find_window, overlaps_any, to_minutes
from backend.services.email_service import notify_booking_confirmation
from backend.services.ncf import AllocationError, allocate_next, record_issuance, select_ncf_prefix

logger = logging.getLogger(__name__)

router = APIRouter(tags=['bookings'])

APPOINTMENT_CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
APPOINTMENT_CODE_LENGTH = 6
BOOKING_LOCK_NAMESPACE = 4201
SLOT_TAKEN_MESSAGE = 'This time is no longer available. Please choose another time.'
ORDER_ALREADY_USED_MESSAGE = 'This PayPal payment has already been used for another booking.'


class AppointmentData(BaseModel):
    date: date
    time: time
    duration_minutes: int = Field(gt=0)
    meeting_type: str = 'meet'
    client_name: str
    client_email: str
    client_phone: str | None = None
    reason: str | None = None
    total_price: Decimal = Field(ge=0)

    @field_validator('time', mode='before')
    @classmethod
    def parse_twelve_hour_time(cls, value):
        if isinstance(value, str) and value.strip()[-2:].upper() in {'AM', 'PM'}:
            return datetime.strptime(value.strip().upper(), '%I:%M %p').time()
        return value

    @field_validator('meeting_type')
    @classmethod
    def validate_meeting_type(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in MEETING_TYPES:
            raise ValueError('Invalid meeting type.')
        return normalized

    @field_validator('client_name')
    @classmethod
    def validate_client_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Client name is required.')
        return normalized

    @field_validator('client_email')
    @classmethod
    def validate_client_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if '@' not in normalized:
            raise ValueError('A valid client email is required.')
        return normalized


class PaymentData(BaseModel):
    proof_url: str | None = None


class BookingRequest(BaseModel):
    orderID: str | None = None
    paymentMethod: str
    appointmentData: AppointmentData
    paymentData: PaymentData | None = None
    client_rnc: str | None = None

    @field_validator('paymentMethod')
    @classmethod
    def validate_payment_method(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in PAYMENT_METHODS:
            raise ValueError('Invalid payment method.')
        return normalized

    @field_validator('client_rnc')
    @classmethod
    def normalize_client_rnc(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.replace('-', '').strip()
        return normalized or None


class BookingResponse(BaseModel):
    success: bool
    appointmentId: int
    ncf: str | None = None
    appointmentCode: str


class PaymentSummary(BaseModel):
    id: int
    amount: Decimal | None = None
    currency: str | None = None
    method: str | None = None
    status: str | None = None
    transaction_id: str | None = None
    ncf_number: str | None = None
    ncf_type: str | None = None
    proof_url: str | None = None
    client_rnc: str | None = None

    class Config:
        from_attributes = True


class AppointmentResponse(BaseModel):
    id: int
    date: date
    time: time
    duration_minutes: int | None = None
    meeting_type: str | None = None
    status: str
    client_name: str | None = None
    client_email: str | None = None
    client_phone: str | None = None
    reason: str | None = None
    total_price: Decimal | None = None
    appointment_code: str | None = None
    lawyer_id: int | None = None
    payments: list[PaymentSummary] = []


class InvoiceResponse(PaymentSummary):
    appointment_id: int
    created_at: datetime | None = None
    company_rnc_snapshot: str | None = None
    client_name: str | None = None
    appointment_code: str | None = None


def generate_appointment_code() -> str:
    return ''.join(secrets.choice(APPOINTMENT_CODE_ALPHABET) for _ in range(APPOINTMENT_CODE_LENGTH))


def lock_booking_date(db: Session, day: date) -> None:
    """Serialise booking commits for one calendar day until the transaction ends."""
    if db.get_bind().dialect.name == 'postgresql':
        db.execute(
            text('SELECT pg_advisory_xact_lock(:namespace, :day)'),
            {'namespace': BOOKING_LOCK_NAMESPACE, 'day': day.toordinal()},
        )


def order_already_used(db: Session, order_id: str | None) -> bool:
    if not order_id:
        return False
    return db.query(Payment.id).filter(
        Payment.method == 'paypal',
        Payment.transaction_id == order_id,
    ).first() is not None


def appointment_snapshot(appointment: Appointment) -> dict:
    return {
        'id': appointment.id,
        'date': appointment.date,
        'time': appointment.time,
        'duration_minutes': appointment.duration_minutes,
        'meeting_type': appointment.meeting_type,
        'status': appointment.status,
        'client_name': appointment.client_name,
        'client_email': appointment.client_email,
        'reason': appointment.reason,
        'appointment_code': appointment.appointment_code,
    }


def payment_snapshot(payment: Payment) -> dict:
    return {
        'method': payment.method,
        'amount': payment.amount,
        'currency': payment.currency,
        'ncf_number': payment.ncf_number,
    }


def company_snapshot(company: CompanySettings | None) -> dict:
    if company is None:
        return {}
    return {'name': company.name, 'rnc': company.rnc, 'logo_url': company.logo_url}


def build_appointment_response(appointment: Appointment, payments: list[Payment]) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment.id,
        date=appointment.date,
        time=appointment.time,
        duration_minutes=appointment.duration_minutes,
        meeting_type=appointment.meeting_type,
        status=appointment.status,
        client_name=appointment.client_name,
        client_email=appointment.client_email,
        client_phone=appointment.client_phone,
        reason=appointment.reason,
        total_price=appointment.total_price,
        appointment_code=appointment.appointment_code,
        lawyer_id=appointment.lawyer_id,
        payments=[PaymentSummary.model_validate(payment) for payment in payments],
    )


@router.post('', response_model=BookingResponse)
def create_booking(
    data: BookingRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    appointment_data = data.appointmentData

    if appointment_data.date < date.today():
        return error_response('Appointments cannot be booked in the past.')

    if find_window(appointment_data.time, appointment_data.duration_minutes) is None:
        return error_response('The requested time is outside consultation hours.')

    transaction_id = data.orderID
    payment_status = 'pending'

    if data.paymentMethod == 'paypal':
        try:
            order = paypal.verify_order(data.orderID)
        except paypal.PaymentVerificationError as exc:
            logger.warning('PayPal verification failed for order %s: %s', data.orderID, exc)
            return error_response(str(exc))
        payment_status = 'confirmed'
        transaction_id = order.get('id', data.orderID)

    ensure_database_ready()

    ncf_number = None
    ncf_prefix = None

    try:
        lock_booking_date(db, appointment_data.date)

        start = to_minutes(appointment_data.time)
        busy_intervals = fetch_busy_intervals(db, appointment_data.date)
        if overlaps_any(start, start + appointment_data.duration_minutes, busy_intervals):
            db.rollback()
            logger.info('Slot %s %s taken before commit', appointment_data.date, appointment_data.time)
            return error_response(SLOT_TAKEN_MESSAGE, status_code=status.HTTP_409_CONFLICT)

        if data.paymentMethod == 'paypal' and order_already_used(db, transaction_id):
            db.rollback()
            logger.warning('PayPal order %s was already used for a booking', transaction_id)
            return error_response(ORDER_ALREADY_USED_MESSAGE)

        if payment_status == 'confirmed':
            ncf_prefix = select_ncf_prefix(data.client_rnc)
            ncf_number = allocate_next(db, ncf_prefix)

        lawyer = db.query(Lawyer).filter(Lawyer.is_active.is_(True)).order_by(Lawyer.id.asc()).first()
        company = db.query(CompanySettings).first()

        appointment = Appointment(
            date=appointment_data.date,
            time=appointment_data.time,
            duration_minutes=appointment_data.duration_minutes,
            meeting_type=appointment_data.meeting_type,
            status='confirmed' if payment_status == 'confirmed' else 'pending',
            client_name=appointment_data.client_name,
            client_email=appointment_data.client_email,
            client_phone=appointment_data.client_phone,
            reason=appointment_data.reason,
            total_price=appointment_data.total_price,
            appointment_code=generate_appointment_code(),
            lawyer_id=lawyer.id if lawyer else None,
            reminder_sent=False,
        )
        db.add(appointment)
        db.flush()

        payment = Payment(
            appointment_id=appointment.id,
            amount=appointment_data.total_price,
            currency=config.CURRENCY,
            method=data.paymentMethod,
            status=payment_status,
            transaction_id=transaction_id,
            ncf_number=ncf_number,
            ncf_type=ncf_prefix if ncf_number else None,
            proof_url=data.paymentData.proof_url if data.paymentData else None,
            company_rnc_snapshot=company.rnc if company and payment_status == 'confirmed' else None,
            client_rnc=data.client_rnc,
        )
        db.add(payment)
        db.commit()
        db.refresh(appointment)
        db.refresh(payment)
    except AllocationError as exc:
        db.rollback()
        logger.error('Fiscal allocation failed for prefix %s: %s', exc.prefix, exc)
        return error_response(allocation_error_message(exc))
    except IntegrityError as exc:
        db.rollback()
        violation = integrity_violation(exc)
        if violation == 'slot':
            logger.info('Concurrent booking rejected for %s %s', appointment_data.date, appointment_data.time)
            return error_response(SLOT_TAKEN_MESSAGE, status_code=status.HTTP_409_CONFLICT)
        if violation == 'order':
            logger.warning('PayPal order %s was already used for a booking', transaction_id)
            return error_response(ORDER_ALREADY_USED_MESSAGE)
        if violation == 'fiscal_code':
            logger.error('Fiscal code %s was already issued; check the %s sequences', ncf_number, ncf_prefix)
            return error_response(FISCAL_CONFIGURATION_MESSAGE)
        logger.exception('Booking commit failed')
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Booking commit failed')
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    if ncf_number:
        record_issuance(
            db,
            ncf_code=ncf_number,
            ncf_type=ncf_prefix,
            client_name=appointment.client_name,
            client_rnc=data.client_rnc,
            payment_id=payment.id,
            amount=payment.amount,
        )

    background_tasks.add_task(
        notify_booking_confirmation,
        appointment_snapshot(appointment),
        payment_snapshot(payment),
        company_snapshot(company),
    )

    return BookingResponse(
        success=True,
        appointmentId=appointment.id,
        ncf=ncf_number,
        appointmentCode=appointment.appointment_code,
    )


@router.get('/appointments', response_model=list[AppointmentResponse])
def list_appointments(
    status_filter: str | None = Query(default=None, alias='status'),
    db: Session = Depends(get_db),
    staff: User = Depends(require_staff),
):
    ensure_database_ready()

    try:
        query = db.query(Appointment)
        if status_filter:
            normalized_status = status_filter.strip().lower()
            if normalized_status not in APPOINTMENT_STATUSES:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail='Invalid appointment status.',
                )
            query = query.filter(Appointment.status == normalized_status)

        appointments = query.order_by(Appointment.date.desc(), Appointment.time.desc()).all()
        payments_by_appointment: dict[int, list[Payment]] = {}
        if appointments:
            payments = db.query(Payment).filter(
                Payment.appointment_id.in_([appointment.id for appointment in appointments])
            ).all()
            for payment in payments:
                payments_by_appointment.setdefault(payment.appointment_id, []).append(payment)

        return [
            build_appointment_response(appointment, payments_by_appointment.get(appointment.id, []))
            for appointment in appointments
        ]
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


def get_pending_appointment(db: Session, appointment_id: int) -> Appointment:
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).with_for_update().first()

    if not appointment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Appointment not found.',
        )

    if appointment.status != 'pending':
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f'Appointment is already {appointment.status}.',
        )

    return appointment


@router.post('/appointments/{appointment_id}/confirm-payment', response_model=AppointmentResponse)
def confirm_payment(
    appointment_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    staff: User = Depends(require_staff),
):
    ensure_database_ready()

    ncf_number = None
    ncf_prefix = None

    try:
        appointment = get_pending_appointment(db, appointment_id)
        payment = db.query(Payment).filter(Payment.appointment_id == appointment.id).first()
        if payment is None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='No payment is recorded for this appointment.',
            )

        ncf_prefix = select_ncf_prefix(payment.client_rnc)
        ncf_number = allocate_next(db, ncf_prefix)
        company = db.query(CompanySettings).first()

        payment.status = 'confirmed'
        payment.ncf_number = ncf_number
        payment.ncf_type = ncf_prefix
        payment.company_rnc_snapshot = company.rnc if company else None
        appointment.status = 'confirmed'

        db.commit()
        db.refresh(appointment)
        db.refresh(payment)
    except AllocationError as exc:
        db.rollback()
        logger.error('Fiscal allocation failed for prefix %s: %s', exc.prefix, exc)
        return error_response(allocation_error_message(exc))
    except IntegrityError as exc:
        db.rollback()
        if integrity_violation(exc) == 'fiscal_code':
            logger.error('Fiscal code %s was already issued; check the %s sequences', ncf_number, ncf_prefix)
            return error_response(FISCAL_CONFIGURATION_MESSAGE)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    logger.info('Staff %s confirmed payment for appointment %s', staff.email, appointment.id)

    record_issuance(
        db,
        ncf_code=ncf_number,
        ncf_type=ncf_prefix,
        client_name=appointment.client_name,
        client_rnc=payment.client_rnc,
        payment_id=payment.id,
        amount=payment.amount,
    )

    background_tasks.add_task(
        notify_booking_confirmation,
        appointment_snapshot(appointment),
        payment_snapshot(payment),
        company_snapshot(company),
    )

    return build_appointment_response(appointment, [payment])


@router.post('/appointments/{appointment_id}/reject-payment', response_model=AppointmentResponse)
def reject_payment(
    appointment_id: int,
    db: Session = Depends(get_db),
    staff: User = Depends(require_staff),
):
    ensure_database_ready()

    try:
        appointment = get_pending_appointment(db, appointment_id)
        payments = db.query(Payment).filter(Payment.appointment_id == appointment.id).all()

        appointment.status = 'cancelled'
        for payment in payments:
            payment.status = 'rejected'

        db.commit()
        db.refresh(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    logger.info('Staff %s rejected payment for appointment %s', staff.email, appointment.id)
    return build_appointment_response(appointment, payments)


@router.get('/invoices', response_model=list[InvoiceResponse])
def list_invoices(
    db: Session = Depends(get_db),
    staff: User = Depends(require_staff),
):
    ensure_database_ready()

    try:
        rows = db.query(Payment, Appointment).join(
            Appointment, Appointment.id == Payment.appointment_id
        ).order_by(Payment.id.desc()).all()

        return [
            InvoiceResponse(
                id=payment.id,
                appointment_id=payment.appointment_id,
                created_at=payment.created_at,
                amount=payment.amount,
                currency=payment.currency,
                method=payment.method,
                status=payment.status,
                transaction_id=payment.transaction_id,
                ncf_number=payment.ncf_number,
                ncf_type=payment.ncf_type,
                proof_url=payment.proof_url,
                client_rnc=payment.client_rnc,
                company_rnc_snapshot=payment.company_rnc_snapshot,
                client_name=appointment.client_name,
                appointment_code=appointment.appointment_code,
            )
            for payment, appointment in rows
        ]
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc
