import logging
from datetime import datetime

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import require_cron_secret, require_staff
from backend.database import get_db
from backend.models.appointment import Appointment
from backend.models.company import CompanySettings, Subscription
from backend.models.lawyer import Lawyer
from backend.models.user import User
from backend.routes.availability_routes import DATABASE_UNAVAILABLE_DETAIL
from backend.routes.booking_routes import appointment_snapshot, company_snapshot
from backend.services import email_service
from backend.services.reminders import is_reminder_due, minutes_until

logger = logging.getLogger(__name__)

router = APIRouter(tags=['notifications'])

MAX_CONTACT_MESSAGE_LENGTH = 5000


def _normalize_email(value: str) -> str:
    normalized = value.strip().lower()
    if '@' not in normalized or normalized.startswith('@') or normalized.endswith('@'):
        raise ValueError('A valid email is required.')
    return normalized


class SubscribeRequest(BaseModel):
    email: str

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return _normalize_email(value)


class ContactRequest(BaseModel):
    name: str
    email: str
    message: str

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return _normalize_email(value)

    @field_validator('name', 'message')
    @classmethod
    def validate_required_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('This field is required.')
        return normalized

    @field_validator('message')
    @classmethod
    def validate_message_length(cls, value: str) -> str:
        if len(value) > MAX_CONTACT_MESSAGE_LENGTH:
            raise ValueError(f'Message must be {MAX_CONTACT_MESSAGE_LENGTH} characters or fewer.')
        return value


class NewsletterRequest(BaseModel):
    title: str
    content: str
    slug: str
    image_url: str | None = None


class MessageResponse(BaseModel):
    message: str


class NewsletterResponse(BaseModel):
    recipients: int
    delivered: int


class ReminderRunResponse(BaseModel):
    success: bool
    processed: int


@router.post('/subscribe', response_model=MessageResponse)
def subscribe(data: SubscribeRequest, background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    try:
        existing = db.query(Subscription).filter(Subscription.email == data.email).first()
        if existing:
            return MessageResponse(message='Already subscribed')

        db.add(Subscription(email=data.email))
        db.commit()
    except IntegrityError:
        db.rollback()
        return MessageResponse(message='Already subscribed')
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    background_tasks.add_task(email_service.notify_welcome, data.email)
    return MessageResponse(message='Subscribed successfully')


@router.post('/contact', response_model=MessageResponse)
def send_contact_message(data: ContactRequest):
    if not email_service.notify_contact_message(data.name, data.email, data.message):
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail='Your message could not be sent. Please try again later.',
        )
    return MessageResponse(message='Message sent')


@router.post('/newsletter', response_model=NewsletterResponse)
def send_newsletter(
    data: NewsletterRequest,
    db: Session = Depends(get_db),
    staff: User = Depends(require_staff),
):
    try:
        recipients = [email for (email,) in db.query(Subscription.email).all()]
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    delivered = email_service.notify_newsletter(recipients, data.title, data.content, data.slug, data.image_url)
    logger.info('Staff %s sent newsletter "%s" to %d/%d subscribers', staff.email, data.title, delivered, len(recipients))
    return NewsletterResponse(recipients=len(recipients), delivered=delivered)


def dispatch_due_reminders(db: Session, now: datetime) -> int:
    """Email lawyers whose consultation is about to start; returns the number sent."""
    try:
        company = company_snapshot(db.query(CompanySettings).first())
        rows = db.query(Appointment, Lawyer).join(Lawyer, Lawyer.id == Appointment.lawyer_id).filter(
            Appointment.status == 'confirmed',
            Appointment.reminder_sent.is_(False),
            Appointment.date == now.date(),
        ).all()

        sent_ids: list[int] = []
        for appointment, lawyer in rows:
            if not lawyer.email:
                logger.info('Appointment %s has no lawyer email; reminder skipped', appointment.id)
                continue
            if not is_reminder_due(appointment, lawyer, now):
                continue

            delivered = email_service.notify_lawyer_reminder(
                appointment_snapshot(appointment),
                lawyer.name,
                lawyer.email,
                minutes_until(appointment, now),
                company,
            )
            if delivered:
                appointment.reminder_sent = True
                sent_ids.append(appointment.id)

        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    logger.info('Sent %d lawyer reminder(s)', len(sent_ids))
    return len(sent_ids)


@router.post('/reminders', response_model=ReminderRunResponse, dependencies=[Depends(require_cron_secret)])
def send_lawyer_reminders(db: Session = Depends(get_db)):
    processed = dispatch_due_reminders(db, datetime.now())
    return ReminderRunResponse(success=True, processed=processed)
