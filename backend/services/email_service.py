"""
Transactional email through Resend.

``send_email`` raises on failure. The ``notify_*`` helpers are meant to run
as background tasks after the request has committed, so they log failures
instead of raising.
"""

import logging

import resend

from backend.core import config
from backend.services import email_templates

logger = logging.getLogger(__name__)

resend.api_key = config.RESEND_API_KEY


class EmailNotConfigured(RuntimeError):
    pass


def send_email(to: str | list[str], subject: str, html: str, from_address: str | None = None) -> dict:
    if not config.RESEND_API_KEY:
        raise EmailNotConfigured("RESEND_API_KEY is not set.")

    recipients = [to] if isinstance(to, str) else to
    logger.info("Sending email '%s' to %d recipient(s)", subject, len(recipients))
    return resend.Emails.send(
        {
            "from": from_address or config.EMAIL_FROM_ADDRESS,
            "to": recipients,
            "subject": subject,
            "html": html,
        }
    )


def _deliver(to: str | list[str], subject: str, html: str, from_address: str | None = None) -> bool:
    try:
        send_email(to, subject, html, from_address=from_address)
    except Exception:
        logger.exception("Email delivery failed for '%s'", subject)
        return False
    return True


def notify_booking_confirmation(appointment: dict, payment: dict, company: dict | None = None) -> bool:
    """Send the receipt for a new or newly confirmed booking to the client."""
    if not appointment.get("client_email"):
        logger.warning("Appointment %s has no client email; receipt skipped", appointment.get("id"))
        return False

    html = email_templates.booking_receipt_template(appointment, payment, company)
    if appointment.get("status") == "confirmed":
        subject = f"Cita confirmada - {appointment.get('appointment_code') or ''}".strip(" -")
    else:
        subject = "Hemos recibido tu solicitud de cita"
    return _deliver(appointment["client_email"], subject, html, from_address=config.BOOKINGS_FROM_ADDRESS)


def notify_lawyer_reminder(appointment: dict, lawyer_name: str, lawyer_email: str, minutes_left: int, company: dict | None = None) -> bool:
    html = email_templates.lawyer_reminder_template(appointment, lawyer_name, minutes_left, company)
    subject = f"Recordatorio: {minutes_left} min para cita con {appointment.get('client_name')}"
    return _deliver(lawyer_email, subject, html, from_address=config.BOOKINGS_FROM_ADDRESS)


def notify_welcome(email: str) -> bool:
    return _deliver(
        email,
        "Bienvenido a TuAbogadoEnRD - Confirmación de Suscripción",
        email_templates.welcome_template(),
    )


def notify_contact_message(name: str, email: str, message: str) -> bool:
    return _deliver(
        config.CONTACT_INBOX,
        f"Nuevo mensaje de contacto: {name}",
        email_templates.contact_message_template(name, email, message),
    )


def notify_newsletter(recipients: list[str], title: str, content: str, slug: str, image_url: str | None = None) -> int:
    """Send a post announcement to each subscriber; returns the number delivered."""
    html = email_templates.newsletter_template(title, content, slug, image_url)
    delivered = 0
    for recipient in recipients:
        if _deliver(recipient, title, html):
            delivered += 1
    return delivered
