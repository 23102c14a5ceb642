from datetime import datetime

from backend.core import config
from backend.models.appointment import Appointment
from backend.models.lawyer import Lawyer


def minutes_until(appointment: Appointment, now: datetime) -> int:
    starts_at = datetime.combine(appointment.date, appointment.time)
    return round((starts_at - now).total_seconds() / 60)


def is_reminder_due(appointment: Appointment, lawyer: Lawyer, now: datetime) -> bool:
    """True when the consultation starts within the lawyer's reminder window."""
    lead_minutes = lawyer.reminder_minutes_before or config.DEFAULT_REMINDER_MINUTES
    remaining = minutes_until(appointment, now)
    tolerance = config.REMINDER_TOLERANCE_MINUTES
    return lead_minutes - tolerance <= remaining <= lead_minutes + tolerance
