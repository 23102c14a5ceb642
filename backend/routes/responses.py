from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from backend.services.ncf import AllocationError, NoActiveSequence, SequenceExhausted, SequenceExpired

ALLOCATION_ERROR_MESSAGES = {
    SequenceExhausted: 'No invoices available. Please contact support.',
    SequenceExpired: 'The fiscal receipt sequence has expired. Please contact support.',
    NoActiveSequence: 'Fiscal receipts are not configured yet. Please contact support.',
}
FISCAL_CONFIGURATION_MESSAGE = 'The fiscal receipt configuration needs attention. Please contact support.'

# Postgres reports the constraint name, SQLite the constrained columns.
INTEGRITY_MARKERS = (
    ('ncf_number', 'fiscal_code'),
    ('uq_payments_paypal_transaction', 'order'),
    ('payments.transaction_id', 'order'),
    ('uq_appointments_active_slot', 'slot'),
    ('appointments.date', 'slot'),
)


def error_response(message: str, status_code: int = 400) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={'error': message})


def allocation_error_message(exc: AllocationError) -> str:
    return ALLOCATION_ERROR_MESSAGES.get(type(exc), 'Could not generate a fiscal receipt number.')


def integrity_violation(exc: IntegrityError) -> str | None:
    """Name the booking rule a unique-constraint failure broke, if known."""
    diag = getattr(exc.orig, 'diag', None)
    detail = f"{getattr(diag, 'constraint_name', None) or ''} {exc.orig}"
    for marker, violation in INTEGRITY_MARKERS:
        if marker in detail:
            return violation
    return None
