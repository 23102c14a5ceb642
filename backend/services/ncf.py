"""Fiscal receipt number (NCF) allocation.

Numbers are handed out by a single ``UPDATE ... RETURNING`` statement so the
database serialises concurrent callers on the sequence row. The caller owns
the transaction: the increment becomes durable when the caller commits.
"""

import logging
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.core import config
from backend.models.appointment import Payment
from backend.models.fiscal import NcfIssuanceLog, TaxSequence

logger = logging.getLogger(__name__)

CONSUMER_PREFIX = 'B02'
TAX_CREDIT_PREFIX = 'B01'
ELECTRONIC_CONSUMER_PREFIX = 'E32'
ELECTRONIC_TAX_CREDIT_PREFIX = 'E31'

ACTIVE_STATUS = 'active'
EXPIRED_STATUS = 'expired'
DEPLETED_STATUS = 'depleted'


class AllocationError(Exception):
    """Base class for fiscal sequences that cannot issue a number."""

    def __init__(self, prefix: str, message: str):
        super().__init__(message)
        self.prefix = prefix


class SequenceExhausted(AllocationError):
    def __init__(self, prefix: str):
        super().__init__(prefix, f'Fiscal sequence {prefix} is exhausted.')


class SequenceExpired(AllocationError):
    def __init__(self, prefix: str):
        super().__init__(prefix, f'Fiscal sequence {prefix} has expired.')


class NoActiveSequence(AllocationError):
    def __init__(self, prefix: str):
        super().__init__(prefix, f'No active fiscal sequence is configured for {prefix}.')


def select_ncf_prefix(client_rnc: str | None, electronic: bool | None = None) -> str:
    """Pick the document type for a payer: tax-credit with an RNC, consumer otherwise."""
    if electronic is None:
        electronic = config.ENABLE_ELECTRONIC_NCF

    if client_rnc and client_rnc.strip():
        return ELECTRONIC_TAX_CREDIT_PREFIX if electronic else TAX_CREDIT_PREFIX
    return ELECTRONIC_CONSUMER_PREFIX if electronic else CONSUMER_PREFIX


def normalize_prefix(prefix: str) -> str:
    return (prefix or '').strip().upper()


def format_ncf(prefix: str, value: int, width: int | None = None) -> str:
    return f'{prefix}{value:0{width or config.NCF_SEQUENCE_WIDTH}d}'


def is_expired(sequence: TaxSequence, today: date) -> bool:
    if sequence.status == EXPIRED_STATUS:
        return True
    return sequence.expiration_date is not None and sequence.expiration_date < today


def is_exhausted(sequence: TaxSequence) -> bool:
    return sequence.status == DEPLETED_STATUS or sequence.current_value >= sequence.end_value


def allocate_next(db: Session, prefix: str, today: date | None = None) -> str:
    """Increment the active sequence for ``prefix`` and return the new code.

    Raises ``SequenceExhausted``, ``SequenceExpired`` or ``NoActiveSequence``
    without touching any counter when no sequence can issue a number.
    """
    prefix = normalize_prefix(prefix)
    today = today or date.today()
    sequences = TaxSequence.__table__

    candidate_id = (
        select(sequences.c.id)
        .where(
            sequences.c.prefix == prefix,
            sequences.c.status == ACTIVE_STATUS,
            sequences.c.current_value < sequences.c.end_value,
            or_(sequences.c.expiration_date.is_(None), sequences.c.expiration_date >= today),
        )
        .order_by(sequences.c.id)
        .limit(1)
        .scalar_subquery()
    )

    statement = (
        update(sequences)
        .where(
            sequences.c.id == candidate_id,
            sequences.c.status == ACTIVE_STATUS,
            sequences.c.current_value < sequences.c.end_value,
        )
        .values(
            current_value=sequences.c.current_value + 1,
            status=case(
                (sequences.c.current_value + 1 >= sequences.c.end_value, DEPLETED_STATUS),
                else_=sequences.c.status,
            ),
        )
        .returning(sequences.c.current_value)
    )

    new_value = db.execute(statement).scalar_one_or_none()
    if new_value is None:
        raise _classify_failure(db, prefix, today)

    code = format_ncf(prefix, new_value)
    logger.info('Allocated fiscal code %s', code)
    return code


def _classify_failure(db: Session, prefix: str, today: date) -> AllocationError:
    sequences = db.query(TaxSequence).filter(TaxSequence.prefix == prefix).all()

    if any(is_expired(sequence, today) and not is_exhausted(sequence) for sequence in sequences):
        return SequenceExpired(prefix)
    if any(is_exhausted(sequence) for sequence in sequences):
        return SequenceExhausted(prefix)
    return NoActiveSequence(prefix)


def find_range_conflict(
    db: Session,
    prefix: str,
    current_value: int,
    end_value: int,
    exclude_id: int | None = None,
) -> str | None:
    """Explain why the numbers after ``current_value`` up to ``end_value`` cannot be issued.

    A range collides with the unissued numbers of another sequence for the
    same prefix, or with any code already issued. Returns None when clear.
    """
    prefix = normalize_prefix(prefix)
    first, last = current_value + 1, end_value
    if first > last:
        return None

    query = db.query(TaxSequence).filter(
        TaxSequence.prefix == prefix,
        TaxSequence.current_value < TaxSequence.end_value,
        TaxSequence.current_value < last,
        TaxSequence.end_value >= first,
    )
    if exclude_id is not None:
        query = query.filter(TaxSequence.id != exclude_id)
    other = query.order_by(TaxSequence.id).first()
    if other is not None:
        return (
            f'The range overlaps sequence {other.id} '
            f'({prefix} {other.current_value + 1}-{other.end_value}).'
        )

    low, high = format_ncf(prefix, first), format_ncf(prefix, last)
    for column in (Payment.ncf_number, NcfIssuanceLog.ncf_code):
        issued = db.query(column).filter(
            func.length(column) == len(low),
            column.between(low, high),
        ).first()
        if issued is not None:
            return f'{issued[0]} has already been issued.'
    return None


def record_issuance(
    db: Session,
    *,
    ncf_code: str,
    ncf_type: str,
    client_name: str | None = None,
    client_rnc: str | None = None,
    payment_id: int | None = None,
    amount: Decimal | float | None = None,
    issued_at: datetime | None = None,
) -> bool:
    """Append an audit row in its own transaction.

    Failures are logged and reported as ``False``; the allocation that
    produced ``ncf_code`` stands either way.
    """
    try:
        with Session(bind=db.get_bind()) as audit_session:
            audit_session.add(
                NcfIssuanceLog(
                    ncf_code=ncf_code,
                    ncf_type=ncf_type,
                    client_name=client_name,
                    client_rnc=client_rnc,
                    payment_id=payment_id,
                    amount=amount,
                    issued_at=issued_at or datetime.now(),
                )
            )
            audit_session.commit()
    except SQLAlchemyError:
        logger.exception('Could not write issuance log entry for %s', ncf_code)
        return False
    return True


def sequence_health(sequence: TaxSequence, today: date | None = None) -> str:
    today = today or date.today()
    if is_exhausted(sequence):
        return 'exhausted'
    if is_expired(sequence, today):
        return 'expired'
    if sequence.end_value and sequence.current_value / sequence.end_value >= 0.9:
        return 'warning'
    if sequence.status == ACTIVE_STATUS:
        return 'active'
    return 'inactive'
