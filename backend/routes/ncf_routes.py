import logging
from datetime import date, datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field, field_validator, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import require_staff
from backend.database import get_db
from backend.models.fiscal import NcfIssuanceLog, TaxSequence
from backend.models.user import User
from backend.routes.availability_routes import DATABASE_UNAVAILABLE_DETAIL
from backend.routes.responses import allocation_error_message, error_response
from backend.services.ncf import (
    ACTIVE_STATUS,
    DEPLETED_STATUS,
    EXPIRED_STATUS,
    AllocationError,
    allocate_next,
    find_range_conflict,
    normalize_prefix,
    record_issuance,
    sequence_health,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=['ncf'])

SEQUENCE_STATUSES = (ACTIVE_STATUS, EXPIRED_STATUS, DEPLETED_STATUS, 'inactive')


class NextNcfRequest(BaseModel):
    prefix: str

    @field_validator('prefix')
    @classmethod
    def validate_prefix(cls, value: str) -> str:
        normalized = normalize_prefix(value)
        if len(normalized) != 3:
            raise ValueError('Prefix must be a 3-character document type code.')
        return normalized


class TaxSequenceRequest(BaseModel):
    prefix: str
    description: str | None = None
    current_value: int = Field(default=0, ge=0)
    end_value: int = Field(gt=0)
    expiration_date: date | None = None
    status: str = ACTIVE_STATUS

    @field_validator('prefix')
    @classmethod
    def validate_prefix(cls, value: str) -> str:
        normalized = normalize_prefix(value)
        if len(normalized) != 3:
            raise ValueError('Prefix must be a 3-character document type code.')
        return normalized

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in SEQUENCE_STATUSES:
            raise ValueError('Invalid sequence status.')
        return normalized

    @model_validator(mode='after')
    def validate_range(self):
        if self.current_value > self.end_value:
            raise ValueError('Current value cannot exceed the end of the range.')
        return self


class TaxSequenceResponse(BaseModel):
    id: int
    prefix: str
    description: str | None = None
    current_value: int
    end_value: int
    expiration_date: date | None = None
    status: str
    health: str


class IssuanceLogResponse(BaseModel):
    id: int
    ncf_code: str
    ncf_type: str
    client_rnc: str | None = None
    client_name: str | None = None
    payment_id: int | None = None
    issued_at: datetime
    amount: Decimal | None = None

    class Config:
        from_attributes = True


def ensure_range_is_free(db: Session, data: TaxSequenceRequest, sequence_id: int | None = None) -> None:
    conflict = find_range_conflict(db, data.prefix, data.current_value, data.end_value, exclude_id=sequence_id)
    if conflict:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f'Fiscal numbers in this range cannot be issued. {conflict}',
        )


def build_sequence_response(sequence: TaxSequence) -> TaxSequenceResponse:
    return TaxSequenceResponse(
        id=sequence.id,
        prefix=sequence.prefix,
        description=sequence.description,
        current_value=sequence.current_value,
        end_value=sequence.end_value,
        expiration_date=sequence.expiration_date,
        status=sequence.status,
        health=sequence_health(sequence),
    )


@router.post('/next', response_class=PlainTextResponse)
def next_ncf(
    data: NextNcfRequest,
    db: Session = Depends(get_db),
    staff: User = Depends(require_staff),
):
    try:
        code = allocate_next(db, data.prefix)
        db.commit()
    except AllocationError as exc:
        db.rollback()
        logger.warning('Fiscal allocation refused for %s: %s', exc.prefix, exc)
        return error_response(allocation_error_message(exc))
    except SQLAlchemyError:
        db.rollback()
        logger.exception('Fiscal allocation failed for %s', data.prefix)
        return error_response('Could not generate a fiscal receipt number.', status_code=503)

    record_issuance(db, ncf_code=code, ncf_type=data.prefix)
    return PlainTextResponse(code)


@router.get('/sequences', response_model=list[TaxSequenceResponse])
def list_sequences(
    db: Session = Depends(get_db),
    staff: User = Depends(require_staff),
):
    try:
        sequences = db.query(TaxSequence).order_by(TaxSequence.id.desc()).all()
        return [build_sequence_response(sequence) for sequence in sequences]
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.post('/sequences', response_model=TaxSequenceResponse, status_code=status.HTTP_201_CREATED)
def create_sequence(
    data: TaxSequenceRequest,
    db: Session = Depends(get_db),
    staff: User = Depends(require_staff),
):
    try:
        ensure_range_is_free(db, data)

        sequence = TaxSequence(**data.model_dump())
        db.add(sequence)
        db.commit()
        db.refresh(sequence)
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    logger.info('Staff %s created fiscal sequence %s', staff.email, sequence.prefix)
    return build_sequence_response(sequence)


@router.put('/sequences/{sequence_id}', response_model=TaxSequenceResponse)
def update_sequence(
    sequence_id: int,
    data: TaxSequenceRequest,
    db: Session = Depends(get_db),
    staff: User = Depends(require_staff),
):
    try:
        sequence = db.query(TaxSequence).filter(TaxSequence.id == sequence_id).with_for_update().first()
        if not sequence:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Fiscal sequence not found.',
            )

        if data.current_value < sequence.current_value:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='The counter cannot be moved backwards; issued numbers would be reused.',
            )

        if sequence.current_value > 0 and data.prefix != sequence.prefix:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='The document type of a sequence that has issued numbers cannot be changed.',
            )

        ensure_range_is_free(db, data, sequence_id=sequence.id)

        for field, value in data.model_dump().items():
            setattr(sequence, field, value)

        db.commit()
        db.refresh(sequence)
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    logger.info('Staff %s updated fiscal sequence %s', staff.email, sequence.id)
    return build_sequence_response(sequence)


@router.delete('/sequences/{sequence_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_sequence(
    sequence_id: int,
    db: Session = Depends(get_db),
    staff: User = Depends(require_staff),
):
    try:
        sequence = db.query(TaxSequence).filter(TaxSequence.id == sequence_id).first()
        if not sequence:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Fiscal sequence not found.',
            )

        if sequence.current_value > 0:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='Sequences that have issued numbers cannot be deleted.',
            )

        db.delete(sequence)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.get('/issuance-log', response_model=list[IssuanceLogResponse])
def list_issuance_log(
    db: Session = Depends(get_db),
    staff: User = Depends(require_staff),
):
    try:
        return db.query(NcfIssuanceLog).order_by(NcfIssuanceLog.issued_at.desc()).all()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc
