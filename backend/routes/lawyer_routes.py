from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import require_staff
from backend.core import config
from backend.database import get_db
from backend.models.lawyer import Lawyer
from backend.models.user import User
from backend.routes.availability_routes import DATABASE_UNAVAILABLE_DETAIL

router = APIRouter(tags=['lawyers'])


class LawyerRequest(BaseModel):
    name: str
    email: str | None = None
    specialty: str | None = None
    bio: str | None = None
    image_url: str | None = None
    is_active: bool = True
    reminder_minutes_before: int = Field(default=config.DEFAULT_REMINDER_MINUTES, gt=0, le=24 * 60)

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Lawyer name is required.')
        return normalized

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().lower()
        return normalized or None


class LawyerResponse(BaseModel):
    id: int
    name: str
    email: str | None = None
    specialty: str | None = None
    bio: str | None = None
    image_url: str | None = None
    is_active: bool
    reminder_minutes_before: int | None = None

    class Config:
        from_attributes = True


def get_lawyer_or_404(db: Session, lawyer_id: int) -> Lawyer:
    lawyer = db.query(Lawyer).filter(Lawyer.id == lawyer_id).first()
    if not lawyer:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Lawyer not found.',
        )
    return lawyer


@router.get('', response_model=list[LawyerResponse])
def list_active_lawyers(db: Session = Depends(get_db)):
    try:
        return db.query(Lawyer).filter(Lawyer.is_active.is_(True)).order_by(Lawyer.name.asc()).all()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.post('', response_model=LawyerResponse, status_code=status.HTTP_201_CREATED)
def create_lawyer(
    data: LawyerRequest,
    db: Session = Depends(get_db),
    staff: User = Depends(require_staff),
):
    try:
        lawyer = Lawyer(**data.model_dump())
        db.add(lawyer)
        db.commit()
        db.refresh(lawyer)
        return lawyer
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.put('/{lawyer_id}', response_model=LawyerResponse)
def update_lawyer(
    lawyer_id: int,
    data: LawyerRequest,
    db: Session = Depends(get_db),
    staff: User = Depends(require_staff),
):
    try:
        lawyer = get_lawyer_or_404(db, lawyer_id)
        for field, value in data.model_dump().items():
            setattr(lawyer, field, value)
        db.commit()
        db.refresh(lawyer)
        return lawyer
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.delete('/{lawyer_id}', status_code=status.HTTP_204_NO_CONTENT)
def remove_lawyer(
    lawyer_id: int,
    db: Session = Depends(get_db),
    staff: User = Depends(require_staff),
):
    # Lawyers referenced by appointments are deactivated, not deleted.
    try:
        lawyer = get_lawyer_or_404(db, lawyer_id)
        lawyer.is_active = False
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc
