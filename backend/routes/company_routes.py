from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import require_staff
from backend.database import get_db
from backend.models.company import CompanySettings
from backend.models.user import User
from backend.routes.availability_routes import DATABASE_UNAVAILABLE_DETAIL

router = APIRouter(tags=['company'])


class CompanySettingsPayload(BaseModel):
    name: str | None = None
    rnc: str | None = None
    phone: str | None = None
    email: str | None = None
    address: str | None = None
    logo_url: str | None = None

    class Config:
        from_attributes = True


@router.get('', response_model=CompanySettingsPayload)
def get_company_settings(db: Session = Depends(get_db)):
    try:
        company = db.query(CompanySettings).first()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    return company or CompanySettingsPayload()


@router.put('', response_model=CompanySettingsPayload)
def update_company_settings(
    data: CompanySettingsPayload,
    db: Session = Depends(get_db),
    staff: User = Depends(require_staff),
):
    try:
        company = db.query(CompanySettings).first()
        if company is None:
            company = CompanySettings()
            db.add(company)

        for field, value in data.model_dump().items():
            setattr(company, field, value.strip() if isinstance(value, str) else value)

        db.commit()
        db.refresh(company)
        return company
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc
