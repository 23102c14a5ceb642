import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from backend.models.company import CompanySettings
from backend.models.user import User
from backend.routes.company_routes import CompanySettingsPayload, get_company_settings, update_company_settings
from backend.routes.lawyer_routes import (
    LawyerRequest,
    create_lawyer,
    list_active_lawyers,
    remove_lawyer,
    update_lawyer,
)

STAFF = User(id=1, email='staff@tuabogadoenrd.com', role='staff')


def test_create_lawyer_normalizes_fields(db_session) -> None:
    lawyer = create_lawyer(
        LawyerRequest(name='  Lcda. María Gómez ', email=' Maria@TuAbogadoEnRD.com', specialty='Inmobiliario'),
        db=db_session,
        staff=STAFF,
    )

    assert lawyer.id is not None
    assert lawyer.name == 'Lcda. María Gómez'
    assert lawyer.email == 'maria@tuabogadoenrd.com'
    assert lawyer.reminder_minutes_before == 20


def test_lawyer_request_requires_name() -> None:
    with pytest.raises(ValidationError):
        LawyerRequest(name='   ')


def test_removed_lawyer_is_hidden_from_public_list(db_session) -> None:
    kept = create_lawyer(LawyerRequest(name='Ana'), db=db_session, staff=STAFF)
    removed = create_lawyer(LawyerRequest(name='Bruno'), db=db_session, staff=STAFF)

    remove_lawyer(removed.id, db=db_session, staff=STAFF)

    assert [lawyer.id for lawyer in list_active_lawyers(db=db_session)] == [kept.id]
    db_session.refresh(removed)
    assert removed.is_active is False


def test_update_lawyer_changes_reminder_lead_time(db_session) -> None:
    lawyer = create_lawyer(LawyerRequest(name='Ana'), db=db_session, staff=STAFF)

    updated = update_lawyer(lawyer.id, LawyerRequest(name='Ana', reminder_minutes_before=45), db=db_session, staff=STAFF)

    assert updated.reminder_minutes_before == 45


def test_update_unknown_lawyer_returns_not_found(db_session) -> None:
    with pytest.raises(HTTPException) as exception_info:
        update_lawyer(404, LawyerRequest(name='Nadie'), db=db_session, staff=STAFF)

    assert exception_info.value.status_code == 404


def test_company_settings_default_to_empty_payload(db_session) -> None:
    settings = get_company_settings(db=db_session)

    assert CompanySettingsPayload.model_validate(settings).name is None


def test_company_settings_are_upserted(db_session) -> None:
    update_company_settings(CompanySettingsPayload(name='TuAbogadoEnRD', rnc=' 131866671 '), db=db_session, staff=STAFF)
    update_company_settings(
        CompanySettingsPayload(name='TuAbogadoEnRD SRL', rnc='131866671', phone='809-555-0100'),
        db=db_session,
        staff=STAFF,
    )

    company = db_session.query(CompanySettings).one()
    assert company.name == 'TuAbogadoEnRD SRL'
    assert company.rnc == '131866671'
    assert CompanySettingsPayload.model_validate(get_company_settings(db=db_session)).phone == '809-555-0100'
