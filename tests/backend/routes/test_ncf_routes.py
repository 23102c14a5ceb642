import json
from datetime import date, datetime, timedelta

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from backend.models.fiscal import NcfIssuanceLog, TaxSequence
from backend.models.user import User
from backend.routes.ncf_routes import (
    NextNcfRequest,
    TaxSequenceRequest,
    create_sequence,
    delete_sequence,
    list_issuance_log,
    list_sequences,
    next_ncf,
    update_sequence,
)
from backend.services.ncf import format_ncf

STAFF = User(id=1, email='staff@tuabogadoenrd.com', role='staff')


def _sequence(db, **overrides) -> TaxSequence:
    values = {
        'prefix': 'B02',
        'current_value': 0,
        'end_value': 50,
        'expiration_date': date.today() + timedelta(days=90),
        'status': 'active',
    }
    values.update(overrides)
    sequence = TaxSequence(**values)
    db.add(sequence)
    db.commit()
    db.refresh(sequence)
    return sequence


def test_next_ncf_returns_plain_text_code_and_logs_it(db_session) -> None:
    _sequence(db_session, current_value=7)

    response = next_ncf(NextNcfRequest(prefix=' b02 '), db=db_session, staff=STAFF)

    assert response.status_code == 200
    assert response.body.decode() == format_ncf('B02', 8)
    assert db_session.query(NcfIssuanceLog).one().ncf_code == format_ncf('B02', 8)


def test_next_ncf_reports_exhaustion_as_json_error(db_session) -> None:
    _sequence(db_session, current_value=50, end_value=50)

    response = next_ncf(NextNcfRequest(prefix='B02'), db=db_session, staff=STAFF)

    assert response.status_code == 400
    assert json.loads(response.body) == {'error': 'No invoices available. Please contact support.'}
    assert db_session.query(NcfIssuanceLog).count() == 0


def test_next_ncf_reports_missing_sequence(db_session) -> None:
    response = next_ncf(NextNcfRequest(prefix='B14'), db=db_session, staff=STAFF)

    assert response.status_code == 400
    assert 'not configured' in json.loads(response.body)['error']


def test_next_ncf_request_requires_three_character_prefix() -> None:
    with pytest.raises(ValidationError):
        NextNcfRequest(prefix='B0')


def test_sequence_request_rejects_counter_past_the_range() -> None:
    with pytest.raises(ValidationError):
        TaxSequenceRequest(prefix='B01', current_value=11, end_value=10)


def test_create_and_list_sequences_report_health(db_session) -> None:
    created = create_sequence(
        TaxSequenceRequest(prefix='b01', description='Crédito Fiscal', current_value=95, end_value=100),
        db=db_session,
        staff=STAFF,
    )

    assert created.prefix == 'B01'
    assert created.health == 'warning'
    assert [sequence.id for sequence in list_sequences(db=db_session, staff=STAFF)] == [created.id]


def test_update_sequence_extends_range(db_session) -> None:
    sequence = _sequence(db_session, current_value=50, end_value=50, status='depleted')

    updated = update_sequence(
        sequence.id,
        TaxSequenceRequest(prefix='B02', current_value=50, end_value=500, status='active'),
        db=db_session,
        staff=STAFF,
    )

    assert updated.end_value == 500
    assert updated.health == 'active'


def test_update_sequence_cannot_move_counter_backwards(db_session) -> None:
    sequence = _sequence(db_session, current_value=20)

    with pytest.raises(HTTPException) as exception_info:
        update_sequence(
            sequence.id,
            TaxSequenceRequest(prefix='B02', current_value=5, end_value=50),
            db=db_session,
            staff=STAFF,
        )

    assert exception_info.value.status_code == 400
    db_session.expire_all()
    assert db_session.query(TaxSequence).one().current_value == 20


def test_update_unknown_sequence_returns_not_found(db_session) -> None:
    with pytest.raises(HTTPException) as exception_info:
        update_sequence(999, TaxSequenceRequest(prefix='B02', end_value=10), db=db_session, staff=STAFF)

    assert exception_info.value.status_code == 404


def test_delete_sequence_refuses_once_numbers_are_issued(db_session) -> None:
    used = _sequence(db_session, current_value=1)
    unused = _sequence(db_session, prefix='B01')

    with pytest.raises(HTTPException) as exception_info:
        delete_sequence(used.id, db=db_session, staff=STAFF)
    delete_sequence(unused.id, db=db_session, staff=STAFF)

    assert exception_info.value.status_code == 409
    assert [sequence.id for sequence in db_session.query(TaxSequence).all()] == [used.id]


def test_issuance_log_lists_issued_codes(db_session) -> None:
    _sequence(db_session)
    next_ncf(NextNcfRequest(prefix='B02'), db=db_session, staff=STAFF)
    next_ncf(NextNcfRequest(prefix='B02'), db=db_session, staff=STAFF)

    entries = list_issuance_log(db=db_session, staff=STAFF)

    assert sorted(entry.ncf_code for entry in entries) == [format_ncf('B02', 1), format_ncf('B02', 2)]


def test_create_sequence_rejects_range_overlapping_unissued_numbers(db_session) -> None:
    _sequence(db_session, current_value=0, end_value=50)

    with pytest.raises(HTTPException) as exception_info:
        create_sequence(TaxSequenceRequest(prefix='B02', current_value=20, end_value=100), db=db_session, staff=STAFF)

    assert exception_info.value.status_code == 409
    assert db_session.query(TaxSequence).count() == 1


def test_create_sequence_accepts_the_next_block(db_session) -> None:
    _sequence(db_session, current_value=0, end_value=50)

    created = create_sequence(TaxSequenceRequest(prefix='B02', current_value=50, end_value=100), db=db_session, staff=STAFF)

    assert created.health == 'active'
    assert db_session.query(TaxSequence).count() == 2


def test_create_sequence_rejects_range_covering_issued_codes(db_session) -> None:
    db_session.add(NcfIssuanceLog(ncf_code=format_ncf('B02', 1), ncf_type='B02', issued_at=datetime(2026, 1, 5, 10, 0)))
    db_session.commit()

    with pytest.raises(HTTPException) as exception_info:
        create_sequence(TaxSequenceRequest(prefix='B02', current_value=0, end_value=10), db=db_session, staff=STAFF)

    assert exception_info.value.status_code == 409
    assert format_ncf('B02', 1) in exception_info.value.detail


def test_update_sequence_cannot_stretch_into_another_range(db_session) -> None:
    first = _sequence(db_session, current_value=0, end_value=50)
    _sequence(db_session, current_value=50, end_value=100)

    with pytest.raises(HTTPException) as exception_info:
        update_sequence(first.id, TaxSequenceRequest(prefix='B02', current_value=0, end_value=80), db=db_session, staff=STAFF)

    assert exception_info.value.status_code == 409


def test_update_sequence_keeps_document_type_once_numbers_are_issued(db_session) -> None:
    used = _sequence(db_session, current_value=3)

    with pytest.raises(HTTPException) as exception_info:
        update_sequence(used.id, TaxSequenceRequest(prefix='B01', current_value=3, end_value=50), db=db_session, staff=STAFF)

    assert exception_info.value.status_code == 409
    db_session.expire_all()
    assert db_session.query(TaxSequence).one().prefix == 'B02'


def test_update_unused_sequence_may_change_document_type(db_session) -> None:
    unused = _sequence(db_session)

    updated = update_sequence(unused.id, TaxSequenceRequest(prefix='B01', end_value=50), db=db_session, staff=STAFF)

    assert updated.prefix == 'B01'
