from datetime import date, time
from decimal import Decimal

import pytest

from backend.core import config
from backend.services import email_service
from backend.services.email_templates import booking_receipt_template, contact_message_template, split_itbis


def _appointment(**overrides) -> dict:
    values = {
        'id': 1,
        'date': date(2026, 3, 2),
        'time': time(9, 30),
        'duration_minutes': 30,
        'meeting_type': 'whatsapp',
        'status': 'confirmed',
        'client_name': 'Ana Pérez',
        'client_email': 'ana@example.com',
        'appointment_code': 'K7QM2P',
    }
    values.update(overrides)
    return values


def test_split_itbis_from_tax_inclusive_total() -> None:
    subtotal, itbis = split_itbis(Decimal('118.00'), rate=0.18)

    assert subtotal == Decimal('100.00')
    assert itbis == Decimal('18.00')


def test_split_itbis_parts_add_up_to_total() -> None:
    subtotal, itbis = split_itbis(Decimal('50.00'), rate=0.18)

    assert subtotal + itbis == Decimal('50.00')


def test_booking_receipt_shows_code_ncf_and_status() -> None:
    html = booking_receipt_template(
        _appointment(),
        {'method': 'paypal', 'amount': Decimal('118.00'), 'currency': 'USD', 'ncf_number': 'B0200000042'},
        {'name': 'Bufete Legal', 'rnc': '131866671'},
    )

    assert 'PAGO COMPLETADO' in html
    assert 'K7QM2P' in html
    assert 'B0200000042' in html
    assert '100.00' in html
    assert 'RNC 131866671' in html
    assert '02 de marzo de 2026' in html
    assert 'WhatsApp' in html


def test_pending_receipt_has_no_ncf_block() -> None:
    html = booking_receipt_template(
        _appointment(status='pending'),
        {'method': 'transfer', 'amount': 50, 'currency': 'USD', 'ncf_number': None},
    )

    assert 'PAGO PENDIENTE' in html
    assert 'NCF (Comprobante Fiscal)' not in html


def test_contact_template_escapes_user_input() -> None:
    html = contact_message_template('<b>Eve</b>', 'eve@example.com', '<script>alert(1)</script>')

    assert '<script>' not in html
    assert '&lt;script&gt;' in html


def test_send_email_requires_api_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'RESEND_API_KEY', '')

    with pytest.raises(email_service.EmailNotConfigured):
        email_service.send_email('ana@example.com', 'Hola', '<p>Hola</p>')


def test_send_email_calls_resend(monkeypatch: pytest.MonkeyPatch) -> None:
    sent: list[dict] = []
    monkeypatch.setattr(config, 'RESEND_API_KEY', 're_test')
    monkeypatch.setattr(email_service.resend.Emails, 'send', lambda params: sent.append(params) or {'id': 'email-1'})

    response = email_service.send_email('ana@example.com', 'Hola', '<p>Hola</p>')

    assert response == {'id': 'email-1'}
    assert sent[0]['to'] == ['ana@example.com']
    assert sent[0]['from'] == config.EMAIL_FROM_ADDRESS


def test_booking_confirmation_failure_is_logged_not_raised(monkeypatch: pytest.MonkeyPatch, caplog) -> None:
    def failing_send(*args, **kwargs):
        raise RuntimeError('resend down')

    monkeypatch.setattr(email_service, 'send_email', failing_send)

    delivered = email_service.notify_booking_confirmation(
        _appointment(),
        {'method': 'paypal', 'amount': 50, 'currency': 'USD', 'ncf_number': 'B0200000001'},
    )

    assert delivered is False
    assert 'Email delivery failed' in caplog.text


def test_booking_confirmation_skips_missing_client_email(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[tuple] = []
    monkeypatch.setattr(email_service, 'send_email', lambda *args, **kwargs: calls.append(args))

    assert email_service.notify_booking_confirmation(_appointment(client_email=None), {'amount': 50}) is False
    assert calls == []


def test_newsletter_counts_only_delivered(monkeypatch: pytest.MonkeyPatch) -> None:
    def send(to, subject, html, from_address=None):
        if to == 'bounce@example.com':
            raise RuntimeError('bounced')
        return {'id': 'ok'}

    monkeypatch.setattr(email_service, 'send_email', send)

    delivered = email_service.notify_newsletter(
        ['a@example.com', 'bounce@example.com', 'b@example.com'],
        'Nueva ley de alquileres',
        'Resumen de cambios.',
        'nueva-ley-alquileres',
    )

    assert delivered == 2
