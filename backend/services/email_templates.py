"""
HTML email templates for booking receipts, reminders and marketing mail.
"""

from datetime import date, time
from decimal import ROUND_HALF_UP, Decimal
from html import escape

from backend.core import config

THEME = {
    "navy": "#0a192f",
    "navy_light": "#233554",
    "gold": "#d4af37",
    "background": "#f0f4f8",
    "muted": "#64748b",
    "success_bg": "#d1fae5",
    "success_text": "#065f46",
    "pending_bg": "#fef3c7",
    "pending_text": "#92400e",
}

DEFAULT_COMPANY_NAME = "TuAbogadoEnRD"

MEETING_LABELS = {
    "whatsapp": "WhatsApp",
    "meet": "Google Meet",
}

SPANISH_MONTHS = (
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
)

CENTS = Decimal("0.01")


def split_itbis(total: Decimal | float, rate: float | None = None) -> tuple[Decimal, Decimal]:
    """Split a tax-inclusive total into (subtotal, ITBIS)."""
    total = Decimal(str(total))
    rate = Decimal(str(config.ITBIS_RATE if rate is None else rate))
    subtotal = (total / (1 + rate)).quantize(CENTS, rounding=ROUND_HALF_UP)
    return subtotal, total.quantize(CENTS, rounding=ROUND_HALF_UP) - subtotal


def format_long_date(value: date) -> str:
    return f"{value.day:02d} de {SPANISH_MONTHS[value.month - 1]} de {value.year}"


def format_time_12h(value: time) -> str:
    return value.strftime("%I:%M %p")


def get_base_template(title: str, body: str, company_name: str = DEFAULT_COMPANY_NAME, logo_url: str | None = None) -> str:
    header = (
        f'<img src="{escape(logo_url)}" alt="{escape(company_name)}" style="max-height: 50px;" />'
        if logo_url
        else f'<div style="color: {THEME["gold"]}; font-size: 24px; font-weight: 800;">{escape(company_name)}</div>'
    )
    return f"""<!DOCTYPE html>
<html lang="es">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{escape(title)}</title>
</head>
<body style="margin: 0; padding: 0; background-color: {THEME['background']}; font-family: Helvetica, Arial, sans-serif; color: {THEME['navy_light']};">
  <div style="max-width: 600px; margin: 40px auto; background-color: #ffffff; border-radius: 12px; overflow: hidden;">
    <div style="background-color: {THEME['navy']}; padding: 32px; text-align: center;">{header}</div>
    <div style="padding: 40px;">
{body}
    </div>
    <div style="background-color: {THEME['background']}; padding: 24px; text-align: center; font-size: 12px; color: {THEME['muted']};">
      {escape(company_name)} &bull; Santo Domingo, Rep&uacute;blica Dominicana
    </div>
  </div>
</body>
</html>"""


def booking_receipt_template(appointment: dict, payment: dict, company: dict | None = None) -> str:
    company = company or {}
    company_name = company.get("name") or DEFAULT_COMPANY_NAME
    is_confirmed = appointment.get("status") == "confirmed"
    amount = Decimal(str(payment.get("amount") or 0))
    subtotal, itbis = split_itbis(amount)
    currency = payment.get("currency") or config.CURRENCY
    meeting_label = MEETING_LABELS.get(appointment.get("meeting_type"), "Google Meet")

    badge_bg = THEME["success_bg"] if is_confirmed else THEME["pending_bg"]
    badge_text = THEME["success_text"] if is_confirmed else THEME["pending_text"]
    badge_label = "PAGO COMPLETADO" if is_confirmed else "PAGO PENDIENTE"

    code_block = ""
    if appointment.get("appointment_code"):
        code_block = f"""
      <div style="color: {THEME['muted']}; font-size: 14px; font-weight: 600;">CODIGO DE CITA</div>
      <div style="color: {THEME['navy']}; font-size: 20px; font-weight: 800; letter-spacing: 2px; margin-bottom: 16px;">{escape(appointment['appointment_code'])}</div>"""

    ncf_block = ""
    if payment.get("ncf_number"):
        ncf_block = f"""
      <div style="background-color: #f8fafc; padding: 12px; border-radius: 8px; border: 1px dashed #cbd5e1; margin: 16px 0;">
        <span style="color: {THEME['muted']}; font-size: 12px; font-weight: 600;">NCF (Comprobante Fiscal)</span>
        <span style="float: right; font-family: monospace; font-weight: 700;">{escape(payment['ncf_number'])}</span>
      </div>"""

    rnc_line = f"<br>RNC {escape(company['rnc'])}" if company.get("rnc") else ""

    body = f"""
      <div style="text-align: center; border-bottom: 1px solid #e5e7eb; padding-bottom: 24px;">
        <div style="display: inline-block; background-color: {badge_bg}; color: {badge_text}; font-size: 12px; font-weight: 700; padding: 4px 12px; border-radius: 99px; margin-bottom: 16px;">{badge_label}</div>
{code_block}
        <h1 style="color: {THEME['navy']}; font-size: 28px; margin: 0;">{amount:.2f} {escape(currency)}</h1>
        <p style="color: {THEME['muted']}; margin: 0;">Total Pagado</p>
      </div>
      <p><strong>Fecha:</strong> {format_long_date(appointment['date'])} &middot; {format_time_12h(appointment['time'])}</p>
      <p><strong>M&eacute;todo de pago:</strong> {escape(str(payment.get('method') or '')).capitalize()}</p>
{ncf_block}
      <table style="width: 100%; border-collapse: collapse; margin: 24px 0;">
        <tr>
          <td style="padding: 12px 0;"><strong>Consulta Legal</strong><br>
            <span style="color: {THEME['muted']}; font-size: 14px;">Asesor&iacute;a {meeting_label} ({appointment.get('duration_minutes')} min)</span></td>
          <td style="padding: 12px 0; text-align: right;">{amount:.2f}</td>
        </tr>
        <tr><td style="text-align: right; color: {THEME['muted']};">Subtotal</td><td style="text-align: right;">{subtotal:.2f}</td></tr>
        <tr><td style="text-align: right; color: {THEME['muted']};">ITBIS ({int(config.ITBIS_RATE * 100)}%)</td><td style="text-align: right;">{itbis:.2f}</td></tr>
        <tr><td style="text-align: right; font-weight: 700;">Suma Total</td><td style="text-align: right; font-weight: 700;">{amount:.2f} {escape(currency)}</td></tr>
      </table>
      <p style="color: #9ca3af; font-size: 13px; text-align: center;">
        Este correo es un comprobante de pago generado autom&aacute;ticamente.{rnc_line}
      </p>"""

    return get_base_template("Comprobante de Pago", body, company_name, company.get("logo_url"))


def lawyer_reminder_template(appointment: dict, lawyer_name: str, minutes_left: int, company: dict | None = None) -> str:
    company = company or {}
    meeting_label = MEETING_LABELS.get(appointment.get("meeting_type"), "Google Meet")
    body = f"""
      <h2 style="color: {THEME['navy']}; margin-top: 0;">Recordatorio de Consulta</h2>
      <p>Hola <strong>{escape(lawyer_name)}</strong>,</p>
      <p>Tu pr&oacute;xima cita comienza en aproximadamente <strong>{minutes_left} minutos</strong>.</p>
      <div style="background-color: #f1f5f9; border-left: 4px solid {THEME['gold']}; padding: 15px; margin: 20px 0;">
        <p style="margin: 0; font-size: 11px; color: {THEME['muted']}; font-weight: bold;">C&Oacute;DIGO DE CITA</p>
        <p style="margin: 5px 0 0 0; font-size: 24px; font-family: monospace; font-weight: bold;">{escape(appointment.get('appointment_code') or '---')}</p>
      </div>
      <p><strong>Cliente:</strong> {escape(appointment.get('client_name') or '')}</p>
      <p><strong>Hora:</strong> {format_time_12h(appointment['time'])}</p>
      <p><strong>Tema:</strong> {escape(appointment.get('reason') or '')}</p>
      <p><strong>Modalidad:</strong> {meeting_label}</p>
      <p style="text-align: center;"><a href="{config.PROJECT_URL}/admin" style="background-color: {THEME['navy']}; color: {THEME['gold']}; padding: 12px 25px; text-decoration: none; border-radius: 6px;">Ir al Panel</a></p>"""
    return get_base_template(
        "Recordatorio de Consulta",
        body,
        company.get("name") or DEFAULT_COMPANY_NAME,
        company.get("logo_url"),
    )


def welcome_template() -> str:
    body = f"""
      <h1 style="color: {THEME['navy']}; text-align: center;">Bienvenido a nuestra comunidad</h1>
      <p>Hola,</p>
      <p>Gracias por unirte a <strong>{DEFAULT_COMPANY_NAME}</strong>. A partir de hoy recibir&aacute;s informaci&oacute;n jur&iacute;dica clara y relevante para proteger tus intereses en Rep&uacute;blica Dominicana.</p>
      <p style="text-align: center;"><a href="{config.PROJECT_URL}/blog" style="background-color: {THEME['navy']}; color: #ffffff; padding: 14px 32px; border-radius: 50px; text-decoration: none;">Leer Art&iacute;culos Recientes</a></p>"""
    return get_base_template("Bienvenido", body)


def contact_message_template(name: str, email: str, message: str) -> str:
    body = f"""
      <h2 style="color: {THEME['navy']}; text-align: center;">Nuevo Mensaje de Contacto</h2>
      <p><strong>Nombre:</strong> {escape(name)}</p>
      <p><strong>Email:</strong> {escape(email)}</p>
      <p style="white-space: pre-line;">{escape(message)}</p>"""
    return get_base_template("Nuevo Mensaje de Contacto", body)


def newsletter_template(title: str, content: str, slug: str, image_url: str | None = None) -> str:
    hero = f'<img src="{escape(image_url)}" alt="" style="width: 100%; border-radius: 8px;" />' if image_url else ""
    excerpt = content if len(content) <= 280 else content[:280].rsplit(" ", 1)[0] + "..."
    body = f"""
      {hero}
      <h2 style="color: {THEME['navy']};">{escape(title)}</h2>
      <p>{escape(excerpt)}</p>
      <p style="text-align: center;"><a href="{config.PROJECT_URL}/blog/{escape(slug)}" style="background-color: {THEME['navy']}; color: #ffffff; padding: 14px 32px; border-radius: 50px; text-decoration: none;">Leer m&aacute;s</a></p>"""
    return get_base_template(title, body)
