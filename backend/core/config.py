import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")

DATABASE_URL = os.getenv("DATABASE_URL")

CORS_ALLOWED_ORIGINS = _get_list(
    os.getenv("CORS_ALLOWED_ORIGINS"),
    default=["http://localhost:5173"],
)

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

# PayPal server-side order verification
PAYPAL_CLIENT_ID = os.getenv("PAYPAL_CLIENT_ID", "")
PAYPAL_SECRET = os.getenv("PAYPAL_SECRET", "")
PAYPAL_ENV = os.getenv("PAYPAL_ENV", "live")
PAYPAL_API_BASE = (
    "https://api-m.sandbox.paypal.com" if PAYPAL_ENV == "sandbox" else "https://api-m.paypal.com"
)
PAYPAL_TIMEOUT_SECONDS = float(os.getenv("PAYPAL_TIMEOUT_SECONDS", "15"))

# Fiscal receipts (NCF)
ENABLE_ELECTRONIC_NCF = _get_bool(os.getenv("ENABLE_ELECTRONIC_NCF"), default=False)
NCF_SEQUENCE_WIDTH = int(os.getenv("NCF_SEQUENCE_WIDTH", "8"))
ITBIS_RATE = float(os.getenv("ITBIS_RATE", "0.18"))
CURRENCY = os.getenv("CURRENCY", "USD")

# Email
RESEND_API_KEY = os.getenv("RESEND_API_KEY", "")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "TuAbogadoEnRD <info@tuabogadoenrd.com>")
BOOKINGS_FROM_ADDRESS = os.getenv("BOOKINGS_FROM_ADDRESS", "TuAbogadoEnRD <citas@tuabogadoenrd.com>")
CONTACT_INBOX = os.getenv("CONTACT_INBOX", "info@tuabogadoenrd.com")
PROJECT_URL = os.getenv("PROJECT_URL", "https://tuabogadoenrd.com")

# Reminders
CRON_SECRET = os.getenv("CRON_SECRET", "")
DEFAULT_REMINDER_MINUTES = int(os.getenv("DEFAULT_REMINDER_MINUTES", "20"))
REMINDER_TOLERANCE_MINUTES = 5


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if APP_ENV.lower() == "production" and not CRON_SECRET:
        raise RuntimeError("CRON_SECRET must be set in production.")
