from datetime import datetime, timedelta, timezone

import jwt

from backend.core import config


def create_access_token(subject: str, expires_minutes: int = 60, **claims) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    payload = {"sub": subject, "exp": expire, "iat": datetime.now(timezone.utc), **claims}
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    # Tokens minted by the auth provider carry an audience we do not pin.
    return jwt.decode(
        token,
        config.JWT_SECRET_KEY,
        algorithms=[config.JWT_ALGORITHM],
        options={"verify_aud": False},
    )
