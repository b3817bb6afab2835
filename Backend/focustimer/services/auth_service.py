import uuid
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from focustimer.config import settings


def issue_access_token(user_id: str | uuid.UUID) -> dict:
    """Issue a bearer access token for the timer API."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "type": "access",
        "iat": now,
        "exp": now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    }
    access_token = jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    }


def decode_access_token(token: str) -> uuid.UUID:
    """Verify an access token and return the user id it was issued for."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise ValueError("Invalid or expired token")

    if payload.get("type") != "access":
        raise ValueError("Not an access token")

    try:
        return uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        raise ValueError("Invalid token subject")

