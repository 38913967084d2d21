from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from .config import settings
from .errors import AuthenticationError


def create_access_token(data: dict[str, Any], expires_delta: timedelta | None = None) -> str:
    """Issue a token the way the external auth system does. Used by tooling and tests."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=60))
    to_encode.update({"exp": expire})
    if settings.jwt_audience:
        to_encode.setdefault("aud", settings.jwt_audience)
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> dict[str, Any] | None:
    options = {"verify_aud": settings.jwt_audience is not None}
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options=options,
        )
    except JWTError:
        return None


def principal_from_token(token: str | None) -> str:
    """Return the principal id (`sub`) carried by a valid token."""
    if not token:
        raise AuthenticationError("Invalid or missing authentication token")

    payload = verify_token(token)
    if payload is None:
        raise AuthenticationError("Invalid or expired token")

    subject = payload.get("sub")
    if not subject:
        raise AuthenticationError("Token has no subject")
    return str(subject)
