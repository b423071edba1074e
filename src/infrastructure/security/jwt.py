"""JWT access tokens carrying the caller's agency and role."""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from src.infrastructure.config.settings import get_settings
from src.shared.enums import UserRole

settings = get_settings()

REQUIRED_CLAIMS = ("sub", "agency_id")


def create_access_token(
    user_id: str,
    agency_id: str,
    role: UserRole | str = UserRole.MEMBER,
    expires_delta: timedelta | None = None,
) -> str:
    """Issue a signed token scoped to one agency"""
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    claims: dict[str, Any] = {
        "sub": user_id,
        "agency_id": agency_id,
        "role": UserRole(role).value,
        "exp": datetime.now(UTC) + lifetime,
    }
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def verify_token(token: str) -> dict[str, Any]:
    """Verify and decode a token; raises ValueError when invalid or missing claims"""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError as e:
        raise ValueError(f"Invalid token: {str(e)}") from e

    missing = [claim for claim in REQUIRED_CLAIMS if not payload.get(claim)]
    if missing:
        raise ValueError(f"Token is missing claims: {', '.join(missing)}")
    return payload
