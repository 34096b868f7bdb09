"""JWT access tokens.

NovelHub does not issue credentials itself; the account service does. This
module encodes and validates the short-lived access tokens both sides share.
"""

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from jose import JWTError, jwt

from novelhub.config.settings import get_settings


def create_access_token(
    user_id: UUID | str,
    expires_delta: timedelta | None = None,
    extra_claims: dict[str, Any] | None = None,
) -> str:
    """Create a signed access token whose ``sub`` is the user id."""
    settings = get_settings()

    now = datetime.now(UTC)
    expire = now + (
        expires_delta or timedelta(minutes=settings.auth_access_token_expire_minutes)
    )

    to_encode = dict(extra_claims or {})
    to_encode.update(
        {
            "sub": str(user_id),
            "exp": expire,
            "iat": now,
            "type": "access",
        }
    )

    return jwt.encode(
        to_encode,
        settings.auth_secret_key,
        algorithm=settings.auth_algorithm,
    )


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and validate an access token.

    Raises:
        JWTError: Bad signature, expired, wrong type or missing subject.
    """
    settings = get_settings()

    payload = jwt.decode(
        token,
        settings.auth_secret_key,
        algorithms=[settings.auth_algorithm],
    )

    if payload.get("type") != "access":
        msg = "Invalid token type: expected 'access'"
        raise JWTError(msg)
    if not payload.get("sub"):
        msg = "Token has no subject"
        raise JWTError(msg)

    return payload
