"""Bearer token verification.

Tokens are issued by the external identity provider and signed with the
shared secret in JWT_SECRET_KEY. This module only decodes and validates
them into a CallerIdentity; sessions, sign-in and password handling belong
to the provider.

create_access_token() exists for service-to-service callers, scripts and
tests that need to mint a token the service will accept.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from src.herdbook.config import Settings, get_settings
from src.herdbook.core.errors import AuthenticationError


@dataclass(frozen=True)
class CallerIdentity:
    """Who is calling, as asserted by a verified token."""

    user_id: str
    tenant_id: str | None = None  # explicit tenant selection claim, if any
    role: str | None = None


def create_access_token(
    data: dict,
    expires_delta: timedelta | None = None,
    settings: Settings | None = None,
) -> str:
    """Create a signed access token.

    The data dict should contain at minimum:
    - sub: user id (str)
    and optionally tenant_id to select one of several memberships.
    """
    settings = settings or get_settings()
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=30))
    to_encode.update({"exp": expire, "iat": now})
    if settings.JWT_AUDIENCE:
        to_encode.setdefault("aud", settings.JWT_AUDIENCE)
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str, settings: Settings | None = None) -> CallerIdentity:
    """Decode and validate a bearer token.

    Raises:
        AuthenticationError: If the token is invalid, expired, or has no subject.
    """
    settings = settings or get_settings()
    options = {"verify_aud": bool(settings.JWT_AUDIENCE)}
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE or None,
            options=options,
        )
    except JWTError:
        raise AuthenticationError("Could not validate credentials")

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Could not validate credentials")

    return CallerIdentity(
        user_id=str(user_id),
        tenant_id=payload.get("tenant_id") or payload.get("org_id"),
        role=payload.get("role"),
    )


def bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer ...`` header value."""
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization[7:].strip()
    return token or None
