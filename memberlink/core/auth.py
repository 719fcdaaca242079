"""Staff JWT helpers.

Staff identity is established by the back-office sign-in service; this
module only signs and verifies the bearer tokens it hands out so the
issuance endpoints can record who requested a claim link.
"""

import logging
import uuid
from datetime import UTC, datetime, timedelta

import jwt

from memberlink.core.config import settings

logger = logging.getLogger(__name__)

# Default JWT expiration: 1 hour
_DEFAULT_EXPIRATION = timedelta(hours=1)

_ALGORITHM = "HS256"


def create_jwt(
    *,
    user_id: str,
    secret: str,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed staff JWT with standard claims.

    Args:
        user_id: Staff user UUID string for the sub claim.
        secret: HMAC signing secret.
        expires_delta: Time until expiration. Defaults to 1 hour.

    Returns:
        Encoded JWT string.
    """
    now = datetime.now(UTC)
    payload = {
        "sub": user_id,
        "aud": settings.auth_audience,
        "iss": settings.auth_issuer,
        "exp": now + (expires_delta or _DEFAULT_EXPIRATION),
        "iat": now,
    }
    return jwt.encode(payload, secret, algorithm=_ALGORITHM)


def decode_staff_jwt(token: str) -> uuid.UUID | None:
    """Verify a staff JWT and return the subject.

    Security: Signature, exp, aud and iss are all checked. Callers get
    None for every failure mode so the reason never reaches the client.

    Args:
        token: Raw bearer token.

    Returns:
        Staff user UUID, or None if the token is not acceptable.
    """
    try:
        payload = jwt.decode(
            token,
            settings.auth_secret.get_secret_value(),
            algorithms=[_ALGORITHM],
            audience=settings.auth_audience,
            issuer=settings.auth_issuer,
        )
        return uuid.UUID(payload["sub"])
    except (jwt.InvalidTokenError, KeyError, ValueError):
        logger.info("Rejected staff JWT")
        return None
