"""Shared dependencies for API endpoints.

Staff endpoints require a bearer JWT when auth is enabled; local mode uses
DEFAULT_STAFF_ID. Claim endpoints are unauthenticated and only need the
store bundle and the server-observed client address.

WHY DEPENDENCY INJECTION:
- Consistent auth across all staff endpoints
- Tests swap the SQL stores for in-memory ones via dependency_overrides
"""

import uuid
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from memberlink.core.auth import decode_staff_jwt
from memberlink.core.config import settings
from memberlink.core.database import get_db
from memberlink.core.errors import UnauthorizedError
from memberlink.stores.base import StoreBundle
from memberlink.stores.sql import sql_stores

_BEARER_PREFIX = "bearer "


async def get_current_staff_id(request: Request) -> uuid.UUID:
    """Get the staff user behind the request.

    Validation steps (auth enabled):
    1. Read ``Authorization: Bearer <jwt>``
    2. Verify signature, exp, aud and iss
    3. Extract sub as UUID

    Returns:
        UUID of the authenticated staff user.

    Raises:
        UnauthorizedError: For any auth failure. The reason is never exposed.
    """
    if not settings.auth_enabled:
        # Local mode: use DEFAULT_STAFF_ID from environment
        if settings.default_staff_id is None:
            raise UnauthorizedError()
        return settings.default_staff_id

    header = request.headers.get("Authorization", "")
    if not header.lower().startswith(_BEARER_PREFIX):
        raise UnauthorizedError()

    staff_id = decode_staff_jwt(header[len(_BEARER_PREFIX) :].strip())
    if staff_id is None:
        raise UnauthorizedError()
    return staff_id


DbSession = Annotated[AsyncSession, Depends(get_db)]


def get_stores(db: DbSession) -> StoreBundle:
    """Store bundle over the request's database session."""
    return sql_stores(db)


def get_client_ip(request: Request) -> str | None:
    """Client address as seen by the server, never as claimed by the client."""
    return request.client.host if request.client else None


# Reusable type aliases for dependency injection
CurrentStaffId = Annotated[uuid.UUID, Depends(get_current_staff_id)]
Stores = Annotated[StoreBundle, Depends(get_stores)]
ClientIp = Annotated[str | None, Depends(get_client_ip)]
