import socket
import uuid
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from memberlink.core.config import settings
from memberlink.models import Base
from memberlink.services.token_types import MemberRecord
from memberlink.stores.base import StoreBundle
from memberlink.stores.memory import MemoryState, memory_stores

# Use separate test database
TEST_DATABASE_URL = settings.database_url.replace(
    settings.database_name, f"{settings.database_name}_test"
)

# Staff user ID (consistent across tests for predictable auth)
TEST_STAFF_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")

# Security: This is a test-only secret. Production uses a real secret from env.
TEST_AUTH_SECRET = "test-secret-key-that-is-at-least-32-characters-long"  # nosec B105  # gitleaks:allow

# Reference instant for clock-driven tests
T0 = datetime(2024, 1, 1, tzinfo=UTC)


def create_test_jwt(
    user_id: uuid.UUID = TEST_STAFF_ID,
    *,
    secret: str = TEST_AUTH_SECRET,
    expires_delta: timedelta | None = None,
    audience: str | None = None,
) -> str:
    """Create a signed staff JWT for test authentication.

    Args:
        user_id: Staff UUID to encode in the sub claim.
        secret: Signing secret (must match settings.auth_secret in tests).
        expires_delta: Time until expiration. Defaults to 1 hour.
        audience: Override the aud claim.

    Returns:
        Encoded JWT string.
    """
    now = datetime.now(UTC)
    payload = {
        "sub": str(user_id),
        "aud": audience or settings.auth_audience,
        "iss": settings.auth_issuer,
        "exp": now + (expires_delta or timedelta(hours=1)),
        "iat": now,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


class FakeClock:
    """Settable clock for deterministic expiry tests."""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)

    def set(self, now: datetime) -> None:
        self.now = now


def _is_postgres_available() -> bool:
    """Check if PostgreSQL is accepting connections.

    Returns:
        True if PostgreSQL is reachable on the configured port, False otherwise.
    """
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(1)
        result = sock.connect_ex((settings.database_host, settings.database_port))
        sock.close()
        return result == 0
    except OSError:
        return False


# Check once at module load time
_POSTGRES_AVAILABLE = _is_postgres_available()


def skip_if_no_postgres() -> None:
    """Skip test if PostgreSQL is not available.

    Called by fixtures that require a database connection.
    """
    if not _POSTGRES_AVAILABLE:
        pytest.skip(
            "PostgreSQL not available. Start database with: docker compose up -d"
        )


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine.

    Skips test if PostgreSQL is not available (e.g., Docker not running).
    """
    skip_if_no_postgres()

    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


# =============================================================================
# In-memory store fixtures
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    """Clock starting at 2024-01-01T00:00:00Z."""
    return FakeClock()


@pytest.fixture
def state() -> MemoryState:
    """Empty in-memory rows."""
    return MemoryState()


@pytest.fixture
def member(state: MemoryState) -> MemberRecord:
    """Seeded member Jane Doe."""
    return state.add_member("Jane", "Doe", "jane@example.com")


@pytest.fixture
def stores(state: MemoryState) -> StoreBundle:
    """Store bundle over the shared in-memory rows."""
    return memory_stores(state)


# =============================================================================
# API Test Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def client(state: MemoryState) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client with a valid staff bearer JWT.

    Sets up:
    - In-memory stores via dependency override (one bundle per request)
    - JWT auth with test secret
    - Rate limiting disabled so tests don't share a request budget
    """
    from memberlink.api.deps import get_stores
    from memberlink.core.rate_limiting import limiter
    from memberlink.main import app

    app.dependency_overrides[get_stores] = lambda: memory_stores(state)

    original_auth_enabled = settings.auth_enabled
    original_auth_secret = settings.auth_secret
    original_limiter_enabled = limiter.enabled
    settings.auth_enabled = True
    settings.auth_secret = SecretStr(TEST_AUTH_SECRET)
    limiter.enabled = False

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"Authorization": f"Bearer {create_test_jwt()}"},
    ) as ac:
        yield ac

    settings.auth_enabled = original_auth_enabled
    settings.auth_secret = original_auth_secret
    limiter.enabled = original_limiter_enabled
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def unauthenticated_client(
    state: MemoryState,
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client without a bearer token.

    Auth is enabled, so staff endpoints return 401; claim endpoints work.
    """
    from memberlink.api.deps import get_stores
    from memberlink.core.rate_limiting import limiter
    from memberlink.main import app

    app.dependency_overrides[get_stores] = lambda: memory_stores(state)

    original_auth_enabled = settings.auth_enabled
    original_auth_secret = settings.auth_secret
    original_limiter_enabled = limiter.enabled
    settings.auth_enabled = True
    settings.auth_secret = SecretStr(TEST_AUTH_SECRET)
    limiter.enabled = False

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    settings.auth_enabled = original_auth_enabled
    settings.auth_secret = original_auth_secret
    limiter.enabled = original_limiter_enabled
    app.dependency_overrides.clear()
