"""
DarkMode Backend — Test Configuration (conftest.py)
=====================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Environment variables are set before anything from `app` is imported,
       so the module-level `settings` and service singletons see test values.
       Each test gets a fresh in-memory SQLite database (aiosqlite, one shared
       connection through StaticPool) with every table created.

Fixture Hierarchy (all function-scoped):
    ├── db_engine:        in-memory engine with Base.metadata created
    ├── db_session:       AsyncSession bound to db_engine
    ├── test_client:      HTTPX AsyncClient with get_db_session overridden
    ├── make_account:     factory that inserts an Account (+ UserAnalytics)
    ├── auth_headers:     factory returning a Bearer header for an account
    └── temp_storage:     temporary directory for storage provider tests
"""

import hashlib
import hmac
import json
import os
import tempfile
import time
from typing import Any, AsyncGenerator, Dict, Optional

# Override settings for testing BEFORE any app imports
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_not_real"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["STRIPE_PRICE_ID_MONTHLY"] = "price_monthly_test"
os.environ["STRIPE_PRICE_ID_YEARLY"] = "price_yearly_test"
os.environ["STORAGE_TYPE"] = "local"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="darkmode_test_")
os.environ["SMTP_HOST"] = ""
os.environ["RATE_LIMIT_REQUESTS"] = "100000"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.database import Base, get_db_session, utcnow
from app.models.account import Account
from app.models.analytics import UserAnalytics
from app.models.enums import SubscriptionStatus
from app.services.security import access_token_signer

TEST_WEBHOOK_SECRET = os.environ["STRIPE_WEBHOOK_SECRET"]


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """
    A session for arranging data and calling services directly.

    Services flush but never commit (except the webhook ledger), so tests
    that mix direct calls with HTTP calls commit explicitly.
    """
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def test_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTPX AsyncClient talking to the app through ASGITransport.

    Each request gets its own session on the test database, committed or
    rolled back exactly like get_db_session does in production.
    """
    from app.main import app

    async def override_get_db_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_get_db_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


# ══════════════════════════════════════════════════════════════════════════
# Accounts
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def make_account(db_session):
    """
    Insert and commit an account. Keyword arguments override column values.

    Usage:
        account = await make_account(minutes_used=60)
    """
    counter = {"n": 0}

    async def factory(**overrides: Any) -> Account:
        from app.services.security import hash_password

        counter["n"] += 1
        password = overrides.pop("password", "correct-horse-battery")
        values: Dict[str, Any] = {
            "email": f"user{counter['n']}@example.com",
            "name": f"User {counter['n']}",
            "password_hash": await hash_password(password),
            "subscription_status": SubscriptionStatus.FREE,
            "minutes_used": 0,
            "minutes_limit": 60,
            "last_reset": utcnow(),
        }
        values.update(overrides)
        account = Account(**values)
        db_session.add(account)
        await db_session.flush()
        db_session.add(UserAnalytics(account_id=account.id))
        await db_session.commit()
        return account

    return factory


@pytest.fixture
def auth_headers():
    def build(account: Account) -> Dict[str, str]:
        token = access_token_signer.issue(str(account.id), account.email)
        return {"Authorization": f"Bearer {token}"}

    return build


# ══════════════════════════════════════════════════════════════════════════
# Stripe webhooks
# ══════════════════════════════════════════════════════════════════════════

def stripe_event(event_id: str, event_type: str, obj: Dict[str, Any]) -> bytes:
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": obj},
    }).encode()


def sign_stripe_payload(payload: bytes, secret: str = TEST_WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header the way Stripe does (HMAC-SHA256 over "t.payload")."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.".encode() + payload
    signature = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


# ══════════════════════════════════════════════════════════════════════════
# Files
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def temp_storage(tmp_path):
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir()
    return str(storage_dir)
