"""Shared test fixtures for SEOMaster tests."""

from __future__ import annotations

import os
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Generator, Optional

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Ensure the project root is on sys.path so bare imports work
_PROJECT_ROOT = os.path.join(os.path.dirname(__file__), os.pardir)
if _PROJECT_ROOT not in sys.path:
    sys.path.insert(0, os.path.abspath(_PROJECT_ROOT))

# Use in-memory SQLite for tests (faster, no external dependencies)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_PASSWORD = "password123"
TEST_OTP = "1234"


def create_test_engine() -> AsyncEngine:
    """Create an in-memory engine whose connections all share one database.

    StaticPool keeps a single connection so that every session (request,
    background dispatcher, test body) sees the same in-memory database.
    """
    # 导入模型模块以确保所有表已注册到 Base.metadata
    import apps.report.models  # noqa: F401
    import core.models.otp  # noqa: F401
    import core.models.user  # noqa: F401

    return create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )


def _reset_database_module() -> None:
    import core.database as database

    database._engine = None
    database._session_factory = None


# =========================================================================
# Test doubles
# =========================================================================

class MemoryCache:
    """In-process cache with ``add`` semantics, used to exercise throttling."""

    def __init__(self):
        self.store: dict[str, Any] = {}
        self.ttls: dict[str, int] = {}

    def add(self, key: str, value: Any, ttl: int) -> bool:
        if key in self.store:
            return False
        self.store[key] = value
        self.ttls[key] = ttl
        return True

    def ttl(self, key: str) -> int:
        return self.ttls.get(key, 0)

    def delete(self, key: str) -> None:
        self.store.pop(key, None)
        self.ttls.pop(key, None)


class RecordingDispatcher:
    """Dispatcher stand-in that records dispatch calls without running them."""

    def __init__(self):
        self.calls: list[tuple[str, str, int]] = []

    @property
    def in_flight(self) -> int:
        return 0

    def dispatch(self, report_id: str, website: str, attempt: int) -> None:
        self.calls.append((report_id, website, attempt))

    async def drain(self, timeout: Optional[float] = None) -> None:
        return None


# =========================================================================
# Global state isolation
# =========================================================================

@pytest.fixture(autouse=True)
def isolate_globals():
    """Give every test a throttle-free cache and fresh singletons."""
    from apps.report.dispatcher import set_dispatcher
    from core.cache import NoCache, set_cache_instance

    set_cache_instance(NoCache())
    yield
    set_cache_instance(None)
    set_dispatcher(None)
    _reset_database_module()


@pytest.fixture
def memory_cache() -> MemoryCache:
    """Install an in-memory cache so that OTP resend throttling is active."""
    from core.cache import set_cache_instance

    cache = MemoryCache()
    set_cache_instance(cache)
    return cache


@pytest.fixture
def fixed_otp(monkeypatch) -> str:
    """Make every issued OTP equal to ``TEST_OTP``."""
    from apps.auth.otp_service import OtpService

    monkeypatch.setattr(OtpService, "_generate_code", staticmethod(lambda: TEST_OTP))
    return TEST_OTP


# =========================================================================
# Database fixtures
# =========================================================================

@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create the schema on a fresh engine and install it as the app engine.

    为每个测试创建独立的内存数据库，并通过 configure_engine 注入，
    使 session_scope 与分派器回写也使用同一个数据库。
    """
    from core.database import configure_engine
    from core.models.base import Base

    engine = create_test_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    configure_engine(engine)

    yield engine

    await engine.dispose()
    _reset_database_module()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for service-level tests."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def verified_user(db_session: AsyncSession):
    """Create a verified, active user directly in the database."""
    from core.models.user import User

    user = User(
        first_name="Ada",
        last_name="Lovelace",
        company_name="Analytical Engines",
        email="ada@example.com",
        is_verified=True,
        is_active=True,
    )
    user.set_password(TEST_PASSWORD)
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession):
    """A second verified user, used for ownership checks."""
    from core.models.user import User

    user = User(
        first_name="Grace",
        last_name="Hopper",
        email="grace@example.com",
        is_verified=True,
        is_active=True,
    )
    user.set_password(TEST_PASSWORD)
    db_session.add(user)
    await db_session.commit()
    return user


# =========================================================================
# HTTP fixtures
# =========================================================================

@pytest.fixture
def fake_dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


def build_test_app(lifespan=None, dispatcher=None):
    """Copy the production app's routes, middleware and handlers.

    The copy skips the production lifespan (MySQL check, scheduler).
    """
    from fastapi import FastAPI

    from apps.report.dispatcher import get_dispatcher
    from main import app

    test_app = FastAPI(title=app.title, lifespan=lifespan)

    # Copy middleware
    for middleware in app.user_middleware:
        test_app.user_middleware.append(middleware)

    # Copy exception handlers
    for exc_class, handler in app.exception_handlers.items():
        test_app.add_exception_handler(exc_class, handler)

    # Copy routes
    for route in app.routes:
        test_app.routes.append(route)

    # Override on BOTH the original app and test_app: copied routes resolve
    # overrides through the app they were first registered on.
    if dispatcher is not None:
        app.dependency_overrides[get_dispatcher] = lambda: dispatcher
        test_app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    return test_app


def _clear_overrides(test_app) -> None:
    from main import app

    app.dependency_overrides.clear()
    test_app.dependency_overrides.clear()


@pytest.fixture
def client(fake_dispatcher: RecordingDispatcher, fixed_otp: str) -> Generator[TestClient, None, None]:
    """Provide a FastAPI test client on a fresh in-memory database.

    Tables are created inside the client's own event loop (test lifespan),
    and analysis dispatches are recorded by ``fake_dispatcher`` instead of
    being executed.
    """
    from core.database import configure_engine
    from core.models.base import Base

    engine = create_test_engine()
    configure_engine(engine)

    @asynccontextmanager
    async def test_lifespan(_app):
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        yield
        await engine.dispose()

    test_app = build_test_app(lifespan=test_lifespan, dispatcher=fake_dispatcher)

    with TestClient(test_app, raise_server_exceptions=False) as test_client:
        yield test_client

    _clear_overrides(test_app)
    _reset_database_module()


def register_and_login(
    client: TestClient,
    email: str = "ada@example.com",
    password: str = TEST_PASSWORD,
    first_name: str = "Ada",
    last_name: str = "Lovelace",
) -> str:
    """Register, verify and log in a user through the API; return the token.

    Relies on the ``fixed_otp`` fixture (pulled in by ``client``).
    """
    reg_resp = client.post(
        "/api/auth/register",
        json={
            "firstName": first_name,
            "lastName": last_name,
            "email": email,
            "password": password,
        },
    )
    if reg_resp.status_code != 201:
        raise RuntimeError(f"Registration failed: {reg_resp.status_code} {reg_resp.text}")

    verify_resp = client.post(
        "/api/auth/verify-otp",
        json={
            "email": email,
            "otp": TEST_OTP,
            "verificationToken": reg_resp.json()["verificationToken"],
        },
    )
    if verify_resp.status_code != 200:
        raise RuntimeError(f"Verification failed: {verify_resp.status_code} {verify_resp.text}")

    login_resp = client.post("/api/auth/login", json={"email": email, "password": password})
    if login_resp.status_code != 200:
        raise RuntimeError(f"Login failed: {login_resp.status_code} {login_resp.text}")
    # 令牌同时写入 cookie；测试统一使用 Bearer 头，避免 cookie 干扰
    client.cookies.clear()
    return login_resp.json()["token"]


@pytest.fixture
def auth_headers(client: TestClient) -> dict:
    """Bearer headers for a registered and verified user."""
    token = register_and_login(client)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def other_headers(client: TestClient) -> dict:
    """Bearer headers for a second user."""
    token = register_and_login(
        client, email="grace@example.com", first_name="Grace", last_name="Hopper"
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def login_user(client: TestClient):
    """Callable fixture: ``login_user(email, ...)`` returns Bearer headers."""

    def _login(email: str, first_name: str = "Test", last_name: str = "User") -> dict:
        token = register_and_login(client, email=email, first_name=first_name, last_name=last_name)
        return {"Authorization": f"Bearer {token}"}

    return _login


@pytest.fixture
def app_factory():
    """Expose :func:`build_test_app` to tests that drive the app in-process."""
    built = []

    def _build(lifespan=None, dispatcher=None):
        test_app = build_test_app(lifespan=lifespan, dispatcher=dispatcher)
        built.append(test_app)
        return test_app

    yield _build

    for test_app in built:
        _clear_overrides(test_app)
