import os
from typing import AsyncGenerator

# Settings and the app engine are built at import time; point them at SQLite
# before anything from libs is imported.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./.pytest-storefront.db"
os.environ.setdefault("ENVIRONMENT", "local")

import pytest
import pytest_asyncio
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from libs.auth.dependencies import get_current_user, security
from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.db.base import Base
from libs.db.session import get_async_db
from services.storefront_service import models as _storefront_models  # noqa: F401
from services.storefront_service.app.main import app

get_settings.cache_clear()

CUSTOMER_TOKEN = "customer-token"
OTHER_CUSTOMER_TOKEN = "other-customer-token"
ADMIN_TOKEN = "admin-token"


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """A fresh SQLite file database per test, with foreign keys enforced."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'storefront.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Session factory; each session opened from it acts as an independent actor."""
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def test_users() -> dict[str, AuthUser]:
    """Bearer token -> authenticated user, used by the auth override."""
    return {
        CUSTOMER_TOKEN: AuthUser(
            user_id="customer-1", email="customer@example.com", role="authenticated"
        ),
        OTHER_CUSTOMER_TOKEN: AuthUser(
            user_id="customer-2", email="other@example.com", role="authenticated"
        ),
        ADMIN_TOKEN: AuthUser(
            user_id="admin-1", email="admin@example.com", role="admin"
        ),
    }


@pytest_asyncio.fixture
async def client(session_factory, test_users) -> AsyncGenerator[AsyncClient, None]:
    """
    Yield an AsyncClient with the DB and auth dependencies overridden.

    Each request gets its own session, as it would in production.
    """

    async def _get_test_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    async def _current_user(
        token: HTTPAuthorizationCredentials = Depends(security),
    ) -> AuthUser:
        user = test_users.get(token.credentials)
        if user is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Could not validate credentials",
            )
        return user

    app.dependency_overrides[get_async_db] = _get_test_db
    app.dependency_overrides[get_current_user] = _current_user

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def customer_headers() -> dict:
    return {"Authorization": f"Bearer {CUSTOMER_TOKEN}"}


@pytest.fixture
def other_customer_headers() -> dict:
    return {"Authorization": f"Bearer {OTHER_CUSTOMER_TOKEN}"}


@pytest.fixture
def admin_headers() -> dict:
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}
