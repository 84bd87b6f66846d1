# tests/conftest.py
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Generator

import httpx
import pytest
import pytest_asyncio
from fastapi import Depends
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("ASYNC_DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("IDENTITY_JWT_SECRET", "test-identity-secret-0123456789")

from spicecart.main import app
from spicecart.core.config import settings
from spicecart.db.session import Base
from spicecart.db.session_async import get_async_db, get_elevated_db

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

sync_engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=sync_engine)

# NullPool: every test runs on its own event loop.
async_engine = create_async_engine(settings.ASYNC_DATABASE_URL, poolclass=NullPool)
TestingAsyncSessionLocal = async_sessionmaker(bind=async_engine, expire_on_commit=False, autoflush=False)


# ---------- Fixtures ----------
@pytest.fixture(scope="session", autouse=True)
def setup_database():
    """Create the SQLite tables once per session."""
    import spicecart.models.catalog  # noqa: F401
    import spicecart.models.cart  # noqa: F401
    import spicecart.models.shipping  # noqa: F401

    Base.metadata.create_all(bind=sync_engine)
    yield
    Base.metadata.drop_all(bind=sync_engine)


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    with sync_engine.begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(table.delete())


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest_asyncio.fixture(scope="function")
async def async_db_session() -> AsyncSession:
    async with TestingAsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.rollback()


async def _override_get_async_db():
    async with TestingAsyncSessionLocal() as session:
        yield session


async def _override_get_elevated_db(db: AsyncSession = Depends(get_async_db)):
    # SQLite has a single role, so the elevated path shares the request session.
    yield db


@pytest_asyncio.fixture(scope="function")
async def client():
    app.dependency_overrides[get_async_db] = _override_get_async_db
    app.dependency_overrides[get_elevated_db] = _override_get_elevated_db
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ---------- Identity provider tokens ----------
def make_token(subject: str, scopes: list[str] | None = None, expires_in: int = 900) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "scopes": scopes or [],
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
    }
    return jwt.encode(payload, settings.IDENTITY_JWT_SECRET, algorithm=settings.IDENTITY_JWT_ALGORITHM)


@pytest.fixture(scope="function")
def user_token() -> str:
    return make_token(f"user-{uuid.uuid4()}")


@pytest.fixture(scope="function")
def admin_token() -> str:
    return make_token(f"admin-{uuid.uuid4()}", scopes=["admin"])


@pytest.fixture(scope="function")
def other_user_token() -> str:
    return make_token(f"user-{uuid.uuid4()}")
