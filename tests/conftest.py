"""
Pytest configuration and core fixtures.

Provides an in-memory SQLite database (aiosqlite) per test, with every
table created from the model metadata, plus small factories for users,
notifications and refresh tokens.
All fixtures are function-scoped for complete test isolation.
"""

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncGenerator
from uuid import uuid4

# Settings are read at import time; configure them before importing the app
ROOT_DIR = Path(__file__).resolve().parent.parent
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["EMAIL_TEMPLATE_DIR"] = str(ROOT_DIR / "app" / "templates" / "email")
os.environ["SENTRY_DSN"] = ""
for key in ("SMTP_HOST", "SMTP_PORT", "SMTP_USER", "SMTP_PASSWORD"):
    os.environ.pop(key, None)

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.core.db import Base  # noqa: E402
from app.core.db.models import Notification, RefreshToken, User  # noqa: E402
from app.core.enums import UserRole  # noqa: E402


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory database shared by every connection of the test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Factory creating and flushing a user."""

    async def _make_user(
        email: str | None = None,
        role: UserRole = UserRole.DOCTOR,
        deleted: bool = False,
    ) -> User:
        user = User(
            id=uuid4(),
            email=email or f"user-{uuid4().hex[:8]}@example.com",
            full_name="Test User",
            password_hash="hash",
            role=role,
            deleted_at=datetime.now(timezone.utc) if deleted else None,
        )
        db_session.add(user)
        await db_session.flush()
        return user

    return _make_user


@pytest.fixture
def make_notification(db_session: AsyncSession):
    """Factory creating and flushing a notification for a user."""

    async def _make_notification(
        user: User, title: str = "Hello", deleted: bool = False
    ) -> Notification:
        notification = Notification(
            id=uuid4(),
            user_id=user.id,
            title=title,
            body="Body",
            deleted_at=datetime.now(timezone.utc) if deleted else None,
        )
        db_session.add(notification)
        await db_session.flush()
        return notification

    return _make_notification


@pytest.fixture
def make_refresh_token(db_session: AsyncSession):
    """Factory creating and flushing a refresh token."""

    async def _make_refresh_token(
        user: User,
        expires_in: timedelta = timedelta(days=7),
        created_ago: timedelta = timedelta(0),
    ) -> RefreshToken:
        now = datetime.now(timezone.utc)
        token = RefreshToken(
            id=uuid4(),
            user_id=user.id,
            token_hash=uuid4().hex + uuid4().hex,
            expires_at=now + expires_in,
            created_at=now - created_ago,
            updated_at=now - created_ago,
        )
        db_session.add(token)
        await db_session.flush()
        return token

    return _make_refresh_token
