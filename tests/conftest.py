#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Test fixtures
=============
Each test gets its own in-memory SQLite database (StaticPool, so every
session shares the one connection) and its own attachment root under
tmp_path.  One AsyncSession is shared between the test body and the HTTP
client's get_db override.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import io
import os
import zipfile
from typing import AsyncGenerator

import pytest
import pytest_asyncio

from httpx import ASGITransport, AsyncClient
from PIL import Image
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# ── Env vars must be set before importing app modules ────────────────────────
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY",   "test-secret-key-not-for-production")
os.environ.setdefault("ENVIRONMENT",  "testing")

import wikiattach.models  # noqa: F401,E402
from wikiattach.core.config import Settings, get_settings  # noqa: E402
from wikiattach.core.database import Base, get_db  # noqa: E402
from wikiattach.core.security import create_access_token, hash_password  # noqa: E402
from wikiattach.main import create_app  # noqa: E402
from wikiattach.models import Page, User  # noqa: E402
from wikiattach.services.store import AttachmentStore  # noqa: E402


# ── Database ──────────────────────────────────────────────────────────────────
@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def db(engine) -> AsyncGenerator[AsyncSession, None]:
    """Single AsyncSession shared by the test body and the HTTP client."""
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


# ── Settings / storage ────────────────────────────────────────────────────────
@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        environment="testing",
        base_url="http://test",
        attachment_root=tmp_path / "uploads",
        max_attachment_bytes=1024 * 1024,
    )


@pytest.fixture
def store(settings) -> AttachmentStore:
    return AttachmentStore(settings.storage_root)


# ── HTTP client whose get_db uses the same session as the test ────────────────
@pytest_asyncio.fixture
async def client(db: AsyncSession, settings: Settings) -> AsyncGenerator[AsyncClient, None]:
    app = create_app()

    async def _override_db():
        try:
            yield db
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    app.dependency_overrides[get_db] = _override_db
    app.dependency_overrides[get_settings] = lambda: settings

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c


# ── Helpers ───────────────────────────────────────────────────────────────────

async def create_user(
    db: AsyncSession,
    login: str = "testuser",
    password: str = "password123",
    is_admin: bool = False,
    is_active: bool = True,
) -> User:
    user = User(
        login=login,
        password_hash=hash_password(password),
        is_admin=is_admin,
        is_active=is_active,
    )
    db.add(user)
    await db.commit()
    return user


async def auth_headers(db: AsyncSession, login: str = "testuser", **kwargs) -> dict:
    user = await create_user(db, login, **kwargs)
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


async def create_page(db: AsyncSession, path: str = "/Sandbox") -> Page:
    page = Page(path=path)
    db.add(page)
    await db.commit()
    return page


def make_zip(entries: dict[str, bytes], compression: int = zipfile.ZIP_DEFLATED) -> bytes:
    """Build a zip in memory; names ending in "/" become directory entries."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=compression) as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return buf.getvalue()


def future_version_zip() -> bytes:
    """A valid archive whose central directory demands zip version 25.5 to extract."""
    data = bytearray(make_zip({"a.txt": b"alpha", "b.txt": b"bravo", "c.txt": b"charlie"}))
    header = data.index(b"PK\x01\x02")
    data[header + 6:header + 8] = (255).to_bytes(2, "little")
    return bytes(data)


def make_image(size: tuple[int, int] = (400, 300), fmt: str = "PNG", color=(200, 40, 40)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    return buf.getvalue()


# -----------------------------------------------------------------------------
