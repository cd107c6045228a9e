import io
import os
import shutil
import tempfile

# Settings are read at import time, so the test environment must be set first
_TEST_DIR = tempfile.mkdtemp(prefix="wedding-invitation-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TEST_DIR, 'test.db')}"
os.environ["UPLOAD_DIR"] = os.path.join(_TEST_DIR, "uploads")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["CLEANUP_INTERVAL_SECONDS"] = "0"
os.environ["ADMIN_PASSWORD_HASH"] = ""
os.environ["DISPLAY_TIMEZONE"] = "Asia/Seoul"

import httpx
import pytest
import pytest_asyncio
from PIL import Image

from wedding_invitation.config import settings
from wedding_invitation.database import AsyncSessionLocal, Base, engine
from wedding_invitation.main import app
from wedding_invitation import models  # noqa: F401

ADMIN_COOKIE = f"{settings.SESSION_COOKIE_NAME}=admin_1_1700000000000"


def make_image_bytes(size=(64, 48), color=(200, 80, 40), fmt="PNG", mode="RGB") -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, size, color).save(buffer, format=fmt)
    return buffer.getvalue()


def upload_path(filename: str) -> str:
    return os.path.join(settings.UPLOAD_DIR, filename)


@pytest_asyncio.fixture
async def db_tables():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()
    shutil.rmtree(settings.UPLOAD_DIR, ignore_errors=True)


@pytest_asyncio.fixture
async def db_session(db_tables):
    async with AsyncSessionLocal() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_tables):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c


@pytest_asyncio.fixture
async def admin_client(db_tables):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(
        transport=transport,
        base_url="http://testserver",
        headers={"Cookie": ADMIN_COOKIE},
    ) as c:
        yield c


def pytest_sessionfinish(session, exitstatus):
    shutil.rmtree(_TEST_DIR, ignore_errors=True)
