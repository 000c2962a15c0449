"""Shared fixtures for the GeckoPress test suite.

Environment variables MUST be set before any app imports because:
- app.config.Settings() evaluates at import time
- app.auth._hashed is computed at import time
"""
import os

# Set env vars before any app module is imported
os.environ.setdefault("ADMIN_USERNAME", "testadmin")
os.environ.setdefault("ADMIN_PASSWORD", "testpassword123")
os.environ.setdefault("IP_HASH_SALT", "test-salt")
os.environ.setdefault("WEBHOOK_SECRET", "test-webhook-secret")
os.environ.setdefault("SITE_URL", "https://blog.test")

import pytest
import pytest_asyncio

from app import database as db
from app.config import settings


@pytest_asyncio.fixture
async def test_db(tmp_path):
    """Create a temp DB file, run Alembic migrations, open the async connection, yield, clean up.

    This uses a real on-disk SQLite file (not :memory:) to match production
    behavior with WAL mode and foreign keys.
    """
    db_file = tmp_path / "test.db"
    original_path = settings.db_path

    settings.db_path = str(db_file)

    # Run real Alembic migrations so every test exercises them
    db.run_migrations()

    conn = await db.get_db()
    yield conn

    await db.close_db()
    settings.db_path = original_path


@pytest.fixture(autouse=True)
def _reset_rate_limiters():
    """Reset the module-level rate limiters between tests to prevent cross-test pollution.

    Without this, form submissions and failed logins from one test count
    against the limits in subsequent tests (they are process-wide singletons).
    """
    from app.rate_limiter import rate_limiter
    from app.routers.admin import _login_limiter

    rate_limiter.reset()
    _login_limiter.reset()


@pytest_asyncio.fixture
async def client(test_db):
    """httpx.AsyncClient using ASGITransport, which bypasses lifespan.

    test_db handles migrations and the connection instead of the lifespan,
    so the maintenance loop is never started in tests.
    """
    import httpx
    from main import app

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c


@pytest_asyncio.fixture
async def admin_session(test_db):
    """Create an admin session in the real DB and return a cookie dict."""
    from app.auth import SESSION_COOKIE

    session_id = await db.create_admin_session(ttl_seconds=86400)
    return {SESSION_COOKIE: session_id}


@pytest_asyncio.fixture
async def sample_category(test_db):
    return await db.create_category(name="Engineering", slug="engineering", description="Build notes")


@pytest_asyncio.fixture
async def sample_post(sample_category):
    """A published post in the sample category."""
    return await db.create_post(
        title="Hello Gecko",
        slug="hello-gecko",
        content="<p>Geckos can climb glass.</p>",
        excerpt="Geckos can climb glass.",
        author_name="Ada",
        category_id=sample_category["id"],
        published=True,
        tags=["reptiles", "climbing"],
    )


@pytest_asyncio.fixture
async def draft_post(test_db):
    return await db.create_post(
        title="Unfinished",
        slug="unfinished",
        content="<p>Work in progress</p>",
        author_name="Ada",
    )
