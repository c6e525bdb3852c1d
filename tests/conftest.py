"""
Pytest fixtures for asset grid tests.
"""

import os
import tempfile
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# Ensure test config is set before importing assetgrid modules.
os.environ.setdefault("ASSETGRID_ALLOW_INSECURE_DEV", "true")
os.environ.setdefault("ASSETGRID_ENV", "development")
os.environ.setdefault(
    "ASSETGRID_DATABASE_URL",
    os.getenv(
        "ASSETGRID_TEST_DATABASE_URL",
        "sqlite+aiosqlite:///" + os.path.join(tempfile.gettempdir(), "assetgrid_test.db"),
    ),
)

from assetgrid.config import settings
from assetgrid.db.base import Base, build_engine
from assetgrid.db.repositories import GridAssetRepository, SiteRepository
from assetgrid.observability.metrics import metrics
import assetgrid.db.tables  # noqa: F401

pytest_plugins = ("pytest_asyncio",)


def _ensure_test_database_url(database_url: str) -> None:
    if "test" not in database_url:
        raise RuntimeError(
            "Refusing to run asset grid tests against a non-test database. "
            "Set ASSETGRID_TEST_DATABASE_URL to a dedicated test database."
        )


@pytest.fixture
async def engine():
    """Create a test engine with a fresh schema and wire it into assetgrid.db.base."""
    _ensure_test_database_url(settings.database_url)
    engine = build_engine(settings.database_url, echo=settings.debug)

    # Override global engine/session factory for dependency injection.
    from assetgrid import db as db_module

    db_module.base.engine = engine
    db_module.base.async_session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    metrics.reset()
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    """Independent sessions, one per simulated client."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    """Provide a database session per test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def tenant_id():
    return uuid4()


@pytest.fixture
async def site(session, tenant_id):
    """A site owned by the test tenant."""
    return await SiteRepository(session).create(
        tenant_id=tenant_id,
        name="North Ridge Solar",
        client="Helios Energy",
        location="Kern County, CA",
    )


@pytest.fixture
async def asset(session, tenant_id, site):
    """A fresh asset at version 1, not started, nothing completed."""
    return await GridAssetRepository(session).create(
        tenant_id=tenant_id,
        site_id=site.site_id,
        asset_key="INV-001",
        asset_type="inverter",
        industry="solar",
        planned_count=20,
    )


@pytest.fixture
async def client(session, tenant_id):
    """Async test client with overridden dependencies."""
    from assetgrid.api.deps import get_db_session, verify_api_key
    from assetgrid.main import app

    async def override_get_db_session():
        yield session

    async def override_verify_api_key():
        return "insecure_dev"

    app.dependency_overrides[get_db_session] = override_get_db_session
    app.dependency_overrides[verify_api_key] = override_verify_api_key

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"X-Tenant-ID": str(tenant_id), "X-User-ID": "user-alice"},
    ) as client:
        yield client

    app.dependency_overrides.clear()
