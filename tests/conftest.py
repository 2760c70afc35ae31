"""Shared fixtures: a throwaway SQLite catalog and an ASGI test client."""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select

from marketplace_api.main import app
from marketplace_api.settings import get_settings
from marketplace_api.stores import postgres


@pytest.fixture
async def db(tmp_path, monkeypatch: pytest.MonkeyPatch):
    """Point the store at a fresh SQLite file and create the schema."""
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}")
    monkeypatch.delenv("RECONCILE_ATOMIC", raising=False)
    get_settings.cache_clear()

    await postgres.init_db()
    await postgres.create_tables()
    yield
    await postgres.drop_tables()
    await postgres.close_db()
    get_settings.cache_clear()


@pytest.fixture
async def client(db):
    """Create test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def count_rows():
    """Return an async helper counting rows of a model."""

    async def _count(model) -> int:
        async with postgres.get_session() as session:
            return await session.scalar(select(func.count()).select_from(model))

    return _count
