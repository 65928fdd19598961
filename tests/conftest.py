import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from ebay_api.db import get_session_factory, init_db
from ebay_worker.repositories.sql_repository import SQLRepository
from fakes import ENCRYPTION_KEY


@pytest.fixture
def encryption_key() -> str:
    return ENCRYPTION_KEY


@pytest_asyncio.fixture
async def repository():
    """SQLRepository over a fresh in-memory SQLite database."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_db(engine)
    try:
        yield SQLRepository(get_session_factory(engine))
    finally:
        await engine.dispose()
