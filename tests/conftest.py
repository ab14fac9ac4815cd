"""
Shared fixtures for Aura Vault tests.

Every test gets its own SQLite file under pytest's tmp_path.
No network, no shared state between tests.
"""

import pytest
import pytest_asyncio

from aura.audit import AuditLogger
from aura.config import get_settings
from aura.services.storage import SQLiteEntityStore


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Settings are cached; tests that touch the environment need a clean slate."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "vault.sqlite3")


@pytest_asyncio.fixture
async def store(db_path):
    store = SQLiteEntityStore(db_path=db_path)
    await store.init()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def other_store(tmp_path):
    """A second, independent vault (import targets)."""
    store = SQLiteEntityStore(db_path=str(tmp_path / "other.sqlite3"))
    await store.init()
    yield store
    await store.close()


@pytest.fixture
def audit_logger() -> AuditLogger:
    return AuditLogger(trail_size=50)
