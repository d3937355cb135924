# Ensure backend is at sys.path[0] when pytest runs (from repo root or from backend dir)
import sys
from pathlib import Path

_tests_dir = Path(__file__).resolve().parent
_backend = _tests_dir.parent
_str_backend = str(_backend)
if sys.path[0:1] != [_str_backend]:
    sys.path.insert(0, _str_backend)

import pytest
import pytest_asyncio

from core.database import dispose_database, get_database_manager, init_database
from services.document_store import VersionedDocumentStore

FIXTURES_DIR = _tests_dir / "fixtures"


@pytest_asyncio.fixture
async def db():
    """In-memory SQLite with the ledger schema; disposed after the test."""
    await init_database("sqlite+aiosqlite:///:memory:")
    manager = get_database_manager()
    await manager.create_schema()
    yield manager
    await dispose_database()


@pytest_asyncio.fixture
async def store(db):
    return VersionedDocumentStore(db)


@pytest.fixture
def fixtures_dir() -> Path:
    return FIXTURES_DIR
