import os
import sys
from pathlib import Path

import pytest

# Add project root (2 levels up from tests/) to sys.path so tests can import 'app'
root = Path(__file__).resolve().parents[1]
if str(root) not in sys.path:
    sys.path.insert(0, str(root))

# Settings are read at import time; point the app at SQLite before importing it
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("CALL_INVITE_TIMEOUT_SECONDS", "0")


from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.models.database import Base as DBBase
import app.models.database as database_module
from app.services.connection import ConnectionManager
from app.services.session import CallController
from tests.helpers import FakeDirectory, RecordingSink


# One shared in-memory database for every connection the tests open
test_engine = create_async_engine(
    "sqlite+aiosqlite:///:memory:",
    echo=False,
    future=True,
    poolclass=StaticPool,
    connect_args={"check_same_thread": False},
)
test_async_session = sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

# Bind into the app's database module
database_module.engine = test_engine
database_module.AsyncSessionLocal = test_async_session


@pytest.fixture
async def async_db():
    """Fresh tables for each test; yields the session factory."""
    async with test_engine.begin() as conn:
        await conn.run_sync(DBBase.metadata.drop_all)
        await conn.run_sync(DBBase.metadata.create_all)
    yield test_async_session


@pytest.fixture
def directory():
    return FakeDirectory()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
async def controller(directory, sink):
    controller = CallController(
        connections=ConnectionManager(),
        directory=directory,
        sink=sink,
        invite_timeout=0,
        collaborator_timeout=1.0,
    )
    yield controller
    await controller.shutdown()
