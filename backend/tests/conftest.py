"""
crudstore — Test Configuration (conftest.py)
============================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── storage_dir:   Temporary directory holding collection files
    ├── store:         Initialized EntityStore for collection "entity"
    ├── app_settings:  Settings pointing at storage_dir with collection "car"
    ├── app:           FastAPI app built from app_settings (stores not loaded)
    └── test_client:   HTTPX AsyncClient against `app`, stores loaded
"""

import os
import tempfile

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# Override settings for testing BEFORE any app imports
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="crudstore_test_")
os.environ["LOG_LEVEL"] = "WARNING"

from crudstore.config import Settings  # noqa: E402
from crudstore.main import create_app, init_stores  # noqa: E402
from crudstore.services.entity_store import EntityStore  # noqa: E402


@pytest.fixture
def storage_dir(tmp_path):
    """A fresh directory for collection files (cleaned up by pytest)."""
    directory = tmp_path / "storage"
    directory.mkdir()
    return directory


@pytest_asyncio.fixture
async def store(storage_dir):
    """An EntityStore bound to <storage_dir>/entity.json."""
    entity_store = EntityStore()
    await entity_store.init("entity", storage_dir)
    return entity_store


@pytest.fixture
def app_settings(storage_dir):
    return Settings(storage_root=str(storage_dir), collections="car")


@pytest.fixture
def app(app_settings):
    return create_app(app_settings)


@pytest_asyncio.fixture
async def test_client(app):
    """
    HTTPX AsyncClient talking to the app through ASGITransport.

    ASGITransport does not run the lifespan, so the stores are loaded here.
    """
    await init_stores(app)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
