"""Pytest configuration and fixtures for test suite."""

import os
import sys
from pathlib import Path

import pytest

# Set test environment BEFORE any other imports
os.environ.setdefault("APP_ENVIRONMENT", "test")
os.environ.setdefault("DB_DRIVER", "sqlite+aiosqlite")

# Add src (for the application) and this directory (for api_helpers) to path
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))
tests_path = Path(__file__).parent
if str(tests_path) not in sys.path:
    sys.path.insert(0, str(tests_path))

from fastapi.testclient import TestClient

from api_helpers import TEST_JWT_SECRET, login, register_admin
from config.database import DatabaseSettings
from config.settings import Settings
from database.async_engine import Database
from web.app import create_app


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at a throwaway SQLite file and upload directory."""
    return Settings(
        environment="test",
        jwt_secret=TEST_JWT_SECRET,
        upload_dir=tmp_path / "uploads",
        database=DatabaseSettings(sqlite_path=tmp_path / "test.db"),
    )


@pytest.fixture
async def database(settings):
    """Initialized Database for service-level tests."""
    db = Database(settings.database)
    await db.init_schema()
    yield db
    await db.dispose()


@pytest.fixture
async def session(database):
    async with database.session() as s:
        yield s


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    """TestClient with the lifespan (schema creation) running."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin_token(client) -> str:
    register_admin(client)
    return login(client, "admin@example.com", "admin")
