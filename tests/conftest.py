# Pytest configuration for the marketplace API tests.
# Forces a local SQLite DB, disables Redis, and wires a fixed JWT secret for deterministic runs.
import os
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

# Test-time environment: local SQLite DB, Redis disabled, predictable JWT secret
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("ESTATEHUB_JWT_SECRET", "test-secret")

import sys
# Ensure the repo root is on sys.path so 'estatehub' resolves when running pytest without an install
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from estatehub.main import app  # noqa: E402
from estatehub.db import Base, engine  # noqa: E402
from estatehub.redis_client import reset_redis  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def _bootstrap_db() -> Iterator[None]:
    """Drop and recreate the schema once per session; drop it again at the end."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _clean_db() -> Iterator[None]:
    """
    Function-level isolation: fresh schema, no cached Redis client and no leftover
    dependency overrides for every test.
    """
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    reset_redis()
    yield
    app.dependency_overrides.clear()


@pytest.fixture()
def client() -> Iterator[TestClient]:
    """FastAPI TestClient bound to the application for HTTP-level tests."""
    with TestClient(app) as c:
        yield c
