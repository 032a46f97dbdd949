"""Shared pytest configuration: test environment and database fixtures."""

import os

os.environ["ENV"] = "test"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app import models  # noqa: E402,F401
from app.db import Base, SessionLocal, engine, get_db  # noqa: E402

pytest_plugins = [
    "tests.fixtures.thread_fixtures",
    "tests.fixtures.transport_fixtures",
]


@pytest.fixture(scope="function")
def db():
    """Fresh schema per test; the session is closed and tables dropped afterwards."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db):
    """TestClient bound to the test database session."""
    from app.main import app

    app.dependency_overrides[get_db] = lambda: db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
