# tests/conftest.py

"""
Shared fixtures for the Marketplace Service tests.

Tests run against an in-memory SQLite database. Every test gets freshly
created tables and a session that the app's `get_db` dependency is overridden
to yield, so requests and assertions see the same data.
"""

import logging
import os

# Must be set before the marketplace package reads its configuration
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SEED_DATABASE"] = "false"
os.environ["DB_CONNECT_RETRIES"] = "1"
os.environ.pop("OPENAI_API_KEY", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from marketplace.auth import get_current_user_id  # noqa: E402
from marketplace.db import Base, SessionLocal, engine, get_db  # noqa: E402
from marketplace.main import app  # noqa: E402

# Suppress noisy logs from SQLAlchemy/FastAPI during tests for cleaner output
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("marketplace").setLevel(logging.WARNING)

TEST_USER_ID = "user-123"


@pytest.fixture(scope="function", autouse=True)
def db_session_for_test():
    """
    Provides a database session on freshly created tables for each test and
    overrides the app's `get_db` dependency to yield it. The tables are
    dropped again afterwards.
    """
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield db
    finally:
        db.close()
        app.dependency_overrides.pop(get_db, None)
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="module")  # Client is created once per test module
def client():
    """
    Provides a TestClient for making HTTP requests to the FastAPI application.
    The TestClient automatically manages the app's lifespan events (startup/shutdown).
    """
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def signed_in():
    """Makes every request look like it comes from TEST_USER_ID's session."""
    app.dependency_overrides[get_current_user_id] = lambda: TEST_USER_ID
    yield TEST_USER_ID
    app.dependency_overrides.pop(get_current_user_id, None)


@pytest.fixture
def product_factory(client: TestClient):
    """Creates products through the API; keyword arguments override the defaults."""
    counter = {"n": 0}

    def create(**overrides):
        counter["n"] += 1
        data = {
            "name": f"Test Product {counter['n']}",
            "slug": f"test-product-{counter['n']}",
            "description": "A product created for testing",
        }
        data.update(overrides)
        response = client.post("/api/products", json=data)
        assert response.status_code == 201, response.text
        return response.json()

    return create
