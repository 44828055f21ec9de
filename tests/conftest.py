"""Pytest configuration and shared fixtures."""

import os
import uuid

import pytest
from fastapi.testclient import TestClient
from pymongo import MongoClient
from pymongo.errors import PyMongoError

TEST_DB_URL = os.getenv("MONGODB_TEST_URL", "mongodb://localhost:27017")
TEST_DB_NAME = "notekeeper_test"

# Settings are read at import time, so they must be in place before api is imported
os.environ["MONGODB_URL"] = TEST_DB_URL
os.environ["MONGODB_DB_NAME"] = TEST_DB_NAME
os.environ.setdefault("MONGODB_TIMEOUT_MS", "2000")
os.environ.setdefault("OTEL_ENABLE_TRACES", "false")
os.environ.setdefault("OTEL_ENABLE_METRICS", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")


@pytest.fixture(scope="session")
def mongo_available():
    """Skip API tests when MongoDB is unreachable; start from an empty database."""
    client = MongoClient(TEST_DB_URL, serverSelectionTimeoutMS=1000)
    try:
        client.admin.command("ping")
    except PyMongoError as e:
        client.close()
        pytest.skip(f"MongoDB not reachable at {TEST_DB_URL}: {e}")

    client.drop_database(TEST_DB_NAME)
    yield client[TEST_DB_NAME]
    client.close()


@pytest.fixture
def api_client(mongo_available):
    """FastAPI test client fixture with lifespan context."""
    from api.app import app

    with TestClient(app) as client:
        yield client


def unique(prefix: str) -> str:
    return f"{prefix}{uuid.uuid4().hex[:8]}"


@pytest.fixture
def sample_user_data():
    """Signup payload with a unique email and user name per call."""

    def build(**overrides):
        name = unique("user")
        data = {
            "user_name": name,
            "first_name": "Test",
            "last_name": "User",
            "email": f"{name}@example.com",
            "password": "secret123",
            "phone": ["555-0100"],
            "institution": "Test University",
        }
        data.update(overrides)
        return data

    return build


@pytest.fixture
def make_user(api_client, sample_user_data):
    """
    Sign up a user with the given roles.

    Returns a dict with ``id``, ``user``, ``token`` and ready-made
    ``headers``.
    """

    def create(*roles: str):
        payload = sample_user_data(roles=list(roles) or ["Contributor"])
        response = api_client.post("/api/auth/signup", json=payload)
        assert response.status_code == 201, response.text
        body = response.json()
        return {
            "id": body["user"]["id"],
            "user": body["user"],
            "token": body["token"],
            "headers": {"Authorization": f"Bearer {body['token']}"},
            "password": payload["password"],
        }

    return create


@pytest.fixture
def sample_note_data():
    """Sample note data for testing."""
    return {
        "title": "Test Note",
        "content": "This is a test note.",
        "type": "text",
    }
