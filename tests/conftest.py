# tests/conftest.py

"""
Pytest fixtures - shared app client, users and sample files.

The database, upload directory and rate limits are pointed at throwaway
values before the app is imported.
"""

import os
import tempfile
import uuid

_TMP_DIR = tempfile.mkdtemp(prefix="peerscore-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_DIR}/test.db"
os.environ["UPLOAD_DIR"] = os.path.join(_TMP_DIR, "uploads")
os.environ["RATE_LIMIT_PER_IP"] = "1000/minute"
os.environ["AUTH_RATE_LIMIT"] = "1000/minute"

import pytest
from fastapi.testclient import TestClient

from peerscore.main import app


# =============================================================================
# FASTAPI TEST CLIENT FIXTURES
# =============================================================================

@pytest.fixture(scope="session")
def client():
    """Anonymous TestClient sharing one app lifespan for the whole run."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def anon_client(client):
    """The shared client with any session cookie cleared."""
    client.cookies.clear()
    return client


@pytest.fixture
def user_credentials():
    """Fresh credentials so tests never collide on the unique email."""
    suffix = uuid.uuid4().hex[:8]
    return {
        "username": f"user_{suffix}",
        "email": f"user_{suffix}@example.com",
        "password": "s3cret-pass",
    }


@pytest.fixture
def logged_in_client(anon_client, user_credentials):
    """Client signed up (and therefore logged in) as a new user."""
    response = anon_client.post("/signup", data=user_credentials)
    assert response.status_code == 200
    return anon_client


# =============================================================================
# SAMPLE TEXT FIXTURES
# =============================================================================

@pytest.fixture
def rich_description():
    return (
        "# Overview\n\n"
        "The goal of this project is a clear, well documented task planner. "
        "It explains each step of the workflow with examples.\n\n"
        "- Novel idea: an interactive timeline inspired by board games.\n"
        "- The backend is a Python API server with a SQL database and a cache.\n"
        "- Deployment uses Docker on a cloud host and handles 200 requests per second.\n\n"
        "The architecture diagram shows how `schedule()` talks to the scheduler module."
    )
