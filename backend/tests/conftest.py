"""Pytest configuration and fixtures."""

import os
import secrets
import tempfile
from datetime import datetime, timedelta, timezone

import pytest

# Generate a unique test secret for this test run to prevent token forgery
_TEST_JWT_SECRET = f"test-only-{secrets.token_urlsafe(32)}"

ADMIN_EMAIL = "admin@inkwell.test"
ADMIN_PASSWORD = "admin-password-123"

os.environ.setdefault("JWT_SECRET_KEY", _TEST_JWT_SECRET)
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["SUPERADMIN_EMAIL"] = ADMIN_EMAIL
os.environ["SUPERADMIN_PASSWORD"] = ADMIN_PASSWORD
os.environ.setdefault("INKWELL_DATA_DIR", tempfile.mkdtemp(prefix="inkwell-test-"))

from app.main import app  # noqa: E402
from app.rate_limit import limiter  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def future(days: float = 10) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


@pytest.fixture(autouse=True)
def no_rate_limits():
    """Rate limits are exercised separately; keep them out of route tests."""
    limiter.enabled = False
    yield
    limiter.enabled = True


@pytest.fixture
def api():
    """Test client with the lifespan run, so every test gets fresh in-memory stores."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def ctx(api):
    return api.app.state.context


@pytest.fixture
def admin_headers(api):
    resp = api.post("/api/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert resp.status_code == 200, resp.text
    return bearer(resp.json()["access_token"])


@pytest.fixture
def signup(api):
    """Register a client and return auth headers."""

    def _signup(email: str = "casey@example.com", password: str = "client-password", name: str = "Casey"):
        resp = api.post("/api/signup", json={"email": email, "password": password, "name": name})
        assert resp.status_code == 201, resp.text
        return bearer(resp.json()["access_token"])

    return _signup


@pytest.fixture
def client_headers(signup):
    return signup()


@pytest.fixture
def add_writer(api, admin_headers):
    """Provision a writer through the admin API and return auth headers."""

    def _add(email: str = "wren@example.com", password: str = "writer-password"):
        resp = api.post(
            "/api/admin/writers",
            json={"email": email, "password": password, "name": email.split("@")[0]},
            headers=admin_headers,
        )
        assert resp.status_code == 201, resp.text
        login = api.post("/api/login", json={"email": email, "password": password})
        assert login.status_code == 200, login.text
        return bearer(login.json()["access_token"])

    return _add


@pytest.fixture
def writer_headers(add_writer):
    return add_writer()


@pytest.fixture
def post_job(api, client_headers):
    """Post a job through the API and return its JSON."""
    counter = {"n": 0}

    def _post(headers=None, files=None, **overrides):
        counter["n"] += 1
        data = {
            "description": f"Literature review on sleep research #{counter['n']}",
            "budget": "90.00",
            "deadline": future(10),
            "assignment_type": "Literature Review",
            "quantity": "3",
            "language": "English (US)",
        }
        data.update(overrides)
        resp = api.post("/jobs", data=data, files=files, headers=headers or client_headers)
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _post
