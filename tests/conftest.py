"""
Shared pytest fixtures for the ReqBridge test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - anon_client: Flask test client without a login
    - admin_user / regular_user: Pre-created accounts
    - client: Test client logged in as the admin
    - user_client: Test client logged in as a regular user
    - customer / project / requirement / task: Entities created via the API
"""

import shutil

import pytest

from app import create_app
from app.models import db as _db
from app.services import user_service

ADMIN_PASSWORD = "admin-pass-123"
USER_PASSWORD = "user-pass-123"


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    yield application
    shutil.rmtree(application.config["UPLOAD_FOLDER"], ignore_errors=True)


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()
    app.extensions.pop("huggingface_gateway", None)


@pytest.fixture()
def anon_client(app):
    """Flask test client with no session cookie."""
    return app.test_client()


# ── Users & logged-in clients ────────────────────────────────────────────


@pytest.fixture()
def admin_user():
    return user_service.create_user(
        "admin", ADMIN_PASSWORD, "admin@example.com", role="admin", first_name="Ada",
    )


@pytest.fixture()
def regular_user():
    return user_service.create_user("jane", USER_PASSWORD, "jane@example.com")


def _login(app, username, password):
    c = app.test_client()
    res = c.post("/api/v1/auth/login", json={"username": username, "password": password})
    assert res.status_code == 200, res.get_json()
    return c


@pytest.fixture()
def client(app, admin_user):
    """Test client logged in as the admin user."""
    return _login(app, admin_user.username, ADMIN_PASSWORD)


@pytest.fixture()
def user_client(app, regular_user):
    """Test client logged in as a regular (non-admin) user."""
    return _login(app, regular_user.username, USER_PASSWORD)


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def customer(client):
    res = client.post("/api/v1/customers", json={"name": "Acme Corp", "industry": "Retail"})
    assert res.status_code == 201
    return res.get_json()


@pytest.fixture()
def project(client, customer):
    """Create and return a test Project via the API."""
    res = client.post("/api/v1/projects", json={
        "name": "CRM Migration",
        "description": "Move the service desk to a new CRM",
        "type": "migration",
        "customer_id": customer["id"],
        "source_system": "Legacy Desk",
        "target_system": "Salesforce",
    })
    assert res.status_code == 201
    return res.get_json()


@pytest.fixture()
def make_requirement(client, project):
    """Factory: create a requirement in the test project."""
    def _make(title, **fields):
        res = client.post(
            f"/api/v1/projects/{project['id']}/requirements",
            json={"title": title, **fields},
        )
        assert res.status_code == 201, res.get_json()
        return res.get_json()
    return _make


@pytest.fixture()
def requirement(make_requirement):
    return make_requirement(
        "Case routing",
        description="Incoming cases are routed to the right support queue",
        category="workflow",
        priority="high",
    )


@pytest.fixture()
def task(client, requirement):
    res = client.post(f"/api/v1/requirements/{requirement['id']}/tasks", json={
        "title": "Configure queues",
        "system": "target",
        "priority": "high",
        "estimated_hours": 6,
    })
    assert res.status_code == 201
    return res.get_json()
