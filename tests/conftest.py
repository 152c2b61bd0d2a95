"""
Shared pytest fixtures for the workflow engine test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - admin / reviewer / staff / client_actor / system_actor: service-level actors
    - auth_headers: bearer-token headers for HTTP tests
    - artifact: a valid artifact reference factory
"""

import pytest

from docflow import create_app
from docflow.models import db as _db
from docflow.services.authorization import SYSTEM_ACTOR, Actor
from docflow.services.jwt_service import generate_access_token


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


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


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Actors ───────────────────────────────────────────────────────────────


@pytest.fixture()
def admin():
    return Actor.with_roles("admin-1", "admin")


@pytest.fixture()
def reviewer():
    return Actor.with_roles("reviewer-1", "reviewer")


@pytest.fixture()
def staff():
    return Actor.with_roles("staff-1", "staff")


@pytest.fixture()
def client_actor():
    return Actor.with_roles("client-1", "client")


@pytest.fixture()
def system_actor():
    return SYSTEM_ACTOR


@pytest.fixture()
def auth_headers():
    """Return a factory: auth_headers("u-1", "admin") → {"Authorization": "Bearer …"}."""

    def _make(actor_id, *roles, permissions=None):
        token = generate_access_token(actor_id, list(roles), permissions)
        return {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture()
def artifact():
    """Return a factory for artifact references with distinct paths."""

    def _make(name="report.pdf", size=1024):
        return {
            "file_path": f"uploads/{name}",
            "original_name": name,
            "file_size": size,
            "mime_type": "application/pdf",
        }

    return _make
