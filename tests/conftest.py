"""
Shared pytest fixtures for the Firewood Bank work order engine test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - make_user: factory for worker rows
    - admin / lead / staff / volunteer / driver: pre-created workers
    - household: pre-created approved Client
"""

import json

import pytest
from flask import g

from woodbank import create_app
from woodbank.models import db as _db
from woodbank.models.client import Client
from woodbank.models.user import User


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    app = create_app("testing")

    # The autouse ``session`` fixture holds one app context open for the whole
    # test, and Flask reuses it for test-client requests, so ``g`` would leak
    # between requests. Drop the per-request session cache as production's
    # fresh per-request app context would.
    @app.teardown_request
    def _reset_request_session(exc=None):
        g.pop("session", None)

    return app


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


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def make_user():
    """Insert a worker row and return it."""

    def _make(username, role="volunteer", *, name=None, schedule=None, **kw):
        user = User(
            username=username,
            name=name or username.title(),
            role=role,
            availability_schedule=json.dumps(schedule) if schedule is not None else None,
            **kw,
        )
        _db.session.add(user)
        _db.session.commit()
        return user

    return _make


@pytest.fixture()
def admin(make_user):
    return make_user("admin", "admin", name="Alex Admin")


@pytest.fixture()
def lead(make_user):
    return make_user("lead", "lead", name="Lee Lead", hipaa_certified=True)


@pytest.fixture()
def staff(make_user):
    return make_user("staff", "staff", name="Sam Staff")


@pytest.fixture()
def volunteer(make_user):
    return make_user("vol", "volunteer", name="Val Volunteer")


@pytest.fixture()
def driver(make_user):
    return make_user(
        "dana", "volunteer", name="Dana Driver",
        is_driver=True,
        driver_license_status="valid",
        driver_license_expires_on="2030-01-01",
        availability_notes="Off on tue",
    )


@pytest.fixture()
def household():
    """An approved client with full contact details."""
    c = Client(
        name="Pat Jones",
        telephone="(555) 123-4567",
        email="pat@example.org",
        approval_status="approved",
        physical_address_line1="12 Birch Rd",
        physical_address_city="Hillsboro",
        physical_address_state="NH",
        physical_address_postal_code="03244",
        gate_combo="4321",
        directions="Second left after the barn",
    )
    _db.session.add(c)
    _db.session.commit()
    return c

