"""
Pytest configuration and fixtures

Tests run against an in-memory SQLite database. The schema is created fresh
for every test and dropped afterwards, so nothing persists between tests.

Every session shares the one SQLite connection, so fixtures COMMIT their
setup: a rollback inside the code under test (a rejected duplicate result,
a failed request) must only discard that code's own pending work.
"""
import os
import sys
from datetime import date, timedelta
from uuid import uuid4

# Configuration is read at import time; set it before anything imports core.config.
os.environ.setdefault("SECRET_KEY", "test-secret-key-track-portal-0123456789abcdef")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ANTHROPIC_API_KEY"] = ""

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from core.database import Base, SessionLocal, engine
from core.security import create_access_token, get_password_hash
from models import Meet, Principal, Profile


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session():
    session = SessionLocal()
    yield session
    session.rollback()
    session.close()


def _make_account(db, role="athlete", full_name=None, gender="male", email=None, password=None):
    principal = Principal(
        email=email or f"{role}_{uuid4().hex[:10]}@example.com",
        password_hash=get_password_hash(password) if password else None,
    )
    db.add(principal)
    db.flush()
    profile = Profile(
        user_id=principal.id,
        full_name=full_name or f"Test {role.replace('_', ' ').title()}",
        role=role,
        gender=gender if role == "athlete" else None,
        email=principal.email,
        phone="555-0100",
    )
    db.add(profile)
    db.commit()
    return profile


@pytest.fixture
def make_account(db_session):
    """Factory: make_account(role, full_name=..., gender=..., password=...) -> committed Profile."""
    def factory(role="athlete", **kwargs):
        return _make_account(db_session, role=role, **kwargs)
    return factory


@pytest.fixture
def coach(db_session):
    return _make_account(db_session, role="coach", full_name="Casey Coach")


@pytest.fixture
def assistant_coach(db_session):
    return _make_account(db_session, role="assistant_coach", full_name="Alex Assistant")


@pytest.fixture
def athlete(db_session):
    return _make_account(db_session, role="athlete", full_name="Jordan Runner", gender="male")


@pytest.fixture
def other_athlete(db_session):
    return _make_account(db_session, role="athlete", full_name="Riley Sprinter", gender="female")


@pytest.fixture
def meet(db_session):
    m = Meet(
        name="County Invitational",
        location="Central High Stadium",
        meet_date=date.today() + timedelta(days=7),
    )
    db_session.add(m)
    db_session.commit()
    return m


@pytest.fixture
def auth_headers():
    """Factory: auth_headers(profile) -> Authorization header for that account."""
    def factory(profile):
        token = create_access_token({"sub": str(profile.user_id)})
        return {"Authorization": f"Bearer {token}"}
    return factory
