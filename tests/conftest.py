"""Pytest fixtures for rating and enrollment workflow tests."""

import pytest

from benefits_enrollment.contracts.interfaces import Actor, Role
from benefits_enrollment.database.postgres import PostgresDB
from benefits_enrollment.utils.config_loader import load_rating_config
from benefits_enrollment.workflow.progress_controller import ProgressController


def _make_actor(db, username, role=Role.EMPLOYER.value, broker_id=None):
    user = db.create_user(username=username, role=role, broker_id=broker_id)
    return Actor(id=user.id, role=user.role, broker_id=user.broker_id)


@pytest.fixture
def make_actor():
    """Register a user in a store and return it as an Actor."""
    return _make_actor


@pytest.fixture
def db():
    """In-memory PostgresDB stub for tests."""
    return PostgresDB()


@pytest.fixture(scope="session")
def rating_config():
    return load_rating_config()


@pytest.fixture
def controller(db):
    return ProgressController(db)


@pytest.fixture
def employer(db):
    """Employer that signed up through broker-1."""
    return _make_actor(db, "employer@example.com", broker_id="broker-1")


@pytest.fixture
def other_employer(db):
    return _make_actor(db, "someone-else@example.com")


@pytest.fixture
def admin(db):
    return _make_actor(db, "admin@example.com", role=Role.ADMIN.value)


@pytest.fixture
def broker_staff(db):
    return _make_actor(db, "staff@broker-1.example.com", role=Role.BROKER_STAFF.value, broker_id="broker-1")


@pytest.fixture
def company_and_application(controller, employer):
    return controller.create_company(employer, "Acme Widgets", zip_code="94102")
