"""
Test configuration and fixtures for the Fieldhouse application.
"""
import pytest
import os

# Set environment variables for testing before the config module is imported
os.environ['SECRET_KEY'] = 'test-secret-key-for-testing-only'
os.environ['MAIL_SUPPRESS_SEND'] = 'true'

from app import create_app, db
from tests.fixtures.factories import (
    UserFactory, AdminUserFactory, OrganizationFactory, OrganizationMemberFactory
)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app('testing')

    with app.app_context():
        # Ensure all models are registered with SQLAlchemy
        from app import models

        db.create_all()

        yield app

        db.drop_all()


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def db_session(app):
    """Database session; every table is emptied after the test."""
    with app.app_context():
        yield db.session

        try:
            for table in reversed(db.metadata.sorted_tables):
                db.session.execute(table.delete())
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        finally:
            db.session.remove()


@pytest.fixture
def storage_path(app, tmp_path):
    """Point medical document storage at a per-test directory."""
    original = app.config['MEDICAL_STORAGE_PATH']
    app.config['MEDICAL_STORAGE_PATH'] = str(tmp_path / 'medical')
    yield tmp_path / 'medical'
    app.config['MEDICAL_STORAGE_PATH'] = original


@pytest.fixture
def organization(db_session):
    """Create a test organization."""
    return OrganizationFactory.create(name='River Club', slug='river-club')


@pytest.fixture
def other_organization(db_session):
    """A second organization, for isolation tests."""
    return OrganizationFactory.create(name='Lake Club', slug='lake-club')


def _member(organization, role, email):
    user = UserFactory.create(email=email, password='testpassword123')
    OrganizationMemberFactory.create(organization=organization, user=user, role=role)
    return user


@pytest.fixture
def owner_user(organization):
    return _member(organization, 'owner', 'owner@clubmail.com')


@pytest.fixture
def staff_user(organization):
    return _member(organization, 'staff', 'staff@clubmail.com')


@pytest.fixture
def member_user(organization):
    """Plain member without management rights."""
    return _member(organization, 'member', 'member@clubmail.com')


@pytest.fixture
def outsider_user(db_session):
    """Authenticated user with no membership in the test organization."""
    return UserFactory.create(email='outsider@clubmail.com', password='testpassword123')


@pytest.fixture
def admin_user(db_session):
    """Platform administrator."""
    return AdminUserFactory.create(email='admin@clubmail.com', password='adminpassword123')


def _login(client, user):
    with client.session_transaction() as sess:
        sess['_user_id'] = str(user.id)
        sess['_fresh'] = True
    return client


@pytest.fixture
def owner_client(client, owner_user):
    """Client logged in as the organization owner."""
    return _login(client, owner_user)


@pytest.fixture
def staff_client(client, staff_user):
    """Client logged in as organization staff."""
    return _login(client, staff_user)


@pytest.fixture
def member_client(client, member_user):
    """Client logged in as a plain organization member."""
    return _login(client, member_user)


@pytest.fixture
def outsider_client(client, outsider_user):
    """Client logged in as a user of no organization."""
    return _login(client, outsider_user)


@pytest.fixture
def admin_client(client, admin_user):
    """Client logged in as a platform administrator."""
    return _login(client, admin_user)
