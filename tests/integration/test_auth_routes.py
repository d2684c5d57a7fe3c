"""
Integration tests for authentication routes.
"""
import pytest
from tests.fixtures.factories import UserFactory


@pytest.mark.integration
class TestAuthRoutes:
    """Test cases for login, logout and the current user."""

    def test_login_success(self, client, owner_user, organization, db_session):
        """Test login with valid credentials returns the user and memberships."""
        response = client.post('/auth/login', json={
            'email': 'Owner@ClubMail.com',
            'password': 'testpassword123'
        })

        assert response.status_code == 200
        data = response.get_json()
        assert data['success'] is True
        assert data['user']['email'] == 'owner@clubmail.com'
        assert data['user']['organizations'] == [{
            'id': organization.id, 'name': 'River Club', 'slug': 'river-club', 'role': 'owner'
        }]
        assert owner_user.last_login is not None

    def test_login_wrong_password(self, client, owner_user):
        """Test login with a wrong password is rejected."""
        response = client.post('/auth/login', json={
            'email': 'owner@clubmail.com',
            'password': 'wrongpassword'
        })

        assert response.status_code == 401
        assert response.get_json()['error'] == 'Invalid email or password'

    def test_login_unknown_email(self, client, db_session):
        """Test login for an unknown account gives the same answer as a wrong password."""
        response = client.post('/auth/login', json={
            'email': 'nobody@clubmail.com',
            'password': 'testpassword123'
        })

        assert response.status_code == 401
        assert response.get_json()['error'] == 'Invalid email or password'

    def test_login_validation_errors(self, client, db_session):
        """Test a malformed login request lists the field errors."""
        response = client.post('/auth/login', json={'email': 'not-an-email'})

        assert response.status_code == 400
        data = response.get_json()
        assert data['error'] == 'Validation failed'
        assert 'email' in data['errors']
        assert 'password' in data['errors']

    def test_login_locked_account(self, client, db_session):
        """Test locked accounts cannot log in."""
        UserFactory.create(email='locked@clubmail.com', password='testpassword123', lockout=True)

        response = client.post('/auth/login', json={
            'email': 'locked@clubmail.com',
            'password': 'testpassword123'
        })

        assert response.status_code == 403
        assert 'locked' in response.get_json()['error']

    def test_locked_session_is_logged_out(self, owner_client, owner_user, db_session):
        """Test a user locked while logged in loses the session on the next request."""
        owner_user.lockout = True
        db_session.commit()

        response = owner_client.get('/auth/me')

        assert response.status_code == 401
        assert owner_client.get('/auth/me').status_code == 401

    def test_me(self, owner_client):
        """Test the current user endpoint."""
        response = owner_client.get('/auth/me')

        assert response.status_code == 200
        user = response.get_json()['user']
        assert user['email'] == 'owner@clubmail.com'
        assert user['organizations'][0]['role'] == 'owner'

    def test_me_requires_login(self, client, db_session):
        """Test anonymous requests get a JSON 401."""
        response = client.get('/auth/me')

        assert response.status_code == 401
        assert response.get_json() == {'success': False, 'error': 'Authentication required'}

    def test_logout(self, owner_client):
        """Test logout ends the session."""
        response = owner_client.post('/auth/logout')

        assert response.status_code == 200
        assert response.get_json()['message'] == 'Logged out'
        assert owner_client.get('/auth/me').status_code == 401
