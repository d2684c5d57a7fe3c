"""
Unit tests for audit logging functionality.
"""

import pytest
from unittest.mock import patch, MagicMock
from flask import g
from app.audit import (
    audit_log_create, audit_log_update, audit_log_delete,
    audit_log_authentication, audit_log_security_event,
    audit_log_system_event, audit_log_bulk_operation, audit_log_file_operation,
    get_model_changes
)
from tests.fixtures.factories import AthleteFactory


@pytest.fixture
def mock_logger(db_session):
    with patch('app.audit.setup_audit_logger') as mock_setup:
        logger = MagicMock()
        mock_setup.return_value = logger
        yield logger


@pytest.mark.unit
class TestAuditLogging:
    """Test audit logging functions and their message format."""

    def test_audit_log_create_format(self, app, mock_logger):
        """Test audit_log_create logs model, id, description and details."""
        with app.test_request_context():
            audit_log_create('Athlete', 123, 'Created athlete: Ana', {'level': 'beginner'})

        mock_logger.info.assert_called_once()
        log_message = mock_logger.info.call_args[0][0]

        assert 'CREATE' in log_message
        assert 'Athlete' in log_message
        assert 'ID: 123' in log_message
        assert 'Created athlete: Ana' in log_message
        assert 'level=beginner' in log_message
        assert 'User: SYSTEM' in log_message

    def test_audit_log_update_includes_changes(self, app, mock_logger):
        """Test audit_log_update lists the old values of changed fields."""
        with app.test_request_context():
            audit_log_update('Team', 456, 'Updated team', {'name': 'Old Name', 'status': 'active'})

        log_message = mock_logger.info.call_args[0][0]
        assert 'UPDATE' in log_message
        assert 'ID: 456' in log_message
        assert 'name=Old Name' in log_message
        assert 'status=active' in log_message

    def test_audit_log_delete_format(self, app, mock_logger):
        """Test audit_log_delete logs correct format."""
        with app.test_request_context():
            audit_log_delete('Coach', 789, 'Deleted coach: Luis')

        log_message = mock_logger.info.call_args[0][0]
        assert 'DELETE' in log_message
        assert 'Coach' in log_message
        assert 'ID: 789' in log_message

    def test_audit_log_includes_organization(self, app, mock_logger, organization):
        """Test log lines name the organization the request is scoped to."""
        with app.test_request_context():
            g.organization = organization
            audit_log_create('Equipment', 1, 'Created equipment: Cones')

        log_message = mock_logger.info.call_args[0][0]
        assert f'Org: river-club (ID: {organization.id})' in log_message

    def test_audit_log_authentication_format(self, app, mock_logger):
        """Test audit_log_authentication logs correct format."""
        with app.test_request_context():
            audit_log_authentication('LOGIN', 'coach@clubmail.com', False)

        log_message = mock_logger.info.call_args[0][0]
        assert 'LOGIN' in log_message
        assert 'coach@clubmail.com' in log_message
        assert 'FAILURE' in log_message

    def test_audit_log_security_event_is_warning(self, app, mock_logger):
        """Test security events are logged at warning level."""
        with app.test_request_context():
            audit_log_security_event('ACCESS_DENIED', 'Staff area access attempt')

        mock_logger.warning.assert_called_once()
        log_message = mock_logger.warning.call_args[0][0]
        assert 'SECURITY' in log_message
        assert 'ACCESS_DENIED' in log_message

    def test_audit_log_system_event_format(self, app, mock_logger):
        """Test audit_log_system_event logs correct format."""
        audit_log_system_event('SEED', 'Created organization river-club')

        log_message = mock_logger.info.call_args[0][0]
        assert 'SYSTEM | SEED' in log_message

    def test_audit_log_bulk_operation_format(self, app, mock_logger):
        """Test audit_log_bulk_operation logs the affected count."""
        with app.test_request_context():
            audit_log_bulk_operation('BULK_UPDATE', 'EventRegistration', 25, 'Confirmed registrations')

        log_message = mock_logger.info.call_args[0][0]
        assert 'BULK_UPDATE' in log_message
        assert 'Count: 25' in log_message

    def test_audit_log_file_operation_format(self, app, mock_logger):
        """Test file operations log the stored filename and details."""
        with app.test_request_context():
            audit_log_file_operation('UPLOAD', 'abc123.pdf', 'Uploaded certificate', {'size': 2048})

        log_message = mock_logger.info.call_args[0][0]
        assert 'FILE | UPLOAD' in log_message
        assert 'File: abc123.pdf' in log_message
        assert 'size=2048' in log_message


@pytest.mark.unit
class TestGetModelChanges:
    """Test change detection used by update audit lines."""

    def test_only_changed_fields_are_returned(self, db_session):
        """Test unchanged values are left out and old values are kept."""
        athlete = AthleteFactory.create(name='Ana', level='beginner', phone=None)

        changes = get_model_changes(athlete, {'name': 'Ana', 'level': 'advanced', 'phone': '555'})

        assert changes == {'level': 'beginner', 'phone': None}

    def test_unknown_fields_are_ignored(self, db_session):
        """Test keys that are not model attributes are skipped."""
        athlete = AthleteFactory.create()

        assert get_model_changes(athlete, {'not_a_column': 1}) == {}
