"""
Audit Logging System for Database Operations

This module provides audit logging for all database changes in Fieldhouse.
Every database modification (create, update, delete) is logged with timestamp,
user, organization and operation details.

Usage:
    from app.audit import audit_log_create, audit_log_update, audit_log_delete

    # For new records
    audit_log_create('Athlete', athlete.id, f'Created athlete: {athlete.name}')

    # For updates
    audit_log_update('Athlete', athlete.id, f'Updated athlete: {athlete.name}', {'level': 'beginner'})

    # For deletions
    audit_log_delete('Athlete', athlete_id, f'Deleted athlete: {name}')
"""

import logging
import os
from typing import Optional, Dict, Any, Union
from flask import current_app, g, has_request_context
from flask_login import current_user


# Configure audit logger
def setup_audit_logger():
    """Setup and configure the audit logger with proper formatting and file handling."""
    audit_logger = logging.getLogger('audit')
    audit_logger.setLevel(logging.INFO)

    # Prevent duplicate log entries
    if audit_logger.hasHandlers():
        return audit_logger

    log_dir = os.path.join(current_app.instance_path, 'logs')
    os.makedirs(log_dir, exist_ok=True)

    log_file = os.path.join(log_dir, 'audit.log')
    file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
    file_handler.setLevel(logging.INFO)

    formatter = logging.Formatter(
        '%(asctime)s | %(levelname)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    file_handler.setFormatter(formatter)

    audit_logger.addHandler(file_handler)

    # Prevent propagation to root logger
    audit_logger.propagate = False

    return audit_logger


def get_current_user_info() -> str:
    """Get current user information for audit logging."""
    if has_request_context() and current_user.is_authenticated:
        return f"{current_user.email} (ID: {current_user.id})"
    return "SYSTEM"


def get_current_organization_info() -> str:
    """Get the organization the current request is scoped to."""
    organization = g.get('organization') if has_request_context() else None
    if organization is not None:
        return f"{organization.slug} (ID: {organization.id})"
    return "-"


def _format_details(changes: Optional[Dict[str, Any]]) -> str:
    if not changes:
        return ""
    details = ", ".join(f"{key}={value}" for key, value in sorted(changes.items()))
    return f" | {details}"


def audit_log_create(model_name: str, record_id: Union[int, str], description: str,
                     additional_data: Optional[Dict[str, Any]] = None):
    """
    Log database record creation.

    Args:
        model_name: Name of the database model (e.g., 'Athlete', 'SportsEvent')
        record_id: ID of the created record
        description: Human-readable description of the operation
        additional_data: Optional additional data to include in the log
    """
    logger = setup_audit_logger()
    log_message = (f"CREATE | {model_name} | ID: {record_id} | User: {get_current_user_info()} | "
                   f"Org: {get_current_organization_info()} | {description}{_format_details(additional_data)}")
    logger.info(log_message)


def audit_log_update(model_name: str, record_id: Union[int, str], description: str,
                     changes: Optional[Dict[str, Any]] = None,
                     additional_data: Optional[Dict[str, Any]] = None):
    """
    Log database record updates.

    Args:
        model_name: Name of the database model
        record_id: ID of the updated record
        description: Human-readable description of the operation
        changes: Optional dictionary of field changes {'field': 'old_value'}
        additional_data: Optional additional data to include in the log
    """
    logger = setup_audit_logger()
    log_message = (f"UPDATE | {model_name} | ID: {record_id} | User: {get_current_user_info()} | "
                   f"Org: {get_current_organization_info()} | {description}{_format_details(changes)}")
    logger.info(log_message)


def audit_log_delete(model_name: str, record_id: Union[int, str], description: str,
                     additional_data: Optional[Dict[str, Any]] = None):
    """
    Log database record deletion.

    Args:
        model_name: Name of the database model
        record_id: ID of the deleted record
        description: Human-readable description of the operation
        additional_data: Optional additional data to include in the log
    """
    logger = setup_audit_logger()
    log_message = (f"DELETE | {model_name} | ID: {record_id} | User: {get_current_user_info()} | "
                   f"Org: {get_current_organization_info()} | {description}")
    logger.info(log_message)


def audit_log_bulk_operation(operation: str, model_name: str, count: int, description: str,
                             additional_data: Optional[Dict[str, Any]] = None):
    """
    Log bulk database operations (e.g., bulk status updates).

    Args:
        operation: Type of operation ('BULK_CREATE', 'BULK_UPDATE', 'BULK_DELETE')
        model_name: Name of the database model
        count: Number of records affected
        description: Human-readable description of the operation
        additional_data: Optional additional data to include in the log
    """
    logger = setup_audit_logger()
    log_message = (f"{operation} | {model_name} | Count: {count} | User: {get_current_user_info()} | "
                   f"Org: {get_current_organization_info()} | {description}")
    logger.info(log_message)


def audit_log_authentication(event_type: str, username: str, success: bool,
                             additional_data: Optional[Dict[str, Any]] = None):
    """
    Log authentication events.

    Args:
        event_type: Type of authentication event ('LOGIN', 'LOGOUT')
        username: Email of the account involved in the event
        success: Whether the operation was successful
        additional_data: Optional additional data to include in the log
    """
    logger = setup_audit_logger()
    status = "SUCCESS" if success else "FAILURE"
    logger.info(f"AUTH | {event_type} | {status} | User: {username}")


def audit_log_security_event(event_type: str, description: str,
                             additional_data: Optional[Dict[str, Any]] = None):
    """
    Log security-related events.

    Args:
        event_type: Type of security event ('ACCESS_DENIED', 'INVALID_TOKEN', 'RATE_LIMITED')
        description: Human-readable description of the event
        additional_data: Optional additional data to include in the log
    """
    logger = setup_audit_logger()
    log_message = (f"SECURITY | {event_type} | User: {get_current_user_info()} | "
                   f"Org: {get_current_organization_info()} | {description}")
    logger.warning(log_message)


def audit_log_system_event(event_type: str, description: str,
                           additional_data: Optional[Dict[str, Any]] = None):
    """
    Log system-level events.

    Args:
        event_type: Type of system event ('STARTUP', 'SEED', 'MIGRATION')
        description: Human-readable description of the event
        additional_data: Optional additional data to include in the log
    """
    logger = setup_audit_logger()
    logger.info(f"SYSTEM | {event_type} | {description}")


def audit_log_file_operation(operation: str, filename: str, description: str,
                             additional_data: Optional[Dict[str, Any]] = None):
    """
    Log file operations (uploads, deletions, downloads).

    Args:
        operation: Type of file operation ('UPLOAD', 'DELETE', 'DOWNLOAD')
        filename: Name of the file involved
        description: Human-readable description of the operation
        additional_data: Optional additional data to include in the log
    """
    logger = setup_audit_logger()
    log_message = (f"FILE | {operation} | File: {filename} | User: {get_current_user_info()} | "
                   f"Org: {get_current_organization_info()} | {description}{_format_details(additional_data)}")
    logger.info(log_message)


def get_model_changes(model_instance, form_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Helper function to detect changes between model instance and form data.

    Args:
        model_instance: The database model instance
        form_data: Dictionary of new values from form

    Returns:
        Dictionary of changes with old values
    """
    changes = {}

    for field, new_value in form_data.items():
        if hasattr(model_instance, field):
            old_value = getattr(model_instance, field)
            if old_value != new_value:
                changes[field] = str(old_value) if old_value is not None else None

    return changes
