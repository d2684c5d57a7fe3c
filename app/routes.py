# Utility functions and decorators shared by the blueprint routes
# - Organization scoping and role checks: organization_required
# - Organization-scoped record lookup: get_organization_record

from functools import wraps
import sqlalchemy as sa
from flask import current_app, g, jsonify
from flask_login import current_user
from app import db
from app.models import Organization
from app.errors import NotFoundError
from app.audit import audit_log_security_event


# Roles allowed to change organization data
MANAGER_ROLES = ('owner', 'admin', 'staff')
# Roles allowed to change organization settings and membership
ADMIN_ROLES = ('owner', 'admin')


def organization_required(*required_roles):
    """
    Decorator resolving the <org_slug> URL segment to an organization.

    The view receives the organization as the ``organization`` keyword
    argument; it is also stored on ``g`` for audit logging. The current user
    must be a member of the organization and, when roles are given, hold one
    of them. Platform admins bypass membership and role checks.

    Usage: @organization_required(*MANAGER_ROLES)
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return current_app.login_manager.unauthorized()

            org_slug = kwargs.pop('org_slug')
            organization = db.session.scalar(
                sa.select(Organization).where(Organization.slug == org_slug)
            )
            if organization is None:
                return jsonify({
                    'success': False,
                    'error': 'Organization not found'
                }), 404

            g.organization = organization
            g.membership = current_user.get_membership(organization.id)

            # Admin users bypass role checks
            if current_user.is_admin:
                current_app.logger.info(f"Admin user {current_user.email} bypassing role check for {organization.slug}")
                return f(*args, organization=organization, **kwargs)

            if g.membership is None:
                audit_log_security_event('ACCESS_DENIED',
                                         f'User {current_user.email} is not a member of organization {organization.slug}')
                # Same response as a missing organization so slugs cannot be probed
                return jsonify({
                    'success': False,
                    'error': 'Organization not found'
                }), 404

            if required_roles and g.membership.role not in required_roles:
                current_app.logger.warning(f"Access denied for user {current_user.email} with role {g.membership.role} to resource requiring {required_roles}")
                audit_log_security_event('ACCESS_DENIED',
                                         f'User {current_user.email} with role {g.membership.role} attempted to access resource requiring roles {required_roles}')
                return jsonify({
                    'success': False,
                    'error': f'Access denied. Required roles: {", ".join(required_roles)}'
                }), 403

            return f(*args, organization=organization, **kwargs)
        return decorated_function
    return decorator


def get_organization_record(model, record_id, organization, label=None):
    """
    Load a record by primary key, scoped to an organization.

    Raises NotFoundError when the record does not exist or belongs to another
    organization.
    """
    record = db.session.get(model, record_id)
    if record is None or record.organization_id != organization.id:
        raise NotFoundError(f'{label or model.__name__} not found')
    return record
