"""
Organization and membership routes.
"""

import sqlalchemy as sa
from flask import current_app, jsonify
from flask_login import login_required, current_user

from app import db
from app.organizations import bp
from app.organizations.forms import OrganizationForm, MemberForm, MemberRoleForm
from app.models import Organization, OrganizationMember, User
from app.routes import organization_required, ADMIN_ROLES
from app.errors import FieldhouseError, BadRequestError, ConflictError, ForbiddenError, NotFoundError, validation_error_response
from app.utils import get_json_payload, json_formdata, unique_slug
from app.audit import audit_log_create, audit_log_update, audit_log_delete, get_model_changes


ORGANIZATION_FIELDS = ['name', 'email', 'phone', 'website', 'address', 'currency']


def _count_owners(organization_id):
    return db.session.scalar(
        sa.select(sa.func.count(OrganizationMember.id)).where(
            OrganizationMember.organization_id == organization_id,
            OrganizationMember.role == 'owner'
        )
    ) or 0


def _get_member(organization, member_id):
    member = db.session.get(OrganizationMember, member_id)
    if member is None or member.organization_id != organization.id:
        raise NotFoundError('Member not found')
    return member


def _check_owner_change(member, new_role=None):
    """
    Only owners (or platform admins) may grant or take away the owner role,
    and an organization always keeps at least one owner.
    """
    touches_owner = member.role == 'owner' or new_role == 'owner'
    if not touches_owner:
        return
    if not current_user.is_admin:
        membership = current_user.get_membership(member.organization_id)
        if membership is None or membership.role != 'owner':
            raise ForbiddenError('Only owners can change owner memberships')
    if member.role == 'owner' and new_role != 'owner' and _count_owners(member.organization_id) <= 1:
        raise BadRequestError('An organization must keep at least one owner')


@bp.route('')
@login_required
def list_organizations():
    """
    Organizations the current user belongs to.
    """
    return jsonify({
        'success': True,
        'organizations': [
            dict(membership.organization.to_dict(), role=membership.role)
            for membership in current_user.memberships
        ]
    })


@bp.route('', methods=['POST'])
@login_required
def create_organization():
    """
    Create an organization; the creator becomes its owner.
    """
    data = get_json_payload()
    form = OrganizationForm(formdata=json_formdata(data, base={'currency': current_app.config['DEFAULT_CURRENCY']}))
    if not form.validate():
        return validation_error_response(form)

    try:
        organization = Organization(
            slug=unique_slug(Organization, form.name.data),
            **{field: getattr(form, field).data for field in ORGANIZATION_FIELDS}
        )
        organization.currency = organization.currency.upper()
        organization.members.append(OrganizationMember(user_id=current_user.id, role='owner'))
        db.session.add(organization)
        db.session.commit()

        audit_log_create('Organization', organization.id, f'Created organization: {organization.name}',
                         {'slug': organization.slug})

        return jsonify({'success': True, 'organization': organization.to_dict()}), 201

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error creating organization: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while creating the organization'
        }), 500


@bp.route('/<org_slug>')
@login_required
@organization_required()
def get_organization(organization):
    """
    Organization details.
    """
    data = organization.to_dict()
    data['member_count'] = len(organization.members)
    return jsonify({'success': True, 'organization': data})


@bp.route('/<org_slug>', methods=['PATCH'])
@login_required
@organization_required(*ADMIN_ROLES)
def update_organization(organization):
    """
    Update organization settings. The slug never changes.
    """
    form = OrganizationForm(formdata=json_formdata(get_json_payload(), base=organization.to_dict()))
    if not form.validate():
        return validation_error_response(form)

    try:
        values = {field: getattr(form, field).data for field in ORGANIZATION_FIELDS}
        values['currency'] = values['currency'].upper()
        changes = get_model_changes(organization, values)
        for field, value in values.items():
            setattr(organization, field, value)
        db.session.commit()

        audit_log_update('Organization', organization.id, f'Updated organization: {organization.name}', changes)

        return jsonify({'success': True, 'organization': organization.to_dict()})

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating organization {organization.id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while updating the organization'
        }), 500


@bp.route('/<org_slug>/members')
@login_required
@organization_required()
def list_members(organization):
    """
    Staff and members of the organization.
    """
    members = db.session.scalars(
        sa.select(OrganizationMember)
        .join(User, OrganizationMember.user_id == User.id)
        .where(OrganizationMember.organization_id == organization.id)
        .order_by(User.name)
    ).all()
    return jsonify({'success': True, 'members': [member.to_dict() for member in members]})


@bp.route('/<org_slug>/members', methods=['POST'])
@login_required
@organization_required(*ADMIN_ROLES)
def add_member(organization):
    """
    Add an existing user account to the organization with a role.
    """
    form = MemberForm(formdata=json_formdata(get_json_payload()))
    if not form.validate():
        return validation_error_response(form)

    try:
        email = form.email.data.strip().lower()
        user = db.session.scalar(sa.select(User).where(User.email == email))
        if user is None:
            raise NotFoundError('No user account with this email')
        if user.get_membership(organization.id) is not None:
            raise ConflictError('User is already a member of this organization')

        member = OrganizationMember(organization_id=organization.id, user_id=user.id, role=form.role.data)
        _check_owner_change(member, form.role.data)
        db.session.add(member)
        db.session.commit()

        audit_log_create('OrganizationMember', member.id, f'Added {user.email} as {member.role}')

        return jsonify({'success': True, 'member': member.to_dict()}), 201

    except FieldhouseError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error adding member to organization {organization.id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while adding the member'
        }), 500


@bp.route('/<org_slug>/members/<int:member_id>', methods=['PATCH'])
@login_required
@organization_required(*ADMIN_ROLES)
def update_member(organization, member_id):
    """
    Change the role of a member.
    """
    member = _get_member(organization, member_id)
    form = MemberRoleForm(formdata=json_formdata(get_json_payload()))
    if not form.validate():
        return validation_error_response(form)

    try:
        old_role = member.role
        _check_owner_change(member, form.role.data)
        member.role = form.role.data
        db.session.commit()

        audit_log_update('OrganizationMember', member.id,
                         f'Changed role of {member.user.email} to {member.role}', {'role': old_role})

        return jsonify({'success': True, 'member': member.to_dict()})

    except FieldhouseError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating member {member_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while updating the member'
        }), 500


@bp.route('/<org_slug>/members/<int:member_id>', methods=['DELETE'])
@login_required
@organization_required(*ADMIN_ROLES)
def remove_member(organization, member_id):
    """
    Remove a member from the organization.
    """
    member = _get_member(organization, member_id)
    _check_owner_change(member)

    try:
        email = member.user.email
        db.session.delete(member)
        db.session.commit()

        audit_log_delete('OrganizationMember', member_id, f'Removed {email} from organization')

        return jsonify({'success': True, 'message': f'{email} removed from organization'})

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error removing member {member_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while removing the member'
        }), 500
