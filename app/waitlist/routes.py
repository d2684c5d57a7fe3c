"""
Organization waitlist routes.
"""

import sqlalchemy as sa
from flask import request, current_app, jsonify
from flask_login import login_required

from app import db
from app.waitlist import bp
from app.waitlist.forms import WaitlistEntryForm
from app.waitlist.utils import (
    get_organization_entry, create_entry, cancel_entry, assign_entry, delete_entry,
    expire_entries, count_waiting
)
from app.models import WaitlistEntry
from app.routes import organization_required, MANAGER_ROLES
from app.errors import FieldhouseError, BadRequestError, validation_error_response
from app.teams.utils import get_organization_athletes
from app.utils import get_json_payload, json_formdata, paginate_query
from app.audit import audit_log_create, audit_log_update, audit_log_delete, audit_log_bulk_operation, get_model_changes


DETAIL_FIELDS = ['preferred_start_time', 'preferred_end_time', 'priority', 'notes', 'expires_at']


def _entry_details(form):
    details = {field: getattr(form, field).data for field in DETAIL_FIELDS}
    details['preferred_days'] = ','.join(form.preferred_days.data or []) or None
    return details


@bp.route('')
@login_required
@organization_required(*MANAGER_ROLES)
def list_entries(organization):
    """
    Paginated waitlist in queue order.

    Query args: status (default waiting, "all" for every status),
    reference_type, team_id, athlete_id, priority.
    """
    query = sa.select(WaitlistEntry).where(WaitlistEntry.organization_id == organization.id)

    status = request.args.get('status', 'waiting')
    if status != 'all':
        query = query.where(WaitlistEntry.status == status)
    reference_type = request.args.get('reference_type')
    if reference_type:
        query = query.where(WaitlistEntry.reference_type == reference_type)
    for arg, column in (('team_id', WaitlistEntry.team_id), ('athlete_id', WaitlistEntry.athlete_id)):
        value = request.args.get(arg, type=int)
        if value:
            query = query.where(column == value)
    priority = request.args.get('priority')
    if priority:
        query = query.where(WaitlistEntry.priority == priority)

    entries, pagination = paginate_query(query.order_by(
        WaitlistEntry.reference_type, WaitlistEntry.team_id, WaitlistEntry.position, WaitlistEntry.id
    ))
    return jsonify({
        'success': True,
        'entries': [entry.to_dict() for entry in entries],
        'pagination': pagination
    })


@bp.route('/count')
@login_required
@organization_required(*MANAGER_ROLES)
def get_count(organization):
    """
    Number of waiting entries, optionally for a reference type or team.
    """
    return jsonify({
        'success': True,
        'count': count_waiting(
            organization,
            reference_type=request.args.get('reference_type'),
            team_id=request.args.get('team_id', type=int)
        )
    })


@bp.route('', methods=['POST'])
@login_required
@organization_required(*MANAGER_ROLES)
def create(organization):
    """
    Add an athlete to the end of a team or schedule waitlist.
    """
    form = WaitlistEntryForm(formdata=json_formdata(get_json_payload(), base={
        'reference_type': 'team', 'priority': 'medium'
    }))
    if not form.validate():
        return validation_error_response(form)

    try:
        athlete = get_organization_athletes(organization, [form.athlete_id.data])[0]
        entry = create_entry(
            organization, athlete,
            reference_type=form.reference_type.data,
            team_id=form.team_id.data,
            **_entry_details(form)
        )
        db.session.commit()

        audit_log_create('WaitlistEntry', entry.id,
                         f'Added {athlete.name} to the {entry.reference_type} waitlist',
                         {'team_id': entry.team_id, 'position': entry.position})

        return jsonify({'success': True, 'entry': entry.to_dict()}), 201

    except FieldhouseError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error creating waitlist entry: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while adding to the waitlist'
        }), 500


@bp.route('/<int:entry_id>')
@login_required
@organization_required(*MANAGER_ROLES)
def get_entry(organization, entry_id):
    entry = get_organization_entry(organization, entry_id)
    return jsonify({'success': True, 'entry': entry.to_dict()})


@bp.route('/<int:entry_id>', methods=['PATCH'])
@login_required
@organization_required(*MANAGER_ROLES)
def update_entry(organization, entry_id):
    """
    Update priority, preferences, notes or expiry. The athlete, the reference
    and the position do not change.
    """
    entry = get_organization_entry(organization, entry_id)
    data = get_json_payload()
    for locked in ('athlete_id', 'reference_type', 'team_id', 'position', 'status'):
        data.pop(locked, None)
    form = WaitlistEntryForm(formdata=json_formdata(data, base=entry.to_dict()))
    if not form.validate():
        return validation_error_response(form)

    try:
        values = _entry_details(form)
        changes = get_model_changes(entry, values)
        for field, value in values.items():
            setattr(entry, field, value)
        db.session.commit()

        audit_log_update('WaitlistEntry', entry.id, f'Updated waitlist entry of {entry.athlete.name}', changes)

        return jsonify({'success': True, 'entry': entry.to_dict()})

    except FieldhouseError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating waitlist entry {entry_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while updating the waitlist entry'
        }), 500


@bp.route('/<int:entry_id>/cancel', methods=['POST'])
@login_required
@organization_required(*MANAGER_ROLES)
def cancel(organization, entry_id):
    entry = get_organization_entry(organization, entry_id)

    try:
        cancel_entry(entry)
        db.session.commit()

        audit_log_update('WaitlistEntry', entry.id, f'Cancelled waitlist entry of {entry.athlete.name}',
                         {'status': 'waiting'})

        return jsonify({'success': True, 'entry': entry.to_dict()})

    except FieldhouseError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error cancelling waitlist entry {entry_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while cancelling the waitlist entry'
        }), 500


@bp.route('/<int:entry_id>/assign', methods=['POST'])
@login_required
@organization_required(*MANAGER_ROLES)
def assign(organization, entry_id):
    """
    Give the athlete the place they were waiting for. Team entries add the
    athlete to the roster (optional body: {"role": "player"}).
    """
    entry = get_organization_entry(organization, entry_id)
    role = (request.get_json(silent=True) or {}).get('role', 'player')
    if role not in current_app.config['TEAM_MEMBER_ROLES'].values():
        raise BadRequestError('Invalid team role')

    try:
        member = assign_entry(entry, role=role)
        db.session.commit()

        audit_log_update('WaitlistEntry', entry.id, f'Assigned waitlist entry of {entry.athlete.name}',
                         {'status': 'waiting'})
        if member is not None:
            audit_log_create('TeamMember', member.id,
                             f'Added {entry.athlete.name} to team {entry.team.name} from the waitlist')

        return jsonify({
            'success': True,
            'entry': entry.to_dict(),
            'team_member': member.to_dict() if member is not None else None
        })

    except FieldhouseError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error assigning waitlist entry {entry_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while assigning the waitlist entry'
        }), 500


@bp.route('/<int:entry_id>', methods=['DELETE'])
@login_required
@organization_required(*MANAGER_ROLES)
def delete(organization, entry_id):
    entry = get_organization_entry(organization, entry_id)

    try:
        athlete_name = entry.athlete.name
        delete_entry(entry)
        db.session.commit()

        audit_log_delete('WaitlistEntry', entry_id, f'Deleted waitlist entry of {athlete_name}')

        return jsonify({'success': True, 'message': 'Waitlist entry deleted'})

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error deleting waitlist entry {entry_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while deleting the waitlist entry'
        }), 500


@bp.route('/expire', methods=['POST'])
@login_required
@organization_required(*MANAGER_ROLES)
def expire(organization):
    """
    Expire waiting entries whose expiry date has passed.
    """
    try:
        count = expire_entries(organization)
        db.session.commit()

        if count:
            audit_log_bulk_operation('BULK_UPDATE', 'WaitlistEntry', count, 'Expired waitlist entries')

        return jsonify({'success': True, 'expired': count})

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error expiring waitlist entries: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while expiring waitlist entries'
        }), 500
