"""
Staff routes for event registrations.
"""

import sqlalchemy as sa
from flask import request, current_app, jsonify
from flask_login import login_required, current_user

from app import db
from app.registrations import bp
from app.models import EventRegistration
from app.routes import organization_required, MANAGER_ROLES
from app.errors import FieldhouseError, BadRequestError, NotFoundError, validation_error_response
from app.forms import parse_id_list
from app.events.utils import get_organization_event, check_age_category
from app.registrations.forms import (
    RegistrationUpdateForm, RegistrationStatusForm, CancelRegistrationForm, RegisterAthletesForm
)
from app.registrations.utils import (
    change_registration_status, cancel_registration, confirm_from_waitlist,
    register_existing_athletes, STAFF_SETTABLE_STATUSES
)
from app.utils import get_json_payload, json_formdata, paginate_query
from app.audit import audit_log_create, audit_log_update, audit_log_bulk_operation, get_model_changes


def _get_registration(event, registration_id):
    registration = db.session.get(EventRegistration, registration_id)
    if registration is None or registration.event_id != event.id:
        raise NotFoundError('Registration not found')
    return registration


def _event_counters(event):
    return {
        'current_registrations': event.current_registrations,
        'spots_available': event.spots_available,
        'waitlist_count': event.get_waitlist_count(),
    }


@bp.route('')
@login_required
@organization_required(*MANAGER_ROLES)
def list_registrations(organization, event_id):
    """
    List registrations of an event with optional status and search filters.
    """
    event = get_organization_event(organization, event_id)
    query = sa.select(EventRegistration).where(EventRegistration.event_id == event.id)

    status = request.args.get('status')
    if status:
        query = query.where(EventRegistration.status == status)
    search = request.args.get('search', '').strip()
    if search:
        query = query.where(sa.or_(
            EventRegistration.registrant_name.ilike(f'%{search}%'),
            EventRegistration.registrant_email.ilike(f'%{search}%')
        ))

    registrations, pagination = paginate_query(query.order_by(EventRegistration.registration_number))
    return jsonify({
        'success': True,
        'registrations': [registration.to_dict() for registration in registrations],
        'pagination': pagination,
        'event': _event_counters(event)
    })


@bp.route('/<int:registration_id>')
@login_required
@organization_required(*MANAGER_ROLES)
def get_registration(organization, event_id, registration_id):
    """
    Get a single registration.
    """
    event = get_organization_event(organization, event_id)
    registration = _get_registration(event, registration_id)
    return jsonify({'success': True, 'registration': registration.to_dict()})


@bp.route('/<int:registration_id>', methods=['PATCH'])
@login_required
@organization_required(*MANAGER_ROLES)
def update_registration(organization, event_id, registration_id):
    """
    Update registrant contact data and notes.
    """
    event = get_organization_event(organization, event_id)
    registration = _get_registration(event, registration_id)
    form = RegistrationUpdateForm(formdata=json_formdata(get_json_payload(), base=registration.to_dict()))
    if not form.validate():
        return validation_error_response(form)

    try:
        changes = get_model_changes(registration, form.data)
        form.populate_obj(registration)
        db.session.commit()

        audit_log_update('EventRegistration', registration.id,
                         f'Updated registration #{registration.registration_number} for event: {event.name}', changes)

        return jsonify({'success': True, 'registration': registration.to_dict()})

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating registration {registration_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while updating the registration'
        }), 500


@bp.route('/<int:registration_id>/status', methods=['POST'])
@login_required
@organization_required(*MANAGER_ROLES)
def update_registration_status(organization, event_id, registration_id):
    """
    Set the status of a registration, adjusting the event seat counters.
    """
    event = get_organization_event(organization, event_id)
    registration = _get_registration(event, registration_id)
    form = RegistrationStatusForm(formdata=json_formdata(get_json_payload()))
    if not form.validate():
        return validation_error_response(form)

    try:
        old_status = registration.status
        changed = change_registration_status(registration, form.status.data)
        db.session.commit()

        if changed:
            audit_log_update('EventRegistration', registration.id,
                             f'Changed registration #{registration.registration_number} status to {registration.status}',
                             {'status': old_status})

        return jsonify({
            'success': True,
            'registration': registration.to_dict(),
            'event': _event_counters(event)
        })

    except FieldhouseError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating status of registration {registration_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while updating the registration status'
        }), 500


@bp.route('/<int:registration_id>/cancel', methods=['POST'])
@login_required
@organization_required(*MANAGER_ROLES)
def cancel_registration_route(organization, event_id, registration_id):
    """
    Cancel a registration. A seat it held is released and waitlist
    positions behind it move up.
    """
    event = get_organization_event(organization, event_id)
    registration = _get_registration(event, registration_id)
    data = request.get_json(silent=True) or {}
    form = CancelRegistrationForm(formdata=json_formdata(data))
    if not form.validate():
        return validation_error_response(form)

    try:
        old_status = registration.status
        cancel_registration(registration, form.reason.data)
        db.session.commit()

        audit_log_update('EventRegistration', registration.id,
                         f'Cancelled registration #{registration.registration_number} for event: {event.name}',
                         {'status': old_status})

        return jsonify({
            'success': True,
            'registration': registration.to_dict(),
            'event': _event_counters(event)
        })

    except FieldhouseError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error cancelling registration {registration_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while cancelling the registration'
        }), 500


@bp.route('/<int:registration_id>/confirm-from-waitlist', methods=['POST'])
@login_required
@organization_required(*MANAGER_ROLES)
def confirm_from_waitlist_route(organization, event_id, registration_id):
    """
    Promote a waitlisted registration to pending payment.
    """
    event = get_organization_event(organization, event_id)
    registration = _get_registration(event, registration_id)
    try:
        confirm_from_waitlist(registration)
        db.session.commit()

        audit_log_update('EventRegistration', registration.id,
                         f'Promoted registration #{registration.registration_number} from waitlist for event: {event.name}',
                         {'status': 'waitlist'})

        return jsonify({
            'success': True,
            'registration': registration.to_dict(),
            'event': _event_counters(event)
        })

    except FieldhouseError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error promoting registration {registration_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while confirming the registration'
        }), 500


@bp.route('/bulk-status', methods=['POST'])
@login_required
@organization_required(*MANAGER_ROLES)
def bulk_update_status(organization, event_id):
    """
    Set the same status on several registrations of an event.

    Body: {"registration_ids": [1, 2], "status": "confirmed"}
    """
    event = get_organization_event(organization, event_id)
    data = get_json_payload()
    status = data.get('status')
    if status not in STAFF_SETTABLE_STATUSES:
        raise BadRequestError(f'Status must be one of: {", ".join(STAFF_SETTABLE_STATUSES)}')
    try:
        registration_ids = parse_id_list(data.get('registration_ids'))
    except ValueError:
        raise BadRequestError('registration_ids must be a list of ids')
    if not registration_ids:
        raise BadRequestError('No registrations selected')

    registrations = db.session.scalars(
        sa.select(EventRegistration).where(
            EventRegistration.event_id == event.id,
            EventRegistration.id.in_(registration_ids)
        ).order_by(EventRegistration.registration_number)
    ).all()
    if len(registrations) != len(registration_ids):
        raise NotFoundError('One or more registrations were not found')

    try:
        updated = 0
        for registration in registrations:
            if change_registration_status(registration, status):
                updated += 1
        db.session.commit()

        audit_log_bulk_operation('BULK_UPDATE', 'EventRegistration', updated,
                                 f'Set status {status} on registrations of event: {event.name}')

        return jsonify({
            'success': True,
            'updated': updated,
            'event': _event_counters(event)
        })

    except FieldhouseError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error in bulk status update for event {event_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while updating the registrations'
        }), 500


@bp.route('/athletes', methods=['POST'])
@login_required
@organization_required(*MANAGER_ROLES)
def register_athletes(organization, event_id):
    """
    Register existing organization athletes for an event.

    Body: {"athlete_ids": [1, 2], "age_category_id": 3}
    """
    event = get_organization_event(organization, event_id)
    data = get_json_payload()
    form = RegisterAthletesForm(formdata=json_formdata({'age_category_id': data.get('age_category_id')}))
    if not form.validate():
        return validation_error_response(form)
    try:
        athlete_ids = parse_id_list(data.get('athlete_ids'))
    except ValueError:
        raise BadRequestError('athlete_ids must be a list of ids')
    if not athlete_ids:
        raise BadRequestError('No athletes selected')
    check_age_category(organization, form.age_category_id.data)

    registered, skipped = register_existing_athletes(
        event, athlete_ids,
        age_category_id=form.age_category_id.data,
        registered_by_id=current_user.id
    )

    for registration in registered:
        audit_log_create('EventRegistration', registration.id,
                         f'Registered athlete {registration.athlete_id} for event: {event.name}',
                         {'status': registration.status, 'price': registration.price})

    return jsonify({
        'success': True,
        'registrations': [registration.to_dict() for registration in registered],
        'skipped': skipped,
        'event': _event_counters(event)
    }), 201 if registered else 200
