"""
Coach management routes.
"""

import sqlalchemy as sa
from flask import request, current_app, jsonify

from flask_login import login_required

from app import db
from app.coaches import bp
from app.coaches.forms import CoachForm
from app.models import Coach, TrainingSessionCoach, EquipmentAssignment
from app.routes import organization_required, get_organization_record, MANAGER_ROLES, ADMIN_ROLES
from app.errors import validation_error_response
from app.utils import get_json_payload, json_formdata, paginate_query
from app.audit import audit_log_create, audit_log_update, audit_log_delete, get_model_changes


COACH_FIELDS = ['name', 'email', 'phone', 'specialty', 'sport', 'bio', 'status']


def _coach_values(form):
    values = {field: getattr(form, field).data for field in COACH_FIELDS}
    if values['email']:
        values['email'] = values['email'].lower()
    return values


@bp.route('')
@login_required
@organization_required(*MANAGER_ROLES)
def list_coaches(organization):
    """
    Paginated coach list. Query args: search (name, email, specialty), status.
    """
    query = sa.select(Coach).where(Coach.organization_id == organization.id)

    status = request.args.get('status')
    if status:
        query = query.where(Coach.status == status)

    search = request.args.get('search')
    if search:
        pattern = f'%{search.strip()}%'
        query = query.where(sa.or_(
            Coach.name.ilike(pattern),
            Coach.email.ilike(pattern),
            Coach.specialty.ilike(pattern)
        ))

    coaches, pagination = paginate_query(query.order_by(Coach.name, Coach.id))
    return jsonify({
        'success': True,
        'coaches': [coach.to_dict() for coach in coaches],
        'pagination': pagination
    })


@bp.route('', methods=['POST'])
@login_required
@organization_required(*MANAGER_ROLES)
def create_coach(organization):
    """
    Create a coach.
    """
    form = CoachForm(formdata=json_formdata(get_json_payload(), base={'sport': 'general', 'status': 'active'}))
    if not form.validate():
        return validation_error_response(form)

    try:
        coach = Coach(organization_id=organization.id, **_coach_values(form))
        db.session.add(coach)
        db.session.commit()

        audit_log_create('Coach', coach.id, f'Created coach: {coach.name}')

        return jsonify({'success': True, 'coach': coach.to_dict()}), 201

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error creating coach: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while creating the coach'
        }), 500


@bp.route('/<int:coach_id>')
@login_required
@organization_required(*MANAGER_ROLES)
def get_coach(organization, coach_id):
    coach = get_organization_record(Coach, coach_id, organization)
    return jsonify({'success': True, 'coach': coach.to_dict()})


@bp.route('/<int:coach_id>', methods=['PATCH'])
@login_required
@organization_required(*MANAGER_ROLES)
def update_coach(organization, coach_id):
    """
    Update a coach. Only the fields sent are changed.
    """
    coach = get_organization_record(Coach, coach_id, organization)
    form = CoachForm(formdata=json_formdata(get_json_payload(), base=coach.to_dict()))
    if not form.validate():
        return validation_error_response(form)

    try:
        values = _coach_values(form)
        changes = get_model_changes(coach, values)
        for field, value in values.items():
            setattr(coach, field, value)
        db.session.commit()

        audit_log_update('Coach', coach.id, f'Updated coach: {coach.name}', changes)

        return jsonify({'success': True, 'coach': coach.to_dict()})

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating coach {coach_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while updating the coach'
        }), 500


@bp.route('/<int:coach_id>', methods=['DELETE'])
@login_required
@organization_required(*ADMIN_ROLES)
def delete_coach(organization, coach_id):
    """
    Delete a coach. Training session assignments are removed and equipment
    assignments keep their history without the coach.
    """
    coach = get_organization_record(Coach, coach_id, organization)

    try:
        name = coach.name
        db.session.execute(sa.delete(TrainingSessionCoach).where(TrainingSessionCoach.coach_id == coach.id))
        db.session.execute(
            sa.update(EquipmentAssignment)
            .where(EquipmentAssignment.coach_id == coach.id)
            .values(coach_id=None)
        )
        db.session.delete(coach)
        db.session.commit()

        audit_log_delete('Coach', coach_id, f'Deleted coach: {name}')

        return jsonify({'success': True, 'message': f'Coach {name} deleted'})

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error deleting coach {coach_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while deleting the coach'
        }), 500
