"""
Training session routes: scheduling, participants, attendance and the
complete/cancel transitions.
"""

from datetime import timedelta

import sqlalchemy as sa
from flask import request, current_app, jsonify
from flask_login import login_required, current_user

from app import db
from app.training import bp
from app.training.forms import TrainingSessionForm, AttendanceForm, CancelSessionForm
from app.training.utils import (
    get_organization_session, check_session_open, get_sessions_in_range, set_session_athletes,
    set_session_coaches, record_attendance, get_attendance_sheet, get_attendance_summary,
    complete_session, cancel_session
)
from app.models import TrainingSession, Team
from app.routes import organization_required, MANAGER_ROLES
from app.errors import FieldhouseError, BadRequestError, validation_error_response
from app.forms import parse_id_list
from app.utils import get_json_payload, json_formdata, paginate_query, parse_date_arg
from app.audit import audit_log_create, audit_log_update, audit_log_delete, get_model_changes


SESSION_FIELDS = [
    'title', 'description', 'team_id', 'start_time', 'end_time', 'location', 'status', 'objectives', 'notes'
]


def _check_team(organization, team_id):
    if team_id is None:
        return
    team = db.session.get(Team, team_id)
    if team is None or team.organization_id != organization.id:
        raise BadRequestError('Team not found')


def _parse_ids(data, key):
    try:
        return parse_id_list(data.get(key))
    except ValueError:
        raise BadRequestError(f'{key} must be a list of ids')


@bp.route('')
@login_required
@organization_required()
def list_sessions(organization):
    """
    Paginated session list. Query args: status, team_id, from and to
    (YYYY-MM-DD, on the start time).
    """
    query = sa.select(TrainingSession).where(TrainingSession.organization_id == organization.id)

    status = request.args.get('status')
    if status:
        query = query.where(TrainingSession.status == status)
    team_id = request.args.get('team_id', type=int)
    if team_id:
        query = query.where(TrainingSession.team_id == team_id)
    date_from = parse_date_arg('from')
    if date_from:
        query = query.where(TrainingSession.start_time >= date_from)
    date_to = parse_date_arg('to')
    if date_to:
        query = query.where(TrainingSession.start_time < date_to + timedelta(days=1))

    sessions, pagination = paginate_query(query.order_by(TrainingSession.start_time, TrainingSession.id))
    return jsonify({
        'success': True,
        'training_sessions': [training_session.to_dict() for training_session in sessions],
        'pagination': pagination
    })


@bp.route('/calendar')
@login_required
@organization_required()
def calendar(organization):
    """
    Sessions overlapping a date range, for calendar views.

    Query args: start and end (YYYY-MM-DD, both inclusive), team_id,
    include_cancelled=false.
    """
    start = parse_date_arg('start')
    end = parse_date_arg('end')
    if start is None or end is None:
        raise BadRequestError('start and end are required')

    sessions = get_sessions_in_range(
        organization, start, end + timedelta(days=1),
        team_id=request.args.get('team_id', type=int),
        include_cancelled=request.args.get('include_cancelled') != 'false'
    )
    return jsonify({
        'success': True,
        'start': start.date().isoformat(),
        'end': end.date().isoformat(),
        'training_sessions': [training_session.to_dict(include_participants=True) for training_session in sessions]
    })


@bp.route('', methods=['POST'])
@login_required
@organization_required(*MANAGER_ROLES)
def create_session(organization):
    """
    Schedule a training session. athlete_ids, coach_ids and primary_coach_id
    may be sent to assign participants in the same request.
    """
    data = get_json_payload()
    form = TrainingSessionForm(formdata=json_formdata(
        {field: data.get(field) for field in SESSION_FIELDS}, base={'status': 'pending'}
    ))
    if not form.validate():
        return validation_error_response(form)
    _check_team(organization, form.team_id.data)
    athlete_ids = _parse_ids(data, 'athlete_ids')
    coach_ids = _parse_ids(data, 'coach_ids')

    try:
        training_session = TrainingSession(
            organization_id=organization.id,
            **{field: getattr(form, field).data for field in SESSION_FIELDS}
        )
        db.session.add(training_session)
        if athlete_ids:
            set_session_athletes(training_session, organization, athlete_ids)
        if coach_ids:
            set_session_coaches(training_session, organization, coach_ids, data.get('primary_coach_id'))
        db.session.commit()

        audit_log_create('TrainingSession', training_session.id,
                         f'Scheduled training session: {training_session.title}',
                         {'start_time': training_session.start_time.isoformat()})

        return jsonify({
            'success': True,
            'training_session': training_session.to_dict(include_participants=True)
        }), 201

    except FieldhouseError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error creating training session: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while creating the training session'
        }), 500


@bp.route('/<int:session_id>')
@login_required
@organization_required()
def get_session(organization, session_id):
    """
    Session with participants and attendance summary.
    """
    training_session = get_organization_session(organization, session_id)
    data = training_session.to_dict(include_participants=True)
    data['attendance_summary'] = get_attendance_summary(training_session)
    return jsonify({'success': True, 'training_session': data})


@bp.route('/<int:session_id>', methods=['PATCH'])
@login_required
@organization_required(*MANAGER_ROLES)
def update_session(organization, session_id):
    training_session = get_organization_session(organization, session_id)
    check_session_open(training_session)
    form = TrainingSessionForm(formdata=json_formdata(get_json_payload(), base=training_session.to_dict()))
    if not form.validate():
        return validation_error_response(form)
    _check_team(organization, form.team_id.data)

    try:
        values = {field: getattr(form, field).data for field in SESSION_FIELDS}
        changes = get_model_changes(training_session, values)
        for field, value in values.items():
            setattr(training_session, field, value)
        db.session.commit()

        audit_log_update('TrainingSession', training_session.id,
                         f'Updated training session: {training_session.title}', changes)

        return jsonify({'success': True, 'training_session': training_session.to_dict()})

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating training session {session_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while updating the training session'
        }), 500


@bp.route('/<int:session_id>', methods=['DELETE'])
@login_required
@organization_required(*MANAGER_ROLES)
def delete_session(organization, session_id):
    training_session = get_organization_session(organization, session_id)

    try:
        title = training_session.title
        db.session.delete(training_session)
        db.session.commit()

        audit_log_delete('TrainingSession', session_id, f'Deleted training session: {title}')

        return jsonify({'success': True, 'message': f'Training session {title} deleted'})

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error deleting training session {session_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while deleting the training session'
        }), 500


# =============================================================================
# PARTICIPANTS
# =============================================================================

@bp.route('/<int:session_id>/athletes', methods=['PUT'])
@login_required
@organization_required(*MANAGER_ROLES)
def replace_athletes(organization, session_id):
    """
    Replace the athletes assigned to a session. Body: {"athlete_ids": [...]}
    """
    training_session = get_organization_session(organization, session_id)
    check_session_open(training_session)
    athlete_ids = _parse_ids(get_json_payload(), 'athlete_ids')

    try:
        set_session_athletes(training_session, organization, athlete_ids)
        db.session.commit()

        audit_log_update('TrainingSession', training_session.id,
                         f'Assigned {len(athlete_ids)} athletes to training session: {training_session.title}')

        return jsonify({
            'success': True,
            'training_session': training_session.to_dict(include_participants=True)
        })

    except FieldhouseError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error assigning athletes to training session {session_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while assigning athletes'
        }), 500


@bp.route('/<int:session_id>/coaches', methods=['PUT'])
@login_required
@organization_required(*MANAGER_ROLES)
def replace_coaches(organization, session_id):
    """
    Replace the coaches of a session.

    Body: {"coach_ids": [...], "primary_coach_id": 3}; without a primary coach
    the first one in the list is primary.
    """
    training_session = get_organization_session(organization, session_id)
    check_session_open(training_session)
    data = get_json_payload()
    coach_ids = _parse_ids(data, 'coach_ids')
    primary_coach_id = data.get('primary_coach_id')
    if primary_coach_id is not None and (isinstance(primary_coach_id, bool) or not isinstance(primary_coach_id, int)):
        raise BadRequestError('primary_coach_id must be an id')

    try:
        set_session_coaches(training_session, organization, coach_ids, primary_coach_id)
        db.session.commit()

        audit_log_update('TrainingSession', training_session.id,
                         f'Assigned {len(coach_ids)} coaches to training session: {training_session.title}')

        return jsonify({
            'success': True,
            'training_session': training_session.to_dict(include_participants=True)
        })

    except FieldhouseError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error assigning coaches to training session {session_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while assigning coaches'
        }), 500


# =============================================================================
# ATTENDANCE
# =============================================================================

@bp.route('/<int:session_id>/attendance')
@login_required
@organization_required(*MANAGER_ROLES)
def get_attendance(organization, session_id):
    training_session = get_organization_session(organization, session_id)
    return jsonify({
        'success': True,
        'attendance': get_attendance_sheet(training_session),
        'summary': get_attendance_summary(training_session)
    })


@bp.route('/<int:session_id>/attendance', methods=['POST'])
@login_required
@organization_required(*MANAGER_ROLES)
def update_attendance(organization, session_id):
    """
    Record attendance. Body: {"records": [{"athlete_id": 1, "status": "present", "notes": "..."}]}

    Attendance can still be recorded on a completed session, not on a
    cancelled one.
    """
    training_session = get_organization_session(organization, session_id)
    if training_session.status == 'cancelled':
        raise BadRequestError('Training session is cancelled')
    records = get_json_payload().get('records')
    if not isinstance(records, list) or not records:
        raise BadRequestError('records must be a non-empty list')

    forms = []
    for index, record in enumerate(records):
        if not isinstance(record, dict):
            raise BadRequestError(f'Record {index} must be an object')
        form = AttendanceForm(formdata=json_formdata(record, base={'status': 'present'}))
        if not form.validate():
            return jsonify({
                'success': False,
                'error': f'Invalid attendance record {index}',
                'errors': form.errors
            }), 400
        forms.append(form)

    try:
        for form in forms:
            record_attendance(
                training_session, organization,
                athlete_id=form.athlete_id.data,
                status=form.status.data,
                notes=form.notes.data,
                recorded_by_id=current_user.id
            )
        db.session.commit()

        audit_log_update('TrainingSession', training_session.id,
                         f'Recorded attendance for {len(forms)} athletes: {training_session.title}')

        return jsonify({
            'success': True,
            'attendance': get_attendance_sheet(training_session),
            'summary': get_attendance_summary(training_session)
        })

    except FieldhouseError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error recording attendance for training session {session_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while recording attendance'
        }), 500


# =============================================================================
# STATUS TRANSITIONS
# =============================================================================

@bp.route('/<int:session_id>/complete', methods=['POST'])
@login_required
@organization_required(*MANAGER_ROLES)
def complete(organization, session_id):
    training_session = get_organization_session(organization, session_id)
    complete_session(training_session)
    db.session.commit()

    audit_log_update('TrainingSession', training_session.id,
                     f'Completed training session: {training_session.title}', {'status': 'completed'})

    return jsonify({'success': True, 'training_session': training_session.to_dict()})


@bp.route('/<int:session_id>/cancel', methods=['POST'])
@login_required
@organization_required(*MANAGER_ROLES)
def cancel(organization, session_id):
    training_session = get_organization_session(organization, session_id)
    form = CancelSessionForm(formdata=json_formdata(request.get_json(silent=True) or {}))
    if not form.validate():
        return validation_error_response(form)

    cancel_session(training_session, form.reason.data or None)
    db.session.commit()

    audit_log_update('TrainingSession', training_session.id,
                     f'Cancelled training session: {training_session.title}',
                     {'reason': training_session.cancellation_reason})

    return jsonify({'success': True, 'training_session': training_session.to_dict()})
