# Training session helpers: participants, attendance and status changes

import sqlalchemy as sa

from app import db
from app.models import (
    TrainingSession, TrainingSessionAthlete, TrainingSessionCoach, Attendance, Coach, utc_now
)
from app.errors import BadRequestError, NotFoundError
from app.teams.utils import get_organization_athletes

# Attendance statuses that record a check-in time
CHECKED_IN_STATUSES = ('present', 'late')


def get_organization_session(organization, session_id):
    training_session = db.session.get(TrainingSession, session_id)
    if training_session is None or training_session.organization_id != organization.id:
        raise NotFoundError('Training session not found')
    return training_session


def check_session_open(training_session):
    """Completed and cancelled sessions are read only."""
    if training_session.status in ('completed', 'cancelled'):
        raise BadRequestError(f'Training session is {training_session.status}')


def get_sessions_in_range(organization, start, end, team_id=None, include_cancelled=True):
    """
    Sessions overlapping the [start, end) range, ordered by start time.
    """
    if end <= start:
        raise BadRequestError('The end of the range must be after its start')
    query = sa.select(TrainingSession).where(
        TrainingSession.organization_id == organization.id,
        TrainingSession.start_time < end,
        TrainingSession.end_time > start
    )
    if team_id:
        query = query.where(TrainingSession.team_id == team_id)
    if not include_cancelled:
        query = query.where(TrainingSession.status != 'cancelled')
    return db.session.scalars(query.order_by(TrainingSession.start_time, TrainingSession.id)).all()


def set_session_athletes(training_session, organization, athlete_ids):
    """
    Replace the athletes assigned to a session. The caller commits.
    """
    athletes = get_organization_athletes(organization, athlete_ids) if athlete_ids else []
    wanted = {athlete.id for athlete in athletes}
    for link in list(training_session.athletes):
        if link.athlete_id not in wanted:
            training_session.athletes.remove(link)
    current = {link.athlete_id for link in training_session.athletes}
    for athlete in athletes:
        if athlete.id not in current:
            training_session.athletes.append(TrainingSessionAthlete(athlete=athlete))
    return athletes


def set_session_coaches(training_session, organization, coach_ids, primary_coach_id=None):
    """
    Replace the coaches of a session. Exactly one coach is primary: the one
    given, or the first in the list. The caller commits.
    """
    if primary_coach_id is not None and primary_coach_id not in coach_ids:
        raise BadRequestError('The primary coach must be one of the assigned coaches')

    coaches = db.session.scalars(
        sa.select(Coach).where(Coach.organization_id == organization.id, Coach.id.in_(coach_ids))
    ).all() if coach_ids else []
    found = {coach.id: coach for coach in coaches}
    missing = [coach_id for coach_id in coach_ids if coach_id not in found]
    if missing:
        raise BadRequestError(f'Coaches not found in this organization: {", ".join(str(i) for i in missing)}')

    if coach_ids and primary_coach_id is None:
        primary_coach_id = coach_ids[0]

    training_session.coaches.clear()
    db.session.flush()
    for coach_id in coach_ids:
        training_session.coaches.append(
            TrainingSessionCoach(coach=found[coach_id], is_primary=coach_id == primary_coach_id)
        )
    return [found[coach_id] for coach_id in coach_ids]


def record_attendance(training_session, organization, athlete_id, status, notes=None, recorded_by_id=None):
    """
    Create or update the attendance record of one athlete. Athletes not yet
    assigned to the session are added to it. The caller commits.
    """
    athlete = get_organization_athletes(organization, [athlete_id])[0]
    if not any(link.athlete_id == athlete.id for link in training_session.athletes):
        training_session.athletes.append(TrainingSessionAthlete(athlete=athlete))

    record = next((item for item in training_session.attendance if item.athlete_id == athlete.id), None)
    if record is None:
        record = Attendance(athlete=athlete)
        training_session.attendance.append(record)

    record.status = status
    record.notes = notes
    record.recorded_by_id = recorded_by_id
    if status in CHECKED_IN_STATUSES:
        if record.check_in_time is None:
            record.check_in_time = utc_now()
    else:
        record.check_in_time = None
    return record


def get_attendance_sheet(training_session):
    """
    Attendance for every assigned athlete; athletes without a record are
    listed as pending.
    """
    records = {record.athlete_id: record for record in training_session.attendance}
    sheet = [record.to_dict() for record in training_session.attendance]
    for link in training_session.athletes:
        if link.athlete_id not in records:
            sheet.append({
                'id': None,
                'session_id': training_session.id,
                'athlete_id': link.athlete_id,
                'athlete_name': link.athlete.name,
                'status': 'pending',
                'check_in_time': None,
                'notes': None,
            })
    return sorted(sheet, key=lambda item: (item['athlete_name'] or '', item['athlete_id']))


def get_attendance_summary(training_session):
    summary = {'total': len(training_session.athletes)}
    for item in get_attendance_sheet(training_session):
        summary[item['status']] = summary.get(item['status'], 0) + 1
    return summary


def complete_session(training_session):
    check_session_open(training_session)
    training_session.status = 'completed'
    training_session.completed_at = utc_now()


def cancel_session(training_session, reason=None):
    check_session_open(training_session)
    training_session.status = 'cancelled'
    training_session.cancelled_at = utc_now()
    training_session.cancellation_reason = reason
