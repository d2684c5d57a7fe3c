# Waitlist helpers
#
# Positions are 1-based and counted separately for each reference: every team
# has its own queue and schedule entries share one queue per organization.

import sqlalchemy as sa

from app import db
from app.models import WaitlistEntry, Team, utc_now
from app.errors import BadRequestError, ConflictError, NotFoundError
from app.teams.utils import add_team_members


def get_organization_entry(organization, entry_id):
    entry = db.session.get(WaitlistEntry, entry_id)
    if entry is None or entry.organization_id != organization.id:
        raise NotFoundError('Waitlist entry not found')
    return entry


def _reference_filter(organization_id, reference_type, team_id):
    conditions = [
        WaitlistEntry.organization_id == organization_id,
        WaitlistEntry.reference_type == reference_type,
    ]
    if reference_type == 'team':
        conditions.append(WaitlistEntry.team_id == team_id)
    return sa.and_(*conditions)


def get_next_position(organization_id, reference_type, team_id=None):
    """Next position at the end of the waiting queue of a reference."""
    last = db.session.scalar(
        sa.select(sa.func.max(WaitlistEntry.position)).where(
            _reference_filter(organization_id, reference_type, team_id),
            WaitlistEntry.status == 'waiting'
        )
    )
    return (last or 0) + 1


def renumber_queue(organization_id, reference_type, team_id=None):
    """Close gaps in the waiting queue of a reference, keeping its order."""
    waiting = db.session.scalars(
        sa.select(WaitlistEntry)
        .where(_reference_filter(organization_id, reference_type, team_id), WaitlistEntry.status == 'waiting')
        .order_by(WaitlistEntry.position, WaitlistEntry.created_at, WaitlistEntry.id)
    ).all()
    for position, entry in enumerate(waiting, start=1):
        entry.position = position
    return len(waiting)


def check_team_reference(organization, reference_type, team_id):
    """
    Team entries need a team of the organization; schedule entries carry no team.

    Returns:
        int or None: the team id to store.
    """
    if reference_type != 'team':
        return None
    team = db.session.get(Team, team_id) if team_id else None
    if team is None or team.organization_id != organization.id:
        raise BadRequestError('Team not found')
    return team.id


def find_waiting_entry(organization_id, athlete_id, reference_type, team_id=None):
    return db.session.scalar(
        sa.select(WaitlistEntry).where(
            _reference_filter(organization_id, reference_type, team_id),
            WaitlistEntry.athlete_id == athlete_id,
            WaitlistEntry.status == 'waiting'
        )
    )


def create_entry(organization, athlete, reference_type, team_id=None, **details):
    """
    Put an athlete at the end of a waiting queue. The caller commits.

    Raises:
        ConflictError: if the athlete is already waiting for the same team,
            or already on its roster.
    """
    team_id = check_team_reference(organization, reference_type, team_id)
    if reference_type == 'team':
        if find_waiting_entry(organization.id, athlete.id, reference_type, team_id) is not None:
            raise ConflictError('Athlete is already on the waitlist for this team')
        team = db.session.get(Team, team_id)
        if team.get_member(athlete.id) is not None:
            raise ConflictError('Athlete is already a member of this team')

    entry = WaitlistEntry(
        organization_id=organization.id,
        athlete_id=athlete.id,
        reference_type=reference_type,
        team_id=team_id,
        position=get_next_position(organization.id, reference_type, team_id),
        status='waiting',
        **details
    )
    db.session.add(entry)
    return entry


def _close_entry(entry, status):
    if entry.status != 'waiting':
        raise BadRequestError(f'Waitlist entry is already {entry.status}')
    entry.status = status
    db.session.flush()
    renumber_queue(entry.organization_id, entry.reference_type, entry.team_id)


def cancel_entry(entry):
    """Cancel a waiting entry; the entries behind it move up. The caller commits."""
    _close_entry(entry, 'cancelled')


def assign_entry(entry, role='player'):
    """
    Mark a waiting entry assigned. Team entries add the athlete to the team
    roster. The caller commits.

    Returns:
        TeamMember or None: the roster entry created, if any.
    """
    if entry.status != 'waiting':
        raise BadRequestError(f'Waitlist entry is already {entry.status}')
    member = None
    if entry.reference_type == 'team':
        added, skipped = add_team_members(entry.team, [entry.athlete], role=role)
        member = added[0] if added else None
    _close_entry(entry, 'assigned')
    entry.assigned_at = utc_now()
    return member


def delete_entry(entry):
    """Delete an entry, closing the gap it leaves. The caller commits."""
    reference = (entry.organization_id, entry.reference_type, entry.team_id)
    was_waiting = entry.status == 'waiting'
    db.session.delete(entry)
    db.session.flush()
    if was_waiting:
        renumber_queue(*reference)


def expire_entries(organization, now=None):
    """
    Mark waiting entries past their expiry date as expired and renumber the
    queues they left. The caller commits.

    Returns:
        int: number of entries expired.
    """
    now = now or utc_now()
    expired = db.session.scalars(
        sa.select(WaitlistEntry).where(
            WaitlistEntry.organization_id == organization.id,
            WaitlistEntry.status == 'waiting',
            WaitlistEntry.expires_at.is_not(None),
            WaitlistEntry.expires_at < now
        )
    ).all()
    references = set()
    for entry in expired:
        entry.status = 'expired'
        references.add((entry.organization_id, entry.reference_type, entry.team_id))
    db.session.flush()
    for reference in references:
        renumber_queue(*reference)
    return len(expired)


def count_waiting(organization, reference_type=None, team_id=None):
    query = sa.select(sa.func.count(WaitlistEntry.id)).where(
        WaitlistEntry.organization_id == organization.id,
        WaitlistEntry.status == 'waiting'
    )
    if reference_type:
        query = query.where(WaitlistEntry.reference_type == reference_type)
    if team_id:
        query = query.where(WaitlistEntry.team_id == team_id)
    return db.session.scalar(query) or 0
