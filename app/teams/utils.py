# Roster helpers shared by the teams and waitlist blueprints

import sqlalchemy as sa

from app import db
from app.models import Athlete, Team, TeamMember, TrainingSession, EquipmentAssignment, WaitlistEntry
from app.errors import BadRequestError, ConflictError, NotFoundError


def get_organization_team(organization, team_id):
    """Load a team of the organization or raise NotFoundError"""
    team = db.session.get(Team, team_id)
    if team is None or team.organization_id != organization.id:
        raise NotFoundError('Team not found')
    return team


def get_team_member(team, member_id):
    member = db.session.get(TeamMember, member_id)
    if member is None or member.team_id != team.id:
        raise NotFoundError('Team member not found')
    return member


def check_jersey_number(team, jersey_number, exclude_member_id=None):
    """
    Jersey numbers are unique among the current members of a team.

    Raises:
        ConflictError: if another member already wears the number.
    """
    if jersey_number is None:
        return
    for member in team.members:
        if member.id != exclude_member_id and member.jersey_number == jersey_number:
            raise ConflictError(f'Jersey number {jersey_number} is already taken in this team')


def get_organization_athletes(organization, athlete_ids):
    """
    Load athletes by id, all of which must belong to the organization.

    Raises:
        BadRequestError: listing the ids that are not athletes of the organization.
    """
    athletes = db.session.scalars(
        sa.select(Athlete).where(
            Athlete.organization_id == organization.id,
            Athlete.id.in_(athlete_ids)
        )
    ).all()
    found = {athlete.id: athlete for athlete in athletes}
    missing = [athlete_id for athlete_id in athlete_ids if athlete_id not in found]
    if missing:
        raise BadRequestError(f'Athletes not found in this organization: {", ".join(str(i) for i in missing)}')
    return [found[athlete_id] for athlete_id in athlete_ids]


def add_team_members(team, athletes, role='player', position=None, jersey_number=None):
    """
    Add athletes to a team roster. The caller commits.

    A jersey number only makes sense for a single athlete.

    Returns:
        tuple: (added TeamMember list, ids of athletes already on the team)
    """
    if jersey_number is not None and len(athletes) > 1:
        raise BadRequestError('A jersey number can only be set when adding one athlete')
    check_jersey_number(team, jersey_number)

    added = []
    skipped = []
    for athlete in athletes:
        if team.get_member(athlete.id) is not None:
            skipped.append(athlete.id)
            continue
        member = TeamMember(athlete=athlete, role=role, position=position, jersey_number=jersey_number)
        team.members.append(member)
        added.append(member)
    return added, skipped


def remove_team_links(team):
    """
    Detach sessions and equipment from a team that is being deleted and drop
    its waitlist entries. The caller commits.
    """
    db.session.execute(sa.update(TrainingSession).where(TrainingSession.team_id == team.id).values(team_id=None))
    db.session.execute(
        sa.update(EquipmentAssignment).where(EquipmentAssignment.team_id == team.id).values(team_id=None)
    )
    db.session.execute(sa.delete(WaitlistEntry).where(WaitlistEntry.team_id == team.id))
