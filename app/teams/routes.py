"""
Team management routes.

Teams belong to an organization and hold a roster of its athletes.
"""

import sqlalchemy as sa
from flask import request, current_app, jsonify
from flask_login import login_required

from app import db
from app.teams import bp
from app.teams.forms import TeamForm, TeamMemberForm
from app.teams.utils import (
    get_organization_team, get_team_member, check_jersey_number, get_organization_athletes,
    add_team_members, remove_team_links
)
from app.models import Team
from app.routes import organization_required, MANAGER_ROLES, ADMIN_ROLES
from app.errors import FieldhouseError, BadRequestError, validation_error_response
from app.events.utils import check_age_category
from app.forms import parse_id_list
from app.utils import get_json_payload, json_formdata, paginate_query
from app.audit import audit_log_create, audit_log_update, audit_log_delete, get_model_changes


TEAM_FIELDS = [
    'name', 'description', 'sport', 'age_category_id', 'status', 'primary_color', 'secondary_color', 'home_venue'
]

MEMBER_FIELDS = ['jersey_number', 'position', 'role']


def _team_values(form):
    values = {field: getattr(form, field).data for field in TEAM_FIELDS}
    for field in ('primary_color', 'secondary_color'):
        if values[field]:
            values[field] = values[field].upper()
    return values


@bp.route('')
@login_required
@organization_required()
def list_teams(organization):
    """
    Paginated team list. Query args: search, status, sport, age_category_id.
    """
    query = sa.select(Team).where(Team.organization_id == organization.id)

    status = request.args.get('status')
    if status:
        query = query.where(Team.status == status)
    sport = request.args.get('sport')
    if sport:
        query = query.where(Team.sport == sport)
    age_category_id = request.args.get('age_category_id', type=int)
    if age_category_id:
        query = query.where(Team.age_category_id == age_category_id)
    search = request.args.get('search', '').strip()
    if search:
        query = query.where(Team.name.ilike(f'%{search}%'))

    teams, pagination = paginate_query(query.order_by(Team.name, Team.id))
    return jsonify({
        'success': True,
        'teams': [team.to_dict() for team in teams],
        'pagination': pagination
    })


@bp.route('', methods=['POST'])
@login_required
@organization_required(*MANAGER_ROLES)
def create_team(organization):
    """
    Create a team.
    """
    form = TeamForm(formdata=json_formdata(get_json_payload(), base={'sport': 'general', 'status': 'active'}))
    if not form.validate():
        return validation_error_response(form)
    check_age_category(organization, form.age_category_id.data)

    try:
        team = Team(organization_id=organization.id, **_team_values(form))
        db.session.add(team)
        db.session.commit()

        audit_log_create('Team', team.id, f'Created team: {team.name}')

        return jsonify({'success': True, 'team': team.to_dict()}), 201

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error creating team: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while creating the team'
        }), 500


@bp.route('/<int:team_id>')
@login_required
@organization_required()
def get_team(organization, team_id):
    """
    Team with its roster.
    """
    team = get_organization_team(organization, team_id)
    return jsonify({'success': True, 'team': team.to_dict(include_members=True)})


@bp.route('/<int:team_id>', methods=['PATCH'])
@login_required
@organization_required(*MANAGER_ROLES)
def update_team(organization, team_id):
    team = get_organization_team(organization, team_id)
    form = TeamForm(formdata=json_formdata(get_json_payload(), base=team.to_dict()))
    if not form.validate():
        return validation_error_response(form)
    check_age_category(organization, form.age_category_id.data)

    try:
        values = _team_values(form)
        changes = get_model_changes(team, values)
        for field, value in values.items():
            setattr(team, field, value)
        db.session.commit()

        audit_log_update('Team', team.id, f'Updated team: {team.name}', changes)

        return jsonify({'success': True, 'team': team.to_dict()})

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating team {team_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while updating the team'
        }), 500


@bp.route('/<int:team_id>', methods=['DELETE'])
@login_required
@organization_required(*ADMIN_ROLES)
def delete_team(organization, team_id):
    """
    Delete a team with its roster and waitlist entries.
    """
    team = get_organization_team(organization, team_id)

    try:
        name = team.name
        member_count = len(team.members)
        remove_team_links(team)
        db.session.delete(team)
        db.session.commit()

        audit_log_delete('Team', team_id, f'Deleted team: {name}', {'members': member_count})

        return jsonify({'success': True, 'message': f'Team {name} deleted'})

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error deleting team {team_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while deleting the team'
        }), 500


# =============================================================================
# ROSTER
# =============================================================================

@bp.route('/<int:team_id>/members', methods=['POST'])
@login_required
@organization_required(*MANAGER_ROLES)
def add_members(organization, team_id):
    """
    Add athletes to the roster. Athletes already on the team are skipped.

    Body: {"athlete_ids": [1, 2], "role": "player", "position": "...", "jersey_number": 10}
    """
    team = get_organization_team(organization, team_id)
    data = get_json_payload()
    form = TeamMemberForm(formdata=json_formdata(
        {field: data.get(field) for field in MEMBER_FIELDS}, base={'role': 'player'}
    ))
    if not form.validate():
        return validation_error_response(form)
    try:
        athlete_ids = parse_id_list(data.get('athlete_ids'))
    except ValueError:
        raise BadRequestError('athlete_ids must be a list of ids')
    if not athlete_ids:
        raise BadRequestError('No athletes selected')

    try:
        athletes = get_organization_athletes(organization, athlete_ids)
        added, skipped = add_team_members(
            team, athletes,
            role=form.role.data,
            position=form.position.data,
            jersey_number=form.jersey_number.data
        )
        db.session.commit()

        for member in added:
            audit_log_create('TeamMember', member.id, f'Added {member.athlete.name} to team {team.name}')

        return jsonify({
            'success': True,
            'added': [member.to_dict() for member in added],
            'skipped': skipped,
            'team': team.to_dict()
        }), 201 if added else 200

    except FieldhouseError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error adding members to team {team_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while adding team members'
        }), 500


@bp.route('/<int:team_id>/members/<int:member_id>', methods=['PATCH'])
@login_required
@organization_required(*MANAGER_ROLES)
def update_member(organization, team_id, member_id):
    """
    Update a member's jersey number, position or role.
    """
    team = get_organization_team(organization, team_id)
    member = get_team_member(team, member_id)
    form = TeamMemberForm(formdata=json_formdata(get_json_payload(), base=member.to_dict()))
    if not form.validate():
        return validation_error_response(form)

    try:
        check_jersey_number(team, form.jersey_number.data, exclude_member_id=member.id)
        values = {field: getattr(form, field).data for field in MEMBER_FIELDS}
        changes = get_model_changes(member, values)
        for field, value in values.items():
            setattr(member, field, value)
        db.session.commit()

        audit_log_update('TeamMember', member.id, f'Updated {member.athlete.name} in team {team.name}', changes)

        return jsonify({'success': True, 'member': member.to_dict()})

    except FieldhouseError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating team member {member_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while updating the team member'
        }), 500


@bp.route('/<int:team_id>/members/<int:member_id>', methods=['DELETE'])
@login_required
@organization_required(*MANAGER_ROLES)
def remove_member(organization, team_id, member_id):
    team = get_organization_team(organization, team_id)
    member = get_team_member(team, member_id)

    try:
        player_name = member.athlete.name
        team.members.remove(member)
        db.session.commit()

        audit_log_delete('TeamMember', member_id, f'Removed {player_name} from team {team.name}')

        return jsonify({'success': True, 'message': f'{player_name} removed from team'})

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error removing team member {member_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while removing the team member'
        }), 500
