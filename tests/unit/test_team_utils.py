"""
Unit tests for roster helpers.
"""
import pytest
from app.errors import BadRequestError, ConflictError
from app.teams.utils import add_team_members, check_jersey_number, get_organization_athletes
from tests.fixtures.factories import TeamFactory, TeamMemberFactory, AthleteFactory


@pytest.fixture
def team(organization):
    return TeamFactory.create(organization_id=organization.id)


@pytest.mark.unit
class TestAddTeamMembers:
    """Test cases for add_team_members."""

    def test_existing_members_are_skipped(self, organization, team, db_session):
        """Test athletes already on the roster are reported as skipped."""
        existing = TeamMemberFactory.create(team=team)
        newcomer = AthleteFactory.create(organization_id=organization.id)

        added, skipped = add_team_members(team, [existing.athlete, newcomer], role='player')
        db_session.commit()

        assert [member.athlete_id for member in added] == [newcomer.id]
        assert skipped == [existing.athlete_id]
        assert len(team.members) == 2

    def test_jersey_number_for_single_athlete_only(self, organization, team):
        """Test a jersey number cannot be shared by a batch."""
        athletes = [AthleteFactory.create(organization_id=organization.id) for _ in range(2)]

        with pytest.raises(BadRequestError):
            add_team_members(team, athletes, jersey_number=10)

    def test_jersey_numbers_are_unique(self, organization, team):
        """Test a taken jersey number conflicts unless it is the member's own."""
        member = TeamMemberFactory.create(team=team, jersey_number=9)
        athlete = AthleteFactory.create(organization_id=organization.id)

        with pytest.raises(ConflictError):
            add_team_members(team, [athlete], jersey_number=9)
        check_jersey_number(team, 9, exclude_member_id=member.id)
        check_jersey_number(team, None)


@pytest.mark.unit
def test_get_organization_athletes_lists_missing_ids(organization, other_organization):
    """Test ids outside the organization are named in the error."""
    own = AthleteFactory.create(organization_id=organization.id)
    foreign = AthleteFactory.create(organization_id=other_organization.id)

    assert [athlete.id for athlete in get_organization_athletes(organization, [own.id])] == [own.id]
    with pytest.raises(BadRequestError) as excinfo:
        get_organization_athletes(organization, [own.id, foreign.id])
    assert str(foreign.id) in excinfo.value.message
