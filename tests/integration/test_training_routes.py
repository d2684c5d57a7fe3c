"""
Integration tests for training session routes.
"""
import pytest
from datetime import datetime
from app.models import TrainingSession
from tests.fixtures.factories import TrainingSessionFactory, AthleteFactory, CoachFactory, TeamFactory


BASE_URL = '/organizations/river-club/training-sessions'


@pytest.fixture
def training_session(organization):
    return TrainingSessionFactory.create(
        organization_id=organization.id, title='Passing drills',
        start_time=datetime(2026, 5, 4, 18, 0), end_time=datetime(2026, 5, 4, 20, 0)
    )


@pytest.mark.integration
class TestTrainingSessionRoutes:
    """Test cases for scheduling training sessions."""

    def test_create_session_with_participants(self, staff_client, organization):
        """Test a session can be created with athletes and coaches in one request."""
        athletes = [AthleteFactory.create(organization_id=organization.id) for _ in range(2)]
        head, assistant = (CoachFactory.create(organization_id=organization.id) for _ in range(2))

        response = staff_client.post(BASE_URL, json={
            'title': 'Finishing',
            'start_time': '2026-05-06T18:00:00',
            'end_time': '2026-05-06T19:30:00',
            'location': 'Pitch 2',
            'athlete_ids': [athlete.id for athlete in athletes],
            'coach_ids': [head.id, assistant.id],
            'primary_coach_id': assistant.id
        })

        assert response.status_code == 201
        data = response.get_json()['training_session']
        assert data['status'] == 'pending'
        assert data['start_time'] == '2026-05-06T18:00:00'
        assert len(data['athletes']) == 2
        assert {coach['coach_id']: coach['is_primary'] for coach in data['coaches']} == {
            head.id: False, assistant.id: True
        }

    def test_create_session_end_before_start(self, staff_client, organization):
        """Test the end time must follow the start time."""
        response = staff_client.post(BASE_URL, json={
            'title': 'Backwards',
            'start_time': '2026-05-06T18:00:00',
            'end_time': '2026-05-06T17:00:00'
        })

        assert response.status_code == 400
        assert 'end_time' in response.get_json()['errors']

    def test_create_session_with_foreign_team(self, staff_client, organization, other_organization):
        """Test the team must belong to the organization."""
        team = TeamFactory.create(organization_id=other_organization.id)

        response = staff_client.post(BASE_URL, json={
            'title': 'Wrong team',
            'start_time': '2026-05-06T18:00:00',
            'end_time': '2026-05-06T19:00:00',
            'team_id': team.id
        })

        assert response.status_code == 400
        assert response.get_json()['error'] == 'Team not found'

    def test_list_and_get(self, member_client, training_session):
        """Test members can list sessions and read one with its attendance summary."""
        listed = member_client.get(BASE_URL).get_json()['training_sessions']
        assert [item['title'] for item in listed] == ['Passing drills']

        data = member_client.get(f'{BASE_URL}/{training_session.id}').get_json()['training_session']
        assert data['attendance_summary'] == {'total': 0}

    def test_calendar(self, member_client, organization, training_session, db_session):
        """Test the calendar includes both end dates and can hide cancelled sessions."""
        later = TrainingSessionFactory.create(organization_id=organization.id,
                                              start_time=datetime(2026, 5, 10, 9, 0),
                                              end_time=datetime(2026, 5, 10, 11, 0))
        later.status = 'cancelled'
        db_session.commit()

        data = member_client.get(f'{BASE_URL}/calendar?start=2026-05-04&end=2026-05-10').get_json()
        assert data['start'] == '2026-05-04'
        assert len(data['training_sessions']) == 2

        data = member_client.get(
            f'{BASE_URL}/calendar?start=2026-05-04&end=2026-05-10&include_cancelled=false'
        ).get_json()
        assert [item['id'] for item in data['training_sessions']] == [training_session.id]

    def test_calendar_requires_range(self, member_client, organization):
        """Test the calendar needs start and end."""
        response = member_client.get(f'{BASE_URL}/calendar?start=2026-05-04')

        assert response.status_code == 400

    def test_members_cannot_schedule(self, member_client, organization):
        """Test creating sessions needs a manager role."""
        response = member_client.post(BASE_URL, json={'title': 'Nope'})

        assert response.status_code == 403

    def test_update_session(self, staff_client, training_session):
        """Test a partial update keeps the times."""
        response = staff_client.patch(f'{BASE_URL}/{training_session.id}', json={'location': 'Indoor hall'})

        assert response.status_code == 200
        data = response.get_json()['training_session']
        assert data['location'] == 'Indoor hall'
        assert data['start_time'] == '2026-05-04T18:00:00'

    def test_closed_session_cannot_be_edited(self, staff_client, training_session):
        """Test completed sessions are read only."""
        assert staff_client.post(f'{BASE_URL}/{training_session.id}/complete').status_code == 200

        response = staff_client.patch(f'{BASE_URL}/{training_session.id}', json={'location': 'Indoor hall'})

        assert response.status_code == 400

    def test_cancel_session(self, staff_client, training_session):
        """Test cancelling records the reason and cannot be repeated."""
        response = staff_client.post(f'{BASE_URL}/{training_session.id}/cancel', json={'reason': 'Storm'})

        assert response.status_code == 200
        data = response.get_json()['training_session']
        assert data['status'] == 'cancelled'
        assert data['cancellation_reason'] == 'Storm'

        assert staff_client.post(f'{BASE_URL}/{training_session.id}/cancel').status_code == 400

    def test_delete_session(self, staff_client, training_session, db_session):
        """Test a session can be deleted."""
        session_id = training_session.id

        response = staff_client.delete(f'{BASE_URL}/{session_id}')

        assert response.status_code == 200
        assert db_session.get(TrainingSession, session_id) is None


@pytest.mark.integration
class TestParticipantRoutes:
    """Test cases for session athletes, coaches and attendance."""

    def test_replace_athletes(self, staff_client, organization, training_session):
        """Test PUT replaces the athlete list."""
        first, second = (AthleteFactory.create(organization_id=organization.id) for _ in range(2))
        staff_client.put(f'{BASE_URL}/{training_session.id}/athletes', json={'athlete_ids': [first.id]})

        response = staff_client.put(f'{BASE_URL}/{training_session.id}/athletes', json={'athlete_ids': [second.id]})

        assert response.status_code == 200
        athletes = response.get_json()['training_session']['athletes']
        assert [item['athlete_id'] for item in athletes] == [second.id]

    def test_replace_coaches_with_bad_primary(self, staff_client, organization, training_session):
        """Test the primary coach must be one of the assigned coaches."""
        coach = CoachFactory.create(organization_id=organization.id)
        other = CoachFactory.create(organization_id=organization.id)

        response = staff_client.put(f'{BASE_URL}/{training_session.id}/coaches', json={
            'coach_ids': [coach.id], 'primary_coach_id': other.id
        })

        assert response.status_code == 400

    def test_record_attendance(self, staff_client, organization, training_session):
        """Test attendance records come back in the sheet and summary."""
        ana = AthleteFactory.create(organization_id=organization.id, name='Ana')
        bruno = AthleteFactory.create(organization_id=organization.id, name='Bruno')
        staff_client.put(f'{BASE_URL}/{training_session.id}/athletes', json={'athlete_ids': [ana.id, bruno.id]})

        response = staff_client.post(f'{BASE_URL}/{training_session.id}/attendance', json={
            'records': [{'athlete_id': ana.id, 'status': 'late', 'notes': 'Bus delay'}]
        })

        assert response.status_code == 200
        data = response.get_json()
        assert [(item['athlete_name'], item['status']) for item in data['attendance']] == [
            ('Ana', 'late'), ('Bruno', 'pending')
        ]
        assert data['summary'] == {'total': 2, 'late': 1, 'pending': 1}

        sheet = staff_client.get(f'{BASE_URL}/{training_session.id}/attendance').get_json()
        assert sheet['summary'] == data['summary']

    def test_invalid_attendance_record(self, staff_client, organization, training_session):
        """Test an invalid record is reported by index."""
        athlete = AthleteFactory.create(organization_id=organization.id)

        response = staff_client.post(f'{BASE_URL}/{training_session.id}/attendance', json={
            'records': [{'athlete_id': athlete.id}, {'athlete_id': athlete.id, 'status': 'asleep'}]
        })

        assert response.status_code == 400
        assert response.get_json()['error'] == 'Invalid attendance record 1'

    def test_attendance_on_cancelled_session(self, staff_client, organization, training_session):
        """Test attendance cannot be taken for a cancelled session."""
        athlete = AthleteFactory.create(organization_id=organization.id)
        staff_client.post(f'{BASE_URL}/{training_session.id}/cancel')

        response = staff_client.post(f'{BASE_URL}/{training_session.id}/attendance', json={
            'records': [{'athlete_id': athlete.id, 'status': 'present'}]
        })

        assert response.status_code == 400
        assert response.get_json()['error'] == 'Training session is cancelled'

    def test_attendance_after_completion(self, staff_client, organization, training_session):
        """Test attendance can still be recorded once a session is completed."""
        athlete = AthleteFactory.create(organization_id=organization.id)
        staff_client.post(f'{BASE_URL}/{training_session.id}/complete')

        response = staff_client.post(f'{BASE_URL}/{training_session.id}/attendance', json={
            'records': [{'athlete_id': athlete.id}]
        })

        assert response.status_code == 200
        assert response.get_json()['summary'] == {'total': 1, 'present': 1}
