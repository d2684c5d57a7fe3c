"""
Integration tests for athlete routes and medical documents.
"""
import io
import pytest
from urllib.parse import urlparse
from app.models import Athlete, MedicalDocument
from tests.fixtures.factories import AthleteFactory, TeamMemberFactory, TeamFactory


BASE_URL = '/organizations/river-club/athletes'


@pytest.mark.integration
class TestAthleteRoutes:
    """Test cases for athlete CRUD routes."""

    def test_create_athlete(self, staff_client, organization, db_session):
        """Test staff can create an athlete; missing fields take defaults."""
        response = staff_client.post(BASE_URL, json={
            'name': 'Lucia Gomez',
            'email': 'lucia@clubmail.com',
            'birth_date': '2012-03-14'
        })

        assert response.status_code == 201
        data = response.get_json()['athlete']
        assert data['name'] == 'Lucia Gomez'
        assert data['birth_date'] == '2012-03-14'
        assert data['level'] == 'beginner'
        assert data['status'] == 'active'
        assert db_session.get(Athlete, data['id']).organization_id == organization.id

    def test_create_athlete_validation(self, staff_client, organization):
        """Test a name is required and levels must be known."""
        response = staff_client.post(BASE_URL, json={'level': 'legend'})

        assert response.status_code == 400
        errors = response.get_json()['errors']
        assert 'name' in errors
        assert 'level' in errors

    def test_list_athletes_with_filters(self, staff_client, organization):
        """Test search, level filter and archived handling in the list."""
        AthleteFactory.create(organization_id=organization.id, name='Lucia Gomez', level='advanced')
        AthleteFactory.create(organization_id=organization.id, name='Pedro Ruiz')
        AthleteFactory.create(organization_id=organization.id, name='Marta Gomez', status='archived')

        data = staff_client.get(BASE_URL).get_json()
        assert data['pagination']['total'] == 2

        names = [item['name'] for item in staff_client.get(f'{BASE_URL}?search=gomez').get_json()['athletes']]
        assert names == ['Lucia Gomez']

        names = [item['name'] for item in staff_client.get(f'{BASE_URL}?level=advanced').get_json()['athletes']]
        assert names == ['Lucia Gomez']

        data = staff_client.get(f'{BASE_URL}?include_archived=true').get_json()
        assert data['pagination']['total'] == 3

    def test_get_athlete_detail(self, staff_client, organization):
        """Test the detail view includes teams and document count."""
        athlete = AthleteFactory.create(organization_id=organization.id)
        team = TeamFactory.create(organization_id=organization.id, name='U14')
        TeamMemberFactory.create(team=team, athlete=athlete, jersey_number=7)

        response = staff_client.get(f'{BASE_URL}/{athlete.id}')

        assert response.status_code == 200
        data = response.get_json()['athlete']
        assert data['medical_document_count'] == 0
        assert [item['team_id'] for item in data['teams']] == [team.id]

        teams = staff_client.get(f'{BASE_URL}/{athlete.id}/teams').get_json()['teams']
        assert len(teams) == 1

    def test_update_athlete_keeps_other_fields(self, staff_client, organization):
        """Test a partial update leaves omitted fields unchanged."""
        athlete = AthleteFactory.create(organization_id=organization.id, name='Pedro Ruiz', level='beginner')

        response = staff_client.patch(f'{BASE_URL}/{athlete.id}', json={'level': 'intermediate'})

        assert response.status_code == 200
        data = response.get_json()['athlete']
        assert data['level'] == 'intermediate'
        assert data['name'] == 'Pedro Ruiz'

    def test_archive_athlete(self, staff_client, organization):
        """Test archiving hides the athlete and cannot be repeated."""
        athlete = AthleteFactory.create(organization_id=organization.id)

        response = staff_client.post(f'{BASE_URL}/{athlete.id}/archive')
        assert response.status_code == 200
        assert response.get_json()['athlete']['status'] == 'archived'

        response = staff_client.post(f'{BASE_URL}/{athlete.id}/archive')
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Athlete is already archived'

    def test_delete_athlete(self, owner_client, organization, db_session):
        """Test owners can delete athletes with their roster entries."""
        athlete = AthleteFactory.create(organization_id=organization.id)
        TeamMemberFactory.create(team=TeamFactory.create(organization_id=organization.id), athlete=athlete)
        athlete_id = athlete.id

        response = owner_client.delete(f'{BASE_URL}/{athlete_id}')

        assert response.status_code == 200
        assert db_session.get(Athlete, athlete_id) is None

    def test_missing_athlete(self, staff_client, organization):
        """Test unknown ids give 404."""
        response = staff_client.get(f'{BASE_URL}/99999')

        assert response.status_code == 404


@pytest.mark.integration
class TestMedicalDocumentRoutes:
    """Test cases for medical document upload and signed downloads."""

    @pytest.fixture
    def athlete(self, organization):
        return AthleteFactory.create(organization_id=organization.id, name='Lucia Gomez')

    def upload(self, client, athlete, filename='cert.pdf', content=b'%PDF-1.4 test'):
        return client.post(
            f'{BASE_URL}/{athlete.id}/medical-documents',
            data={'file': (io.BytesIO(content), filename), 'document_type': 'medical_certificate'},
            content_type='multipart/form-data'
        )

    def test_upload_and_list(self, staff_client, athlete, storage_path):
        """Test an uploaded document is stored and listed."""
        response = self.upload(staff_client, athlete)

        assert response.status_code == 201
        document = response.get_json()['medical_document']
        assert document['document_type'] == 'medical_certificate'
        assert document['original_filename'] == 'cert.pdf'
        assert 'stored_filename' not in document

        documents = staff_client.get(f'{BASE_URL}/{athlete.id}/medical-documents').get_json()['medical_documents']
        assert [item['id'] for item in documents] == [document['id']]

    def test_upload_rejects_other_extensions(self, staff_client, athlete, storage_path):
        """Test only allowed file types are accepted."""
        response = self.upload(staff_client, athlete, filename='virus.exe', content=b'MZ')

        assert response.status_code == 400
        assert 'file' in response.get_json()['errors']

    def test_signed_download(self, staff_client, athlete, storage_path):
        """Test a signed link downloads the file without a session."""
        document_id = self.upload(staff_client, athlete).get_json()['medical_document']['id']

        response = staff_client.post(f'{BASE_URL}/{athlete.id}/medical-documents/{document_id}/download-url')
        assert response.status_code == 200
        data = response.get_json()
        assert data['expires_in'] == 300
        path = urlparse(data['url']).path

        staff_client.post('/auth/logout')
        response = staff_client.get(path)

        assert response.status_code == 200
        assert response.data == b'%PDF-1.4 test'
        assert 'cert.pdf' in response.headers['Content-Disposition']

    def test_signed_link_is_bound_to_organization(self, staff_client, athlete, other_organization, storage_path):
        """Test a token used under another organization's URL is rejected."""
        document_id = self.upload(staff_client, athlete).get_json()['medical_document']['id']
        url = staff_client.post(
            f'{BASE_URL}/{athlete.id}/medical-documents/{document_id}/download-url'
        ).get_json()['url']
        path = urlparse(url).path.replace('/river-club/', '/lake-club/')

        response = staff_client.get(path)

        assert response.status_code == 404

    def test_invalid_token(self, client, organization):
        """Test a forged token is rejected."""
        response = client.get(f'{BASE_URL}/medical-documents/download/not-a-token')

        assert response.status_code == 404
        assert response.get_json()['error'] == 'Download link is invalid or has expired'

    def test_delete_document(self, staff_client, athlete, storage_path, db_session):
        """Test deleting a document removes the record and the file."""
        document_id = self.upload(staff_client, athlete).get_json()['medical_document']['id']
        stored = list(storage_path.rglob('*.pdf'))
        assert len(stored) == 1

        response = staff_client.delete(f'{BASE_URL}/{athlete.id}/medical-documents/{document_id}')

        assert response.status_code == 200
        assert db_session.get(MedicalDocument, document_id) is None
        assert not stored[0].exists()
