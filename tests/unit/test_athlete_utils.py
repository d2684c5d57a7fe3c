"""
Unit tests for athlete helpers and medical document storage.
"""
import io
import os
import pytest
from unittest.mock import patch
from werkzeug.datastructures import FileStorage
from app.athletes.utils import (
    build_athlete_query, generate_secure_filename, validate_secure_path, store_medical_document,
    delete_document_file, generate_document_token, verify_document_token, get_document_path
)
from app.errors import NotFoundError
from tests.fixtures.factories import AthleteFactory


@pytest.mark.unit
class TestAthleteQuery:
    """Test cases for the athlete list filters."""

    def test_archived_athletes_hidden_by_default(self, organization, db_session):
        """Test archived athletes only appear when asked for."""
        active = AthleteFactory.create(organization_id=organization.id, name='Ana')
        archived = AthleteFactory.create(organization_id=organization.id, name='Bea', status='archived')

        def ids(**filters):
            return [athlete.id for athlete in db_session.scalars(build_athlete_query(organization, **filters))]

        assert ids() == [active.id]
        assert ids(include_archived=True) == [active.id, archived.id]
        assert ids(status='archived') == [archived.id]

    def test_search_matches_name_email_and_parent(self, organization, db_session):
        """Test the search term is matched case-insensitively."""
        by_name = AthleteFactory.create(organization_id=organization.id, name='Lucia Gomez')
        by_parent = AthleteFactory.create(organization_id=organization.id, name='Tomas', parent_name='Marta Gomez')
        AthleteFactory.create(organization_id=organization.id, name='Pedro')

        found = db_session.scalars(build_athlete_query(organization, search='gomez')).all()

        assert {athlete.id for athlete in found} == {by_name.id, by_parent.id}


@pytest.mark.unit
class TestSecureStorage:
    """Test cases for stored file names and paths."""

    def test_generated_names_keep_extension_only(self):
        """Test stored names are random and keep the lower case extension."""
        name = generate_secure_filename('../../etc/My Scan.PDF')

        assert name.endswith('.pdf')
        assert len(name) == 36
        assert generate_secure_filename('a.pdf') != generate_secure_filename('a.pdf')

    @pytest.mark.parametrize('filename', ['../secret.pdf', '/etc/passwd', 'dir/file.pdf', 'bad name.pdf', ''])
    def test_unsafe_names_are_rejected(self, tmp_path, filename):
        """Test traversal and odd characters never produce a path."""
        assert validate_secure_path(filename, str(tmp_path)) is None

    def test_safe_name_resolves_inside_base(self, tmp_path):
        """Test a plain name resolves inside the base directory."""
        assert validate_secure_path('abc123.pdf', str(tmp_path)) == os.path.join(str(tmp_path), 'abc123.pdf')


@pytest.mark.unit
class TestMedicalDocuments:
    """Test cases for storing documents and signed download tokens."""

    def store(self, athlete):
        upload = FileStorage(stream=io.BytesIO(b'%PDF-1.4 test'), filename='cert.pdf',
                             content_type='application/pdf')
        return store_medical_document(athlete, upload, 'medical_certificate')

    def test_store_and_delete(self, app, organization, storage_path, db_session):
        """Test a stored upload is written under the organization directory and can be removed."""
        athlete = AthleteFactory.create(organization_id=organization.id)

        document = self.store(athlete)
        db_session.commit()

        assert document.title == 'cert.pdf'
        assert document.file_size == len(b'%PDF-1.4 test')
        assert document.content_type == 'application/pdf'
        path = get_document_path(document)
        assert path.startswith(str(storage_path / str(organization.id)))

        assert delete_document_file(organization.id, document.stored_filename) is True
        assert delete_document_file(organization.id, document.stored_filename) is False
        with pytest.raises(NotFoundError):
            get_document_path(document)

    def test_download_token_round_trip(self, app, organization, storage_path, db_session):
        """Test a token grants access to its own document only."""
        document = self.store(AthleteFactory.create(organization_id=organization.id))
        db_session.commit()

        token = generate_document_token(document)

        assert verify_document_token(token).id == document.id
        assert verify_document_token(token + 'x') is None

    def test_expired_token_is_rejected(self, app, organization, storage_path, db_session):
        """Test tokens stop working after their lifetime."""
        document = self.store(AthleteFactory.create(organization_id=organization.id))
        db_session.commit()
        with patch('itsdangerous.timed.time.time', return_value=1_000_000_000):
            token = generate_document_token(document)

        assert verify_document_token(token, expiration=300) is None

    def test_token_for_deleted_document(self, app, organization, storage_path, db_session):
        """Test a token outliving its document is rejected."""
        document = self.store(AthleteFactory.create(organization_id=organization.id))
        db_session.commit()
        token = generate_document_token(document)

        db_session.delete(document)
        db_session.commit()

        assert verify_document_token(token) is None
