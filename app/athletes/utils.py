# Standard library imports
import os
import re
import uuid

# Third-party imports
import sqlalchemy as sa
from flask import current_app
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired
from werkzeug.utils import secure_filename

# Local application imports
from app import db
from app.models import (
    Athlete, MedicalDocument, TrainingSessionAthlete, Attendance, WaitlistEntry, EventRegistration
)
from app.errors import BadRequestError, NotFoundError


MEDICAL_DOCUMENT_SALT = 'medical-document-download'


def get_organization_athlete(organization, athlete_id):
    """Load an athlete of the organization or raise NotFoundError"""
    athlete = db.session.get(Athlete, athlete_id)
    if athlete is None or athlete.organization_id != organization.id:
        raise NotFoundError('Athlete not found')
    return athlete


def get_athlete_document(athlete, document_id):
    """Load a medical document belonging to the athlete or raise NotFoundError"""
    document = db.session.get(MedicalDocument, document_id)
    if document is None or document.athlete_id != athlete.id:
        raise NotFoundError('Medical document not found')
    return document


def build_athlete_query(organization, search=None, status=None, level=None, include_archived=False):
    """
    Select statement for the athlete list with the optional filters applied.

    Archived athletes are left out unless asked for or filtered by status.
    """
    query = sa.select(Athlete).where(Athlete.organization_id == organization.id)
    if status:
        query = query.where(Athlete.status == status)
    elif not include_archived:
        query = query.where(Athlete.status != 'archived')
    if level:
        query = query.where(Athlete.level == level)
    if search:
        pattern = f'%{search.strip()}%'
        query = query.where(sa.or_(
            Athlete.name.ilike(pattern),
            Athlete.email.ilike(pattern),
            Athlete.parent_name.ilike(pattern)
        ))
    return query.order_by(Athlete.name, Athlete.id)


def generate_secure_filename(original_filename):
    """
    Generate a storage filename using a UUID to prevent path traversal and
    name collisions. The original extension is kept.
    """
    extension = os.path.splitext(secure_filename(original_filename or ''))[1].lower()
    return f'{uuid.uuid4().hex}{extension}'


def validate_secure_path(filename, base_path):
    """
    Validate that a filename is safe and within the allowed directory.

    Returns:
        str: The validated full path if safe, None if unsafe.
    """
    if not filename or '..' in filename or filename.startswith('/'):
        return None

    if os.path.sep in filename or (os.path.altsep and os.path.altsep in filename):
        return None

    if not re.match(r'^[\w\-.]+$', filename):
        return None

    full_path = os.path.normpath(os.path.join(base_path, filename))
    if not full_path.startswith(os.path.normpath(base_path) + os.sep):
        return None

    return full_path


def get_organization_storage_path(organization_id):
    """Directory holding the medical documents of one organization"""
    path = os.path.join(current_app.config['MEDICAL_STORAGE_PATH'], str(organization_id))
    os.makedirs(path, exist_ok=True)
    return path


def get_document_path(document):
    """
    Full path of a stored medical document.

    Raises:
        NotFoundError: if the stored name is unsafe or the file is missing.
    """
    file_path = validate_secure_path(document.stored_filename,
                                     get_organization_storage_path(document.organization_id))
    if file_path is None or not os.path.exists(file_path):
        current_app.logger.error(f"Medical document file missing for document {document.id}")
        raise NotFoundError('Document file not found')
    return file_path


def store_medical_document(athlete, file_storage, document_type, title=None, issued_date=None,
                           expiry_date=None, notes=None, uploaded_by_id=None):
    """
    Save an uploaded file to secure storage and create its MedicalDocument.

    The caller commits, and removes the file with delete_document_file if
    the commit fails.
    """
    original_filename = secure_filename(file_storage.filename or '') or 'document'
    stored_filename = generate_secure_filename(original_filename)
    file_path = validate_secure_path(stored_filename, get_organization_storage_path(athlete.organization_id))
    if file_path is None:
        raise BadRequestError('Invalid file name')

    file_storage.save(file_path)
    file_size = os.path.getsize(file_path)

    document = MedicalDocument(
        athlete_id=athlete.id,
        organization_id=athlete.organization_id,
        document_type=document_type,
        title=title or original_filename,
        original_filename=original_filename,
        stored_filename=stored_filename,
        content_type=file_storage.mimetype,
        file_size=file_size,
        issued_date=issued_date,
        expiry_date=expiry_date,
        notes=notes,
        uploaded_by_id=uploaded_by_id
    )
    db.session.add(document)
    return document


def delete_document_file(organization_id, stored_filename):
    """
    Remove a stored document from disk.

    Returns:
        bool: True if a file was removed.
    """
    file_path = validate_secure_path(stored_filename, get_organization_storage_path(organization_id))
    if file_path is None or not os.path.exists(file_path):
        return False
    try:
        os.remove(file_path)
        return True
    except OSError as e:
        current_app.logger.error(f"Error removing medical document file {stored_filename}: {str(e)}")
        return False


def generate_document_token(document):
    """Signed token granting temporary access to one medical document"""
    serializer = URLSafeTimedSerializer(current_app.config['SECRET_KEY'])
    return serializer.dumps({'document_id': document.id, 'organization_id': document.organization_id},
                            salt=MEDICAL_DOCUMENT_SALT)


def verify_document_token(token, expiration=None):
    """
    Verify a download token and return the document it grants access to.

    Returns:
        MedicalDocument or None: None if the token is invalid, expired or the
        document no longer exists.
    """
    expiration = expiration or current_app.config['MEDICAL_DOCUMENT_URL_EXPIRY']
    serializer = URLSafeTimedSerializer(current_app.config['SECRET_KEY'])
    try:
        data = serializer.loads(token, salt=MEDICAL_DOCUMENT_SALT, max_age=expiration)
    except SignatureExpired:
        current_app.logger.info("Expired medical document download token")
        return None
    except BadSignature:
        current_app.logger.warning("Invalid medical document download token")
        return None

    document = db.session.get(MedicalDocument, data.get('document_id'))
    if document is None or document.organization_id != data.get('organization_id'):
        return None
    return document


def get_athlete_detail(athlete):
    """Athlete with teams and medical document summary"""
    data = athlete.to_dict()
    data['teams'] = [
        {
            'team_id': membership.team_id,
            'team_name': membership.team.name,
            'role': membership.role,
            'jersey_number': membership.jersey_number,
        }
        for membership in athlete.team_memberships
    ]
    data['medical_document_count'] = len(athlete.medical_documents)
    data['has_expired_medical_documents'] = any(doc.is_expired() for doc in athlete.medical_documents)
    return data


def remove_athlete_links(athlete):
    """
    Delete the rows that only make sense while the athlete exists and detach
    the athlete from event registrations. The caller commits.
    """
    for model in (TrainingSessionAthlete, Attendance, WaitlistEntry):
        db.session.execute(sa.delete(model).where(model.athlete_id == athlete.id))
    db.session.execute(
        sa.update(EventRegistration)
        .where(EventRegistration.athlete_id == athlete.id)
        .values(athlete_id=None)
    )
