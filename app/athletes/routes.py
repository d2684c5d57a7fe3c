"""
Athlete management routes.

Athlete profiles for an organization plus their medical documents. Medical
files are stored outside the web root and only served through short-lived
signed links.
"""

import sqlalchemy as sa
from flask import request, current_app, jsonify, send_file, url_for
from flask_login import login_required, current_user

from app import db
from app.athletes import bp
from app.athletes.forms import AthleteForm, MedicalDocumentForm
from app.athletes.utils import (
    get_organization_athlete, get_athlete_document, build_athlete_query, store_medical_document,
    delete_document_file, get_document_path, generate_document_token, verify_document_token,
    get_athlete_detail, remove_athlete_links
)
from app.models import Athlete, Organization, TeamMember, Team, utc_now
from app.routes import organization_required, MANAGER_ROLES, ADMIN_ROLES
from app.errors import FieldhouseError, BadRequestError, NotFoundError, validation_error_response
from app.utils import get_json_payload, json_formdata, paginate_query
from app.audit import (
    audit_log_create, audit_log_update, audit_log_delete, audit_log_file_operation,
    audit_log_security_event, get_model_changes
)


ATHLETE_FIELDS = [
    'name', 'email', 'phone', 'birth_date', 'sport', 'level', 'status', 'position', 'jersey_number',
    'parent_name', 'parent_email', 'parent_phone', 'notes'
]


def _athlete_values(form):
    values = {field: getattr(form, field).data for field in ATHLETE_FIELDS}
    if values['email']:
        values['email'] = values['email'].lower()
    return values


@bp.route('')
@login_required
@organization_required(*MANAGER_ROLES)
def list_athletes(organization):
    """
    Paginated athlete list.

    Query args: search (name, email or parent name), status, level,
    include_archived=true.
    """
    query = build_athlete_query(
        organization,
        search=request.args.get('search'),
        status=request.args.get('status'),
        level=request.args.get('level'),
        include_archived=request.args.get('include_archived') == 'true'
    )
    athletes, pagination = paginate_query(query)
    return jsonify({
        'success': True,
        'athletes': [athlete.to_dict() for athlete in athletes],
        'pagination': pagination
    })


@bp.route('', methods=['POST'])
@login_required
@organization_required(*MANAGER_ROLES)
def create_athlete(organization):
    """
    Create an athlete profile.
    """
    form = AthleteForm(formdata=json_formdata(get_json_payload(), base={
        'sport': 'general', 'level': 'beginner', 'status': 'active'
    }))
    if not form.validate():
        return validation_error_response(form)

    try:
        athlete = Athlete(organization_id=organization.id, **_athlete_values(form))
        db.session.add(athlete)
        db.session.commit()

        audit_log_create('Athlete', athlete.id, f'Created athlete: {athlete.name}',
                         {'sport': athlete.sport, 'level': athlete.level})

        return jsonify({'success': True, 'athlete': athlete.to_dict()}), 201

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error creating athlete: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while creating the athlete'
        }), 500


@bp.route('/<int:athlete_id>')
@login_required
@organization_required(*MANAGER_ROLES)
def get_athlete(organization, athlete_id):
    """
    Athlete profile with teams and medical document summary.
    """
    athlete = get_organization_athlete(organization, athlete_id)
    return jsonify({'success': True, 'athlete': get_athlete_detail(athlete)})


@bp.route('/<int:athlete_id>', methods=['PATCH'])
@login_required
@organization_required(*MANAGER_ROLES)
def update_athlete(organization, athlete_id):
    """
    Update an athlete profile. Only the fields sent are changed.
    """
    athlete = get_organization_athlete(organization, athlete_id)
    form = AthleteForm(formdata=json_formdata(get_json_payload(), base=athlete.to_dict()))
    if not form.validate():
        return validation_error_response(form)

    try:
        values = _athlete_values(form)
        changes = get_model_changes(athlete, values)
        for field, value in values.items():
            setattr(athlete, field, value)
        if athlete.status == 'archived' and athlete.archived_at is None:
            athlete.archived_at = utc_now()
        elif athlete.status != 'archived':
            athlete.archived_at = None
        db.session.commit()

        audit_log_update('Athlete', athlete.id, f'Updated athlete: {athlete.name}', changes)

        return jsonify({'success': True, 'athlete': athlete.to_dict()})

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating athlete {athlete_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while updating the athlete'
        }), 500


@bp.route('/<int:athlete_id>/archive', methods=['POST'])
@login_required
@organization_required(*MANAGER_ROLES)
def archive_athlete(organization, athlete_id):
    """
    Archive an athlete. Archived athletes are hidden from the default list
    but keep their history.
    """
    athlete = get_organization_athlete(organization, athlete_id)
    if athlete.status == 'archived':
        raise BadRequestError('Athlete is already archived')

    try:
        old_status = athlete.status
        athlete.status = 'archived'
        athlete.archived_at = utc_now()
        db.session.commit()

        audit_log_update('Athlete', athlete.id, f'Archived athlete: {athlete.name}', {'status': old_status})

        return jsonify({'success': True, 'athlete': athlete.to_dict()})

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error archiving athlete {athlete_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while archiving the athlete'
        }), 500


@bp.route('/<int:athlete_id>', methods=['DELETE'])
@login_required
@organization_required(*ADMIN_ROLES)
def delete_athlete(organization, athlete_id):
    """
    Permanently delete an athlete together with their medical documents.
    """
    athlete = get_organization_athlete(organization, athlete_id)

    try:
        name = athlete.name
        stored_files = [document.stored_filename for document in athlete.medical_documents]
        remove_athlete_links(athlete)
        db.session.delete(athlete)
        db.session.commit()

        for stored_filename in stored_files:
            delete_document_file(organization.id, stored_filename)

        audit_log_delete('Athlete', athlete_id, f'Deleted athlete: {name}',
                         {'medical_documents': len(stored_files)})

        return jsonify({'success': True, 'message': f'Athlete {name} deleted'})

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error deleting athlete {athlete_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while deleting the athlete'
        }), 500


@bp.route('/<int:athlete_id>/teams')
@login_required
@organization_required(*MANAGER_ROLES)
def list_athlete_teams(organization, athlete_id):
    """
    Teams the athlete is currently a member of.
    """
    athlete = get_organization_athlete(organization, athlete_id)
    memberships = db.session.scalars(
        sa.select(TeamMember)
        .join(Team, TeamMember.team_id == Team.id)
        .where(TeamMember.athlete_id == athlete.id)
        .order_by(Team.name)
    ).all()
    return jsonify({
        'success': True,
        'teams': [
            dict(membership.team.to_dict(), membership=membership.to_dict())
            for membership in memberships
        ]
    })


# =============================================================================
# MEDICAL DOCUMENTS
# =============================================================================

@bp.route('/<int:athlete_id>/medical-documents')
@login_required
@organization_required(*MANAGER_ROLES)
def list_medical_documents(organization, athlete_id):
    """
    Medical documents of an athlete, newest first.
    """
    athlete = get_organization_athlete(organization, athlete_id)
    documents = sorted(athlete.medical_documents, key=lambda doc: (doc.created_at, doc.id), reverse=True)
    return jsonify({
        'success': True,
        'medical_documents': [document.to_dict() for document in documents]
    })


@bp.route('/<int:athlete_id>/medical-documents', methods=['POST'])
@login_required
@organization_required(*MANAGER_ROLES)
def upload_medical_document(organization, athlete_id):
    """
    Upload a medical document (multipart/form-data with a ``file`` part).
    """
    athlete = get_organization_athlete(organization, athlete_id)
    form = MedicalDocumentForm()
    if not form.validate():
        return validation_error_response(form)

    document = None
    try:
        document = store_medical_document(
            athlete,
            form.file.data,
            document_type=form.document_type.data,
            title=form.title.data,
            issued_date=form.issued_date.data,
            expiry_date=form.expiry_date.data,
            notes=form.notes.data,
            uploaded_by_id=current_user.id
        )
        db.session.commit()

        audit_log_file_operation('UPLOAD', document.stored_filename,
                                 f'Uploaded {document.document_type} document for athlete: {athlete.name}',
                                 {'size': document.file_size})

        return jsonify({'success': True, 'medical_document': document.to_dict()}), 201

    except FieldhouseError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        if document is not None:
            delete_document_file(organization.id, document.stored_filename)
        current_app.logger.error(f"Error uploading medical document for athlete {athlete_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while uploading the document'
        }), 500


@bp.route('/<int:athlete_id>/medical-documents/<int:document_id>', methods=['DELETE'])
@login_required
@organization_required(*MANAGER_ROLES)
def delete_medical_document(organization, athlete_id, document_id):
    """
    Delete a medical document and its stored file.
    """
    athlete = get_organization_athlete(organization, athlete_id)
    document = get_athlete_document(athlete, document_id)

    try:
        stored_filename = document.stored_filename
        db.session.delete(document)
        db.session.commit()

        delete_document_file(organization.id, stored_filename)
        audit_log_file_operation('DELETE', stored_filename,
                                 f'Deleted medical document {document_id} of athlete: {athlete.name}')

        return jsonify({'success': True, 'message': 'Medical document deleted'})

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error deleting medical document {document_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while deleting the document'
        }), 500


@bp.route('/<int:athlete_id>/medical-documents/<int:document_id>/download-url', methods=['POST'])
@login_required
@organization_required(*MANAGER_ROLES)
def get_medical_document_url(organization, athlete_id, document_id):
    """
    Issue a time-limited signed download link for a medical document.
    """
    athlete = get_organization_athlete(organization, athlete_id)
    document = get_athlete_document(athlete, document_id)
    token = generate_document_token(document)

    audit_log_file_operation('LINK', document.stored_filename,
                             f'Issued download link for medical document {document.id} of athlete: {athlete.name}')

    return jsonify({
        'success': True,
        'url': url_for('athletes.download_medical_document', org_slug=organization.slug,
                       token=token, _external=True),
        'expires_in': current_app.config['MEDICAL_DOCUMENT_URL_EXPIRY']
    })


@bp.route('/medical-documents/download/<token>')
def download_medical_document(org_slug, token):
    """
    Serve a medical document for a valid signed token. No session needed:
    the token itself is the authorization and expires quickly.
    """
    document = verify_document_token(token)
    if document is None:
        audit_log_security_event('INVALID_TOKEN', 'Invalid or expired medical document download token')
        raise NotFoundError('Download link is invalid or has expired')

    organization = db.session.get(Organization, document.organization_id)
    if organization is None or organization.slug != org_slug:
        audit_log_security_event('INVALID_TOKEN', f'Medical document token used with organization {org_slug}')
        raise NotFoundError('Download link is invalid or has expired')

    file_path = get_document_path(document)
    audit_log_file_operation('DOWNLOAD', document.stored_filename,
                             f'Downloaded medical document {document.id}')

    return send_file(
        file_path,
        mimetype=document.content_type or 'application/octet-stream',
        as_attachment=True,
        download_name=document.original_filename
    )
