"""
Registrations blueprint for staff management of event registrations.

Listing, editing, cancelling and promoting registrations, bulk status
changes and registering existing athletes. Public self-registration is in
the public blueprint and shares app.registrations.utils.
"""

from flask import Blueprint

bp = Blueprint('registrations', __name__, url_prefix='/organizations/<org_slug>/events/<int:event_id>/registrations')

from app.registrations import routes
