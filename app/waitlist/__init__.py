"""
Waitlist blueprint: athletes waiting for a team place or a schedule slot.
"""

from flask import Blueprint

bp = Blueprint('waitlist', __name__, url_prefix='/organizations/<org_slug>/waitlist')

from app.waitlist import routes
