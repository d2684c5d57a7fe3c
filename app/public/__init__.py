"""
Public blueprint: unauthenticated event pages and self-registration.
"""

from flask import Blueprint

bp = Blueprint('public', __name__, url_prefix='/public/<org_slug>')

from app.public import routes
