"""
Coaches blueprint: coaching staff profiles.
"""

from flask import Blueprint

bp = Blueprint('coaches', __name__, url_prefix='/organizations/<org_slug>/coaches')

from app.coaches import routes
