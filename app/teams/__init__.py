"""
Teams blueprint: teams and their rosters.
"""

from flask import Blueprint

bp = Blueprint('teams', __name__, url_prefix='/organizations/<org_slug>/teams')

from app.teams import routes
