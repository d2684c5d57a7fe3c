"""
Equipment blueprint: training equipment inventory and assignments.
"""

from flask import Blueprint

bp = Blueprint('equipment', __name__, url_prefix='/organizations/<org_slug>/equipment')

from app.equipment import routes
