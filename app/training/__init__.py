"""
Training blueprint: training sessions, participants and attendance.
"""

from flask import Blueprint

bp = Blueprint('training', __name__, url_prefix='/organizations/<org_slug>/training-sessions')

from app.training import routes
