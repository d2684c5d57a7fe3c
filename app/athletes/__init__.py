"""
Athletes blueprint: athlete profiles and their medical documents.
"""

from flask import Blueprint

bp = Blueprint('athletes', __name__, url_prefix='/organizations/<org_slug>/athletes')

from app.athletes import routes
