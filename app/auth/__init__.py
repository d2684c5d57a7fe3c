"""
Authentication blueprint: session login, logout and current user.
"""

from flask import Blueprint

bp = Blueprint('auth', __name__, url_prefix='/auth')

from app.auth import routes
