"""
Events blueprint for managing sports events of an organization.

This blueprint provides the staff side of events:
- Age categories shared by events and teams
- Event creation, status changes and duplication
- Pricing tiers and price resolution for registrations
"""

from flask import Blueprint

bp = Blueprint('events', __name__, url_prefix='/organizations/<org_slug>')

from app.events import routes
