import os

import sqlalchemy as sa
import sqlalchemy.orm as so
from dotenv import load_dotenv

load_dotenv('.flaskenv')

from app import create_app, db
from app.models import (
    User, Organization, OrganizationMember, Athlete, Coach, Team, TeamMember, SportsEvent, PricingTier,
    EventRegistration, AgeCategory, Equipment, TrainingSession, WaitlistEntry
)

app = create_app(os.getenv('FLASK_CONFIG') or 'development')

@app.shell_context_processor
def make_shell_context():
    return {
        'sa': sa,
        'so': so,
        'db': db,
        'User': User,
        'Organization': Organization,
        'OrganizationMember': OrganizationMember,
        'Athlete': Athlete,
        'Coach': Coach,
        'Team': Team,
        'TeamMember': TeamMember,
        'SportsEvent': SportsEvent,
        'PricingTier': PricingTier,
        'EventRegistration': EventRegistration,
        'AgeCategory': AgeCategory,
        'Equipment': Equipment,
        'TrainingSession': TrainingSession,
        'WaitlistEntry': WaitlistEntry,
    }

if __name__ == '__main__':
    app.run(debug=True)
