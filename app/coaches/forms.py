"""
Coach forms
"""

from wtforms import StringField, SelectField
from wtforms.validators import DataRequired, Email, Length, Optional

from app.forms import ApiForm, OptionalStringField, config_choices


class CoachForm(ApiForm):
    """Form for creating/editing coaches"""
    name = StringField('Name', validators=[DataRequired(message='Name is required'), Length(max=128)])
    email = OptionalStringField('Email', validators=[Optional(), Email(), Length(max=120)])
    phone = OptionalStringField('Phone', validators=[Optional(), Length(max=32)])
    specialty = OptionalStringField('Specialty', validators=[Optional(), Length(max=128)])
    sport = StringField('Sport', validators=[DataRequired(), Length(max=64)])
    bio = OptionalStringField('Bio', validators=[Optional(), Length(max=5000)])
    status = SelectField('Status', validators=[DataRequired()])

    def __init__(self, *args, **kwargs):
        super(CoachForm, self).__init__(*args, **kwargs)
        self.status.choices = config_choices('COACH_STATUSES')
