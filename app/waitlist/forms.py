"""
Waitlist forms
"""

from flask import current_app
from wtforms import SelectField, SelectMultipleField, IntegerField
from wtforms.validators import DataRequired, InputRequired, Length, Optional, Regexp, ValidationError

from app.forms import ApiForm, ApiDateTimeField, OptionalStringField, config_choices


TIME_VALIDATOR = Regexp(r'^([01]\d|2[0-3]):[0-5]\d$', message='Times must use the HH:MM format')


class WaitlistEntryForm(ApiForm):
    """Form for creating/editing waitlist entries"""
    athlete_id = IntegerField('Athlete', validators=[InputRequired(message='Athlete is required')])
    reference_type = SelectField('Waiting For', validators=[DataRequired()])
    team_id = IntegerField('Team', validators=[Optional()])
    preferred_days = SelectMultipleField('Preferred Days', validators=[Optional()])
    preferred_start_time = OptionalStringField('From', validators=[Optional(), TIME_VALIDATOR])
    preferred_end_time = OptionalStringField('Until', validators=[Optional(), TIME_VALIDATOR])
    priority = SelectField('Priority', validators=[DataRequired()])
    notes = OptionalStringField('Notes', validators=[Optional(), Length(max=2000)])
    expires_at = ApiDateTimeField('Expires', validators=[Optional()])

    def __init__(self, *args, **kwargs):
        super(WaitlistEntryForm, self).__init__(*args, **kwargs)
        self.reference_type.choices = config_choices('WAITLIST_REFERENCE_TYPES')
        self.priority.choices = config_choices('WAITLIST_PRIORITIES')
        self.preferred_days.choices = [(day, day.title()) for day in current_app.config['DAYS_OF_WEEK']]

    def validate_reference_type(self, field):
        if field.data == 'team' and not self.team_id.data:
            raise ValidationError('A team is required for team waitlist entries')

    def validate(self, extra_validators=None):
        if not super(WaitlistEntryForm, self).validate(extra_validators):
            return False
        start = self.preferred_start_time.data
        end = self.preferred_end_time.data
        if start and end and end <= start:
            self.preferred_end_time.errors.append('The preferred end time must be after the start time')
            return False
        return True
