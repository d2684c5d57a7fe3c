"""
Training session forms
"""

from wtforms import StringField, SelectField, IntegerField, TextAreaField
from wtforms.validators import DataRequired, InputRequired, Length, Optional, ValidationError

from app.forms import ApiForm, ApiDateTimeField, OptionalStringField, config_choices

# Statuses reached through the complete and cancel actions only
CLOSED_SESSION_STATUSES = ('completed', 'cancelled')


class TrainingSessionForm(ApiForm):
    """Form for creating/editing training sessions"""
    title = StringField('Title', validators=[DataRequired(message='Title is required'), Length(max=255)])
    description = OptionalStringField('Description', validators=[Optional(), Length(max=5000)])
    team_id = IntegerField('Team', validators=[Optional()])
    start_time = ApiDateTimeField('Start', validators=[DataRequired(message='Start time is required')])
    end_time = ApiDateTimeField('End', validators=[DataRequired(message='End time is required')])
    location = OptionalStringField('Location', validators=[Optional(), Length(max=255)])
    status = SelectField('Status', validators=[DataRequired()])
    objectives = OptionalStringField('Objectives', validators=[Optional(), Length(max=5000)])
    notes = OptionalStringField('Notes', validators=[Optional(), Length(max=5000)])

    def __init__(self, *args, **kwargs):
        super(TrainingSessionForm, self).__init__(*args, **kwargs)
        self.status.choices = [
            choice for choice in config_choices('TRAINING_SESSION_STATUSES')
            if choice[0] not in CLOSED_SESSION_STATUSES
        ]

    def validate_end_time(self, field):
        if self.start_time.data and field.data and field.data <= self.start_time.data:
            raise ValidationError('End time must be after the start time')


class AttendanceForm(ApiForm):
    """One attendance record"""
    athlete_id = IntegerField('Athlete', validators=[InputRequired(message='Athlete is required')])
    status = SelectField('Status', validators=[DataRequired()])
    notes = OptionalStringField('Notes', validators=[Optional(), Length(max=255)])

    def __init__(self, *args, **kwargs):
        super(AttendanceForm, self).__init__(*args, **kwargs)
        self.status.choices = config_choices('ATTENDANCE_STATUSES')


class CancelSessionForm(ApiForm):
    """Form for cancelling a training session"""
    reason = TextAreaField('Reason', validators=[Optional(), Length(max=255)])
