"""
Registration management forms
"""

from wtforms import StringField, TextAreaField, SelectField, IntegerField, DateField
from wtforms.validators import DataRequired, Length, Optional

from app.forms import ApiForm, OptionalStringField, config_choices


class RegistrationUpdateForm(ApiForm):
    """Form for staff edits of registrant contact data and notes"""
    registrant_name = StringField('Name', validators=[DataRequired(), Length(max=128)])
    registrant_phone = OptionalStringField('Phone', validators=[Optional(), Length(max=32)])
    registrant_birth_date = DateField('Birth Date', validators=[Optional()])
    emergency_contact_name = OptionalStringField('Emergency Contact', validators=[Optional(), Length(max=128)])
    emergency_contact_phone = OptionalStringField('Emergency Phone', validators=[Optional(), Length(max=32)])
    emergency_contact_relation = OptionalStringField('Relation', validators=[Optional(), Length(max=64)])
    notes = OptionalStringField('Notes', validators=[Optional(), Length(max=2000)])
    internal_notes = OptionalStringField('Internal Notes', validators=[Optional(), Length(max=5000)])


class RegistrationStatusForm(ApiForm):
    """Form for setting a registration status"""
    status = SelectField('Status', validators=[DataRequired()])

    def __init__(self, *args, **kwargs):
        super(RegistrationStatusForm, self).__init__(*args, **kwargs)
        # Registrations only join the waitlist when they are created
        self.status.choices = [
            choice for choice in config_choices('REGISTRATION_STATUSES') if choice[0] != 'waitlist'
        ]


class CancelRegistrationForm(ApiForm):
    """Form for cancelling a registration"""
    reason = TextAreaField('Reason', validators=[Optional(), Length(max=500)])


class RegisterAthletesForm(ApiForm):
    """Form for registering existing athletes; ids are parsed separately"""
    age_category_id = IntegerField('Age Category', validators=[Optional()])
