"""
Public registration form
"""

from wtforms import StringField, IntegerField, DateField, BooleanField
from wtforms.validators import DataRequired, Length, Optional, Email, ValidationError

from app.forms import ApiForm, OptionalStringField


class PublicRegistrationForm(ApiForm):
    """Form for self-registration to a public event"""
    registrant_name = StringField('Name', validators=[
        DataRequired(message='Name is required'),
        Length(max=128)
    ])
    registrant_email = StringField('Email', validators=[
        DataRequired(message='Valid email is required'),
        Email(message='Valid email is required'),
        Length(max=120)
    ])
    registrant_phone = OptionalStringField('Phone', validators=[Optional(), Length(max=32)])
    registrant_birth_date = DateField('Birth Date', validators=[Optional()])

    emergency_contact_name = OptionalStringField('Emergency Contact', validators=[Optional(), Length(max=128)])
    emergency_contact_phone = OptionalStringField('Emergency Phone', validators=[Optional(), Length(max=32)])
    emergency_contact_relation = OptionalStringField('Relation', validators=[Optional(), Length(max=64)])

    # Parent/guardian contact, copied to new athlete profiles
    parent_name = OptionalStringField('Parent Name', validators=[Optional(), Length(max=128)])
    parent_phone = OptionalStringField('Parent Phone', validators=[Optional(), Length(max=32)])
    parent_email = OptionalStringField('Parent Email', validators=[Optional(), Email(), Length(max=120)])

    age_category_id = IntegerField('Age Category', validators=[Optional()])
    notes = OptionalStringField('Notes', validators=[Optional(), Length(max=2000)])

    accept_terms = BooleanField('Accept Terms')
    confirm_medical_fitness = BooleanField('Medical Fitness')

    def validate_accept_terms(self, field):
        if not field.data:
            raise ValidationError('You must accept the terms and conditions')

    def validate_confirm_medical_fitness(self, field):
        if not field.data:
            raise ValidationError('You must confirm medical fitness')

    def get_registrant(self):
        """Registrant data in the shape create_registration expects"""
        data = dict(self.data)
        data.pop('confirm_medical_fitness')
        data['registrant_email'] = data['registrant_email'].strip().lower()
        return data
