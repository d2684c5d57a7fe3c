"""
Organization forms
"""

from wtforms import StringField, SelectField
from wtforms.validators import DataRequired, Email, Length, Optional, Regexp

from app.forms import ApiForm, OptionalStringField, config_values


class OrganizationForm(ApiForm):
    """Form for creating/editing organizations"""
    name = StringField('Name', validators=[DataRequired(message='Organization name is required'), Length(max=128)])
    email = OptionalStringField('Email', validators=[Optional(), Email(), Length(max=120)])
    phone = OptionalStringField('Phone', validators=[Optional(), Length(max=32)])
    website = OptionalStringField('Website', validators=[Optional(), Length(max=255)])
    address = OptionalStringField('Address', validators=[Optional(), Length(max=255)])
    currency = StringField('Currency', validators=[
        DataRequired(),
        Regexp(r'^[A-Za-z]{3}$', message='Currency must be a 3 letter ISO code')
    ])


class MemberRoleForm(ApiForm):
    """Form for changing a member's role"""
    role = SelectField('Role', validators=[DataRequired()])

    def __init__(self, *args, **kwargs):
        super(MemberRoleForm, self).__init__(*args, **kwargs)
        self.role.choices = [(role, role.title()) for role in config_values('ORGANIZATION_ROLES')]


class MemberForm(MemberRoleForm):
    """Form for adding an existing user to an organization"""
    email = StringField('Email', validators=[DataRequired(), Email(), Length(max=120)])
