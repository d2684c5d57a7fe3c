"""
Team management forms
"""

from wtforms import StringField, SelectField, IntegerField
from wtforms.validators import DataRequired, Length, Optional, NumberRange, Regexp

from app.forms import ApiForm, OptionalStringField, config_choices


COLOR_VALIDATOR = Regexp(r'^#[0-9A-Fa-f]{6}$', message='Colours must be hex values like #1A2B3C')


class TeamForm(ApiForm):
    """Form for creating/editing teams"""
    name = StringField('Team Name', validators=[
        DataRequired(message='Team name is required'),
        Length(min=1, max=100, message='Team name must be between 1 and 100 characters')
    ])
    description = OptionalStringField('Description', validators=[Optional(), Length(max=2000)])
    sport = StringField('Sport', validators=[DataRequired(), Length(max=64)])
    age_category_id = IntegerField('Age Category', validators=[Optional()])
    status = SelectField('Status', validators=[DataRequired()])
    primary_color = OptionalStringField('Primary Colour', validators=[Optional(), COLOR_VALIDATOR])
    secondary_color = OptionalStringField('Secondary Colour', validators=[Optional(), COLOR_VALIDATOR])
    home_venue = OptionalStringField('Home Venue', validators=[Optional(), Length(max=255)])

    def __init__(self, *args, **kwargs):
        super(TeamForm, self).__init__(*args, **kwargs)
        self.status.choices = config_choices('TEAM_STATUSES')


class TeamMemberForm(ApiForm):
    """Form for a roster entry; used when adding athletes and when editing a member"""
    jersey_number = IntegerField('Jersey Number', validators=[Optional(), NumberRange(min=0, max=999)])
    position = OptionalStringField('Position', validators=[Optional(), Length(max=64)])
    role = SelectField('Role', validators=[DataRequired()])

    def __init__(self, *args, **kwargs):
        super(TeamMemberForm, self).__init__(*args, **kwargs)
        self.role.choices = config_choices('TEAM_MEMBER_ROLES')
