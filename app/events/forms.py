"""
Event management forms
"""

from wtforms import StringField, TextAreaField, SelectField, IntegerField, BooleanField
from wtforms.validators import DataRequired, InputRequired, Length, Optional, NumberRange, Email, Regexp, ValidationError

from app.forms import ApiForm, OptionalStringField, ApiDateTimeField, config_choices


SLUG_PATTERN = r'^[a-z0-9]+(?:-[a-z0-9]+)*$'


class AgeCategoryForm(ApiForm):
    """Form for creating/editing age categories"""
    name = StringField('Name', validators=[
        DataRequired(message='Name is required'),
        Length(max=64)
    ])
    display_name = OptionalStringField('Display Name', validators=[Optional(), Length(max=128)])
    min_birth_year = IntegerField('Min Birth Year', validators=[Optional(), NumberRange(min=1900, max=2100)])
    max_birth_year = IntegerField('Max Birth Year', validators=[Optional(), NumberRange(min=1900, max=2100)])
    is_active = BooleanField('Active')
    sort_order = IntegerField('Sort Order', validators=[Optional()])

    def validate_max_birth_year(self, field):
        if field.data is not None and self.min_birth_year.data is not None:
            if field.data < self.min_birth_year.data:
                raise ValidationError('Max birth year must not be before min birth year')


class SportsEventForm(ApiForm):
    """Form for creating/editing sports events"""
    name = StringField('Name', validators=[
        DataRequired(message='Event name is required'),
        Length(max=255)
    ])
    slug = OptionalStringField('Slug', validators=[
        Optional(),
        Length(max=255),
        Regexp(SLUG_PATTERN, message='Slug may only contain lowercase letters, digits and hyphens')
    ])
    description = TextAreaField('Description', validators=[Optional(), Length(max=10000)])
    event_type = SelectField('Event Type', validators=[DataRequired()])
    status = SelectField('Status', validators=[DataRequired()])
    start_date = ApiDateTimeField('Start', validators=[DataRequired(message='Start date is required')])
    end_date = ApiDateTimeField('End', validators=[DataRequired(message='End date is required')])
    venue_name = OptionalStringField('Venue', validators=[Optional(), Length(max=255)])
    venue_address = OptionalStringField('Venue Address', validators=[Optional(), Length(max=255)])
    city = OptionalStringField('City', validators=[Optional(), Length(max=128)])
    registration_open_date = ApiDateTimeField('Registration Opens', validators=[Optional()])
    registration_close_date = ApiDateTimeField('Registration Closes', validators=[Optional()])
    max_capacity = IntegerField('Max Capacity', validators=[Optional(), NumberRange(min=1)])
    enable_waitlist = BooleanField('Enable Waitlist')
    max_waitlist_size = IntegerField('Max Waitlist Size', validators=[Optional(), NumberRange(min=0)])
    currency = StringField('Currency', validators=[DataRequired(), Length(min=3, max=3)])
    contact_email = OptionalStringField('Contact Email', validators=[Optional(), Email(), Length(max=120)])
    contact_phone = OptionalStringField('Contact Phone', validators=[Optional(), Length(max=32)])

    def __init__(self, *args, **kwargs):
        super(SportsEventForm, self).__init__(*args, **kwargs)
        self.event_type.choices = config_choices('EVENT_TYPES')
        self.status.choices = config_choices('EVENT_STATUSES')

    def validate_end_date(self, field):
        if field.data and self.start_date.data and field.data < self.start_date.data:
            raise ValidationError('End date must be on or after the start date')

    def validate_registration_close_date(self, field):
        if field.data and self.registration_open_date.data and field.data < self.registration_open_date.data:
            raise ValidationError('Registration close date must be on or after the open date')


class EventStatusForm(ApiForm):
    """Form for changing the status of an event"""
    status = SelectField('Status', validators=[DataRequired()])

    def __init__(self, *args, **kwargs):
        super(EventStatusForm, self).__init__(*args, **kwargs)
        self.status.choices = config_choices('EVENT_STATUSES')


class PricingTierForm(ApiForm):
    """Form for creating/editing pricing tiers"""
    name = StringField('Name', validators=[
        DataRequired(message='Tier name is required'),
        Length(max=128)
    ])
    description = OptionalStringField('Description', validators=[Optional(), Length(max=255)])
    tier_type = SelectField('Tier Type', validators=[DataRequired()])
    age_category_id = IntegerField('Age Category', validators=[Optional()])
    valid_from = ApiDateTimeField('Valid From', validators=[Optional()])
    valid_until = ApiDateTimeField('Valid Until', validators=[Optional()])
    capacity_start = IntegerField('Capacity Start', validators=[Optional(), NumberRange(min=1)])
    capacity_end = IntegerField('Capacity End', validators=[Optional(), NumberRange(min=1)])
    price = IntegerField('Price', validators=[
        InputRequired(message='Price is required'),
        NumberRange(min=0, message='Price cannot be negative')
    ])
    currency = StringField('Currency', validators=[DataRequired(), Length(min=3, max=3)])
    is_active = BooleanField('Active')
    sort_order = IntegerField('Sort Order', validators=[Optional()])

    def __init__(self, *args, **kwargs):
        super(PricingTierForm, self).__init__(*args, **kwargs)
        self.tier_type.choices = config_choices('PRICING_TIER_TYPES')

    def validate_tier_type(self, field):
        # Window fields are Optional, so the cross-field checks live here
        if field.data == 'date_based' and self.valid_from.data is None and self.valid_until.data is None:
            raise ValidationError('Date based tiers need a start or end date')
        if field.data == 'capacity_based' and self.capacity_start.data is None and self.capacity_end.data is None:
            raise ValidationError('Capacity based tiers need a start or end position')

    def validate_valid_until(self, field):
        if field.data and self.valid_from.data and field.data < self.valid_from.data:
            raise ValidationError('Valid until must be on or after valid from')

    def validate_capacity_end(self, field):
        if field.data is not None and self.capacity_start.data is not None:
            if field.data < self.capacity_start.data:
                raise ValidationError('Capacity end must not be lower than capacity start')
