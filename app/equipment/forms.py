"""
Equipment forms
"""

from wtforms import StringField, SelectField, IntegerField, DateField
from wtforms.validators import DataRequired, InputRequired, Length, Optional, NumberRange, Regexp, ValidationError

from app.forms import ApiForm, OptionalStringField, ConfigAnyOf, config_choices


class EquipmentForm(ApiForm):
    """Form for creating/editing equipment"""
    name = StringField('Name', validators=[DataRequired(message='Name is required'), Length(max=128)])
    description = OptionalStringField('Description', validators=[Optional(), Length(max=2000)])
    category = SelectField('Category', validators=[DataRequired()])
    brand = OptionalStringField('Brand', validators=[Optional(), Length(max=64)])
    model = OptionalStringField('Model', validators=[Optional(), Length(max=64)])
    total_quantity = IntegerField('Total Quantity', validators=[
        InputRequired(message='Total quantity is required'),
        NumberRange(min=1, message='Total quantity must be at least 1')
    ])
    condition = SelectField('Condition', validators=[DataRequired()])
    status = SelectField('Status', validators=[DataRequired()])
    purchase_date = DateField('Purchase Date', validators=[Optional()])
    purchase_price = IntegerField('Purchase Price', validators=[Optional(), NumberRange(min=0)])
    currency = StringField('Currency', validators=[
        DataRequired(),
        Regexp(r'^[A-Za-z]{3}$', message='Currency must be a 3 letter ISO code')
    ])
    storage_location = OptionalStringField('Storage Location', validators=[Optional(), Length(max=128)])
    notes = OptionalStringField('Notes', validators=[Optional(), Length(max=2000)])

    def __init__(self, *args, **kwargs):
        super(EquipmentForm, self).__init__(*args, **kwargs)
        self.category.choices = config_choices('EQUIPMENT_CATEGORIES')
        self.condition.choices = config_choices('EQUIPMENT_CONDITIONS')
        self.status.choices = config_choices('EQUIPMENT_STATUSES')


class AssignmentForm(ApiForm):
    """Form for assigning equipment to a coach, team or training session"""
    quantity = IntegerField('Quantity', validators=[
        InputRequired(message='Quantity is required'),
        NumberRange(min=1, message='Quantity must be at least 1')
    ])
    coach_id = IntegerField('Coach', validators=[Optional()])
    team_id = IntegerField('Team', validators=[Optional()])
    training_session_id = IntegerField('Training Session', validators=[Optional()])
    expected_return_date = DateField('Expected Return', validators=[Optional()])
    notes = OptionalStringField('Notes', validators=[Optional(), Length(max=2000)])

    def validate_quantity(self, field):
        if not (self.coach_id.data or self.team_id.data or self.training_session_id.data):
            raise ValidationError('Assign the equipment to a coach, a team or a training session')


class ReturnForm(ApiForm):
    """Form for returning assigned equipment"""
    condition_on_return = OptionalStringField('Condition', validators=[
        Optional(), ConfigAnyOf('EQUIPMENT_CONDITIONS')
    ])
    notes = OptionalStringField('Notes', validators=[Optional(), Length(max=2000)])
