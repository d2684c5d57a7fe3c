"""
Athlete and medical document forms
"""

import os

from flask import current_app
from flask_wtf.file import FileField, FileRequired
from wtforms import StringField, SelectField, IntegerField, DateField
from wtforms.validators import DataRequired, Email, Length, Optional, NumberRange, ValidationError

from app.forms import ApiForm, OptionalStringField, config_choices


class AthleteForm(ApiForm):
    """Form for creating/editing athlete profiles"""
    name = StringField('Name', validators=[DataRequired(message='Name is required'), Length(max=128)])
    email = OptionalStringField('Email', validators=[Optional(), Email(), Length(max=120)])
    phone = OptionalStringField('Phone', validators=[Optional(), Length(max=32)])
    birth_date = DateField('Birth Date', validators=[Optional()])
    sport = StringField('Sport', validators=[DataRequired(), Length(max=64)])
    level = SelectField('Level', validators=[DataRequired()])
    status = SelectField('Status', validators=[DataRequired()])
    position = OptionalStringField('Position', validators=[Optional(), Length(max=64)])
    jersey_number = IntegerField('Jersey Number', validators=[Optional(), NumberRange(min=0, max=999)])
    parent_name = OptionalStringField('Parent Name', validators=[Optional(), Length(max=128)])
    parent_email = OptionalStringField('Parent Email', validators=[Optional(), Email(), Length(max=120)])
    parent_phone = OptionalStringField('Parent Phone', validators=[Optional(), Length(max=32)])
    notes = OptionalStringField('Notes', validators=[Optional(), Length(max=5000)])

    def __init__(self, *args, **kwargs):
        super(AthleteForm, self).__init__(*args, **kwargs)
        self.level.choices = config_choices('ATHLETE_LEVELS')
        self.status.choices = config_choices('ATHLETE_STATUSES')

    def validate_birth_date(self, field):
        from app.models import utc_now
        if field.data and field.data > utc_now().date():
            raise ValidationError('Birth date cannot be in the future')


class MedicalDocumentForm(ApiForm):
    """Multipart form for uploading a medical document"""
    file = FileField('File', validators=[FileRequired(message='A file is required')])
    document_type = SelectField('Document Type', validators=[DataRequired()], default='other')
    title = OptionalStringField('Title', validators=[Optional(), Length(max=255)])
    issued_date = DateField('Issued', validators=[Optional()])
    expiry_date = DateField('Expires', validators=[Optional()])
    notes = OptionalStringField('Notes', validators=[Optional(), Length(max=2000)])

    def __init__(self, *args, **kwargs):
        super(MedicalDocumentForm, self).__init__(*args, **kwargs)
        self.document_type.choices = config_choices('MEDICAL_DOCUMENT_TYPES')

    def validate_file(self, field):
        allowed = current_app.config['MEDICAL_ALLOWED_EXTENSIONS']
        extension = os.path.splitext(field.data.filename or '')[1].lower().lstrip('.')
        if extension not in allowed:
            raise ValidationError(f'File type not allowed. Allowed types: {", ".join(allowed)}')

    def validate_expiry_date(self, field):
        if field.data and self.issued_date.data and field.data < self.issued_date.data:
            raise ValidationError('Expiry date must be after the issue date')
