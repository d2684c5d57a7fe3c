# Shared form building blocks for the JSON API
#
# Every blueprint validates request bodies with Flask-WTF forms. JSON payloads
# are converted to form data by app.utils.json_formdata before validation.

# Third-party imports
from flask import current_app
from flask_wtf import FlaskForm
from wtforms import StringField, DateTimeField
from wtforms.validators import ValidationError


# Accepted datetime formats for API input, first entry is used for output
DATETIME_FORMATS = [
    '%Y-%m-%dT%H:%M:%S',
    '%Y-%m-%dT%H:%M:%S.%f',
    '%Y-%m-%dT%H:%M',
    '%Y-%m-%dT%H:%M:%SZ',
    '%Y-%m-%d %H:%M:%S',
    '%Y-%m-%d %H:%M',
]


class ApiForm(FlaskForm):
    """
    Base form for JSON endpoints.

    CSRF protection is disabled because the API is consumed with session
    cookies set to SameSite=Lax and JSON bodies, never HTML form posts.
    """
    class Meta:
        csrf = False


class OptionalStringField(StringField):
    """String field that strips whitespace and stores blank input as None"""

    def process_formdata(self, valuelist):
        super().process_formdata(valuelist)
        if isinstance(self.data, str):
            self.data = self.data.strip() or None


class ApiDateTimeField(DateTimeField):
    """DateTimeField accepting the ISO 8601 variants the clients send"""

    def __init__(self, label=None, validators=None, format=None, **kwargs):
        super().__init__(label, validators, format=format or DATETIME_FORMATS, **kwargs)


def config_choices(key):
    """Build (value, label) choices from a config dict such as EVENT_STATUSES"""
    return [(value, label) for label, value in current_app.config[key].items()]


def config_values(key):
    """List of allowed values from a config dict or list"""
    options = current_app.config[key]
    if isinstance(options, dict):
        return list(options.values())
    return list(options)


class ConfigAnyOf:
    """
    Validator accepting only values listed in a config option dict.

    Empty values are accepted so it can be combined with Optional().
    """
    def __init__(self, key, message=None):
        self.key = key
        self.message = message

    def __call__(self, form, field):
        if field.data in (None, ''):
            return
        allowed = config_values(self.key)
        if field.data not in allowed:
            raise ValidationError(self.message or f'Must be one of: {", ".join(allowed)}')


def parse_id_list(value):
    """
    Parse a list of ids from a JSON list or a comma separated string.

    Raises ValueError for anything that is not a positive integer.
    """
    if value is None:
        return []
    if isinstance(value, str):
        value = [part for part in value.split(',') if part.strip()]
    if not isinstance(value, (list, tuple)):
        raise ValueError('Expected a list of ids')
    ids = []
    for item in value:
        if isinstance(item, bool):
            raise ValueError('Expected a list of ids')
        number = int(str(item).strip())
        if number < 1:
            raise ValueError('Ids must be positive integers')
        if number not in ids:
            ids.append(number)
    return ids
