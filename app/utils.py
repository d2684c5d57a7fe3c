# Standard library imports
import re
import unicodedata
from datetime import date, datetime

# Third-party imports
import sqlalchemy as sa
from flask import current_app, request
from flask_mail import Message
from werkzeug.datastructures import MultiDict

# Local application imports
from app import db, mail
from app.errors import BadRequestError


def get_json_payload():
    """
    Return the JSON object sent with the current request.

    Raises:
        BadRequestError: if the body is missing or is not a JSON object.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BadRequestError('No JSON data provided')
    return data


def json_formdata(payload, base=None):
    """
    Convert a JSON payload into form data that WTForms can validate.

    Args:
        payload (dict): Decoded JSON body.
        base (dict): Optional current values (for partial updates); keys in
            ``payload`` override them.

    Returns:
        MultiDict: string values keyed by field name. None values are left
        out so Optional() validators see them as missing, booleans become
        'y'/'false' and lists become repeated keys.
    """
    merged = dict(base or {})
    merged.update(payload or {})

    formdata = MultiDict()
    for key, value in merged.items():
        if value is None:
            continue
        if isinstance(value, bool):
            formdata.add(key, 'y' if value else 'false')
        elif isinstance(value, datetime):
            formdata.add(key, value.strftime('%Y-%m-%dT%H:%M:%S'))
        elif isinstance(value, date):
            formdata.add(key, value.isoformat())
        elif isinstance(value, (list, tuple)):
            for item in value:
                formdata.add(key, str(item))
        else:
            formdata.add(key, str(value))
    return formdata


def slugify(value, max_length=100):
    """
    Create a URL-safe slug from a display name.

    Accented characters are folded to ASCII, anything else that is not a
    letter or digit becomes a single hyphen.
    """
    value = unicodedata.normalize('NFKD', value or '').encode('ascii', 'ignore').decode('ascii')
    value = re.sub(r'[^a-zA-Z0-9]+', '-', value).strip('-').lower()
    return value[:max_length].strip('-') or 'item'


def unique_slug(model, base_value, scope=None, exclude_id=None):
    """
    Return a slug for ``model`` that is not already taken.

    Args:
        model: Model class with a ``slug`` column.
        base_value (str): Name to derive the slug from.
        scope: Optional extra where clause (e.g. same organization).
        exclude_id (int): Record id to ignore (the record being renamed).
    """
    base_slug = slugify(base_value)
    candidate = base_slug
    counter = 2
    while True:
        query = sa.select(model.id).where(model.slug == candidate)
        if scope is not None:
            query = query.where(scope)
        if exclude_id is not None:
            query = query.where(model.id != exclude_id)
        if db.session.scalar(query) is None:
            return candidate
        candidate = f'{base_slug}-{counter}'
        counter += 1


def paginate_query(query):
    """
    Paginate a select statement using the page/per_page query arguments.

    Returns:
        tuple: (items, pagination metadata dict)
    """
    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', current_app.config['ITEMS_PER_PAGE'], type=int)
    pagination = db.paginate(
        query,
        page=max(page, 1),
        per_page=max(per_page, 1),
        max_per_page=current_app.config['MAX_ITEMS_PER_PAGE'],
        error_out=False
    )
    meta = {
        'page': pagination.page,
        'per_page': pagination.per_page,
        'total': pagination.total,
        'pages': pagination.pages,
    }
    return pagination.items, meta


def parse_date_arg(name):
    """Parse a YYYY-MM-DD query argument, returning None when absent."""
    value = request.args.get(name)
    if not value:
        return None
    try:
        return datetime.strptime(value, '%Y-%m-%d')
    except ValueError:
        raise BadRequestError(f'Invalid {name}, expected YYYY-MM-DD')


def send_email(subject, recipients, body):
    """
    Send a plain text email through Flask-Mail.

    Returns:
        bool: True if the email was handed to the mail server, False otherwise.
    """
    sender = (current_app.config.get('MAIL_DEFAULT_SENDER') or
              current_app.config.get('MAIL_USERNAME'))

    if not sender:
        current_app.logger.error("No email sender configured - missing MAIL_DEFAULT_SENDER and MAIL_USERNAME")
        return False

    try:
        msg = Message(subject=subject, recipients=recipients, sender=sender)
        msg.body = body
        mail.send(msg)
        return True
    except Exception as e:
        current_app.logger.error(f"Error sending email to {', '.join(recipients)}: {str(e)}")
        return False
