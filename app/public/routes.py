"""
Public event routes. No authentication; everything is scoped to the
organization in the URL and to publicly visible events.
"""

import sqlalchemy as sa
from flask import request, current_app, jsonify

from app import db, limiter
from app.public import bp
from app.models import SportsEvent, utc_now
from app.errors import FieldhouseError, BadRequestError, validation_error_response
from app.events.utils import calculate_registration_price, get_next_registration_number
from app.public.forms import PublicRegistrationForm
from app.public.utils import (
    public_organization, get_public_event, get_public_event_summary, get_public_event_detail,
    get_public_age_categories, lookup_registrant
)
from app.registrations.utils import (
    register_for_event, find_registration_by_email, normalize_email, send_registration_confirmation
)
from app.utils import get_json_payload, json_formdata
from app.audit import audit_log_create


def _registration_rate_limit():
    return current_app.config['PUBLIC_REGISTRATION_RATE_LIMIT']


def _require_email_arg():
    email = normalize_email(request.args.get('email'))
    if not email or '@' not in email:
        raise BadRequestError('A valid email is required')
    return email


@bp.route('/events')
@public_organization
def list_events(organization):
    """
    Events that are published, open for registration or in progress and
    have not ended yet.
    """
    now = utc_now()
    query = sa.select(SportsEvent).where(
        SportsEvent.organization_id == organization.id,
        SportsEvent.status.in_(current_app.config['PUBLIC_EVENT_STATUSES']),
        SportsEvent.end_date >= now
    )
    event_type = request.args.get('event_type')
    if event_type:
        query = query.where(SportsEvent.event_type == event_type)

    events = db.session.scalars(query.order_by(SportsEvent.start_date)).all()
    return jsonify({
        'success': True,
        'organization': {'name': organization.name, 'slug': organization.slug},
        'events': [get_public_event_summary(event, now) for event in events]
    })


@bp.route('/events/<event_slug>')
@public_organization
def get_event(organization, event_slug):
    """
    Event detail with active pricing tiers, age categories and availability.
    """
    event = get_public_event(organization, event_slug)
    return jsonify({'success': True, 'event': get_public_event_detail(event)})


@bp.route('/events/<event_slug>/categories')
@public_organization
def get_categories(organization, event_slug):
    """
    Age categories offered by an event.
    """
    event = get_public_event(organization, event_slug)
    return jsonify({'success': True, 'age_categories': get_public_age_categories(event)})


@bp.route('/events/<event_slug>/price')
@public_organization
def get_price(organization, event_slug):
    """
    Price quote for the next registration, optionally for an age category.
    """
    event = get_public_event(organization, event_slug)
    age_category_id = request.args.get('age_category_id', type=int)
    quote = calculate_registration_price(event.id, get_next_registration_number(event.id), age_category_id)
    return jsonify({
        'success': True,
        'price': quote.price,
        'currency': event.currency,
        'pricing_tier_id': quote.tier_id,
        'pricing_tier_name': quote.tier_name
    })


@bp.route('/events/<event_slug>/check-email')
@public_organization
def check_email(organization, event_slug):
    """
    Whether an email is already registered for the event.
    """
    event = get_public_event(organization, event_slug)
    email = _require_email_arg()
    return jsonify({
        'success': True,
        'registered': find_registration_by_email(event.id, email) is not None
    })


@bp.route('/events/<event_slug>/lookup')
@public_organization
def lookup(organization, event_slug):
    """
    Prefill data for a returning registrant.
    """
    get_public_event(organization, event_slug)
    email = _require_email_arg()
    prefill = lookup_registrant(organization, email)
    return jsonify({
        'success': True,
        'found': prefill is not None,
        'registrant': prefill
    })


@bp.route('/events/<event_slug>/register', methods=['POST'])
@limiter.limit(_registration_rate_limit)
@public_organization
def register(organization, event_slug):
    """
    Public self-registration.

    Returns the registration with its number, status (pending_payment or
    waitlist), waitlist position and price.
    """
    event = get_public_event(organization, event_slug)
    form = PublicRegistrationForm(formdata=json_formdata(get_json_payload()))
    if not form.validate():
        return validation_error_response(form)

    try:
        registration = register_for_event(event, form.get_registrant())
    except FieldhouseError as e:
        current_app.logger.info(f"Public registration for event {event.id} rejected: {e.message}")
        raise

    audit_log_create('EventRegistration', registration.id,
                     f'Public registration #{registration.registration_number} for event: {event.name}',
                     {'status': registration.status, 'price': registration.price})

    send_registration_confirmation(registration)

    return jsonify({
        'success': True,
        'registration': registration.to_dict(include_internal=False)
    }), 201
