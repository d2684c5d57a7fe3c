"""
Helpers for the public event pages.
"""

from functools import wraps

import sqlalchemy as sa
from flask import current_app, g

from app import db
from app.models import Organization, SportsEvent, User, Athlete, utc_now
from app.errors import NotFoundError


def public_organization(f):
    """
    Decorator resolving <org_slug> for unauthenticated routes.

    The view receives the organization as the ``organization`` keyword
    argument.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        org_slug = kwargs.pop('org_slug')
        organization = db.session.scalar(sa.select(Organization).where(Organization.slug == org_slug))
        if organization is None:
            raise NotFoundError('Organization not found')
        g.organization = organization
        return f(*args, organization=organization, **kwargs)
    return decorated_function


def get_public_event(organization, event_slug):
    """Load an event by slug if it is visible on the public pages."""
    event = db.session.scalar(
        sa.select(SportsEvent).where(
            SportsEvent.organization_id == organization.id,
            SportsEvent.slug == event_slug,
            SportsEvent.status.in_(current_app.config['PUBLIC_EVENT_STATUSES'])
        )
    )
    if event is None:
        raise NotFoundError('Event not found')
    return event


def get_public_event_summary(event, now=None):
    """Event fields shown in public listings"""
    return {
        'id': event.id,
        'name': event.name,
        'slug': event.slug,
        'description': event.description,
        'event_type': event.event_type,
        'status': event.status,
        'start_date': event.start_date.isoformat(),
        'end_date': event.end_date.isoformat(),
        'venue_name': event.venue_name,
        'city': event.city,
        'currency': event.currency,
        'lowest_price': event.get_lowest_price(),
        'spots_available': event.spots_available,
        'is_registration_open': event.is_registration_open(now or utc_now()),
    }


def get_public_event_detail(event, now=None):
    """Event detail for the public registration page"""
    data = get_public_event_summary(event, now)
    data.update({
        'venue_address': event.venue_address,
        'registration_open_date': event.registration_open_date.isoformat() if event.registration_open_date else None,
        'registration_close_date': event.registration_close_date.isoformat() if event.registration_close_date else None,
        'max_capacity': event.max_capacity,
        'enable_waitlist': event.enable_waitlist,
        'waitlist_count': event.get_waitlist_count(),
        'contact_email': event.contact_email,
        'contact_phone': event.contact_phone,
        'pricing_tiers': [
            {
                'id': tier.id,
                'name': tier.name,
                'description': tier.description,
                'tier_type': tier.tier_type,
                'age_category_id': tier.age_category_id,
                'valid_from': tier.valid_from.isoformat() if tier.valid_from else None,
                'valid_until': tier.valid_until.isoformat() if tier.valid_until else None,
                'capacity_start': tier.capacity_start,
                'capacity_end': tier.capacity_end,
                'price': tier.price,
            }
            for tier in event.get_active_tiers()
        ],
        'age_categories': get_public_age_categories(event),
    })
    return data


def get_public_age_categories(event):
    return [
        {
            'id': link.age_category_id,
            'name': link.age_category.name,
            'display_name': link.age_category.display_name or link.age_category.name,
            'min_birth_year': link.age_category.min_birth_year,
            'max_birth_year': link.age_category.max_birth_year,
            'spots_available': (
                max(0, link.max_capacity - link.current_registrations)
                if link.max_capacity is not None else None
            ),
        }
        for link in event.age_categories
        if link.age_category.is_active
    ]


def lookup_registrant(organization, email):
    """
    Prefill data for a returning registrant.

    Only the registrant's own name, phone and birth date are returned, and
    only when an account with that email exists.
    """
    user = db.session.scalar(sa.select(User).where(User.email == email))
    if user is None:
        return None
    athlete = db.session.scalar(
        sa.select(Athlete).where(Athlete.organization_id == organization.id, Athlete.user_id == user.id)
    )
    return {
        'registrant_name': athlete.name if athlete else user.name,
        'registrant_phone': (athlete.phone if athlete else None) or user.phone,
        'registrant_birth_date': athlete.birth_date.isoformat() if athlete and athlete.birth_date else None,
    }
