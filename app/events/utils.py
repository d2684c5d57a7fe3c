"""
Utility functions for sports events and pricing.
"""

from collections import namedtuple

import sqlalchemy as sa

from app import db
from app.models import SportsEvent, EventAgeCategory, PricingTier, EventRegistration, AgeCategory, utc_now
from app.errors import BadRequestError, NotFoundError
from app.utils import unique_slug


PriceQuote = namedtuple('PriceQuote', ['price', 'tier_id', 'tier_name'])


def get_active_pricing_tiers(event_id):
    """Active tiers of an event in resolution order (sort_order, price, id)."""
    return db.session.scalars(
        sa.select(PricingTier)
        .where(PricingTier.event_id == event_id, PricingTier.is_active == True)
        .order_by(PricingTier.sort_order, PricingTier.price, PricingTier.id)
    ).all()


def calculate_registration_price(event_id, registration_number, age_category_id=None, now=None):
    """
    Resolve the price for a registration.

    Among the active tiers that apply to the registration (age category,
    date window and capacity window) the cheapest wins; equal prices keep
    tier order. When no tier applies the first tier in order is used.

    Args:
        event_id (int): Event being registered for.
        registration_number (int): 1-based number the registration will get.
        age_category_id (int): Registrant's age category, if any.
        now (datetime): Naive UTC time to evaluate date windows against.

    Returns:
        PriceQuote: (price, tier_id, tier_name)

    Raises:
        BadRequestError: if the event has no active pricing tiers.
    """
    now = now or utc_now()
    tiers = get_active_pricing_tiers(event_id)
    if not tiers:
        raise BadRequestError('No pricing configured for this event')

    applicable = [tier for tier in tiers if tier.applies_to(registration_number, age_category_id, now)]
    if applicable:
        # min() keeps the first of equally priced tiers
        chosen = min(applicable, key=lambda tier: tier.price)
    else:
        chosen = tiers[0]

    return PriceQuote(chosen.price, chosen.id, chosen.name)


def get_next_registration_number(event_id):
    """Highest registration number used by the event plus one."""
    highest = db.session.scalar(
        sa.select(sa.func.max(EventRegistration.registration_number))
        .where(EventRegistration.event_id == event_id)
    )
    return (highest or 0) + 1


def get_organization_event(organization, event_id):
    event = db.session.get(SportsEvent, event_id)
    if event is None or event.organization_id != organization.id:
        raise NotFoundError('Event not found')
    return event


def get_event_tier(event, tier_id):
    tier = db.session.get(PricingTier, tier_id)
    if tier is None or tier.event_id != event.id:
        raise NotFoundError('Pricing tier not found')
    return tier


def check_age_category(organization, age_category_id):
    """Ensure an age category id belongs to the organization."""
    if age_category_id is None:
        return None
    category = db.session.get(AgeCategory, age_category_id)
    if category is None or category.organization_id != organization.id:
        raise BadRequestError('Age category not found')
    return category


def set_event_age_categories(event, organization, entries):
    """
    Replace the age categories linked to an event.

    Args:
        entries (list): dicts with ``age_category_id`` and optional
            ``max_capacity``.

    Links that are kept keep their registration counters.
    """
    wanted = {}
    for entry in entries:
        if not isinstance(entry, dict) or entry.get('age_category_id') is None:
            raise BadRequestError('Each category needs an age_category_id')
        try:
            category_id = int(entry['age_category_id'])
            max_capacity = entry.get('max_capacity')
            max_capacity = int(max_capacity) if max_capacity is not None else None
        except (TypeError, ValueError):
            raise BadRequestError('Age category ids and capacities must be integers')
        if max_capacity is not None and max_capacity < 1:
            raise BadRequestError('Age category capacity must be at least 1')
        check_age_category(organization, category_id)
        wanted[category_id] = max_capacity

    for link in list(event.age_categories):
        if link.age_category_id not in wanted:
            event.age_categories.remove(link)

    for category_id, max_capacity in wanted.items():
        link = event.get_age_category_link(category_id)
        if link is None:
            event.age_categories.append(EventAgeCategory(
                age_category_id=category_id,
                max_capacity=max_capacity,
                current_registrations=0
            ))
        else:
            link.max_capacity = max_capacity

    return event.age_categories


def duplicate_event(event, created_by_id=None):
    """
    Copy an event with its pricing tiers and age categories.

    The copy starts as a draft with no registrations. Tier and category
    settings are copied verbatim, dates included.
    """
    name = f'{event.name} (Copy)'
    copy = SportsEvent(
        organization_id=event.organization_id,
        name=name,
        slug=unique_slug(SportsEvent, name, scope=SportsEvent.organization_id == event.organization_id),
        description=event.description,
        event_type=event.event_type,
        status='draft',
        start_date=event.start_date,
        end_date=event.end_date,
        venue_name=event.venue_name,
        venue_address=event.venue_address,
        city=event.city,
        registration_open_date=event.registration_open_date,
        registration_close_date=event.registration_close_date,
        max_capacity=event.max_capacity,
        current_registrations=0,
        enable_waitlist=event.enable_waitlist,
        max_waitlist_size=event.max_waitlist_size,
        currency=event.currency,
        contact_email=event.contact_email,
        contact_phone=event.contact_phone,
        created_by_id=created_by_id,
    )

    for link in event.age_categories:
        copy.age_categories.append(EventAgeCategory(
            age_category_id=link.age_category_id,
            max_capacity=link.max_capacity,
            current_registrations=0
        ))

    for tier in event.pricing_tiers:
        copy.pricing_tiers.append(PricingTier(
            name=tier.name,
            description=tier.description,
            tier_type=tier.tier_type,
            age_category_id=tier.age_category_id,
            valid_from=tier.valid_from,
            valid_until=tier.valid_until,
            capacity_start=tier.capacity_start,
            capacity_end=tier.capacity_end,
            price=tier.price,
            currency=tier.currency,
            is_active=tier.is_active,
            sort_order=tier.sort_order,
        ))

    db.session.add(copy)
    return copy


def get_event_detail(event):
    """Event data including linked age categories and pricing tiers"""
    data = event.to_dict()
    data['age_categories'] = [link.to_dict() for link in event.age_categories]
    data['pricing_tiers'] = [tier.to_dict() for tier in event.pricing_tiers]
    data['waitlist_count'] = event.get_waitlist_count()
    data['lowest_price'] = event.get_lowest_price()
    return data
