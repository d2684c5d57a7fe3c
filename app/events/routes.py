"""
Sports event management routes.

Age categories, events, pricing tiers and price previews for staff of an
organization. Public event pages live in the public blueprint.
"""

import sqlalchemy as sa
from flask import request, current_app, jsonify
from flask_login import login_required, current_user

from app import db
from app.events import bp
from app.models import AgeCategory, SportsEvent, PricingTier, EventRegistration
from app.routes import organization_required, get_organization_record, MANAGER_ROLES
from app.errors import FieldhouseError, BadRequestError, ConflictError, validation_error_response
from app.events.forms import AgeCategoryForm, SportsEventForm, EventStatusForm, PricingTierForm
from app.events.utils import (
    calculate_registration_price, get_next_registration_number, get_organization_event,
    get_event_tier, check_age_category, set_event_age_categories, duplicate_event, get_event_detail
)
from app.utils import get_json_payload, json_formdata, paginate_query, unique_slug
from app.audit import audit_log_create, audit_log_update, audit_log_delete, get_model_changes


EVENT_FIELDS = [
    'name', 'description', 'event_type', 'status', 'start_date', 'end_date', 'venue_name',
    'venue_address', 'city', 'registration_open_date', 'registration_close_date', 'max_capacity',
    'enable_waitlist', 'max_waitlist_size', 'currency', 'contact_email', 'contact_phone'
]

TIER_FIELDS = [
    'name', 'description', 'tier_type', 'age_category_id', 'valid_from', 'valid_until',
    'capacity_start', 'capacity_end', 'price', 'currency', 'is_active'
]


def _form_values(form, fields):
    return {field: getattr(form, field).data for field in fields}


# =============================================================================
# AGE CATEGORIES
# =============================================================================

@bp.route('/age-categories')
@login_required
@organization_required()
def list_age_categories(organization):
    """
    List the organization's age categories.
    """
    query = sa.select(AgeCategory).where(AgeCategory.organization_id == organization.id)
    if request.args.get('active') == 'true':
        query = query.where(AgeCategory.is_active == True)
    categories = db.session.scalars(query.order_by(AgeCategory.sort_order, AgeCategory.name)).all()
    return jsonify({
        'success': True,
        'age_categories': [category.to_dict() for category in categories]
    })


@bp.route('/age-categories', methods=['POST'])
@login_required
@organization_required(*MANAGER_ROLES)
def create_age_category(organization):
    """
    Create an age category. Names are unique within the organization.
    """
    data = get_json_payload()
    form = AgeCategoryForm(formdata=json_formdata(data, base={'is_active': True, 'sort_order': 0}))
    if not form.validate():
        return validation_error_response(form)

    try:
        existing = db.session.scalar(
            sa.select(AgeCategory.id).where(
                AgeCategory.organization_id == organization.id,
                AgeCategory.name == form.name.data
            )
        )
        if existing:
            raise ConflictError('An age category with this name already exists')

        category = AgeCategory(organization_id=organization.id)
        form.populate_obj(category)
        category.sort_order = form.sort_order.data or 0
        db.session.add(category)
        db.session.commit()

        audit_log_create('AgeCategory', category.id, f'Created age category: {category.name}')

        return jsonify({'success': True, 'age_category': category.to_dict()}), 201

    except FieldhouseError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error creating age category: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while creating the age category'
        }), 500


@bp.route('/age-categories/<int:category_id>', methods=['PATCH'])
@login_required
@organization_required(*MANAGER_ROLES)
def update_age_category(organization, category_id):
    """
    Update an age category.
    """
    category = get_organization_record(AgeCategory, category_id, organization, 'Age category')
    data = get_json_payload()
    form = AgeCategoryForm(formdata=json_formdata(data, base=category.to_dict()))
    if not form.validate():
        return validation_error_response(form)

    try:
        duplicate = db.session.scalar(
            sa.select(AgeCategory.id).where(
                AgeCategory.organization_id == organization.id,
                AgeCategory.name == form.name.data,
                AgeCategory.id != category.id
            )
        )
        if duplicate:
            raise ConflictError('An age category with this name already exists')

        changes = get_model_changes(category, form.data)
        form.populate_obj(category)
        category.sort_order = form.sort_order.data or 0
        db.session.commit()

        audit_log_update('AgeCategory', category.id, f'Updated age category: {category.name}', changes)

        return jsonify({'success': True, 'age_category': category.to_dict()})

    except FieldhouseError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating age category {category_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while updating the age category'
        }), 500


@bp.route('/age-categories/<int:category_id>', methods=['DELETE'])
@login_required
@organization_required(*MANAGER_ROLES)
def delete_age_category(organization, category_id):
    """
    Delete an age category. Linked events lose the category, tiers and
    registrations keep their data without it.
    """
    category = get_organization_record(AgeCategory, category_id, organization, 'Age category')
    try:
        name = category.name
        db.session.delete(category)
        db.session.commit()

        audit_log_delete('AgeCategory', category_id, f'Deleted age category: {name}')

        return jsonify({'success': True, 'message': f'Age category "{name}" deleted'})

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error deleting age category {category_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while deleting the age category'
        }), 500


# =============================================================================
# EVENTS
# =============================================================================

@bp.route('/events')
@login_required
@organization_required()
def list_events(organization):
    """
    List events with optional status, type and name filters.
    """
    query = sa.select(SportsEvent).where(SportsEvent.organization_id == organization.id)

    status = request.args.get('status')
    if status:
        query = query.where(SportsEvent.status == status)
    event_type = request.args.get('event_type')
    if event_type:
        query = query.where(SportsEvent.event_type == event_type)
    search = request.args.get('search', '').strip()
    if search:
        query = query.where(SportsEvent.name.ilike(f'%{search}%'))

    events, pagination = paginate_query(query.order_by(SportsEvent.start_date.desc(), SportsEvent.id.desc()))
    return jsonify({
        'success': True,
        'events': [event.to_dict() for event in events],
        'pagination': pagination
    })


@bp.route('/events', methods=['POST'])
@login_required
@organization_required(*MANAGER_ROLES)
def create_event(organization):
    """
    Create a new event. The slug is derived from the name unless given.
    """
    data = get_json_payload()
    defaults = {
        'event_type': 'other',
        'status': 'draft',
        'enable_waitlist': True,
        'currency': organization.currency,
    }
    form = SportsEventForm(formdata=json_formdata(data, base=defaults))
    if not form.validate():
        return validation_error_response(form)

    try:
        scope = SportsEvent.organization_id == organization.id
        if form.slug.data:
            taken = db.session.scalar(sa.select(SportsEvent.id).where(scope, SportsEvent.slug == form.slug.data))
            if taken:
                raise ConflictError('An event with this slug already exists')
            slug = form.slug.data
        else:
            slug = unique_slug(SportsEvent, form.name.data, scope=scope)

        event = SportsEvent(
            organization_id=organization.id,
            slug=slug,
            current_registrations=0,
            created_by_id=current_user.id,
            **_form_values(form, EVENT_FIELDS)
        )
        event.currency = event.currency.upper()
        db.session.add(event)
        db.session.commit()

        audit_log_create('SportsEvent', event.id, f'Created event: {event.name}',
                         {'slug': event.slug, 'status': event.status})

        return jsonify({'success': True, 'event': get_event_detail(event)}), 201

    except FieldhouseError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error creating event: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while creating the event'
        }), 500


@bp.route('/events/<int:event_id>')
@login_required
@organization_required()
def get_event(organization, event_id):
    """
    Get event details with age categories and pricing tiers.
    """
    event = get_organization_event(organization, event_id)
    return jsonify({'success': True, 'event': get_event_detail(event)})


@bp.route('/events/<int:event_id>', methods=['PATCH'])
@login_required
@organization_required(*MANAGER_ROLES)
def update_event(organization, event_id):
    """
    Update an event. Capacity cannot drop below the seats already taken.
    """
    event = get_organization_event(organization, event_id)
    data = get_json_payload()
    form = SportsEventForm(formdata=json_formdata(data, base=event.to_dict()))
    if not form.validate():
        return validation_error_response(form)

    try:
        if form.max_capacity.data is not None and form.max_capacity.data < event.current_registrations:
            raise BadRequestError(
                f'Capacity cannot be lower than the {event.current_registrations} current registrations'
            )

        if form.slug.data and form.slug.data != event.slug:
            taken = db.session.scalar(
                sa.select(SportsEvent.id).where(
                    SportsEvent.organization_id == organization.id,
                    SportsEvent.slug == form.slug.data
                )
            )
            if taken:
                raise ConflictError('An event with this slug already exists')
            event.slug = form.slug.data

        values = _form_values(form, EVENT_FIELDS)
        values['currency'] = values['currency'].upper()
        changes = get_model_changes(event, values)
        for field, value in values.items():
            setattr(event, field, value)
        db.session.commit()

        audit_log_update('SportsEvent', event.id, f'Updated event: {event.name}', changes)

        return jsonify({'success': True, 'event': get_event_detail(event)})

    except FieldhouseError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating event {event_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while updating the event'
        }), 500


@bp.route('/events/<int:event_id>/status', methods=['POST'])
@login_required
@organization_required(*MANAGER_ROLES)
def update_event_status(organization, event_id):
    """
    Move an event to another status.
    """
    event = get_organization_event(organization, event_id)
    form = EventStatusForm(formdata=json_formdata(get_json_payload()))
    if not form.validate():
        return validation_error_response(form)

    try:
        old_status = event.status
        event.status = form.status.data
        db.session.commit()

        audit_log_update('SportsEvent', event.id, f'Changed event status: {event.name}',
                         {'status': old_status})

        return jsonify({'success': True, 'event': event.to_dict()})

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating status of event {event_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while updating the event status'
        }), 500


@bp.route('/events/<int:event_id>/duplicate', methods=['POST'])
@login_required
@organization_required(*MANAGER_ROLES)
def duplicate_event_route(organization, event_id):
    """
    Duplicate an event with its pricing tiers and age categories as a draft.
    """
    event = get_organization_event(organization, event_id)
    try:
        copy = duplicate_event(event, created_by_id=current_user.id)
        db.session.commit()

        audit_log_create('SportsEvent', copy.id, f'Duplicated event {event.id} as: {copy.name}')

        return jsonify({'success': True, 'event': get_event_detail(copy)}), 201

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error duplicating event {event_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while duplicating the event'
        }), 500


@bp.route('/events/<int:event_id>', methods=['DELETE'])
@login_required
@organization_required(*MANAGER_ROLES)
def delete_event(organization, event_id):
    """
    Delete an event. Events with active or waitlisted registrations must be
    cancelled instead.
    """
    event = get_organization_event(organization, event_id)
    active = db.session.scalar(
        sa.select(sa.func.count(EventRegistration.id)).where(
            EventRegistration.event_id == event.id,
            EventRegistration.status.in_(['pending_payment', 'confirmed', 'waitlist'])
        )
    )
    if active:
        raise ConflictError('Event has active registrations, cancel it instead')

    try:
        name = event.name
        db.session.delete(event)
        db.session.commit()

        audit_log_delete('SportsEvent', event_id, f'Deleted event: {name}')

        return jsonify({'success': True, 'message': f'Event "{name}" deleted'})

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error deleting event {event_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while deleting the event'
        }), 500


@bp.route('/events/<int:event_id>/age-categories', methods=['PUT'])
@login_required
@organization_required(*MANAGER_ROLES)
def set_age_categories(organization, event_id):
    """
    Replace the age categories offered by an event.

    Body: {"categories": [{"age_category_id": 1, "max_capacity": 20}, ...]}
    """
    event = get_organization_event(organization, event_id)
    data = get_json_payload()
    entries = data.get('categories')
    if not isinstance(entries, list):
        raise BadRequestError('categories must be a list')

    try:
        links = set_event_age_categories(event, organization, entries)
        db.session.commit()

        audit_log_update('SportsEvent', event.id, f'Set {len(links)} age categories for event: {event.name}')

        return jsonify({
            'success': True,
            'age_categories': [link.to_dict() for link in event.age_categories]
        })

    except FieldhouseError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error setting age categories for event {event_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while updating the event age categories'
        }), 500


# =============================================================================
# PRICING TIERS
# =============================================================================

@bp.route('/events/<int:event_id>/pricing-tiers')
@login_required
@organization_required()
def list_pricing_tiers(organization, event_id):
    """
    List all pricing tiers of an event, inactive ones included.
    """
    event = get_organization_event(organization, event_id)
    return jsonify({
        'success': True,
        'pricing_tiers': [tier.to_dict() for tier in event.pricing_tiers]
    })


@bp.route('/events/<int:event_id>/pricing-tiers', methods=['POST'])
@login_required
@organization_required(*MANAGER_ROLES)
def create_pricing_tier(organization, event_id):
    """
    Add a pricing tier to an event.
    """
    event = get_organization_event(organization, event_id)
    data = get_json_payload()
    defaults = {'tier_type': 'date_based', 'is_active': True, 'currency': event.currency, 'sort_order': 0}
    form = PricingTierForm(formdata=json_formdata(data, base=defaults))
    if not form.validate():
        return validation_error_response(form)

    try:
        check_age_category(organization, form.age_category_id.data)

        tier = PricingTier(event_id=event.id, sort_order=form.sort_order.data or 0,
                           **_form_values(form, TIER_FIELDS))
        tier.currency = tier.currency.upper()
        db.session.add(tier)
        db.session.commit()

        audit_log_create('PricingTier', tier.id, f'Created pricing tier "{tier.name}" for event: {event.name}',
                         {'price': tier.price, 'tier_type': tier.tier_type})

        return jsonify({'success': True, 'pricing_tier': tier.to_dict()}), 201

    except FieldhouseError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error creating pricing tier for event {event_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while creating the pricing tier'
        }), 500


@bp.route('/events/<int:event_id>/pricing-tiers/<int:tier_id>', methods=['PATCH'])
@login_required
@organization_required(*MANAGER_ROLES)
def update_pricing_tier(organization, event_id, tier_id):
    """
    Update a pricing tier. Existing registrations keep the price they got.
    """
    event = get_organization_event(organization, event_id)
    tier = get_event_tier(event, tier_id)
    data = get_json_payload()
    form = PricingTierForm(formdata=json_formdata(data, base=tier.to_dict()))
    if not form.validate():
        return validation_error_response(form)

    try:
        check_age_category(organization, form.age_category_id.data)

        values = _form_values(form, TIER_FIELDS)
        values['currency'] = values['currency'].upper()
        values['sort_order'] = form.sort_order.data or 0
        changes = get_model_changes(tier, values)
        for field, value in values.items():
            setattr(tier, field, value)
        db.session.commit()

        audit_log_update('PricingTier', tier.id, f'Updated pricing tier "{tier.name}" for event: {event.name}', changes)

        return jsonify({'success': True, 'pricing_tier': tier.to_dict()})

    except FieldhouseError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating pricing tier {tier_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while updating the pricing tier'
        }), 500


@bp.route('/events/<int:event_id>/pricing-tiers/<int:tier_id>', methods=['DELETE'])
@login_required
@organization_required(*MANAGER_ROLES)
def delete_pricing_tier(organization, event_id, tier_id):
    """
    Delete a pricing tier.
    """
    event = get_organization_event(organization, event_id)
    tier = get_event_tier(event, tier_id)
    try:
        name = tier.name
        db.session.delete(tier)
        db.session.commit()

        audit_log_delete('PricingTier', tier_id, f'Deleted pricing tier "{name}" from event: {event.name}')

        return jsonify({'success': True, 'message': f'Pricing tier "{name}" deleted'})

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error deleting pricing tier {tier_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while deleting the pricing tier'
        }), 500


@bp.route('/events/<int:event_id>/price-preview')
@login_required
@organization_required()
def price_preview(organization, event_id):
    """
    Price the next registration would get, optionally for an age category.
    """
    event = get_organization_event(organization, event_id)
    age_category_id = request.args.get('age_category_id', type=int)
    registration_number = get_next_registration_number(event.id)
    quote = calculate_registration_price(event.id, registration_number, age_category_id)
    return jsonify({
        'success': True,
        'registration_number': registration_number,
        'price': quote.price,
        'currency': event.currency,
        'pricing_tier_id': quote.tier_id,
        'pricing_tier_name': quote.tier_name
    })
