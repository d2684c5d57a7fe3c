"""
Registration service functions.

All seat accounting for events goes through this module: an event's
``current_registrations`` counts the registrations holding a seat
(pending payment, confirmed or no show), never the waitlist.
"""

import secrets

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError
from flask import current_app

from app import db
from app.models import SportsEvent, EventAgeCategory, EventRegistration, User, Athlete, utc_now
from app.errors import BadRequestError, ConflictError, NotFoundError
from app.events.utils import calculate_registration_price, get_next_registration_number
from app.utils import send_email


# Statuses staff may set directly; the waitlist is only entered at registration time
STAFF_SETTABLE_STATUSES = ('pending_payment', 'confirmed', 'cancelled', 'refunded', 'no_show')


def normalize_email(email):
    return (email or '').strip().lower()


def find_registration_by_email(event_id, email):
    return db.session.scalar(
        sa.select(EventRegistration).where(
            EventRegistration.event_id == event_id,
            EventRegistration.registrant_email == normalize_email(email)
        )
    )


def count_waitlisted(event_id):
    return db.session.scalar(
        sa.select(sa.func.count(EventRegistration.id)).where(
            EventRegistration.event_id == event_id,
            EventRegistration.status == 'waitlist'
        )
    ) or 0


def lock_event(event_id):
    """
    Reload an event row with a write lock held until the transaction ends.

    The lock is taken with an UPDATE that leaves the row unchanged before
    anything is read. On PostgreSQL this locks the row; on SQLite it opens
    the write transaction, so concurrent writers wait for the commit instead
    of reading the same counters. SELECT ... FOR UPDATE then reloads the row
    on databases that support it.

    Raises:
        NotFoundError: if the event no longer exists.
    """
    db.session.execute(
        sa.update(SportsEvent)
        .where(SportsEvent.id == event_id)
        # updated_at is set explicitly so onupdate does not touch it
        .values(current_registrations=SportsEvent.current_registrations,
                updated_at=SportsEvent.updated_at)
        .execution_options(synchronize_session=False)
    )
    event = db.session.scalar(
        sa.select(SportsEvent)
        .where(SportsEvent.id == event_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    if event is None:
        raise NotFoundError('Event not found')
    return event


def check_registration_window(event, now):
    """Raise unless the event currently accepts public registrations."""
    if event.status != 'registration_open':
        raise NotFoundError('Event not found or registration is closed')
    if event.registration_open_date and now < event.registration_open_date:
        raise BadRequestError('Registration has not opened yet')
    if event.registration_close_date and now > event.registration_close_date:
        raise BadRequestError('Registration has closed')


def get_or_create_registrant_athlete(organization_id, email, registrant):
    """
    Find or create the user account and organization athlete for a registrant.

    New accounts get a random password; the registrant can never log in with
    it until an administrator sets one.
    """
    user = db.session.scalar(sa.select(User).where(User.email == email))
    if user is None:
        user = User(email=email, name=registrant['registrant_name'], phone=registrant.get('registrant_phone'))
        user.set_password(secrets.token_urlsafe(32))
        db.session.add(user)
        db.session.flush()

    athlete = db.session.scalar(
        sa.select(Athlete).where(Athlete.organization_id == organization_id, Athlete.user_id == user.id)
    )
    if athlete is None:
        athlete = Athlete(
            organization_id=organization_id,
            user_id=user.id,
            name=registrant['registrant_name'],
            email=email,
            phone=registrant.get('registrant_phone'),
            birth_date=registrant.get('registrant_birth_date'),
            sport='general',
            level='beginner',
            status='active',
            parent_name=registrant.get('parent_name'),
            parent_email=registrant.get('parent_email'),
            parent_phone=registrant.get('parent_phone'),
        )
        db.session.add(athlete)
        db.session.flush()

    return user, athlete


def _get_category_link(registration):
    """Reload the registration's age category link; callers hold the event lock."""
    if registration.age_category_id is None:
        return None
    return db.session.scalar(
        sa.select(EventAgeCategory)
        .where(EventAgeCategory.event_id == registration.event.id,
               EventAgeCategory.age_category_id == registration.age_category_id)
        .execution_options(populate_existing=True)
    )


# Both seat helpers expect lock_event() to have been called in the current transaction
def _take_seat(registration):
    registration.event.current_registrations += 1
    link = _get_category_link(registration)
    if link is not None:
        link.current_registrations += 1


def _release_seat(registration):
    event = registration.event
    event.current_registrations = max(0, event.current_registrations - 1)
    link = _get_category_link(registration)
    if link is not None:
        link.current_registrations = max(0, link.current_registrations - 1)


def renumber_waitlist(event_id):
    """Close gaps in waitlist positions, keeping the existing order."""
    waitlisted = db.session.scalars(
        sa.select(EventRegistration)
        .where(EventRegistration.event_id == event_id, EventRegistration.status == 'waitlist')
        .order_by(EventRegistration.waitlist_position, EventRegistration.registration_number)
    ).all()
    for position, registration in enumerate(waitlisted, start=1):
        registration.waitlist_position = position
    return len(waitlisted)


def create_registration(event, registrant, now=None, source='public', registered_by_id=None, athlete=None):
    """
    Insert a registration for an event in a single transaction.

    The event row is locked, the registration gets the next number, and it
    either takes a seat (pending payment) or joins the waitlist when the
    event is full. Price resolution, account creation and counter updates
    happen in the same transaction; any failure rolls all of it back.

    Args:
        event (SportsEvent): Event to register for.
        registrant (dict): Validated registrant data (registrant_name,
            registrant_email, optional phone, birth date, emergency contact,
            age_category_id, notes, parent contact, accept_terms).
        now (datetime): Naive UTC time used for pricing windows.
        source (str): 'public' or 'admin'.
        registered_by_id (int): Staff user creating the registration.
        athlete (Athlete): Existing athlete to register instead of the one
            derived from the registrant email.

    Returns:
        EventRegistration: the committed registration.

    Raises:
        BadRequestError: event full without waitlist, waitlist full, no pricing.
        ConflictError: email already registered, or a concurrent insert won.
    """
    now = now or utc_now()
    email = normalize_email(registrant['registrant_email'])
    age_category_id = registrant.get('age_category_id')

    if age_category_id is not None and event.get_age_category_link(age_category_id) is None:
        raise BadRequestError('Age category is not offered for this event')

    try:
        event = lock_event(event.id)
        if find_registration_by_email(event.id, email) is not None:
            raise ConflictError('This email is already registered for this event')

        registration_number = get_next_registration_number(event.id)

        status = 'pending_payment'
        waitlist_position = None
        if event.is_full():
            if not event.enable_waitlist:
                raise BadRequestError('Event is at capacity and waitlist is disabled')
            waitlisted = count_waitlisted(event.id)
            if event.max_waitlist_size is not None and waitlisted >= event.max_waitlist_size:
                raise BadRequestError('Waitlist is full')
            status = 'waitlist'
            waitlist_position = waitlisted + 1

        quote = calculate_registration_price(event.id, registration_number, age_category_id, now)

        if athlete is None:
            user, athlete = get_or_create_registrant_athlete(event.organization_id, email, registrant)
            user_id = user.id
        else:
            user_id = athlete.user_id

        registration = EventRegistration(
            event=event,
            organization_id=event.organization_id,
            registration_number=registration_number,
            user_id=user_id,
            athlete_id=athlete.id,
            age_category_id=age_category_id,
            pricing_tier_id=quote.tier_id,
            price=quote.price,
            currency=event.currency,
            status=status,
            waitlist_position=waitlist_position,
            registrant_name=registrant['registrant_name'],
            registrant_email=email,
            registrant_phone=registrant.get('registrant_phone'),
            registrant_birth_date=registrant.get('registrant_birth_date'),
            emergency_contact_name=registrant.get('emergency_contact_name'),
            emergency_contact_phone=registrant.get('emergency_contact_phone'),
            emergency_contact_relation=registrant.get('emergency_contact_relation'),
            notes=registrant.get('notes'),
            registration_source=source,
            registered_by_id=registered_by_id,
            terms_accepted_at=now if registrant.get('accept_terms') else None,
        )
        db.session.add(registration)

        if status != 'waitlist':
            _take_seat(registration)

        db.session.commit()

    except IntegrityError:
        db.session.rollback()
        if find_registration_by_email(event.id, email) is not None:
            raise ConflictError('This email is already registered for this event')
        raise ConflictError('Another registration was processed at the same time, please try again')
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        f"Registration #{registration.registration_number} for event {event.id} created "
        f"with status {registration.status} (source: {source})"
    )
    return registration


def register_for_event(event, registrant, now=None):
    """
    Public registration: check the registration window, then register.

    See create_registration for the transactional part.
    """
    now = now or utc_now()
    check_registration_window(event, now)
    return create_registration(event, registrant, now=now, source='public')


def register_existing_athletes(event, athlete_ids, age_category_id=None, registered_by_id=None, now=None):
    """
    Register organization athletes for an event on their behalf.

    Every athlete is registered in its own transaction with the same seat
    and waitlist rules as public registrations; the registration window is
    not enforced for staff.

    Returns:
        tuple: (list of registrations, list of {'athlete_id', 'error'} dicts)
    """
    if event.status in ('cancelled', 'completed'):
        raise BadRequestError(f'Cannot register athletes for a {event.status} event')

    registered = []
    skipped = []
    for athlete_id in athlete_ids:
        athlete = db.session.get(Athlete, athlete_id)
        if athlete is None or athlete.organization_id != event.organization_id:
            skipped.append({'athlete_id': athlete_id, 'error': 'Athlete not found'})
            continue

        email = athlete.email or (athlete.user.email if athlete.user else None)
        if not email:
            skipped.append({'athlete_id': athlete_id, 'error': 'Athlete has no email address'})
            continue

        registrant = {
            'registrant_name': athlete.name,
            'registrant_email': email,
            'registrant_phone': athlete.phone,
            'registrant_birth_date': athlete.birth_date,
            'age_category_id': age_category_id,
        }
        try:
            registered.append(create_registration(
                event, registrant, now=now, source='admin',
                registered_by_id=registered_by_id, athlete=athlete
            ))
        except (BadRequestError, ConflictError) as e:
            skipped.append({'athlete_id': athlete_id, 'error': e.message})

    return registered, skipped


def change_registration_status(registration, new_status, now=None):
    """
    Set a registration's status and keep the seat counters in line.

    Leaving a seat-holding status frees the seat (counters never go below
    zero), entering one takes a seat. Leaving the waitlist clears the
    position and closes the gap behind it. The event row is locked before
    the counters are read.

    Returns:
        bool: False when the registration already had that status.
    """
    if new_status not in STAFF_SETTABLE_STATUSES:
        raise BadRequestError(f'Invalid status: {new_status}')
    if registration.status == new_status:
        return False

    now = now or utc_now()
    lock_event(registration.event_id)
    was_waitlisted = registration.status == 'waitlist'
    held_seat = registration.holds_seat()

    registration.status = new_status
    if held_seat and not registration.holds_seat():
        _release_seat(registration)
    elif registration.holds_seat() and not held_seat:
        _take_seat(registration)

    if new_status == 'confirmed':
        registration.confirmed_at = now
    elif new_status == 'cancelled':
        registration.cancelled_at = now

    if was_waitlisted:
        registration.waitlist_position = None
        db.session.flush()
        renumber_waitlist(registration.event_id)

    return True


def cancel_registration(registration, reason=None, now=None):
    """
    Cancel a registration, appending the reason to the internal notes.
    """
    if registration.status in ('cancelled', 'refunded'):
        raise BadRequestError('Registration is already cancelled')

    now = now or utc_now()
    change_registration_status(registration, 'cancelled', now)
    if reason:
        line = f"[Cancelled {now.strftime('%Y-%m-%d %H:%M')}] {reason}"
        registration.internal_notes = f"{registration.internal_notes}\n{line}" if registration.internal_notes else line
    return registration


def confirm_from_waitlist(registration, now=None):
    """
    Promote a waitlisted registration to pending payment.

    Staff promotion is allowed even when it takes the event above
    max_capacity.
    """
    if registration.status != 'waitlist':
        raise BadRequestError('Registration is not on the waitlist')
    change_registration_status(registration, 'pending_payment', now)
    return registration


def send_registration_confirmation(registration):
    """
    Email the registrant a confirmation. Failures are logged, never raised.
    """
    event = registration.event
    if registration.status == 'waitlist':
        status_line = f'You are number {registration.waitlist_position} on the waitlist.'
    else:
        status_line = 'Your place is reserved pending payment.'

    amount = registration.price / 100
    body = f'''Hello {registration.registrant_name},

Thank you for registering for {event.name}.

Registration number: {registration.registration_number}
Price: {amount:.2f} {registration.currency}
{status_line}

Event starts: {event.start_date.strftime('%Y-%m-%d %H:%M')}
Venue: {event.venue_name or 'To be confirmed'}

Best regards,
{event.organization.name}
'''
    return send_email(f'Registration received - {event.name}', [registration.registrant_email], body)
