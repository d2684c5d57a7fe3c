"""
Unit tests for the registration service: seats, waitlist and status changes.
"""
import threading
import pytest
from datetime import timedelta
import sqlalchemy as sa
from app import create_app, db
from app.models import SportsEvent, EventRegistration, User, Athlete, OrganizationMember, utc_now
from app.errors import BadRequestError, ConflictError, NotFoundError
from app.registrations.utils import (
    create_registration, register_for_event, register_existing_athletes, change_registration_status,
    cancel_registration, confirm_from_waitlist, normalize_email, lock_event
)
from config import TestingConfig
from tests.fixtures.factories import (
    SportsEventFactory, PricingTierFactory, EventAgeCategoryFactory, AthleteFactory, UserFactory,
    OrganizationFactory
)


def registrant(name='Ana Perez', email='ana@clubmail.com', **extra):
    data = {'registrant_name': name, 'registrant_email': email}
    data.update(extra)
    return data


@pytest.fixture
def event(db_session):
    event = SportsEventFactory.create(max_capacity=2)
    PricingTierFactory.create(event=event, price=12000)
    return event


def fill_event(event, count):
    return [
        create_registration(event, registrant(f'Runner {n}', f'runner{n}@clubmail.com'))
        for n in range(count)
    ]


@pytest.mark.unit
class TestCreateRegistration:
    """Test cases for create_registration."""

    def test_registration_takes_a_seat(self, event, db_session):
        """Test a registration with room gets a seat and the resolved price."""
        registration = create_registration(event, registrant())

        db_session.refresh(event)
        assert registration.id is not None
        assert registration.registration_number == 1
        assert registration.status == 'pending_payment'
        assert registration.waitlist_position is None
        assert registration.price == 12000
        assert registration.currency == 'ARS'
        assert registration.registration_source == 'public'
        assert event.current_registrations == 1

    def test_registration_creates_account_and_athlete(self, event, db_session):
        """Test a new registrant gets a user account and an athlete profile but no membership."""
        registration = create_registration(event, registrant(registrant_phone='555-0101'))

        user = db_session.get(User, registration.user_id)
        athlete = db_session.get(Athlete, registration.athlete_id)
        assert user.email == 'ana@clubmail.com'
        assert athlete.organization_id == event.organization_id
        assert athlete.user_id == user.id
        assert athlete.phone == '555-0101'
        memberships = db_session.scalars(
            sa.select(OrganizationMember).where(OrganizationMember.user_id == user.id)
        ).all()
        assert memberships == []

    def test_existing_account_is_reused(self, event, db_session):
        """Test a registrant with an account is linked to it."""
        user = UserFactory.create(email='ana@clubmail.com')

        registration = create_registration(event, registrant(email='ANA@clubmail.com '))

        assert registration.user_id == user.id
        assert registration.registrant_email == 'ana@clubmail.com'

    def test_duplicate_email_is_rejected(self, event, db_session):
        """Test the same email cannot register twice, whatever its case."""
        create_registration(event, registrant())

        with pytest.raises(ConflictError):
            create_registration(event, registrant(name='Someone Else', email='Ana@ClubMail.com'))

        db_session.refresh(event)
        assert event.current_registrations == 1

    def test_numbers_are_sequential(self, event):
        """Test registration numbers increase by one per registration."""
        first, second = fill_event(event, 2)

        assert (first.registration_number, second.registration_number) == (1, 2)

    def test_terms_acceptance_is_recorded(self, event):
        """Test accepting the terms stamps the registration with the registration time."""
        now = utc_now()

        accepted = create_registration(event, registrant(accept_terms=True), now=now)
        staff = create_registration(event, registrant('Bruno Diaz', 'bruno@clubmail.com'), source='admin')

        assert accepted.terms_accepted_at == now
        assert staff.terms_accepted_at is None

    def test_lock_event_unknown_id(self, db_session):
        """Test locking an unknown event raises not found."""
        with pytest.raises(NotFoundError) as excinfo:
            lock_event(99999)

        assert excinfo.value.message == 'Event not found'

    def test_full_event_puts_registrant_on_waitlist(self, event, db_session):
        """Test registrations beyond capacity join the waitlist in order."""
        fill_event(event, 2)

        first = create_registration(event, registrant('Late One', 'late1@clubmail.com'))
        second = create_registration(event, registrant('Late Two', 'late2@clubmail.com'))

        db_session.refresh(event)
        assert first.status == 'waitlist'
        assert first.waitlist_position == 1
        assert second.waitlist_position == 2
        assert second.registration_number == 4
        assert event.current_registrations == 2
        assert event.get_waitlist_count() == 2

    def test_full_event_without_waitlist_is_rejected(self, db_session):
        """Test a full event with the waitlist disabled refuses registrations."""
        event = SportsEventFactory.create(max_capacity=1, enable_waitlist=False)
        PricingTierFactory.create(event=event)
        fill_event(event, 1)

        with pytest.raises(BadRequestError) as excinfo:
            create_registration(event, registrant())

        assert 'waitlist is disabled' in excinfo.value.message
        count = db_session.scalar(sa.select(sa.func.count(EventRegistration.id)))
        assert count == 1

    def test_full_waitlist_is_rejected(self, db_session):
        """Test the waitlist size limit is enforced."""
        event = SportsEventFactory.create(max_capacity=1, max_waitlist_size=1)
        PricingTierFactory.create(event=event)
        fill_event(event, 2)

        with pytest.raises(BadRequestError) as excinfo:
            create_registration(event, registrant())
        assert 'Waitlist is full' in excinfo.value.message

    def test_unlimited_capacity_never_waitlists(self, db_session):
        """Test events without max_capacity accept every registration."""
        event = SportsEventFactory.create(max_capacity=None)
        PricingTierFactory.create(event=event)

        registrations = fill_event(event, 5)

        assert all(registration.status == 'pending_payment' for registration in registrations)

    def test_age_category_must_be_offered(self, event):
        """Test an age category not linked to the event is refused."""
        other_event = SportsEventFactory.create(organization_id=event.organization_id)
        link = EventAgeCategoryFactory.create(event=other_event)

        with pytest.raises(BadRequestError):
            create_registration(event, registrant(age_category_id=link.age_category_id))

    def test_age_category_counter_follows_seats(self, event, db_session):
        """Test a seat in an age category increments its counter."""
        link = EventAgeCategoryFactory.create(event=event)

        create_registration(event, registrant(age_category_id=link.age_category_id))

        db_session.refresh(link)
        assert link.current_registrations == 1

    def test_event_without_pricing_is_rejected(self, db_session):
        """Test registration fails cleanly when no tier exists."""
        event = SportsEventFactory.create()

        with pytest.raises(BadRequestError):
            create_registration(event, registrant())

        assert db_session.scalar(sa.select(sa.func.count(User.id))) == 0


@pytest.mark.unit
class TestRegisterForEvent:
    """Test the registration window checks of public registration."""

    def test_event_not_open_is_not_found(self, db_session):
        """Test events not open for registration are hidden."""
        event = SportsEventFactory.create(status='published')
        PricingTierFactory.create(event=event)

        with pytest.raises(NotFoundError):
            register_for_event(event, registrant())

    def test_before_window_is_rejected(self, db_session):
        """Test registration before the open date fails."""
        event = SportsEventFactory.create(registration_open_date=utc_now() + timedelta(days=1))
        PricingTierFactory.create(event=event)

        with pytest.raises(BadRequestError) as excinfo:
            register_for_event(event, registrant())
        assert 'not opened' in excinfo.value.message

    def test_after_window_is_rejected(self, db_session):
        """Test registration after the close date fails."""
        event = SportsEventFactory.create(registration_close_date=utc_now() - timedelta(hours=1))
        PricingTierFactory.create(event=event)

        with pytest.raises(BadRequestError) as excinfo:
            register_for_event(event, registrant())
        assert 'closed' in excinfo.value.message

    def test_open_window_registers(self, event):
        """Test a registration inside the window succeeds."""
        registration = register_for_event(event, registrant())

        assert registration.status == 'pending_payment'


@pytest.mark.unit
class TestStatusChanges:
    """Test seat accounting on status changes."""

    def test_confirming_keeps_the_seat(self, event, db_session):
        """Test pending payment to confirmed does not change the counter."""
        registration = create_registration(event, registrant())

        assert change_registration_status(registration, 'confirmed') is True
        db_session.commit()

        db_session.refresh(event)
        assert event.current_registrations == 1
        assert registration.confirmed_at is not None

    def test_same_status_is_a_no_op(self, event):
        """Test setting the current status reports no change."""
        registration = create_registration(event, registrant())

        assert change_registration_status(registration, 'pending_payment') is False

    def test_cancelling_releases_the_seat(self, event, db_session):
        """Test cancelled registrations free their seat."""
        registration = create_registration(event, registrant())

        change_registration_status(registration, 'cancelled')
        db_session.commit()

        db_session.refresh(event)
        assert event.current_registrations == 0
        assert registration.cancelled_at is not None

    def test_reinstating_takes_the_seat_again(self, event, db_session):
        """Test moving a cancelled registration back to confirmed takes a seat."""
        registration = create_registration(event, registrant())
        change_registration_status(registration, 'cancelled')
        change_registration_status(registration, 'confirmed')
        db_session.commit()

        db_session.refresh(event)
        assert event.current_registrations == 1

    def test_no_show_holds_the_seat(self, event, db_session):
        """Test no shows still count against capacity."""
        registration = create_registration(event, registrant())

        change_registration_status(registration, 'no_show')
        db_session.commit()

        db_session.refresh(event)
        assert event.current_registrations == 1

    def test_counter_never_goes_negative(self, event, db_session):
        """Test releasing a seat on a zero counter keeps it at zero."""
        registration = create_registration(event, registrant())
        event.current_registrations = 0
        db_session.commit()

        change_registration_status(registration, 'refunded')
        db_session.commit()

        db_session.refresh(event)
        assert event.current_registrations == 0

    def test_status_change_reads_the_stored_counter(self, event, db_session):
        """Test the counter is reloaded before a status change releases a seat."""
        registration = create_registration(event, registrant())
        # Another seat taken behind the session's back; the loaded event still says 1
        db_session.execute(
            sa.update(SportsEvent)
            .where(SportsEvent.id == event.id)
            .values(current_registrations=SportsEvent.current_registrations + 1)
            .execution_options(synchronize_session=False)
        )

        change_registration_status(registration, 'cancelled')
        db_session.commit()

        db_session.refresh(event)
        assert event.current_registrations == 1

    def test_waitlist_is_not_a_settable_status(self, event):
        """Test staff cannot move a registration onto the waitlist directly."""
        registration = create_registration(event, registrant())

        with pytest.raises(BadRequestError):
            change_registration_status(registration, 'waitlist')


@pytest.mark.unit
class TestCancelAndPromote:
    """Test cancellation and waitlist promotion."""

    def test_cancel_appends_reason_to_internal_notes(self, event, db_session):
        """Test the cancellation reason is kept in the internal notes."""
        registration = create_registration(event, registrant())
        registration.internal_notes = 'Paid by transfer'
        db_session.commit()

        cancel_registration(registration, 'Injured')
        db_session.commit()

        assert registration.status == 'cancelled'
        assert registration.internal_notes.startswith('Paid by transfer\n[Cancelled ')
        assert registration.internal_notes.endswith('] Injured')

    def test_cancel_twice_is_rejected(self, event, db_session):
        """Test an already cancelled registration cannot be cancelled again."""
        registration = create_registration(event, registrant())
        cancel_registration(registration)
        db_session.commit()

        with pytest.raises(BadRequestError):
            cancel_registration(registration)

    def test_cancelling_waitlisted_closes_the_gap(self, event, db_session):
        """Test waitlist positions behind a cancelled entry move up."""
        fill_event(event, 2)
        first = create_registration(event, registrant('Wait One', 'wait1@clubmail.com'))
        second = create_registration(event, registrant('Wait Two', 'wait2@clubmail.com'))
        third = create_registration(event, registrant('Wait Three', 'wait3@clubmail.com'))

        cancel_registration(first)
        db_session.commit()

        assert first.waitlist_position is None
        assert second.waitlist_position == 1
        assert third.waitlist_position == 2
        db_session.refresh(event)
        assert event.current_registrations == 2

    def test_promotion_may_exceed_capacity(self, event, db_session):
        """Test staff promotion from the waitlist ignores max_capacity."""
        fill_event(event, 2)
        waiting = create_registration(event, registrant('Wait One', 'wait1@clubmail.com'))

        confirm_from_waitlist(waiting)
        db_session.commit()

        db_session.refresh(event)
        assert waiting.status == 'pending_payment'
        assert waiting.waitlist_position is None
        assert event.current_registrations == 3
        assert event.spots_available == 0

    def test_promoting_a_seated_registration_is_rejected(self, event):
        """Test only waitlisted registrations can be promoted."""
        registration = create_registration(event, registrant())

        with pytest.raises(BadRequestError):
            confirm_from_waitlist(registration)


@pytest.mark.unit
class TestRegisterExistingAthletes:
    """Test staff registration of organization athletes."""

    def test_registers_athletes_and_reports_skipped(self, event, db_session):
        """Test athletes are registered one by one and failures are listed."""
        athlete = AthleteFactory.create(organization_id=event.organization_id, email='kid@clubmail.com')
        no_email = AthleteFactory.create(organization_id=event.organization_id, email=None)
        outsider = AthleteFactory.create(organization_id=OrganizationFactory.create().id)

        registered, skipped = register_existing_athletes(
            event, [athlete.id, no_email.id, outsider.id, 9999]
        )

        assert [registration.athlete_id for registration in registered] == [athlete.id]
        assert registered[0].registration_source == 'admin'
        assert {item['athlete_id'] for item in skipped} == {no_email.id, outsider.id, 9999}

    def test_window_is_not_enforced_for_staff(self, db_session):
        """Test staff can register after the public window closed."""
        event = SportsEventFactory.create(status='registration_closed',
                                          registration_close_date=utc_now() - timedelta(days=1))
        PricingTierFactory.create(event=event)
        athlete = AthleteFactory.create(organization_id=event.organization_id)

        registered, skipped = register_existing_athletes(event, [athlete.id])

        assert len(registered) == 1
        assert skipped == []

    def test_duplicate_is_skipped(self, event, db_session):
        """Test an athlete already registered is reported, not raised."""
        athlete = AthleteFactory.create(organization_id=event.organization_id)
        register_existing_athletes(event, [athlete.id])

        registered, skipped = register_existing_athletes(event, [athlete.id])

        assert registered == []
        assert skipped[0]['athlete_id'] == athlete.id

    def test_cancelled_event_is_rejected(self, db_session):
        """Test athletes cannot be registered for a cancelled event."""
        event = SportsEventFactory.create(status='cancelled')

        with pytest.raises(BadRequestError):
            register_existing_athletes(event, [1])


@pytest.fixture
def file_backed_app(tmp_path, monkeypatch):
    """An application on a database file, so several threads share the data."""
    monkeypatch.setattr(TestingConfig, 'SQLALCHEMY_DATABASE_URI', f"sqlite:///{tmp_path / 'fieldhouse.db'}")
    monkeypatch.setattr(TestingConfig, 'SQLALCHEMY_ENGINE_OPTIONS',
                        {'connect_args': {'timeout': 30, 'check_same_thread': False}}, raising=False)
    app = create_app('testing')

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.engine.dispose()


@pytest.mark.unit
class TestConcurrentRegistration:
    """Test registrations arriving at the same time."""

    def test_simultaneous_registrations_get_distinct_numbers(self, file_backed_app):
        """Test every registrant gets its own number and seat when all register at once."""
        attempts = 8
        with file_backed_app.app_context():
            event = SportsEventFactory.create(max_capacity=100)
            PricingTierFactory.create(event=event, price=12000)
            event_id = event.id
            db.session.remove()

        start = threading.Barrier(attempts, timeout=30)
        numbers = []
        errors = []

        def register(n):
            with file_backed_app.app_context():
                try:
                    event = db.session.get(SportsEvent, event_id)
                    start.wait()
                    registration = register_for_event(event, registrant(f'Runner {n}', f'runner{n}@clubmail.com'))
                    numbers.append(registration.registration_number)
                except Exception as exc:
                    errors.append(exc)
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=register, args=(n,)) for n in range(attempts)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=60)

        assert errors == []
        assert sorted(numbers) == list(range(1, attempts + 1))
        with file_backed_app.app_context():
            event = db.session.get(SportsEvent, event_id)
            assert event.current_registrations == attempts
            count = db.session.scalar(
                sa.select(sa.func.count(EventRegistration.id)).where(EventRegistration.event_id == event_id)
            )
            assert count == attempts


@pytest.mark.unit
def test_normalize_email():
    """Test emails are trimmed and lower cased."""
    assert normalize_email('  Ana@ClubMail.COM ') == 'ana@clubmail.com'
    assert normalize_email(None) == ''
