"""
Unit tests for WTForms form validation.
"""
import pytest
from app.utils import json_formdata
from app.events.forms import PricingTierForm, SportsEventForm, AgeCategoryForm
from app.equipment.forms import AssignmentForm, ReturnForm
from app.training.forms import TrainingSessionForm
from app.waitlist.forms import WaitlistEntryForm


def build(form_class, payload):
    return form_class(formdata=json_formdata(payload))


@pytest.mark.unit
class TestPricingTierForm:
    """Test cases for PricingTierForm."""

    def test_valid_date_tier(self, app):
        """Test a date based tier with a window validates."""
        with app.test_request_context():
            form = build(PricingTierForm, {
                'name': 'Early Bird', 'tier_type': 'date_based', 'price': 12000, 'currency': 'ARS',
                'valid_from': '2026-03-01T00:00:00', 'valid_until': '2026-03-31T23:59:59',
            })

            assert form.validate() is True
            assert form.price.data == 12000

    def test_date_tier_needs_a_window(self, app):
        """Test a date based tier without any date is rejected."""
        with app.test_request_context():
            form = build(PricingTierForm, {
                'name': 'Regular', 'tier_type': 'date_based', 'price': 15000, 'currency': 'ARS'
            })

            assert form.validate() is False
            assert 'Date based tiers need a start or end date' in form.tier_type.errors

    def test_capacity_tier_needs_positions(self, app):
        """Test a capacity based tier without positions is rejected."""
        with app.test_request_context():
            form = build(PricingTierForm, {
                'name': 'First 50', 'tier_type': 'capacity_based', 'price': 8000, 'currency': 'ARS'
            })

            assert form.validate() is False
            assert form.tier_type.errors

    def test_reversed_windows_are_rejected(self, app):
        """Test end bounds before start bounds are rejected."""
        with app.test_request_context():
            form = build(PricingTierForm, {
                'name': 'Broken', 'tier_type': 'capacity_based', 'price': 8000, 'currency': 'ARS',
                'capacity_start': 50, 'capacity_end': 10,
                'valid_from': '2026-03-31T00:00:00', 'valid_until': '2026-03-01T00:00:00',
            })

            assert form.validate() is False
            assert form.capacity_end.errors
            assert form.valid_until.errors

    def test_free_tier_is_allowed_but_negative_price_is_not(self, app):
        """Test zero is a valid price and negative prices fail."""
        with app.test_request_context():
            free = build(PricingTierForm, {
                'name': 'Free', 'tier_type': 'capacity_based', 'price': 0, 'currency': 'ARS', 'capacity_start': 1
            })
            negative = build(PricingTierForm, {
                'name': 'Negative', 'tier_type': 'capacity_based', 'price': -1, 'currency': 'ARS', 'capacity_start': 1
            })

            assert free.validate() is True
            assert negative.validate() is False
            assert 'Price cannot be negative' in negative.price.errors


@pytest.mark.unit
class TestSportsEventForm:
    """Test cases for SportsEventForm."""

    def payload(self, **overrides):
        data = {
            'name': 'Autumn Cup', 'event_type': 'tournament', 'status': 'draft', 'currency': 'ARS',
            'start_date': '2026-05-01T09:00:00', 'end_date': '2026-05-02T18:00:00',
        }
        data.update(overrides)
        return data

    def test_valid_event(self, app):
        """Test a minimal event validates."""
        with app.test_request_context():
            assert build(SportsEventForm, self.payload()).validate() is True

    def test_end_before_start_is_rejected(self, app):
        """Test events cannot end before they start."""
        with app.test_request_context():
            form = build(SportsEventForm, self.payload(end_date='2026-04-30T09:00:00'))

            assert form.validate() is False
            assert form.end_date.errors

    def test_registration_window_order(self, app):
        """Test the registration close date must follow the open date."""
        with app.test_request_context():
            form = build(SportsEventForm, self.payload(
                registration_open_date='2026-04-10T00:00', registration_close_date='2026-04-01T00:00'
            ))

            assert form.validate() is False
            assert form.registration_close_date.errors

    def test_unknown_status_is_rejected(self, app):
        """Test statuses outside the configured list fail."""
        with app.test_request_context():
            form = build(SportsEventForm, self.payload(status='archived'))

            assert form.validate() is False
            assert form.status.errors

    def test_invalid_slug_is_rejected(self, app):
        """Test slugs must be lowercase words joined by hyphens."""
        with app.test_request_context():
            form = build(SportsEventForm, self.payload(slug='Autumn Cup'))

            assert form.validate() is False
            assert form.slug.errors


@pytest.mark.unit
def test_age_category_birth_years(app):
    """Test max birth year cannot precede min birth year."""
    with app.test_request_context():
        form = build(AgeCategoryForm, {'name': 'u12', 'min_birth_year': 2014, 'max_birth_year': 2012})

        assert form.validate() is False
        assert form.max_birth_year.errors


@pytest.mark.unit
class TestEquipmentForms:
    """Test cases for equipment assignment and return forms."""

    def test_assignment_needs_a_target(self, app):
        """Test an assignment without coach, team or session fails."""
        with app.test_request_context():
            form = build(AssignmentForm, {'quantity': 2})

            assert form.validate() is False
            assert 'Assign the equipment to a coach, a team or a training session' in form.quantity.errors

    def test_assignment_to_team(self, app):
        """Test an assignment with a team validates."""
        with app.test_request_context():
            form = build(AssignmentForm, {'quantity': 2, 'team_id': 4, 'expected_return_date': '2026-06-01'})

            assert form.validate() is True

    def test_return_condition_must_be_known(self, app):
        """Test return conditions are checked against the configured list."""
        with app.test_request_context():
            assert build(ReturnForm, {'condition_on_return': 'fair'}).validate() is True
            assert build(ReturnForm, {}).validate() is True

            form = build(ReturnForm, {'condition_on_return': 'shredded'})
            assert form.validate() is False
            assert form.condition_on_return.errors


@pytest.mark.unit
class TestTrainingSessionForm:
    """Test cases for TrainingSessionForm."""

    def test_end_must_follow_start(self, app):
        """Test sessions need a positive duration."""
        with app.test_request_context():
            form = build(TrainingSessionForm, {
                'title': 'Finishing', 'status': 'pending',
                'start_time': '2026-05-01T18:00:00', 'end_time': '2026-05-01T18:00:00',
            })

            assert form.validate() is False
            assert 'End time must be after the start time' in form.end_time.errors

    def test_closed_statuses_are_not_offered(self, app):
        """Test completed and cancelled can only be reached through actions."""
        with app.test_request_context():
            form = build(TrainingSessionForm, {
                'title': 'Finishing', 'status': 'completed',
                'start_time': '2026-05-01T18:00:00', 'end_time': '2026-05-01T20:00:00',
            })

            assert form.validate() is False
            assert form.status.errors


@pytest.mark.unit
class TestWaitlistEntryForm:
    """Test cases for WaitlistEntryForm."""

    def test_team_entry_needs_team(self, app):
        """Test team waitlist entries require a team id."""
        with app.test_request_context():
            form = build(WaitlistEntryForm, {'athlete_id': 1, 'reference_type': 'team', 'priority': 'high'})

            assert form.validate() is False
            assert form.reference_type.errors

    def test_schedule_entry_with_preferences(self, app):
        """Test schedule entries accept preferred days and times."""
        with app.test_request_context():
            form = build(WaitlistEntryForm, {
                'athlete_id': 1, 'reference_type': 'schedule', 'priority': 'low',
                'preferred_days': ['monday', 'wednesday'],
                'preferred_start_time': '17:00', 'preferred_end_time': '19:30',
            })

            assert form.validate() is True
            assert form.preferred_days.data == ['monday', 'wednesday']

    def test_time_range_must_be_increasing(self, app):
        """Test the preferred end time must come after the start time."""
        with app.test_request_context():
            form = build(WaitlistEntryForm, {
                'athlete_id': 1, 'reference_type': 'schedule', 'priority': 'low',
                'preferred_start_time': '19:00', 'preferred_end_time': '18:00',
            })

            assert form.validate() is False
            assert form.preferred_end_time.errors

    def test_bad_time_format_and_day(self, app):
        """Test malformed times and unknown days are rejected."""
        with app.test_request_context():
            form = build(WaitlistEntryForm, {
                'athlete_id': 1, 'reference_type': 'schedule', 'priority': 'low',
                'preferred_days': ['funday'], 'preferred_start_time': '7pm',
            })

            assert form.validate() is False
            assert form.preferred_days.errors
            assert form.preferred_start_time.errors
