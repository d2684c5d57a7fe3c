# Standard library imports
from datetime import datetime, timezone, date
from typing import Optional

# Third-party imports
import sqlalchemy as sa
import sqlalchemy.orm as so
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

# Local application imports
from app import db, login


def utc_now():
    """Current UTC time as a naive datetime, the form stored in every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value):
    return value.isoformat() if value is not None else None


class User(UserMixin, db.Model):
    __tablename__ = 'users'

    id: so.Mapped[int] = so.mapped_column(primary_key=True)
    email: so.Mapped[str] = so.mapped_column(sa.String(120), index=True, unique=True)
    name: so.Mapped[str] = so.mapped_column(sa.String(128), nullable=False)
    phone: so.Mapped[Optional[str]] = so.mapped_column(sa.String(32))
    password_hash: so.Mapped[Optional[str]] = so.mapped_column(sa.String(256))
    is_admin: so.Mapped[bool] = so.mapped_column(sa.Boolean, default=False, nullable=False)  # Platform administrator
    lockout: so.Mapped[bool] = so.mapped_column(sa.Boolean, default=False, nullable=False)
    last_login: so.Mapped[Optional[datetime]] = so.mapped_column(sa.DateTime, nullable=True)
    last_seen: so.Mapped[Optional[date]] = so.mapped_column(sa.Date, nullable=True)  # Daily updates only
    created_at: so.Mapped[datetime] = so.mapped_column(sa.DateTime, default=utc_now, nullable=False)

    memberships: so.Mapped[list['OrganizationMember']] = so.relationship(
        'OrganizationMember', back_populates='user', cascade='all, delete-orphan'
    )

    def __repr__(self):
        return '<User {}>'.format(self.email)

    @property
    def username(self):
        return self.email

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        if self.password_hash is None or password is None:
            return False
        return check_password_hash(self.password_hash, password)

    def get_membership(self, organization_id):
        """Return this user's membership in an organization, or None."""
        for membership in self.memberships:
            if membership.organization_id == organization_id:
                return membership
        return None

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'phone': self.phone,
            'is_admin': self.is_admin,
            'last_login': _iso(self.last_login),
        }


@login.user_loader
def load_user(id):
    return db.session.get(User, int(id))


class Organization(db.Model):
    __tablename__ = 'organizations'

    id: so.Mapped[int] = so.mapped_column(sa.Integer, primary_key=True)
    name: so.Mapped[str] = so.mapped_column(sa.String(128), nullable=False)
    slug: so.Mapped[str] = so.mapped_column(sa.String(128), nullable=False, unique=True, index=True)
    email: so.Mapped[Optional[str]] = so.mapped_column(sa.String(120))
    phone: so.Mapped[Optional[str]] = so.mapped_column(sa.String(32))
    website: so.Mapped[Optional[str]] = so.mapped_column(sa.String(255))
    address: so.Mapped[Optional[str]] = so.mapped_column(sa.String(255))
    currency: so.Mapped[str] = so.mapped_column(sa.String(3), nullable=False, default='ARS')
    created_at: so.Mapped[datetime] = so.mapped_column(sa.DateTime, default=utc_now, nullable=False)
    updated_at: so.Mapped[datetime] = so.mapped_column(sa.DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    members: so.Mapped[list['OrganizationMember']] = so.relationship(
        'OrganizationMember', back_populates='organization', cascade='all, delete-orphan'
    )

    def __repr__(self):
        return f"<Organization id={self.id}, slug='{self.slug}'>"

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'slug': self.slug,
            'email': self.email,
            'phone': self.phone,
            'website': self.website,
            'address': self.address,
            'currency': self.currency,
            'created_at': _iso(self.created_at),
        }


class OrganizationMember(db.Model):
    __tablename__ = 'organization_members'
    __table_args__ = (sa.UniqueConstraint('organization_id', 'user_id', name='uq_organization_member'),)

    id: so.Mapped[int] = so.mapped_column(sa.Integer, primary_key=True)
    organization_id: so.Mapped[int] = so.mapped_column(sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    user_id: so.Mapped[int] = so.mapped_column(sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    role: so.Mapped[str] = so.mapped_column(sa.String(16), nullable=False, default='member')  # owner, admin, staff, member
    created_at: so.Mapped[datetime] = so.mapped_column(sa.DateTime, default=utc_now, nullable=False)

    organization: so.Mapped['Organization'] = so.relationship('Organization', back_populates='members')
    user: so.Mapped['User'] = so.relationship('User', back_populates='memberships')

    def __repr__(self):
        return f"<OrganizationMember org={self.organization_id}, user={self.user_id}, role='{self.role}'>"

    def to_dict(self):
        return {
            'id': self.id,
            'organization_id': self.organization_id,
            'role': self.role,
            'user': self.user.to_dict() if self.user else None,
            'created_at': _iso(self.created_at),
        }


class Athlete(db.Model):
    __tablename__ = 'athletes'
    __table_args__ = (sa.UniqueConstraint('organization_id', 'user_id', name='uq_athlete_organization_user'),)

    id: so.Mapped[int] = so.mapped_column(sa.Integer, primary_key=True)
    organization_id: so.Mapped[int] = so.mapped_column(sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id: so.Mapped[Optional[int]] = so.mapped_column(sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    name: so.Mapped[str] = so.mapped_column(sa.String(128), nullable=False, index=True)
    email: so.Mapped[Optional[str]] = so.mapped_column(sa.String(120), index=True)
    phone: so.Mapped[Optional[str]] = so.mapped_column(sa.String(32))
    birth_date: so.Mapped[Optional[date]] = so.mapped_column(sa.Date)
    sport: so.Mapped[str] = so.mapped_column(sa.String(64), nullable=False, default='general')
    level: so.Mapped[str] = so.mapped_column(sa.String(16), nullable=False, default='beginner')
    status: so.Mapped[str] = so.mapped_column(sa.String(16), nullable=False, default='active')
    position: so.Mapped[Optional[str]] = so.mapped_column(sa.String(64))
    jersey_number: so.Mapped[Optional[int]] = so.mapped_column(sa.Integer)
    parent_name: so.Mapped[Optional[str]] = so.mapped_column(sa.String(128))
    parent_email: so.Mapped[Optional[str]] = so.mapped_column(sa.String(120))
    parent_phone: so.Mapped[Optional[str]] = so.mapped_column(sa.String(32))
    notes: so.Mapped[Optional[str]] = so.mapped_column(sa.Text)
    archived_at: so.Mapped[Optional[datetime]] = so.mapped_column(sa.DateTime)
    created_at: so.Mapped[datetime] = so.mapped_column(sa.DateTime, default=utc_now, nullable=False)
    updated_at: so.Mapped[datetime] = so.mapped_column(sa.DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    user: so.Mapped[Optional['User']] = so.relationship('User')
    medical_documents: so.Mapped[list['MedicalDocument']] = so.relationship(
        'MedicalDocument', back_populates='athlete', cascade='all, delete-orphan'
    )
    team_memberships: so.Mapped[list['TeamMember']] = so.relationship(
        'TeamMember', back_populates='athlete', cascade='all, delete-orphan'
    )

    def __repr__(self):
        return f"<Athlete id={self.id}, name='{self.name}', org={self.organization_id}>"

    def to_dict(self):
        return {
            'id': self.id,
            'organization_id': self.organization_id,
            'user_id': self.user_id,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'birth_date': _iso(self.birth_date),
            'sport': self.sport,
            'level': self.level,
            'status': self.status,
            'position': self.position,
            'jersey_number': self.jersey_number,
            'parent_name': self.parent_name,
            'parent_email': self.parent_email,
            'parent_phone': self.parent_phone,
            'notes': self.notes,
            'archived_at': _iso(self.archived_at),
            'created_at': _iso(self.created_at),
        }


class MedicalDocument(db.Model):
    __tablename__ = 'athlete_medical_documents'

    id: so.Mapped[int] = so.mapped_column(sa.Integer, primary_key=True)
    athlete_id: so.Mapped[int] = so.mapped_column(sa.ForeignKey('athletes.id', ondelete='CASCADE'), nullable=False, index=True)
    organization_id: so.Mapped[int] = so.mapped_column(sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    document_type: so.Mapped[str] = so.mapped_column(sa.String(32), nullable=False, default='other')
    title: so.Mapped[str] = so.mapped_column(sa.String(255), nullable=False)
    original_filename: so.Mapped[str] = so.mapped_column(sa.String(255), nullable=False)
    stored_filename: so.Mapped[str] = so.mapped_column(sa.String(255), nullable=False, unique=True)
    content_type: so.Mapped[Optional[str]] = so.mapped_column(sa.String(100))
    file_size: so.Mapped[int] = so.mapped_column(sa.Integer, nullable=False, default=0)
    issued_date: so.Mapped[Optional[date]] = so.mapped_column(sa.Date)
    expiry_date: so.Mapped[Optional[date]] = so.mapped_column(sa.Date)
    notes: so.Mapped[Optional[str]] = so.mapped_column(sa.Text)
    uploaded_by_id: so.Mapped[Optional[int]] = so.mapped_column(sa.ForeignKey('users.id', ondelete='SET NULL'))
    created_at: so.Mapped[datetime] = so.mapped_column(sa.DateTime, default=utc_now, nullable=False)

    athlete: so.Mapped['Athlete'] = so.relationship('Athlete', back_populates='medical_documents')

    def __repr__(self):
        return f"<MedicalDocument id={self.id}, athlete={self.athlete_id}, type='{self.document_type}'>"

    def is_expired(self, today=None):
        today = today or utc_now().date()
        return self.expiry_date is not None and self.expiry_date < today

    def to_dict(self):
        return {
            'id': self.id,
            'athlete_id': self.athlete_id,
            'document_type': self.document_type,
            'title': self.title,
            'original_filename': self.original_filename,
            'content_type': self.content_type,
            'file_size': self.file_size,
            'issued_date': _iso(self.issued_date),
            'expiry_date': _iso(self.expiry_date),
            'is_expired': self.is_expired(),
            'notes': self.notes,
            'created_at': _iso(self.created_at),
        }


class Coach(db.Model):
    __tablename__ = 'coaches'

    id: so.Mapped[int] = so.mapped_column(sa.Integer, primary_key=True)
    organization_id: so.Mapped[int] = so.mapped_column(sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id: so.Mapped[Optional[int]] = so.mapped_column(sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    name: so.Mapped[str] = so.mapped_column(sa.String(128), nullable=False, index=True)
    email: so.Mapped[Optional[str]] = so.mapped_column(sa.String(120))
    phone: so.Mapped[Optional[str]] = so.mapped_column(sa.String(32))
    specialty: so.Mapped[Optional[str]] = so.mapped_column(sa.String(128))
    sport: so.Mapped[str] = so.mapped_column(sa.String(64), nullable=False, default='general')
    bio: so.Mapped[Optional[str]] = so.mapped_column(sa.Text)
    status: so.Mapped[str] = so.mapped_column(sa.String(16), nullable=False, default='active')
    created_at: so.Mapped[datetime] = so.mapped_column(sa.DateTime, default=utc_now, nullable=False)
    updated_at: so.Mapped[datetime] = so.mapped_column(sa.DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    def __repr__(self):
        return f"<Coach id={self.id}, name='{self.name}'>"

    def to_dict(self):
        return {
            'id': self.id,
            'organization_id': self.organization_id,
            'user_id': self.user_id,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'specialty': self.specialty,
            'sport': self.sport,
            'bio': self.bio,
            'status': self.status,
            'created_at': _iso(self.created_at),
        }


class AgeCategory(db.Model):
    __tablename__ = 'age_categories'
    __table_args__ = (sa.UniqueConstraint('organization_id', 'name', name='uq_age_category_name'),)

    id: so.Mapped[int] = so.mapped_column(sa.Integer, primary_key=True)
    organization_id: so.Mapped[int] = so.mapped_column(sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    name: so.Mapped[str] = so.mapped_column(sa.String(64), nullable=False)
    display_name: so.Mapped[Optional[str]] = so.mapped_column(sa.String(128))
    min_birth_year: so.Mapped[Optional[int]] = so.mapped_column(sa.Integer)
    max_birth_year: so.Mapped[Optional[int]] = so.mapped_column(sa.Integer)
    is_active: so.Mapped[bool] = so.mapped_column(sa.Boolean, nullable=False, default=True)
    sort_order: so.Mapped[int] = so.mapped_column(sa.Integer, nullable=False, default=0)
    created_at: so.Mapped[datetime] = so.mapped_column(sa.DateTime, default=utc_now, nullable=False)

    def __repr__(self):
        return f"<AgeCategory id={self.id}, name='{self.name}'>"

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'display_name': self.display_name,
            'min_birth_year': self.min_birth_year,
            'max_birth_year': self.max_birth_year,
            'is_active': self.is_active,
            'sort_order': self.sort_order,
        }


class SportsEvent(db.Model):
    __tablename__ = 'sports_events'
    __table_args__ = (sa.UniqueConstraint('organization_id', 'slug', name='uq_sports_event_slug'),)

    id: so.Mapped[int] = so.mapped_column(sa.Integer, primary_key=True)
    organization_id: so.Mapped[int] = so.mapped_column(sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False, index=True)
    name: so.Mapped[str] = so.mapped_column(sa.String(255), nullable=False)
    slug: so.Mapped[str] = so.mapped_column(sa.String(255), nullable=False)
    description: so.Mapped[Optional[str]] = so.mapped_column(sa.Text)
    event_type: so.Mapped[str] = so.mapped_column(sa.String(16), nullable=False, default='other')
    status: so.Mapped[str] = so.mapped_column(sa.String(24), nullable=False, default='draft')
    start_date: so.Mapped[datetime] = so.mapped_column(sa.DateTime, nullable=False)
    end_date: so.Mapped[datetime] = so.mapped_column(sa.DateTime, nullable=False)
    venue_name: so.Mapped[Optional[str]] = so.mapped_column(sa.String(255))
    venue_address: so.Mapped[Optional[str]] = so.mapped_column(sa.String(255))
    city: so.Mapped[Optional[str]] = so.mapped_column(sa.String(128))
    registration_open_date: so.Mapped[Optional[datetime]] = so.mapped_column(sa.DateTime)
    registration_close_date: so.Mapped[Optional[datetime]] = so.mapped_column(sa.DateTime)
    max_capacity: so.Mapped[Optional[int]] = so.mapped_column(sa.Integer)  # None means unlimited
    current_registrations: so.Mapped[int] = so.mapped_column(sa.Integer, nullable=False, default=0)
    enable_waitlist: so.Mapped[bool] = so.mapped_column(sa.Boolean, nullable=False, default=True)
    max_waitlist_size: so.Mapped[Optional[int]] = so.mapped_column(sa.Integer)  # None means unlimited
    currency: so.Mapped[str] = so.mapped_column(sa.String(3), nullable=False, default='ARS')
    contact_email: so.Mapped[Optional[str]] = so.mapped_column(sa.String(120))
    contact_phone: so.Mapped[Optional[str]] = so.mapped_column(sa.String(32))
    created_by_id: so.Mapped[Optional[int]] = so.mapped_column(sa.ForeignKey('users.id', ondelete='SET NULL'))
    created_at: so.Mapped[datetime] = so.mapped_column(sa.DateTime, default=utc_now, nullable=False)
    updated_at: so.Mapped[datetime] = so.mapped_column(sa.DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    organization: so.Mapped['Organization'] = so.relationship('Organization')
    age_categories: so.Mapped[list['EventAgeCategory']] = so.relationship(
        'EventAgeCategory', back_populates='event', cascade='all, delete-orphan'
    )
    pricing_tiers: so.Mapped[list['PricingTier']] = so.relationship(
        'PricingTier', back_populates='event', cascade='all, delete-orphan',
        order_by=lambda: [PricingTier.sort_order, PricingTier.price, PricingTier.id]
    )
    registrations: so.Mapped[list['EventRegistration']] = so.relationship(
        'EventRegistration', back_populates='event', cascade='all, delete-orphan'
    )

    def __repr__(self):
        return f"<SportsEvent id={self.id}, slug='{self.slug}', status='{self.status}'>"

    @property
    def spots_available(self):
        """Remaining seats, or None for events without a capacity limit"""
        if self.max_capacity is None:
            return None
        return max(0, self.max_capacity - self.current_registrations)

    def is_full(self):
        return self.max_capacity is not None and self.current_registrations >= self.max_capacity

    def is_registration_open(self, now=None):
        """Check status and registration window"""
        if self.status != 'registration_open':
            return False
        now = now or utc_now()
        if self.registration_open_date and now < self.registration_open_date:
            return False
        if self.registration_close_date and now > self.registration_close_date:
            return False
        return True

    def get_age_category_link(self, age_category_id):
        for link in self.age_categories:
            if link.age_category_id == age_category_id:
                return link
        return None

    def get_active_tiers(self):
        return [tier for tier in self.pricing_tiers if tier.is_active]

    def get_lowest_price(self):
        prices = [tier.price for tier in self.get_active_tiers()]
        return min(prices) if prices else None

    def get_waitlist_count(self):
        return db.session.scalar(
            sa.select(sa.func.count(EventRegistration.id)).where(
                EventRegistration.event_id == self.id,
                EventRegistration.status == 'waitlist'
            )
        ) or 0

    def to_dict(self):
        return {
            'id': self.id,
            'organization_id': self.organization_id,
            'name': self.name,
            'slug': self.slug,
            'description': self.description,
            'event_type': self.event_type,
            'status': self.status,
            'start_date': _iso(self.start_date),
            'end_date': _iso(self.end_date),
            'venue_name': self.venue_name,
            'venue_address': self.venue_address,
            'city': self.city,
            'registration_open_date': _iso(self.registration_open_date),
            'registration_close_date': _iso(self.registration_close_date),
            'max_capacity': self.max_capacity,
            'current_registrations': self.current_registrations,
            'spots_available': self.spots_available,
            'enable_waitlist': self.enable_waitlist,
            'max_waitlist_size': self.max_waitlist_size,
            'currency': self.currency,
            'contact_email': self.contact_email,
            'contact_phone': self.contact_phone,
            'created_at': _iso(self.created_at),
        }


class EventAgeCategory(db.Model):
    __tablename__ = 'event_age_categories'
    __table_args__ = (sa.UniqueConstraint('event_id', 'age_category_id', name='uq_event_age_category'),)

    id: so.Mapped[int] = so.mapped_column(sa.Integer, primary_key=True)
    event_id: so.Mapped[int] = so.mapped_column(sa.ForeignKey('sports_events.id', ondelete='CASCADE'), nullable=False)
    age_category_id: so.Mapped[int] = so.mapped_column(sa.ForeignKey('age_categories.id', ondelete='CASCADE'), nullable=False)
    max_capacity: so.Mapped[Optional[int]] = so.mapped_column(sa.Integer)
    current_registrations: so.Mapped[int] = so.mapped_column(sa.Integer, nullable=False, default=0)

    event: so.Mapped['SportsEvent'] = so.relationship('SportsEvent', back_populates='age_categories')
    age_category: so.Mapped['AgeCategory'] = so.relationship('AgeCategory')

    def __repr__(self):
        return f"<EventAgeCategory event={self.event_id}, category={self.age_category_id}>"

    def to_dict(self):
        data = self.age_category.to_dict() if self.age_category else {}
        data.update({
            'id': self.id,
            'age_category_id': self.age_category_id,
            'max_capacity': self.max_capacity,
            'current_registrations': self.current_registrations,
        })
        return data


class PricingTier(db.Model):
    __tablename__ = 'event_pricing_tiers'

    id: so.Mapped[int] = so.mapped_column(sa.Integer, primary_key=True)
    event_id: so.Mapped[int] = so.mapped_column(sa.ForeignKey('sports_events.id', ondelete='CASCADE'), nullable=False, index=True)
    name: so.Mapped[str] = so.mapped_column(sa.String(128), nullable=False)
    description: so.Mapped[Optional[str]] = so.mapped_column(sa.String(255))
    tier_type: so.Mapped[str] = so.mapped_column(sa.String(16), nullable=False, default='date_based')
    age_category_id: so.Mapped[Optional[int]] = so.mapped_column(sa.ForeignKey('age_categories.id', ondelete='SET NULL'))
    valid_from: so.Mapped[Optional[datetime]] = so.mapped_column(sa.DateTime)
    valid_until: so.Mapped[Optional[datetime]] = so.mapped_column(sa.DateTime)
    capacity_start: so.Mapped[Optional[int]] = so.mapped_column(sa.Integer)  # 1-based, inclusive
    capacity_end: so.Mapped[Optional[int]] = so.mapped_column(sa.Integer)  # 1-based, inclusive
    price: so.Mapped[int] = so.mapped_column(sa.Integer, nullable=False)  # Smallest currency unit
    currency: so.Mapped[str] = so.mapped_column(sa.String(3), nullable=False, default='ARS')
    is_active: so.Mapped[bool] = so.mapped_column(sa.Boolean, nullable=False, default=True)
    sort_order: so.Mapped[int] = so.mapped_column(sa.Integer, nullable=False, default=0)
    created_at: so.Mapped[datetime] = so.mapped_column(sa.DateTime, default=utc_now, nullable=False)

    event: so.Mapped['SportsEvent'] = so.relationship('SportsEvent', back_populates='pricing_tiers')
    age_category: so.Mapped[Optional['AgeCategory']] = so.relationship('AgeCategory')

    def __repr__(self):
        return f"<PricingTier id={self.id}, name='{self.name}', price={self.price}>"

    def applies_to(self, registration_number, age_category_id=None, now=None):
        """
        Check whether this tier can price a registration.

        Age-scoped tiers only apply to their own category. Date windows and
        capacity windows are inclusive and an unset bound is open.
        """
        if self.age_category_id is not None and self.age_category_id != age_category_id:
            return False

        if self.tier_type == 'date_based':
            now = now or utc_now()
            if self.valid_from and now < self.valid_from:
                return False
            if self.valid_until and now > self.valid_until:
                return False

        if self.tier_type == 'capacity_based':
            if self.capacity_start is not None and registration_number < self.capacity_start:
                return False
            if self.capacity_end is not None and registration_number > self.capacity_end:
                return False

        return True

    def to_dict(self):
        return {
            'id': self.id,
            'event_id': self.event_id,
            'name': self.name,
            'description': self.description,
            'tier_type': self.tier_type,
            'age_category_id': self.age_category_id,
            'valid_from': _iso(self.valid_from),
            'valid_until': _iso(self.valid_until),
            'capacity_start': self.capacity_start,
            'capacity_end': self.capacity_end,
            'price': self.price,
            'currency': self.currency,
            'is_active': self.is_active,
            'sort_order': self.sort_order,
        }


class EventRegistration(db.Model):
    __tablename__ = 'event_registrations'
    __table_args__ = (
        sa.UniqueConstraint('event_id', 'registration_number', name='uq_event_registration_number'),
        sa.UniqueConstraint('event_id', 'registrant_email', name='uq_event_registration_email'),
    )

    id: so.Mapped[int] = so.mapped_column(sa.Integer, primary_key=True)
    event_id: so.Mapped[int] = so.mapped_column(sa.ForeignKey('sports_events.id', ondelete='CASCADE'), nullable=False, index=True)
    organization_id: so.Mapped[int] = so.mapped_column(sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    registration_number: so.Mapped[int] = so.mapped_column(sa.Integer, nullable=False)
    user_id: so.Mapped[Optional[int]] = so.mapped_column(sa.ForeignKey('users.id', ondelete='SET NULL'))
    athlete_id: so.Mapped[Optional[int]] = so.mapped_column(sa.ForeignKey('athletes.id', ondelete='SET NULL'))
    age_category_id: so.Mapped[Optional[int]] = so.mapped_column(sa.ForeignKey('age_categories.id', ondelete='SET NULL'))
    pricing_tier_id: so.Mapped[Optional[int]] = so.mapped_column(sa.ForeignKey('event_pricing_tiers.id', ondelete='SET NULL'))
    price: so.Mapped[int] = so.mapped_column(sa.Integer, nullable=False, default=0)
    currency: so.Mapped[str] = so.mapped_column(sa.String(3), nullable=False, default='ARS')
    status: so.Mapped[str] = so.mapped_column(sa.String(16), nullable=False, default='pending_payment')
    waitlist_position: so.Mapped[Optional[int]] = so.mapped_column(sa.Integer)
    registrant_name: so.Mapped[str] = so.mapped_column(sa.String(128), nullable=False)
    registrant_email: so.Mapped[str] = so.mapped_column(sa.String(120), nullable=False, index=True)
    registrant_phone: so.Mapped[Optional[str]] = so.mapped_column(sa.String(32))
    registrant_birth_date: so.Mapped[Optional[date]] = so.mapped_column(sa.Date)
    emergency_contact_name: so.Mapped[Optional[str]] = so.mapped_column(sa.String(128))
    emergency_contact_phone: so.Mapped[Optional[str]] = so.mapped_column(sa.String(32))
    emergency_contact_relation: so.Mapped[Optional[str]] = so.mapped_column(sa.String(64))
    notes: so.Mapped[Optional[str]] = so.mapped_column(sa.Text)  # From the registrant
    internal_notes: so.Mapped[Optional[str]] = so.mapped_column(sa.Text)  # Staff only
    registration_source: so.Mapped[str] = so.mapped_column(sa.String(16), nullable=False, default='public')  # public, admin
    registered_by_id: so.Mapped[Optional[int]] = so.mapped_column(sa.ForeignKey('users.id', ondelete='SET NULL'))
    terms_accepted_at: so.Mapped[Optional[datetime]] = so.mapped_column(sa.DateTime)  # Public registrations only
    confirmed_at: so.Mapped[Optional[datetime]] = so.mapped_column(sa.DateTime)
    cancelled_at: so.Mapped[Optional[datetime]] = so.mapped_column(sa.DateTime)
    created_at: so.Mapped[datetime] = so.mapped_column(sa.DateTime, default=utc_now, nullable=False)
    updated_at: so.Mapped[datetime] = so.mapped_column(sa.DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    event: so.Mapped['SportsEvent'] = so.relationship('SportsEvent', back_populates='registrations')
    athlete: so.Mapped[Optional['Athlete']] = so.relationship('Athlete')
    age_category: so.Mapped[Optional['AgeCategory']] = so.relationship('AgeCategory')
    pricing_tier: so.Mapped[Optional['PricingTier']] = so.relationship('PricingTier')

    def __repr__(self):
        return f"<EventRegistration id={self.id}, event={self.event_id}, number={self.registration_number}, status='{self.status}'>"

    SEAT_STATUSES = ('pending_payment', 'confirmed', 'no_show')

    def holds_seat(self):
        """Whether this registration is counted in the event's current_registrations"""
        return self.status in self.SEAT_STATUSES

    def to_dict(self, include_internal=True):
        data = {
            'id': self.id,
            'event_id': self.event_id,
            'registration_number': self.registration_number,
            'status': self.status,
            'waitlist_position': self.waitlist_position,
            'price': self.price,
            'currency': self.currency,
            'pricing_tier_id': self.pricing_tier_id,
            'pricing_tier_name': self.pricing_tier.name if self.pricing_tier else None,
            'age_category_id': self.age_category_id,
            'athlete_id': self.athlete_id,
            'user_id': self.user_id,
            'registrant_name': self.registrant_name,
            'registrant_email': self.registrant_email,
            'registrant_phone': self.registrant_phone,
            'registrant_birth_date': _iso(self.registrant_birth_date),
            'emergency_contact_name': self.emergency_contact_name,
            'emergency_contact_phone': self.emergency_contact_phone,
            'emergency_contact_relation': self.emergency_contact_relation,
            'notes': self.notes,
            'registration_source': self.registration_source,
            'terms_accepted_at': _iso(self.terms_accepted_at),
            'confirmed_at': _iso(self.confirmed_at),
            'cancelled_at': _iso(self.cancelled_at),
            'created_at': _iso(self.created_at),
        }
        if include_internal:
            data['internal_notes'] = self.internal_notes
        return data


class Team(db.Model):
    __tablename__ = 'teams'

    id: so.Mapped[int] = so.mapped_column(sa.Integer, primary_key=True)
    organization_id: so.Mapped[int] = so.mapped_column(sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False, index=True)
    name: so.Mapped[str] = so.mapped_column(sa.String(100), nullable=False)
    description: so.Mapped[Optional[str]] = so.mapped_column(sa.Text)
    sport: so.Mapped[str] = so.mapped_column(sa.String(64), nullable=False, default='general')
    age_category_id: so.Mapped[Optional[int]] = so.mapped_column(sa.ForeignKey('age_categories.id', ondelete='SET NULL'))
    status: so.Mapped[str] = so.mapped_column(sa.String(16), nullable=False, default='active')
    primary_color: so.Mapped[Optional[str]] = so.mapped_column(sa.String(16))
    secondary_color: so.Mapped[Optional[str]] = so.mapped_column(sa.String(16))
    home_venue: so.Mapped[Optional[str]] = so.mapped_column(sa.String(255))
    created_at: so.Mapped[datetime] = so.mapped_column(sa.DateTime, default=utc_now, nullable=False)
    updated_at: so.Mapped[datetime] = so.mapped_column(sa.DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    members: so.Mapped[list['TeamMember']] = so.relationship('TeamMember', back_populates='team', cascade='all, delete-orphan')
    age_category: so.Mapped[Optional['AgeCategory']] = so.relationship('AgeCategory')

    def __repr__(self):
        return f"<Team id={self.id}, name='{self.name}'>"

    def get_member(self, athlete_id):
        return next((member for member in self.members if member.athlete_id == athlete_id), None)

    def to_dict(self, include_members=False):
        data = {
            'id': self.id,
            'organization_id': self.organization_id,
            'name': self.name,
            'description': self.description,
            'sport': self.sport,
            'age_category_id': self.age_category_id,
            'status': self.status,
            'primary_color': self.primary_color,
            'secondary_color': self.secondary_color,
            'home_venue': self.home_venue,
            'member_count': len(self.members),
            'created_at': _iso(self.created_at),
        }
        if include_members:
            data['members'] = [member.to_dict() for member in self.members]
        return data


class TeamMember(db.Model):
    __tablename__ = 'team_members'
    __table_args__ = (sa.UniqueConstraint('team_id', 'athlete_id', name='uq_team_member'),)

    id: so.Mapped[int] = so.mapped_column(sa.Integer, primary_key=True)
    team_id: so.Mapped[int] = so.mapped_column(sa.ForeignKey('teams.id', ondelete='CASCADE'), nullable=False)
    athlete_id: so.Mapped[int] = so.mapped_column(sa.ForeignKey('athletes.id', ondelete='CASCADE'), nullable=False)
    jersey_number: so.Mapped[Optional[int]] = so.mapped_column(sa.Integer)
    position: so.Mapped[Optional[str]] = so.mapped_column(sa.String(64))
    role: so.Mapped[str] = so.mapped_column(sa.String(16), nullable=False, default='player')
    joined_at: so.Mapped[datetime] = so.mapped_column(sa.DateTime, default=utc_now, nullable=False)

    team: so.Mapped['Team'] = so.relationship('Team', back_populates='members')
    athlete: so.Mapped['Athlete'] = so.relationship('Athlete', back_populates='team_memberships')

    def __repr__(self):
        return f"<TeamMember id={self.id}, team={self.team_id}, athlete={self.athlete_id}>"

    def to_dict(self):
        return {
            'id': self.id,
            'team_id': self.team_id,
            'athlete_id': self.athlete_id,
            'athlete_name': self.athlete.name if self.athlete else None,
            'jersey_number': self.jersey_number,
            'position': self.position,
            'role': self.role,
            'joined_at': _iso(self.joined_at),
        }


class Equipment(db.Model):
    __tablename__ = 'training_equipment'

    id: so.Mapped[int] = so.mapped_column(sa.Integer, primary_key=True)
    organization_id: so.Mapped[int] = so.mapped_column(sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False, index=True)
    name: so.Mapped[str] = so.mapped_column(sa.String(128), nullable=False)
    description: so.Mapped[Optional[str]] = so.mapped_column(sa.Text)
    category: so.Mapped[str] = so.mapped_column(sa.String(32), nullable=False, default='other')
    brand: so.Mapped[Optional[str]] = so.mapped_column(sa.String(64))
    model: so.Mapped[Optional[str]] = so.mapped_column(sa.String(64))
    total_quantity: so.Mapped[int] = so.mapped_column(sa.Integer, nullable=False, default=1)
    available_quantity: so.Mapped[int] = so.mapped_column(sa.Integer, nullable=False, default=1)
    condition: so.Mapped[str] = so.mapped_column(sa.String(16), nullable=False, default='good')
    status: so.Mapped[str] = so.mapped_column(sa.String(16), nullable=False, default='available')
    purchase_date: so.Mapped[Optional[date]] = so.mapped_column(sa.Date)
    purchase_price: so.Mapped[Optional[int]] = so.mapped_column(sa.Integer)
    currency: so.Mapped[str] = so.mapped_column(sa.String(3), nullable=False, default='ARS')
    storage_location: so.Mapped[Optional[str]] = so.mapped_column(sa.String(128))
    notes: so.Mapped[Optional[str]] = so.mapped_column(sa.Text)
    created_at: so.Mapped[datetime] = so.mapped_column(sa.DateTime, default=utc_now, nullable=False)
    updated_at: so.Mapped[datetime] = so.mapped_column(sa.DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    assignments: so.Mapped[list['EquipmentAssignment']] = so.relationship(
        'EquipmentAssignment', back_populates='equipment', cascade='all, delete-orphan'
    )

    def __repr__(self):
        return f"<Equipment id={self.id}, name='{self.name}', available={self.available_quantity}/{self.total_quantity}>"

    @property
    def assigned_quantity(self):
        return self.total_quantity - self.available_quantity

    def to_dict(self):
        return {
            'id': self.id,
            'organization_id': self.organization_id,
            'name': self.name,
            'description': self.description,
            'category': self.category,
            'brand': self.brand,
            'model': self.model,
            'total_quantity': self.total_quantity,
            'available_quantity': self.available_quantity,
            'condition': self.condition,
            'status': self.status,
            'purchase_date': _iso(self.purchase_date),
            'purchase_price': self.purchase_price,
            'currency': self.currency,
            'storage_location': self.storage_location,
            'notes': self.notes,
            'created_at': _iso(self.created_at),
        }


class EquipmentAssignment(db.Model):
    __tablename__ = 'equipment_assignments'

    id: so.Mapped[int] = so.mapped_column(sa.Integer, primary_key=True)
    equipment_id: so.Mapped[int] = so.mapped_column(sa.ForeignKey('training_equipment.id', ondelete='CASCADE'), nullable=False, index=True)
    quantity: so.Mapped[int] = so.mapped_column(sa.Integer, nullable=False, default=1)
    coach_id: so.Mapped[Optional[int]] = so.mapped_column(sa.ForeignKey('coaches.id', ondelete='SET NULL'))
    team_id: so.Mapped[Optional[int]] = so.mapped_column(sa.ForeignKey('teams.id', ondelete='SET NULL'))
    training_session_id: so.Mapped[Optional[int]] = so.mapped_column(sa.ForeignKey('training_sessions.id', ondelete='SET NULL'))
    assigned_at: so.Mapped[datetime] = so.mapped_column(sa.DateTime, default=utc_now, nullable=False)
    expected_return_date: so.Mapped[Optional[date]] = so.mapped_column(sa.Date)
    returned_at: so.Mapped[Optional[datetime]] = so.mapped_column(sa.DateTime)
    condition_on_return: so.Mapped[Optional[str]] = so.mapped_column(sa.String(16))
    notes: so.Mapped[Optional[str]] = so.mapped_column(sa.Text)
    assigned_by_id: so.Mapped[Optional[int]] = so.mapped_column(sa.ForeignKey('users.id', ondelete='SET NULL'))

    equipment: so.Mapped['Equipment'] = so.relationship('Equipment', back_populates='assignments')

    def __repr__(self):
        return f"<EquipmentAssignment id={self.id}, equipment={self.equipment_id}, quantity={self.quantity}>"

    @property
    def is_returned(self):
        return self.returned_at is not None

    def to_dict(self):
        return {
            'id': self.id,
            'equipment_id': self.equipment_id,
            'quantity': self.quantity,
            'coach_id': self.coach_id,
            'team_id': self.team_id,
            'training_session_id': self.training_session_id,
            'assigned_at': _iso(self.assigned_at),
            'expected_return_date': _iso(self.expected_return_date),
            'returned_at': _iso(self.returned_at),
            'condition_on_return': self.condition_on_return,
            'notes': self.notes,
        }


class TrainingSession(db.Model):
    __tablename__ = 'training_sessions'

    id: so.Mapped[int] = so.mapped_column(sa.Integer, primary_key=True)
    organization_id: so.Mapped[int] = so.mapped_column(sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False, index=True)
    team_id: so.Mapped[Optional[int]] = so.mapped_column(sa.ForeignKey('teams.id', ondelete='SET NULL'))
    title: so.Mapped[str] = so.mapped_column(sa.String(255), nullable=False)
    description: so.Mapped[Optional[str]] = so.mapped_column(sa.Text)
    start_time: so.Mapped[datetime] = so.mapped_column(sa.DateTime, nullable=False, index=True)
    end_time: so.Mapped[datetime] = so.mapped_column(sa.DateTime, nullable=False)
    location: so.Mapped[Optional[str]] = so.mapped_column(sa.String(255))
    status: so.Mapped[str] = so.mapped_column(sa.String(16), nullable=False, default='pending')
    objectives: so.Mapped[Optional[str]] = so.mapped_column(sa.Text)
    notes: so.Mapped[Optional[str]] = so.mapped_column(sa.Text)
    cancellation_reason: so.Mapped[Optional[str]] = so.mapped_column(sa.String(255))
    completed_at: so.Mapped[Optional[datetime]] = so.mapped_column(sa.DateTime)
    cancelled_at: so.Mapped[Optional[datetime]] = so.mapped_column(sa.DateTime)
    created_at: so.Mapped[datetime] = so.mapped_column(sa.DateTime, default=utc_now, nullable=False)
    updated_at: so.Mapped[datetime] = so.mapped_column(sa.DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    athletes: so.Mapped[list['TrainingSessionAthlete']] = so.relationship(
        'TrainingSessionAthlete', back_populates='session', cascade='all, delete-orphan'
    )
    coaches: so.Mapped[list['TrainingSessionCoach']] = so.relationship(
        'TrainingSessionCoach', back_populates='session', cascade='all, delete-orphan'
    )
    attendance: so.Mapped[list['Attendance']] = so.relationship(
        'Attendance', back_populates='session', cascade='all, delete-orphan'
    )

    def __repr__(self):
        return f"<TrainingSession id={self.id}, title='{self.title}', status='{self.status}'>"

    def to_dict(self, include_participants=False):
        data = {
            'id': self.id,
            'organization_id': self.organization_id,
            'team_id': self.team_id,
            'title': self.title,
            'description': self.description,
            'start_time': _iso(self.start_time),
            'end_time': _iso(self.end_time),
            'location': self.location,
            'status': self.status,
            'objectives': self.objectives,
            'notes': self.notes,
            'cancellation_reason': self.cancellation_reason,
            'completed_at': _iso(self.completed_at),
            'cancelled_at': _iso(self.cancelled_at),
        }
        if include_participants:
            data['athletes'] = [
                {'athlete_id': link.athlete_id, 'name': link.athlete.name} for link in self.athletes
            ]
            data['coaches'] = [
                {'coach_id': link.coach_id, 'name': link.coach.name, 'is_primary': link.is_primary}
                for link in self.coaches
            ]
        return data


class TrainingSessionAthlete(db.Model):
    __tablename__ = 'training_session_athletes'
    __table_args__ = (sa.UniqueConstraint('session_id', 'athlete_id', name='uq_session_athlete'),)

    id: so.Mapped[int] = so.mapped_column(sa.Integer, primary_key=True)
    session_id: so.Mapped[int] = so.mapped_column(sa.ForeignKey('training_sessions.id', ondelete='CASCADE'), nullable=False)
    athlete_id: so.Mapped[int] = so.mapped_column(sa.ForeignKey('athletes.id', ondelete='CASCADE'), nullable=False)

    session: so.Mapped['TrainingSession'] = so.relationship('TrainingSession', back_populates='athletes')
    athlete: so.Mapped['Athlete'] = so.relationship('Athlete')


class TrainingSessionCoach(db.Model):
    __tablename__ = 'training_session_coaches'
    __table_args__ = (sa.UniqueConstraint('session_id', 'coach_id', name='uq_session_coach'),)

    id: so.Mapped[int] = so.mapped_column(sa.Integer, primary_key=True)
    session_id: so.Mapped[int] = so.mapped_column(sa.ForeignKey('training_sessions.id', ondelete='CASCADE'), nullable=False)
    coach_id: so.Mapped[int] = so.mapped_column(sa.ForeignKey('coaches.id', ondelete='CASCADE'), nullable=False)
    is_primary: so.Mapped[bool] = so.mapped_column(sa.Boolean, nullable=False, default=False)

    session: so.Mapped['TrainingSession'] = so.relationship('TrainingSession', back_populates='coaches')
    coach: so.Mapped['Coach'] = so.relationship('Coach')


class Attendance(db.Model):
    __tablename__ = 'attendance'
    __table_args__ = (sa.UniqueConstraint('session_id', 'athlete_id', name='uq_attendance'),)

    id: so.Mapped[int] = so.mapped_column(sa.Integer, primary_key=True)
    session_id: so.Mapped[int] = so.mapped_column(sa.ForeignKey('training_sessions.id', ondelete='CASCADE'), nullable=False)
    athlete_id: so.Mapped[int] = so.mapped_column(sa.ForeignKey('athletes.id', ondelete='CASCADE'), nullable=False)
    status: so.Mapped[str] = so.mapped_column(sa.String(16), nullable=False, default='pending')
    check_in_time: so.Mapped[Optional[datetime]] = so.mapped_column(sa.DateTime)
    notes: so.Mapped[Optional[str]] = so.mapped_column(sa.String(255))
    recorded_by_id: so.Mapped[Optional[int]] = so.mapped_column(sa.ForeignKey('users.id', ondelete='SET NULL'))
    updated_at: so.Mapped[datetime] = so.mapped_column(sa.DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    session: so.Mapped['TrainingSession'] = so.relationship('TrainingSession', back_populates='attendance')
    athlete: so.Mapped['Athlete'] = so.relationship('Athlete')

    def to_dict(self):
        return {
            'id': self.id,
            'session_id': self.session_id,
            'athlete_id': self.athlete_id,
            'athlete_name': self.athlete.name if self.athlete else None,
            'status': self.status,
            'check_in_time': _iso(self.check_in_time),
            'notes': self.notes,
        }


class WaitlistEntry(db.Model):
    __tablename__ = 'waitlist_entries'

    id: so.Mapped[int] = so.mapped_column(sa.Integer, primary_key=True)
    organization_id: so.Mapped[int] = so.mapped_column(sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False, index=True)
    athlete_id: so.Mapped[int] = so.mapped_column(sa.ForeignKey('athletes.id', ondelete='CASCADE'), nullable=False)
    reference_type: so.Mapped[str] = so.mapped_column(sa.String(16), nullable=False, default='team')  # team, schedule
    team_id: so.Mapped[Optional[int]] = so.mapped_column(sa.ForeignKey('teams.id', ondelete='CASCADE'))
    preferred_days: so.Mapped[Optional[str]] = so.mapped_column(sa.String(128))  # Comma separated weekday names
    preferred_start_time: so.Mapped[Optional[str]] = so.mapped_column(sa.String(5))  # HH:MM
    preferred_end_time: so.Mapped[Optional[str]] = so.mapped_column(sa.String(5))  # HH:MM
    priority: so.Mapped[str] = so.mapped_column(sa.String(8), nullable=False, default='medium')
    status: so.Mapped[str] = so.mapped_column(sa.String(16), nullable=False, default='waiting')
    position: so.Mapped[int] = so.mapped_column(sa.Integer, nullable=False)
    notes: so.Mapped[Optional[str]] = so.mapped_column(sa.Text)
    expires_at: so.Mapped[Optional[datetime]] = so.mapped_column(sa.DateTime)
    assigned_at: so.Mapped[Optional[datetime]] = so.mapped_column(sa.DateTime)
    created_at: so.Mapped[datetime] = so.mapped_column(sa.DateTime, default=utc_now, nullable=False)
    updated_at: so.Mapped[datetime] = so.mapped_column(sa.DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    athlete: so.Mapped['Athlete'] = so.relationship('Athlete')
    team: so.Mapped[Optional['Team']] = so.relationship('Team')

    def __repr__(self):
        return f"<WaitlistEntry id={self.id}, athlete={self.athlete_id}, position={self.position}, status='{self.status}'>"

    def get_preferred_days(self):
        if not self.preferred_days:
            return []
        return [day for day in self.preferred_days.split(',') if day]

    def to_dict(self):
        return {
            'id': self.id,
            'athlete_id': self.athlete_id,
            'athlete_name': self.athlete.name if self.athlete else None,
            'reference_type': self.reference_type,
            'team_id': self.team_id,
            'preferred_days': self.get_preferred_days(),
            'preferred_start_time': self.preferred_start_time,
            'preferred_end_time': self.preferred_end_time,
            'priority': self.priority,
            'status': self.status,
            'position': self.position,
            'notes': self.notes,
            'expires_at': _iso(self.expires_at),
            'assigned_at': _iso(self.assigned_at),
            'created_at': _iso(self.created_at),
        }
