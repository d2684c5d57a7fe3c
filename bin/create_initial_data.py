#!/usr/bin/env python3
"""
Initial Data Population Script

Populates a fresh database with the first platform administrator and the
first organization, owned by that administrator. Run this after creating the
database schema with `flask db upgrade`.

Usage:
    source venv/bin/activate
    python bin/create_initial_data.py
"""

import getpass
import sys

from dotenv import load_dotenv

load_dotenv('.flaskenv')

import sqlalchemy as sa

from app import create_app, db
from app.models import User, Organization, OrganizationMember, AgeCategory
from app.utils import unique_slug
from app.audit import audit_log_system_event


DEFAULT_AGE_CATEGORIES = [
    # name, display name, sort order
    ('u12', 'Under 12', 10),
    ('u15', 'Under 15', 20),
    ('u18', 'Under 18', 30),
    ('adult', 'Adult', 40),
]


def prompt(label, required=True, check=None, error='Please enter a value.'):
    while True:
        value = input(f"{label}: ").strip()
        if not value and not required:
            return None
        if value and (check is None or check(value)):
            return value
        print(error)


def create_admin_user():
    """Create the first platform administrator interactively."""
    user_count = db.session.scalar(sa.select(sa.func.count(User.id)))

    if user_count > 0:
        print(f"\nUsers already exist in database ({user_count} users)")
        print("Skipping admin user creation")
        return None

    print("\n" + "=" * 50)
    print("CREATE FIRST ADMIN USER")
    print("=" * 50)
    print("No users exist in the database. Let's create the first admin user.")
    print()

    name = prompt("Name", error="Name cannot be empty.")
    email = prompt("Email", check=lambda value: '@' in value, error="Please enter a valid email address.").lower()
    phone = prompt("Phone (optional)", required=False)

    while True:
        password = getpass.getpass("Password: ")
        if len(password) < 8:
            print("Password must be at least 8 characters long.")
            continue
        if password != getpass.getpass("Confirm Password: "):
            print("Passwords don't match. Please try again.")
            continue
        break

    admin_user = User(name=name, email=email, phone=phone, is_admin=True)
    admin_user.set_password(password)
    db.session.add(admin_user)
    db.session.commit()

    audit_log_system_event('SEED', f'Created platform administrator {email}')
    print(f"\n✓ Admin user '{email}' created successfully!")
    return admin_user


def create_first_organization(owner):
    """Create the first organization with default age categories."""
    organization_count = db.session.scalar(sa.select(sa.func.count(Organization.id)))
    if organization_count > 0:
        print(f"\nOrganizations already exist ({organization_count}); skipping")
        return None

    name = prompt("Organization name", error="Organization name cannot be empty.")
    organization = Organization(name=name, slug=unique_slug(Organization, name))
    organization.members.append(OrganizationMember(user_id=owner.id, role='owner'))
    db.session.add(organization)
    db.session.flush()
    for category_name, display_name, sort_order in DEFAULT_AGE_CATEGORIES:
        db.session.add(AgeCategory(
            organization_id=organization.id,
            name=category_name,
            display_name=display_name,
            sort_order=sort_order
        ))
    db.session.commit()

    audit_log_system_event('SEED', f'Created organization {organization.slug}')
    print(f"✓ Organization '{organization.name}' created with slug '{organization.slug}'")
    return organization


def verify_database_structure():
    """Verify that all expected tables exist."""
    print("\nVerifying database structure...")

    existing_tables = set(sa.inspect(db.engine).get_table_names())
    missing_tables = sorted(set(db.metadata.tables) - existing_tables)

    if missing_tables:
        print(f"\nERROR: Missing tables: {missing_tables}")
        print("Please run the database migration first:")
        print("  flask db upgrade")
        return False

    print("Database structure verification complete!")
    return True


def main():
    print("=" * 60)
    print("FIELDHOUSE - Initial Data Setup")
    print("=" * 60)

    app = create_app()

    with app.app_context():
        if not verify_database_structure():
            sys.exit(1)

        admin_user = create_admin_user()
        if admin_user is not None:
            create_first_organization(admin_user)

        print("\n" + "=" * 60)
        print("SETUP COMPLETE!")
        print("=" * 60)


if __name__ == '__main__':
    main()
