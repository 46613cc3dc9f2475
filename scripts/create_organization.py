# scripts/create_organization.py

"""
Script to create organizations from the command line.
Optionally maps a host name to the new organization so requests on that
domain resolve to it.
"""

import os
import re
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import app
from troop_app.models import Organization, OrganizationDomain, db


def generate_slug(name):
    """Generate a URL-friendly slug from a name"""
    slug = re.sub(r"[_\s]+", "-", name.lower())
    slug = re.sub(r"[^a-z0-9\-]", "", slug)
    return re.sub(r"-+", "-", slug).strip("-")


def create_organization():
    with app.app_context():
        name = input("Enter organization name: ").strip()
        if not name:
            print("Error: Organization name cannot be empty.")
            sys.exit(1)

        suggested_slug = generate_slug(name)
        slug = input(f'Enter slug (or press Enter to use "{suggested_slug}"): ').strip() or suggested_slug
        if not re.match(r"^[a-z0-9\-]+$", slug):
            print("Error: Slug can only contain lowercase letters, numbers, and hyphens.")
            sys.exit(1)
        if Organization.find_by_slug(slug):
            print(f'Error: An organization with slug "{slug}" already exists.')
            sys.exit(1)

        domain = input("Enter domain (optional, e.g. meute.example.org): ").strip().lower() or None
        if domain and OrganizationDomain.query.filter_by(domain=domain).first():
            print(f'Error: Domain "{domain}" is already mapped.')
            sys.exit(1)

        description = input("Enter description (optional): ").strip() or None

        org, error = Organization.safe_create(name=name, slug=slug, description=description, is_active=True)
        if error:
            print(f"Error creating organization: {error}")
            sys.exit(1)

        if domain:
            _, error = OrganizationDomain.safe_create(organization_id=org.id, domain=domain)
            if error:
                print(f"Organization created but the domain mapping failed: {error}")
                sys.exit(1)

        db.session.refresh(org)
        print("Organization created successfully!")
        print(f"   Id: {org.id}")
        print(f"   Name: {org.name}")
        print(f"   Slug: {org.slug}")
        print(f'   Domain: {domain or "None"}')


if __name__ == "__main__":
    create_organization()
