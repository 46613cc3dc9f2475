# scripts/init_database.py

"""
Database initialization script.
This script creates all tables and seeds default data:
- Default roles (SUPER_ADMIN, ORG_ADMIN, LEADER, ANIMATION, PARENT, VIEWER)
- Ledger permissions and role-permission mappings
- The default organization that requests fall back to when no tenant is resolved
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import app
from troop_app.models import Organization, Permission, Role, RolePermission, db

DEFAULT_ROLES = [
    {
        "name": "SUPER_ADMIN",
        "display_name": "Super Administrator",
        "description": "System-wide administrator with access to every organization",
    },
    {
        "name": "ORG_ADMIN",
        "display_name": "Organization Administrator",
        "description": "Manages one organization, including its point rules",
    },
    {
        "name": "LEADER",
        "display_name": "Leader",
        "description": "Records attendance, awards honors and points, approves badges",
    },
    {
        "name": "ANIMATION",
        "display_name": "Animation",
        "description": "Assistant leader; records attendance and honors, submits badges",
    },
    {
        "name": "PARENT",
        "display_name": "Parent",
        "description": "Sees points and badges",
    },
    {
        "name": "VIEWER",
        "display_name": "Viewer",
        "description": "Read-only access to the ledger",
    },
]

DEFAULT_PERMISSIONS = [
    {"name": "view_attendance", "display_name": "View Attendance", "category": "attendance"},
    {"name": "manage_attendance", "display_name": "Manage Attendance", "category": "attendance"},
    {"name": "view_honors", "display_name": "View Honors", "category": "honors"},
    {"name": "award_honors", "display_name": "Award Honors", "category": "honors"},
    {"name": "view_points", "display_name": "View Points", "category": "points"},
    {"name": "manage_points", "display_name": "Manage Points", "category": "points"},
    {"name": "manage_point_rules", "display_name": "Manage Point Rules", "category": "points"},
    {"name": "view_badges", "display_name": "View Badges", "category": "badges"},
    {"name": "manage_badges", "display_name": "Submit Badges", "category": "badges"},
    {"name": "approve_badges", "display_name": "Approve Badges", "category": "badges"},
]

ROLE_GRANTS = {
    "ORG_ADMIN": [permission["name"] for permission in DEFAULT_PERMISSIONS],
    "LEADER": [
        "view_attendance",
        "manage_attendance",
        "view_honors",
        "award_honors",
        "view_points",
        "manage_points",
        "view_badges",
        "manage_badges",
        "approve_badges",
    ],
    "ANIMATION": [
        "view_attendance",
        "manage_attendance",
        "view_honors",
        "award_honors",
        "view_points",
        "view_badges",
        "manage_badges",
    ],
    "PARENT": ["view_points", "view_badges"],
    "VIEWER": ["view_attendance", "view_honors", "view_points", "view_badges"],
}


def create_default_roles():
    """Create default system roles"""
    created_roles = {}
    for role_data in DEFAULT_ROLES:
        role = Role.find_by_name(role_data["name"])
        if not role:
            role = Role(is_system_role=True, **role_data)
            db.session.add(role)
            db.session.flush()
        created_roles[role_data["name"]] = role

    db.session.commit()
    return created_roles


def create_default_permissions():
    created_permissions = {}
    for perm_data in DEFAULT_PERMISSIONS:
        perm = Permission.find_by_name(perm_data["name"])
        if not perm:
            perm = Permission(**perm_data)
            db.session.add(perm)
            db.session.flush()
        created_permissions[perm_data["name"]] = perm

    db.session.commit()
    return created_permissions


def assign_permissions_to_roles(roles, permissions):
    """Grant each role its ledger permissions; SUPER_ADMIN bypasses checks and needs none"""
    role_ids = [role.id for role in roles.values()]
    existing_pairs = {
        (rp.role_id, rp.permission_id)
        for rp in RolePermission.query.filter(RolePermission.role_id.in_(role_ids)).all()
    }

    for role_name, perm_names in ROLE_GRANTS.items():
        role = roles[role_name]
        for perm_name in perm_names:
            key = (role.id, permissions[perm_name].id)
            if key not in existing_pairs:
                db.session.add(RolePermission(role_id=key[0], permission_id=key[1]))
                existing_pairs.add(key)

    db.session.commit()


def create_default_organization():
    """Create the organization used when no domain or header selects one"""
    if os.environ.get("CREATE_DEFAULT_ORG", "true").lower() != "true":
        print("Skipping default organization creation (CREATE_DEFAULT_ORG=false)")
        return None

    default_id = app.config.get("DEFAULT_ORGANIZATION_ID", 1)
    existing = db.session.get(Organization, default_id)
    if existing:
        print(f"Default organization already exists: {existing.name}")
        return existing

    default_org = Organization(
        id=default_id,
        name="Default Organization",
        slug="default",
        description="Default organization created during database initialization",
        is_active=True,
    )
    db.session.add(default_org)
    db.session.commit()
    return default_org


def init_database():
    """Initialize database with all default data"""
    with app.app_context():
        print("Creating database tables...")
        db.create_all()

        roles = create_default_roles()
        print(f"Created {len(roles)} default roles")

        permissions = create_default_permissions()
        print(f"Created {len(permissions)} ledger permissions")

        assign_permissions_to_roles(roles, permissions)
        print("Permissions assigned to roles")

        default_org = create_default_organization()
        if default_org:
            print(f"Default organization: {default_org.name} (id: {default_org.id})")

        print("\nDatabase initialization complete!")
        print("\nNext steps:")
        print("  1. Create a super admin user: python scripts/create_admin.py")
        print("  2. Create additional organizations: python scripts/create_organization.py")


if __name__ == "__main__":
    init_database()
