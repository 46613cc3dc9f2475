# conftest.py

import os

import pytest
from werkzeug.security import generate_password_hash

# Set testing environment BEFORE importing app so app.py loads TestingConfig
os.environ["FLASK_ENV"] = "testing"

# Now import app and other modules after environment is set
from app import app as flask_app  # noqa: E402
from troop_app.models import (  # noqa: E402
    Group,
    Organization,
    OrganizationDomain,
    Participant,
    ParticipantGroup,
    ParticipantOrganization,
    Permission,
    Role,
    RolePermission,
    User,
    UserOrganization,
    db,
)

LEDGER_PERMISSIONS = (
    "view_attendance",
    "manage_attendance",
    "view_honors",
    "award_honors",
    "view_points",
    "manage_points",
    "manage_point_rules",
    "view_badges",
    "manage_badges",
    "approve_badges",
)

ROLE_PERMISSIONS = {
    "ORG_ADMIN": LEDGER_PERMISSIONS,
    "LEADER": (
        "view_attendance",
        "manage_attendance",
        "view_honors",
        "award_honors",
        "view_points",
        "manage_points",
        "view_badges",
        "manage_badges",
        "approve_badges",
    ),
    "ANIMATION": (
        "view_attendance",
        "manage_attendance",
        "view_honors",
        "award_honors",
        "view_points",
        "view_badges",
        "manage_badges",
    ),
    "PARENT": ("view_points", "view_badges"),
    "VIEWER": ("view_attendance", "view_honors", "view_points", "view_badges"),
}


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests that call services directly")
    config.addinivalue_line("markers", "integration: tests that go through the HTTP API")
    config.addinivalue_line("markers", "slow: tests that take noticeably longer")


@pytest.fixture(scope="function")
def app():
    """Create and configure a test Flask application with fresh tables"""
    flask_app.config.update(
        {
            "TESTING": True,
            "WTF_CSRF_ENABLED": False,
            "SECRET_KEY": "test-secret-key-for-testing-only",
            "MONITORING_ENABLED": False,
            "ENABLE_FILE_LOGGING": False,
            "ENABLE_CONSOLE_LOGGING": False,
            "LOG_LEVEL": "DEBUG",
            "DEFAULT_ORGANIZATION_ID": 1,
            "TENANT_HEADER_NAME": "X-Organization-ID",
            "BADGE_APPROVER_ROLES": ("ORG_ADMIN", "LEADER"),
        }
    )

    # Re-initialize logging so records reach pytest's caplog at DEBUG
    from troop_app.utils.logging_config import setup_logging

    setup_logging(flask_app)

    with flask_app.app_context():
        db.drop_all()
        db.create_all()
        yield flask_app
        db.session.remove()
        db.drop_all()


@pytest.fixture(autouse=True)
def app_context(app):
    """Automatically provide app context for all tests"""
    with app.app_context():
        yield


@pytest.fixture
def client(app):
    """Create a test client for the Flask application"""
    return app.test_client()


@pytest.fixture
def organization(app):
    """Organization 1, the configured default tenant"""
    org = Organization(id=1, name="Meute Seeonee", slug="meute-seeonee", is_active=True)
    db.session.add(org)
    db.session.add(OrganizationDomain(organization=org, domain="seeonee.example.org"))
    db.session.commit()
    return org


@pytest.fixture
def other_organization(app):
    org = Organization(id=2, name="Meute Waingunga", slug="meute-waingunga", is_active=True)
    db.session.add(org)
    db.session.add(OrganizationDomain(organization=org, domain="waingunga.example.org"))
    db.session.commit()
    return org


@pytest.fixture
def roles(app):
    """Ledger roles with their permissions, keyed by role name"""
    permissions = {}
    for name in LEDGER_PERMISSIONS:
        permission = Permission(name=name, display_name=name.replace("_", " ").title(), category="ledger")
        db.session.add(permission)
        permissions[name] = permission

    created = {"SUPER_ADMIN": Role(name="SUPER_ADMIN", display_name="Super Administrator", is_system_role=True)}
    db.session.add(created["SUPER_ADMIN"])
    for role_name, permission_names in ROLE_PERMISSIONS.items():
        role = Role(name=role_name, display_name=role_name.replace("_", " ").title(), is_system_role=True)
        db.session.add(role)
        created[role_name] = role
    db.session.flush()

    for role_name, permission_names in ROLE_PERMISSIONS.items():
        for permission_name in permission_names:
            db.session.add(
                RolePermission(role_id=created[role_name].id, permission_id=permissions[permission_name].id)
            )
    db.session.commit()
    return created


@pytest.fixture
def make_user(app, roles):
    """Factory creating a user with a role in an organization"""

    def _make_user(username, role_name=None, organization=None, password="testpass123", is_super_admin=False):
        user = User(
            username=username,
            email=f"{username}@example.com",
            password_hash=generate_password_hash(password),
            first_name=username.title(),
            last_name="User",
            is_active=True,
            is_super_admin=is_super_admin,
        )
        db.session.add(user)
        db.session.flush()
        if role_name and organization is not None:
            db.session.add(
                UserOrganization(
                    user_id=user.id,
                    organization_id=organization.id,
                    role_id=roles[role_name].id,
                    is_active=True,
                )
            )
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def leader(make_user, organization):
    return make_user("akela", "LEADER", organization)


@pytest.fixture
def org_admin(make_user, organization):
    return make_user("raksha", "ORG_ADMIN", organization)


@pytest.fixture
def animator(make_user, organization):
    return make_user("baloo", "ANIMATION", organization)


@pytest.fixture
def viewer(make_user, organization):
    return make_user("hathi", "VIEWER", organization)


@pytest.fixture
def super_admin(make_user):
    return make_user("chil", is_super_admin=True)


@pytest.fixture
def troop(app, organization, other_organization):
    """
    Participants and groups across two organizations.

    Organization 1: Mowgli (57) and Gris (58) in group "Loups gris", Frère (59) without a group.
    Organization 2: Sahi (90) in group "Loups roux".
    """
    wolves = Group(id=1, organization_id=organization.id, name="Loups gris")
    reds = Group(id=2, organization_id=other_organization.id, name="Loups roux")
    db.session.add_all([wolves, reds])

    people = {
        57: ("Mowgli", "Jungle", organization, wolves),
        58: ("Gris", "Frere", organization, wolves),
        59: ("Frere", "Loup", organization, None),
        90: ("Sahi", "Porc-epic", other_organization, reds),
    }
    for participant_id, (first_name, last_name, org, group) in people.items():
        db.session.add(Participant(id=participant_id, first_name=first_name, last_name=last_name))
        db.session.add(ParticipantOrganization(participant_id=participant_id, organization_id=org.id))
        if group is not None:
            db.session.add(
                ParticipantGroup(participant_id=participant_id, group_id=group.id, organization_id=org.id)
            )
    db.session.commit()
    return {"wolves": wolves, "reds": reds}


@pytest.fixture
def login(client):
    """Log a user in through the JSON login endpoint"""

    def _login(username, password="testpass123"):
        response = client.post("/login", json={"username": username, "password": password})
        assert response.status_code == 200, response.get_json()
        return client

    return _login


@pytest.fixture
def leader_client(login, leader, troop):
    return login(leader.username)
