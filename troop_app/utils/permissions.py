# troop_app/utils/permissions.py

from functools import wraps

from flask import g, jsonify
from flask_login import current_user

from troop_app.models import Organization, Role, UserOrganization


def get_user_organizations(user):
    """Get all organizations a user belongs to"""
    if not user or not user.is_authenticated:
        return []

    if user.is_super_admin:
        # Super admins can access all organizations
        return Organization.query.filter_by(is_active=True).all()

    user_orgs = UserOrganization.query.filter_by(user_id=user.id, is_active=True).all()
    return [uo.organization for uo in user_orgs if uo.organization.is_active]


def get_user_role_in_organization(user, organization_id):
    """Get the role a user has in a specific organization"""
    if not user or not user.is_authenticated or not organization_id:
        return None

    if user.is_super_admin:
        # Super admins have super admin role everywhere
        return Role.query.filter_by(name="SUPER_ADMIN").first()

    user_org = UserOrganization.query.filter_by(
        user_id=user.id, organization_id=organization_id, is_active=True
    ).first()

    return user_org.role if user_org else None


def has_permission(user, permission_name, organization_id):
    """Check if user has a specific permission in an organization"""
    if not user or not user.is_authenticated:
        return False

    # Super admins have all permissions
    if user.is_super_admin:
        return True

    role = get_user_role_in_organization(user, organization_id)
    return bool(role and role.has_permission(permission_name))


def has_role(user, role_names, organization_id):
    """Check if user holds one of the given roles in an organization"""
    if not user or not user.is_authenticated:
        return False

    if isinstance(role_names, str):
        role_names = (role_names,)

    if user.is_super_admin:
        # Super admins implicitly have all roles
        return True

    role = get_user_role_in_organization(user, organization_id)
    return bool(role and role.name in role_names)


def require_organization_membership(user, organization_id):
    """Check if user is a member of the organization"""
    if not user or not user.is_authenticated or not organization_id:
        return False

    if user.is_super_admin:
        return True

    user_org = UserOrganization.query.filter_by(
        user_id=user.id, organization_id=organization_id, is_active=True
    ).first()

    return user_org is not None


def _json_error(message, status_code):
    return jsonify({"success": False, "error": message}), status_code


def permission_required(permission_name):
    """
    Decorator to require a specific permission in the request's organization.

    Args:
        permission_name: Name of the permission to check
    """

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return _json_error("Authentication required", 401)

            # Super admins bypass permission checks
            if current_user.is_super_admin:
                return f(*args, **kwargs)

            organization_id = get_current_organization_id()
            if not organization_id:
                return _json_error("Organization context required", 400)

            if not require_organization_membership(current_user, organization_id):
                return _json_error("You are not a member of this organization", 403)

            if not has_permission(current_user, permission_name, organization_id):
                return _json_error("You do not have permission to perform this action", 403)

            return f(*args, **kwargs)

        return decorated_function

    return decorator


def get_current_organization_id():
    """
    Get the organization id resolved for this request.
    This is set by the organization context middleware.
    """
    return getattr(g, "organization_id", None)


def get_tenant_resolution():
    return getattr(g, "tenant_resolution", None)


def set_current_tenant(resolution):
    """Set the resolved tenant in Flask request context"""
    g.tenant_resolution = resolution
    g.organization_id = resolution.organization_id if resolution else None
