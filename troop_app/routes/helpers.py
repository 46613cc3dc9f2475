# troop_app/routes/helpers.py
"""
Small request/response helpers shared by the JSON API routes.
"""

from flask import request
from flask_login import current_user

from troop_app.services.errors import ValidationFailure
from troop_app.utils.permissions import get_current_organization_id


def validated(form):
    """Return the form if it validates, else raise a 400 with the field errors"""
    if not form.validate():
        raise ValidationFailure("Invalid request data", details=form.errors)
    return form


def json_body():
    """Parsed JSON body, or None when the body is missing or not JSON"""
    return request.get_json(silent=True)


def tenant_id():
    return get_current_organization_id()


def acting_user():
    return current_user._get_current_object() if current_user.is_authenticated else None
