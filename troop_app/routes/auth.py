# troop_app/routes/auth.py
"""
Session login for the JSON API
"""

from flask import current_app, jsonify
from flask_login import current_user, login_required, login_user, logout_user

from troop_app.forms import LoginForm
from troop_app.models import User
from troop_app.routes.helpers import validated
from troop_app.services.errors import Unauthorized
from troop_app.utils.permissions import get_user_organizations


def register_auth_routes(app):
    """Register authentication routes"""

    @app.route("/login", methods=["POST"])
    def login():
        form = validated(LoginForm())
        user = User.find_by_username(form.username.data)

        if user is None or not user.check_password(form.password.data):
            current_app.logger.warning(f"Failed login attempt for username: {form.username.data}")
            raise Unauthorized("Invalid username or password")

        if not user.is_active:
            current_app.logger.warning(f"Login attempt for inactive user: {user.username}")
            raise Unauthorized("Account is inactive")

        login_user(user, remember=form.remember_me.data)
        current_app.logger.info(f"User {user.username} logged in")
        return jsonify(
            {
                "success": True,
                "user": {"id": user.id, "username": user.username, "is_super_admin": user.is_super_admin},
                "organizations": [{"id": org.id, "name": org.name} for org in get_user_organizations(user)],
            }
        )

    @app.route("/logout", methods=["POST"])
    @login_required
    def logout():
        username = current_user.username
        logout_user()
        current_app.logger.info(f"User {username} logged out")
        return jsonify({"success": True})
