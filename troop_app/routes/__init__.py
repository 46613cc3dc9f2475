# troop_app/routes/__init__.py
"""
Application routes package
"""

from .attendance import register_attendance_routes
from .auth import register_auth_routes
from .badges import register_badge_routes
from .honors import register_honor_routes
from .points import register_point_routes


def init_routes(app):
    """Initialize all application routes"""
    register_auth_routes(app)
    register_attendance_routes(app)
    register_honor_routes(app)
    register_point_routes(app)
    register_badge_routes(app)
