# troop_app/middleware/org_context.py

from flask import g, request

from troop_app.services.tenant_resolver import TenantResolver
from troop_app.utils.permissions import get_tenant_resolution, set_current_tenant

SKIPPED_ENDPOINTS = ("static", "health", "health_ready", "health_live", "metrics")


def init_org_context_middleware(app):
    """Initialize organization context middleware"""

    @app.before_request
    def set_organization_context():
        """Resolve the tenant from header, hostname or the configured default"""
        g.tenant_resolution = None
        g.organization_id = None

        if request.endpoint in SKIPPED_ENDPOINTS:
            return

        set_current_tenant(TenantResolver().resolve(request))

    @app.after_request
    def expose_tenant_resolution(response):
        """Report which resolution step produced the organization"""
        resolution = get_tenant_resolution()
        if resolution is not None:
            response.headers["X-Tenant-Resolution"] = resolution.source
        return response
