# troop_app/services/tenant_resolver.py
"""
Tenant resolution for inbound requests.

Order: explicit tenant header, then hostname mapping, then the configured
default. Resolution never fails a request; falling back to the default is
reported through the returned ``TenantResolution`` and logged.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config.monitoring import LedgerMonitoring
from troop_app.models import OrganizationDomain, db

SOURCE_HEADER = "header"
SOURCE_DOMAIN = "domain"
SOURCE_DEFAULT = "default"


@dataclass(frozen=True)
class TenantResolution:
    """Outcome of resolving the organization for one request."""

    organization_id: int
    source: str
    hostname: str | None = None
    reason: str | None = None

    @property
    def used_default(self) -> bool:
        return self.source == SOURCE_DEFAULT


def normalize_hostname(host: str | None) -> str | None:
    """Lower-case a Host header value and strip any port."""
    if not host:
        return None
    host = host.strip().lower()
    if host.startswith("["):
        # IPv6 literal, e.g. [::1]:5000
        end = host.find("]")
        return host[1:end] if end != -1 else host
    return host.split(":", 1)[0] or None


def parse_organization_id(raw) -> int | None:
    """Parse a positive organization id, returning None for anything else."""
    if raw is None:
        return None
    try:
        value = int(str(raw).strip())
    except ValueError:
        return None
    return value if value > 0 else None


class TenantResolver:
    """Resolve the active organization id for a request."""

    def __init__(
        self,
        session: Session | None = None,
        *,
        header_name: str | None = None,
        default_organization_id: int | None = None,
    ):
        self.session: Session = session or db.session
        self.header_name = header_name or current_app.config.get("TENANT_HEADER_NAME", "X-Organization-ID")
        if default_organization_id is None:
            default_organization_id = current_app.config.get("DEFAULT_ORGANIZATION_ID", 1)
        self.default_organization_id = int(default_organization_id)

    def resolve(self, request) -> TenantResolution:
        hostname = normalize_hostname(request.host)

        raw_header = request.headers.get(self.header_name)
        if raw_header:
            organization_id = parse_organization_id(raw_header)
            if organization_id is not None:
                return self._record(TenantResolution(organization_id, SOURCE_HEADER, hostname))
            current_app.logger.warning(
                f"Ignoring malformed {self.header_name} header value {raw_header!r} for host {hostname}"
            )

        reason = "no domain mapping"
        if hostname:
            try:
                mapping = self.session.query(OrganizationDomain).filter_by(domain=hostname).first()
            except SQLAlchemyError as e:
                self.session.rollback()
                mapping = None
                reason = "domain lookup failed"
                current_app.logger.error(f"Database error resolving organization for host {hostname}: {str(e)}")
            if mapping is not None:
                return self._record(TenantResolution(mapping.organization_id, SOURCE_DOMAIN, hostname))
        else:
            reason = "no hostname"

        current_app.logger.warning(
            f"Organization mapping not found for host {hostname} ({reason}); "
            f"defaulting to organization {self.default_organization_id}"
        )
        return self._record(
            TenantResolution(self.default_organization_id, SOURCE_DEFAULT, hostname, reason=reason)
        )

    @staticmethod
    def _record(resolution: TenantResolution) -> TenantResolution:
        LedgerMonitoring.TENANT_RESOLUTION_COUNTER.labels(source=resolution.source).inc()
        return resolution
