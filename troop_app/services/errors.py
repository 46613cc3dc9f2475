# troop_app/services/errors.py
"""
Exceptions raised by the ledger services.

Each carries the HTTP status the API layer answers with; the message is safe to
show to clients.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    default_message = "An internal error occurred"

    def __init__(self, message: str | None = None, *, details: dict | None = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"success": False, "error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationFailure(LedgerError, ValueError):
    """Request data is missing or malformed; raised before any write begins."""

    status_code = 400
    default_message = "Invalid request data"


class Unauthorized(LedgerError):
    """No authenticated user is attached to the request."""

    status_code = 401
    default_message = "Authentication required"


class Forbidden(LedgerError):
    """The user lacks the role or permission in the resource's organization."""

    status_code = 403
    default_message = "You do not have permission to perform this action"


class NotFound(LedgerError):
    """The resource does not exist within the requesting organization."""

    status_code = 404
    default_message = "Resource not found"


class TransactionFailure(LedgerError):
    """A database error aborted the transaction; nothing was written."""

    status_code = 500
    default_message = "An internal error occurred"
