"""
Typed business errors.

Services raise these; the handlers registered in ``backoffice.main`` turn them
into the ``{"ok": false, "error_kind", "message", "details"}`` envelope.
"""
from __future__ import annotations

from typing import Any, Optional


class BackofficeError(Exception):
    kind: str = "Internal"
    status_code: int = 500

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": False,
            "error_kind": self.kind,
            "message": self.message,
            "details": self.details,
        }


class InvalidInput(BackofficeError):
    kind = "InvalidInput"
    status_code = 400


class Unauthorized(BackofficeError):
    kind = "Unauthorized"
    status_code = 401


class NotFound(BackofficeError):
    kind = "NotFound"
    status_code = 404


class MethodNotAllowed(BackofficeError):
    kind = "MethodNotAllowed"
    status_code = 405


class RequestRejected(BackofficeError):
    """Any other HTTP-level rejection raised by the framework, keeping its status."""

    kind = "RequestRejected"

    def __init__(self, message: str, status_code: int, details: Optional[dict[str, Any]] = None):
        super().__init__(message, details)
        self.status_code = status_code


class Unavailable(BackofficeError):
    """Entity exists but is switched off (is_active = false)."""

    kind = "Unavailable"
    status_code = 409


class InsufficientStock(BackofficeError):
    kind = "InsufficientStock"
    status_code = 409


class CategoryConflict(BackofficeError):
    """Cart already holds items of a different category."""

    kind = "CategoryConflict"
    status_code = 409


class EmptyCart(BackofficeError):
    kind = "EmptyCart"
    status_code = 400


class Conflict(BackofficeError):
    """Duplicate unique key, or a state toggle that is already in place."""

    kind = "Conflict"
    status_code = 409


class StorageTimeout(BackofficeError):
    """Lock wait exceeded or database busy; safe to retry."""

    kind = "Timeout"
    status_code = 503


class InternalError(BackofficeError):
    kind = "Internal"
    status_code = 500
