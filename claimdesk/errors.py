"""
claimdesk/errors.py

Domain exceptions raised by the services and rendered as JSON by the app factory.

Each exception carries:
- code: stable machine-readable identifier (used by the SPA)
- message: human-readable message
- status_code: HTTP status used by the error handler
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base class for every error the services raise on purpose."""

    code = "error"
    status_code = 400

    def __init__(self, message: str | None = None):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message}


class ValidationError(DomainError):
    """
    Rejected input: range violation, empty required field, unknown enum value.

    `fields` maps field name -> message, so the form can highlight each one.
    """

    code = "validation_error"
    status_code = 422

    def __init__(self, message: str | None = None, fields: Optional[Dict[str, str]] = None):
        super().__init__(message or "Donnees invalides")
        self.fields = dict(fields or {})

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["fields"] = self.fields
        return data


class PermissionDenied(DomainError):
    code = "permission_denied"
    status_code = 403


class NotFound(DomainError):
    code = "not_found"
    status_code = 404


class InvalidTransition(DomainError):
    """Status target is earlier in the lifecycle than the current status."""

    code = "invalid_transition"
    status_code = 409


class Conflict(DomainError):
    """Concurrent modification detected on the same mission."""

    code = "conflict"
    status_code = 409
