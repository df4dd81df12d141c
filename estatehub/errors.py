"""Domain errors raised by the listing lifecycle and transaction workflow.

Each error carries a stable ``kind`` and the HTTP status the API maps it to;
``main.py`` installs a single handler that renders them.
"""
from typing import List, Optional


class EstateHubError(Exception):
    """Base exception for marketplace rule violations."""
    kind = "error"
    status_code = 400

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> dict:
        return {"error": self.kind, "detail": self.detail}


class ValidationError(EstateHubError):
    """Missing or malformed input."""
    kind = "validation_error"
    status_code = 400

    def __init__(self, detail: str, fields: Optional[List[str]] = None) -> None:
        super().__init__(detail)
        self.fields = list(fields or [])

    def to_dict(self) -> dict:
        body = super().to_dict()
        if self.fields:
            body["fields"] = self.fields
        return body


class ForbiddenError(EstateHubError):
    """Actor lacks rights over the entity."""
    kind = "forbidden"
    status_code = 403


class NotFoundError(EstateHubError):
    """Entity, or the account it resolves to, does not exist."""
    kind = "not_found"
    status_code = 404


class InvalidTransitionError(EstateHubError):
    """Current state does not permit the requested transition."""
    kind = "invalid_transition"
    status_code = 409


class ConflictError(EstateHubError):
    """Concurrent writer won the race, or a duplicate pending item exists."""
    kind = "conflict"
    status_code = 409


class BusyError(EstateHubError):
    """Another process holds the entity's transition lock."""
    kind = "busy"
    status_code = 429
    retry_after = 1

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["retry_after"] = self.retry_after
        return body
