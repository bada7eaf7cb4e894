from __future__ import annotations


class HelpdeskError(RuntimeError):
    """Base error for helpdesk operations; carries the HTTP status it maps to."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(HelpdeskError):
    """Raised for malformed, missing or too-short input."""

    status_code = 400


class NotFoundError(HelpdeskError):
    """Raised when a ticket, agent or other record could not be located."""

    status_code = 404


class ConflictError(HelpdeskError):
    """Raised when an operation is illegal for the record's current state."""

    status_code = 409
