from __future__ import annotations

from typing import Optional, Sequence


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules.

    ``errors`` maps a field name to its first error message.
    """

    def __init__(self, message: str, errors: Optional[dict[str, str]] = None):
        super().__init__(message)
        self.errors = dict(errors or {})


class AuthenticationError(DomainError):
    """Raised when the user cannot be authenticated."""


class SessionExpiredError(AuthenticationError):
    """Raised after the backend rejected the token and the session was cleared."""


class MissingIdentityError(DomainError):
    """Raised when no user id or school id can be resolved from the session."""


class ActionUnavailableError(DomainError):
    """Raised when an action is invoked while its preconditions are not met."""

    def __init__(self, message: str, reasons: Sequence[str] = ()):
        super().__init__(message)
        self.reasons = list(reasons)


class ActionBusyError(DomainError):
    """Raised when an action is invoked while the same action is in flight."""


class LocationUnavailableError(DomainError):
    """Raised when the device location cannot be resolved."""


class ApiError(DomainError):
    """Raised when the backend answers with an error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ServerRejectedError(ApiError):
    """Raised when the backend refused a request; the message is shown verbatim."""


class TransportError(DomainError):
    """Raised when the backend cannot be reached (network, timeout, bad payload)."""
