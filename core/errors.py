"""
core/errors.py -- Typed business errors shared by services and the HTTP layer.

Every failure a service can report is one of these classes. Each carries a
human-readable message and the HTTP status the transport should render it
with. Services raise them; api/main.py has a single exception handler that
turns any AccountError into {"error": message} with the mapped status.

Layer rule: core/ is the kernel. No imports from api/ or auth/.
"""

from __future__ import annotations


class AccountError(Exception):
    """Base class for all business-rule failures."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(AccountError):
    """Malformed or missing input, or an OTP that does not check out."""

    status_code = 400


class AuthenticationError(AccountError):
    """Bad credentials or an unusable refresh token."""

    status_code = 401


class TokenError(AccountError):
    """A signed token failed verification (bad signature, expired, malformed).

    Raised by the token verifier and propagated as-is by the services.
    """

    status_code = 401


class NotFoundError(AccountError):
    status_code = 404


class ConflictError(AccountError):
    status_code = 409
