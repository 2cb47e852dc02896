"""
auth/errors.py -- Exception taxonomy for the auth path.

Every AuthError carries the HTTP status and the machine-readable code it maps
to. api/main.py renders them into the standard error envelope, so auth/ never
imports FastAPI's HTTPException for these cases.

Messages are deliberately generic: InvalidCredentialsError never says which
field was wrong, UnauthenticatedError never says why the token was refused.
"""

from __future__ import annotations


class AuthError(Exception):
    status_code: int = 500
    code: str = "auth_error"
    message: str = "Authentication error."

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ConflictError(AuthError):
    """Registration with an email that is already taken."""

    status_code = 409
    code = "conflict"
    message = "Email already registered."


class InvalidCredentialsError(AuthError):
    """Login failure. Identical for unknown email and wrong password."""

    status_code = 401
    code = "bad_credentials"
    message = "Invalid email or password."


class UnauthenticatedError(AuthError):
    """Missing, malformed, invalid or expired token, or the subject no longer exists."""

    status_code = 401
    code = "unauthorized"
    message = "Authentication required."


class ForbiddenError(AuthError):
    """Authenticated identity whose role is not allowed for the operation."""

    status_code = 403
    code = "forbidden"
    message = "Access denied. Insufficient permissions."
