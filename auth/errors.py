"""
auth/errors.py -- Exception taxonomy for the auth core.

The messages here are the outward-facing ones. They are deliberately
generic: an Unauthenticated error never says whether the token was
malformed, forged, or expired, and InvalidCredentials never says whether the
email or the password was wrong.

Layer rule: no imports from api/, core/, or tickets/.
"""


class AuthError(Exception):
    """Base class for authentication and authorization failures."""

    code = "auth_error"
    message = "Authentication failed."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class InvalidCredentials(AuthError):
    """Login failed: unknown email or wrong password (indistinguishable)."""

    code = "bad_credentials"
    message = "Invalid email or password."


class Unauthenticated(AuthError):
    """Missing, malformed, forged or expired session token."""

    code = "unauthorized"
    message = "Authentication required."


class Forbidden(AuthError):
    """Valid identity, but insufficient role or not the resource owner."""

    code = "forbidden"
    message = "You do not have access to this resource."


class NotFound(AuthError):
    """A referenced user does not exist."""

    code = "not_found"
    message = "User not found."


class LastAdmin(AuthError):
    """A role change would leave the system with no ADMIN."""

    code = "last_admin"
    message = "Cannot demote the last remaining admin."
