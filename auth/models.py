"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in tickets/models.py -- dataclasses own domain shape; stores and routes do
the work.

Layer rule: no imports from api/, core/, or tickets/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    USER = "USER"
    AGENT = "AGENT"
    ADMIN = "ADMIN"


ALL_ROLES: frozenset[Role] = frozenset(Role)


@dataclass
class User:
    """A registered helpdesk identity.

    email is unique and compared exactly as stored (case-sensitive).
    hashed_password is a bcrypt hash; the plaintext is never kept.

    Role changes do not cascade: tickets assigned to a demoted agent keep
    their assignment.
    """

    email: str
    name: str
    hashed_password: str
    role: Role = Role.USER
    id: str | None = None  # opaque uuid4 hex, set by the store on insert
    created_at: str = ""  # ISO 8601, set by store on insert


@dataclass(frozen=True)
class Principal:
    """The caller of a protected operation after both auth checks passed.

    role is the value read from the store on this request, not a claim
    copied out of the session token.
    """

    user_id: str
    role: Role


@dataclass(frozen=True)
class SessionClaims:
    """Decoded contents of a verified session token."""

    user_id: str
    issued_at: datetime
    expires_at: datetime
