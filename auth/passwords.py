"""
auth/passwords.py -- bcrypt password hashing and credential checks.

Security design decisions:
  Passwords: bcrypt used directly (no passlib wrapper). bcrypt is the right
       choice for low-entropy secrets because its cost factor makes offline
       brute force expensive. Cost factor 12 is the default; Settings can raise
       it, and tests lower it to keep the suite fast.

  Malformed hashes: bcrypt.checkpw raises ValueError on a hash it cannot
       parse. verify_password() turns that into False after running a dummy
       check, so a corrupt stored hash costs the same time as a wrong password.

  Timing equalization [C1]: authenticate_user() always runs bcrypt, even when
       the email is unknown, so response time does not reveal which emails are
       registered. The dummy hash it checks against is made at the configured
       cost: bcrypt time grows 2x per round, so a dummy at any other cost than
       the real hashes would make unknown emails stand out.

  72-byte limit: bcrypt only looks at the first 72 bytes of input and recent
       releases reject longer input outright. The API layer caps passwords at
       72 UTF-8 bytes (api/models.py) before they reach this module.

Layer rule: no imports from api/, core/, or tickets/.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import TYPE_CHECKING

import bcrypt

from auth.errors import InvalidCredentials

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("helpdesk.auth")

BCRYPT_ROUNDS = 12


def hash_password(plain: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    A fresh random salt is embedded in every hash, so hashing the same
    password twice yields two different strings that both verify.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


@lru_cache(maxsize=None)
def dummy_hash(rounds: int = BCRYPT_ROUNDS) -> str:
    """Return the timing-equalization hash for a cost factor, computed once per cost.

    The app lifespan calls this at startup with the configured cost so the
    first login for an unknown email is not slower than later ones.
    """
    return hash_password("helpdesk_timing_dummy", rounds=rounds)


def verify_password(plain: str, hashed: str, rounds: int = BCRYPT_ROUNDS) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    Never raises: a malformed or empty hash yields False after a dummy check
    at the given cost.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError, AttributeError):
        _equalize(plain, rounds)
        return False


def _equalize(plain: str, rounds: int) -> None:
    try:
        bcrypt.checkpw(plain.encode("utf-8"), dummy_hash(rounds).encode("utf-8"))
    except ValueError:
        pass  # over-long input; the caller already answers False


def authenticate_user(store: UserStore, email: str, password: str, rounds: int = BCRYPT_ROUNDS) -> User:
    """Check a login attempt and return the matching User.

    rounds must be the cost the stored hashes were made with (Settings.bcrypt_rounds);
    it sets the cost of the dummy check for unknown emails.

    Raises InvalidCredentials for an unknown email and for a wrong password
    alike. The outward message is identical in both cases; only the log line
    (server side, no password) differs.
    """
    user = store.find_by_email(email)
    if user is None:
        # Do NOT return before running bcrypt [C1]
        _equalize(password, rounds)
        logger.info("Login failed: unknown account")
        raise InvalidCredentials()
    if not verify_password(password, user.hashed_password, rounds=rounds):
        logger.info("Login failed: bad password for user %s", user.id)
        raise InvalidCredentials()
    return user
