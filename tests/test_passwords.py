"""
tests/test_passwords.py -- Unit tests for auth/passwords.py.

Covers:
  - hash_password salts every hash; both hashes verify
  - verify_password is False (never raises) for wrong passwords and malformed hashes
  - authenticate_user returns the same InvalidCredentials for an unknown email
    and for a wrong password, after the same bcrypt work at the configured cost
"""

from __future__ import annotations

import bcrypt
import pytest

from auth.errors import InvalidCredentials
from auth.models import Role, User
from auth.passwords import authenticate_user, dummy_hash, hash_password, verify_password
from auth.store import UserStore


@pytest.fixture
def store(db_url):
    s = UserStore(db_url)
    s.create_user(User(email="ada@example.com", name="Ada", hashed_password=hash_password("s3cret-pass", rounds=4)))
    yield s
    s.close()


class TestHashing:
    def test_same_password_hashes_differently(self) -> None:
        first = hash_password("s3cret-pass", rounds=4)
        second = hash_password("s3cret-pass", rounds=4)
        assert first != second
        assert verify_password("s3cret-pass", first)
        assert verify_password("s3cret-pass", second)

    def test_hash_never_contains_plaintext(self) -> None:
        assert "s3cret-pass" not in hash_password("s3cret-pass", rounds=4)

    def test_rounds_are_encoded_in_hash(self) -> None:
        assert hash_password("s3cret-pass", rounds=5).startswith("$2b$05$")

    def test_wrong_password_does_not_verify(self) -> None:
        hashed = hash_password("s3cret-pass", rounds=4)
        assert verify_password("not-it", hashed) is False

    @pytest.mark.parametrize("bad_hash", ["", "not-a-bcrypt-hash", "$2b$04$short"])
    def test_malformed_hash_returns_false(self, bad_hash: str) -> None:
        assert verify_password("anything", bad_hash) is False


class TestAuthenticateUser:
    def test_correct_credentials_return_user(self, store: UserStore) -> None:
        user = authenticate_user(store, "ada@example.com", "s3cret-pass")
        assert user.email == "ada@example.com"
        assert user.role is Role.USER

    def test_unknown_email_raises_invalid_credentials(self, store: UserStore) -> None:
        with pytest.raises(InvalidCredentials) as exc:
            authenticate_user(store, "nobody@example.com", "s3cret-pass")
        assert str(exc.value) == "Invalid email or password."

    def test_wrong_password_raises_same_error(self, store: UserStore) -> None:
        with pytest.raises(InvalidCredentials) as exc:
            authenticate_user(store, "ada@example.com", "wrong-pass")
        assert str(exc.value) == "Invalid email or password."
        assert exc.value.code == "bad_credentials"

    def test_email_match_is_case_sensitive(self, store: UserStore) -> None:
        with pytest.raises(InvalidCredentials):
            authenticate_user(store, "ADA@example.com", "s3cret-pass")


class TestTimingEqualization:
    """Every failed login runs exactly one bcrypt check at the stored hashes' cost."""

    @pytest.fixture
    def checks(self, monkeypatch) -> list[int]:
        costs: list[int] = []
        real_checkpw = bcrypt.checkpw

        def spy(password: bytes, hashed: bytes) -> bool:
            # "$2b$04$..." -> 4
            costs.append(int(hashed.split(b"$")[2]) if hashed.count(b"$") >= 3 else -1)
            return real_checkpw(password, hashed)

        monkeypatch.setattr(bcrypt, "checkpw", spy)
        return costs

    def test_unknown_email_checks_at_configured_cost(self, store: UserStore, checks: list[int]) -> None:
        with pytest.raises(InvalidCredentials):
            authenticate_user(store, "nobody@example.com", "s3cret-pass", rounds=4)
        assert checks == [4]

    def test_unknown_email_and_wrong_password_cost_the_same(self, store: UserStore, checks: list[int]) -> None:
        with pytest.raises(InvalidCredentials):
            authenticate_user(store, "nobody@example.com", "s3cret-pass", rounds=4)
        unknown = list(checks)
        checks.clear()
        with pytest.raises(InvalidCredentials):
            authenticate_user(store, "ada@example.com", "wrong-pass", rounds=4)
        assert unknown == checks == [4]

    def test_malformed_hash_checks_at_given_cost(self, checks: list[int]) -> None:
        assert verify_password("anything", "not-a-bcrypt-hash", rounds=5) is False
        assert checks[-1] == 5

    def test_dummy_hash_cached_per_cost(self) -> None:
        assert dummy_hash(4) is dummy_hash(4)
        assert dummy_hash(4).startswith("$2b$04$")
        assert dummy_hash(5).startswith("$2b$05$")
