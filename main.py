#!/usr/bin/env python3
"""
Helpdesk management CLI -- account bootstrap without going through the API.

Self-service registration only ever creates USER accounts, and only an ADMIN
can promote anyone, so the first admin has to be created here.

Usage:
  python main.py create-user --email admin@example.com --name "Ada Admin" --role ADMIN
  python main.py create-user --email agent@example.com --name "Sam Agent" --role AGENT --password s3cret-pass
  python main.py set-role --email someone@example.com --role AGENT

Environment variables:
  SECRET_KEY     Required (at least 32 characters), same as the API server.
  DATABASE_URL   Optional. Defaults to helpdesk.db at the repository root.
"""

import argparse
import getpass
import sys
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.errors import LastAdmin
from auth.models import Role, User
from auth.passwords import hash_password
from auth.store import UserStore
from core.config import ConfigurationError, get_settings

_ROLE_CHOICES = [r.value for r in Role]


def _read_password(provided: Optional[str]) -> str:
    """Return the --password value, or prompt twice without echo."""
    if provided:
        return provided
    first = getpass.getpass("  Password: ")
    second = getpass.getpass("  Repeat password: ")
    if first != second:
        raise SystemExit("  [!] Passwords do not match.")
    return first


def create_user(store: UserStore, email: str, name: str, role: Role, password: str, rounds: int) -> str:
    """Create an account with the given role and return its id.

    Raises SystemExit with a readable message for a short password or a
    duplicate email.
    """
    if len(password) < 8:
        raise SystemExit("  [!] Password must be at least 8 characters.")
    if len(password.encode("utf-8")) > 72:
        raise SystemExit("  [!] Password must be at most 72 bytes.")
    try:
        return store.create_user(
            User(email=email, name=name, hashed_password=hash_password(password, rounds=rounds), role=role)
        )
    except IntegrityError:
        raise SystemExit(f"  [!] An account with email '{email}' already exists.") from None


def set_role(store: UserStore, email: str, role: Role) -> User:
    user = store.find_by_email(email)
    if user is None:
        raise SystemExit(f"  [!] No account with email '{email}'.")
    try:
        return store.update_role(user.id, role)
    except LastAdmin:
        raise SystemExit(f"  [!] {email} is the last admin and cannot be demoted.") from None


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        prog="helpdesk",
        description="Helpdesk account management.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-user --email admin@example.com --name "Ada Admin" --role ADMIN
  python main.py set-role --email someone@example.com --role AGENT
        """,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create-user", help="Create an account with any role")
    create.add_argument("--email", required=True)
    create.add_argument("--name", required=True)
    create.add_argument("--role", choices=_ROLE_CHOICES, default=Role.USER.value)
    create.add_argument(
        "--password",
        default=None,
        help="Password for the new account (prompted for when omitted; avoid on shared machines)",
    )

    promote = sub.add_parser("set-role", help="Change an existing account's role")
    promote.add_argument("--email", required=True)
    promote.add_argument("--role", choices=_ROLE_CHOICES, required=True)

    args = parser.parse_args(argv)

    try:
        settings = get_settings()
    except ConfigurationError as exc:
        print(f"  [!] {exc}", file=sys.stderr)
        raise SystemExit(2) from None

    store = UserStore(settings.database_url)
    try:
        if args.command == "create-user":
            password = _read_password(args.password)
            user_id = create_user(store, args.email, args.name, Role(args.role), password, settings.bcrypt_rounds)
            print(f"  Created {args.role} account {args.email} ({user_id}).")
        else:
            user = set_role(store, args.email, Role(args.role))
            print(f"  {user.email} is now {user.role.value}.")
    finally:
        store.close()


if __name__ == "__main__":
    main()
