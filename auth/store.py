"""
auth/store.py -- SQLAlchemy Core persistence layer for helpdesk users.

Pattern: Repository + Data Mapper (same as tickets/store.py).
UserStore is the repository; _row_to_user is the mapper. Route and gate code
never touches SQL directly.

This is the credential store the auth core reads from: find_by_email() at
login, find_by_id() on every authorization check, update_role() for the
admin role-change operation. No transactions span more than one statement,
so the last-admin guard is a condition of the role UPDATE itself.

Security:
  All queries use bound parameters. No f-strings in SQL.
  email carries a UNIQUE constraint, so a concurrent duplicate registration
  fails with IntegrityError instead of creating a second record.

DB path: helpdesk.db at the repository root unless DATABASE_URL says otherwise.

Layer rule: no imports from api/, core/, or tickets/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, event, func, or_, select
from sqlalchemy.engine import Engine

from auth.errors import LastAdmin, NotFound
from auth.models import Role, User

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("name", String(255), nullable=False),
    Column("role", String(10), nullable=False, server_default=Role.USER.value),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore()
        user_id = store.create_user(User(email="a@b.c", name="A", hashed_password=hash_password("pw")))
        user = store.find_by_email("a@b.c")
        store.update_role(user_id, Role.AGENT)
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite") and ":memory:" not in db_url and "mode=memory" not in db_url:
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Lookups used by the auth core
    # ------------------------------------------------------------------

    def find_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_id(self, user_id: str) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def update_role(self, user_id: str, role: Role) -> User:
        """Set a user's role and return the updated record.

        Raises NotFound if user_id does not exist, LastAdmin if the change
        would demote the only remaining ADMIN [M4]. The admin count is a
        condition of the UPDATE itself, so two concurrent demotions cannot
        both pass it. Nothing else is touched: tickets assigned to a demoted
        agent keep their assignment.
        """
        role = Role(role)
        stmt = _users.update().where(_users.c.id == user_id).values(role=role.value)
        if role is not Role.ADMIN:
            # Aliased so the count is not correlated to the row being updated.
            admins = _users.alias("admins")
            admin_count = (
                select(func.count()).select_from(admins).where(admins.c.role == Role.ADMIN.value).scalar_subquery()
            )
            stmt = stmt.where(or_(_users.c.role != Role.ADMIN.value, admin_count > 1))

        with self.engine.connect() as conn:
            result = conn.execute(stmt)
            conn.commit()
        updated = self.find_by_id(user_id)
        if updated is None:
            raise NotFound()
        if result.rowcount == 0:
            raise LastAdmin()
        return updated

    # ------------------------------------------------------------------
    # Account management
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> str:
        """Insert a new user and return its assigned id.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        Callers (POST /auth/register, the CLI) turn that into a conflict.
        """
        user_id = new_id()
        with self.engine.connect() as conn:
            conn.execute(
                _users.insert().values(
                    id=user_id,
                    email=user.email,
                    hashed_password=user.hashed_password,
                    name=user.name,
                    role=Role(user.role).value,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
        return user_id

    def list_users(self) -> list[User]:
        """Return all users, newest first. Admin-only operation."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.created_at.desc())).fetchall()
        return [_row_to_user(r) for r in rows]

    def list_by_role(self, role: Role) -> list[User]:
        """Return every user holding the given role, ordered by name."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _users.select().where(_users.c.role == Role(role).value).order_by(_users.c.name)
            ).fetchall()
        return [_row_to_user(r) for r in rows]

    def count_by_role(self, role: Role) -> int:
        """Number of accounts currently holding the given role."""
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count()).select_from(_users).where(_users.c.role == Role(role).value)
            ).scalar()
        return result or 0

    def get_many(self, user_ids: Iterable[str | None]) -> dict[str, User]:
        """Fetch several users in one query, keyed by id. Unknown ids are omitted.

        Ticket lists call this once per response instead of once per row.
        """
        ids = {uid for uid in user_ids if uid}
        if not ids:
            return {}
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().where(_users.c.id.in_(ids))).fetchall()
        return {row.id: _row_to_user(row) for row in rows}

    def delete_user(self, user_id: str) -> bool:
        """Permanently delete a user record. Returns True if deleted, False if not found.

        Tokens already issued to the user stay structurally valid until they
        expire, but every authorization check denies them because the lookup
        finds no record.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        hashed_password=row.hashed_password,
        name=row.name,
        role=Role(row.role),
        created_at=row.created_at,
    )
