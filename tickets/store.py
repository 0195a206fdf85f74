"""
tickets/store.py -- SQLAlchemy-backed persistence layer for tickets and comments.

Uses SQLAlchemy Core (not ORM) so the domain dataclasses in tickets/models.py
remain the authoritative domain representation. Swapping SQLite for
PostgreSQL is a connection string change, not a rewrite.

Pattern: Repository + Data Mapper. TicketStore is the repository; the
_row_to_* functions are the mappers. Route handlers never touch SQL directly.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = TicketStore("sqlite:///helpdesk.db")
    ticket_id = store.create_ticket(ticket)
    store.assign(ticket_id, agent_id)            # -> IN_PROGRESS
    store.add_comment(Comment(ticket_id=ticket_id, author_id=agent_id, content="On it"))
    counts = store.status_counts(assigned_to=agent_id)
    store.close()
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine

from tickets.models import Comment, Ticket, TicketPriority, TicketStatus

logger = logging.getLogger("helpdesk.tickets")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_tickets = Table(
    "tickets",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("title", String(255), nullable=False),
    Column("description", Text, nullable=False),
    Column("status", String(20), nullable=False, server_default=TicketStatus.OPEN.value),
    Column("priority", String(10), nullable=False, server_default=TicketPriority.MEDIUM.value),
    Column("created_by", String(32), nullable=False, index=True),
    Column("assigned_to", String(32), index=True),  # NULL until an admin assigns
    Column("attachment", Text),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_comments = Table(
    "comments",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("ticket_id", String(32), nullable=False, index=True),
    Column("author_id", String(32), nullable=False),
    Column("content", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode. Set per-connection; PRAGMAs are not pooled."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _scope(stmt, created_by: Optional[str], assigned_to: Optional[str]):
    """Restrict a tickets query to one filer and/or one assignee."""
    if created_by is not None:
        stmt = stmt.where(_tickets.c.created_by == created_by)
    if assigned_to is not None:
        stmt = stmt.where(_tickets.c.assigned_to == assigned_to)
    return stmt


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class TicketStore:
    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            # FastAPI runs sync handlers in a thread pool; the same pooled
            # connection may be used from several threads.
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite") and ":memory:" not in db_url and "mode=memory" not in db_url:
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Tickets
    # ------------------------------------------------------------------

    def create_ticket(self, ticket: Ticket) -> str:
        """Insert a new ticket (always OPEN and unassigned) and return its id."""
        ticket_id = uuid.uuid4().hex
        now = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _tickets.insert().values(
                    id=ticket_id,
                    title=ticket.title,
                    description=ticket.description,
                    status=TicketStatus.OPEN.value,
                    priority=TicketPriority(ticket.priority).value,
                    created_by=ticket.created_by,
                    assigned_to=None,
                    attachment=ticket.attachment,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        return ticket_id

    def get_ticket(self, ticket_id: str) -> Optional[Ticket]:
        """Fetch a single ticket by id. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_tickets.select().where(_tickets.c.id == ticket_id)).fetchone()
        return _row_to_ticket(row) if row is not None else None

    def list_tickets(
        self,
        created_by: Optional[str] = None,
        assigned_to: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Ticket]:
        """Return tickets newest first, optionally scoped to a filer or assignee."""
        stmt = _scope(_tickets.select(), created_by, assigned_to).order_by(_tickets.c.created_at.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_row_to_ticket(r) for r in rows]

    def update_status(self, ticket_id: str, status: TicketStatus) -> bool:
        """Set a ticket's status. Returns False if ticket_id was not found."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _tickets.update()
                .where(_tickets.c.id == ticket_id)
                .values(status=TicketStatus(status).value, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def assign(self, ticket_id: str, agent_id: Optional[str]) -> bool:
        """Assign a ticket to an agent, or unassign it with agent_id=None.

        Assigning moves the ticket to IN_PROGRESS; unassigning moves it back
        to OPEN. Returns False if ticket_id was not found.
        """
        status = TicketStatus.IN_PROGRESS if agent_id else TicketStatus.OPEN
        with self.engine.connect() as conn:
            result = conn.execute(
                _tickets.update()
                .where(_tickets.c.id == ticket_id)
                .values(assigned_to=agent_id or None, status=status.value, updated_at=_now_iso())
            )
            conn.commit()
        if result.rowcount > 0:
            logger.info("Ticket %s assigned to %s", ticket_id, agent_id or "nobody")
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Aggregates (dashboards)
    # ------------------------------------------------------------------

    def status_counts(self, created_by: Optional[str] = None, assigned_to: Optional[str] = None) -> dict[str, int]:
        """Return {status: count} for every status, zero-filled."""
        counts = {s.value: 0 for s in TicketStatus}
        stmt = _scope(
            select(_tickets.c.status, func.count()).select_from(_tickets),
            created_by,
            assigned_to,
        ).group_by(_tickets.c.status)
        with self.engine.connect() as conn:
            for status, count in conn.execute(stmt):
                counts[status] = count
        return counts

    def count_by_priority(self, priority: TicketPriority) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count())
                .select_from(_tickets)
                .where(_tickets.c.priority == TicketPriority(priority).value)
            ).scalar()
        return result or 0

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def add_comment(self, comment: Comment) -> str:
        """Append a comment to a ticket's thread and return its id."""
        comment_id = uuid.uuid4().hex
        with self.engine.connect() as conn:
            conn.execute(
                _comments.insert().values(
                    id=comment_id,
                    ticket_id=comment.ticket_id,
                    author_id=comment.author_id,
                    content=comment.content,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
        return comment_id

    def get_comment(self, comment_id: str) -> Optional[Comment]:
        with self.engine.connect() as conn:
            row = conn.execute(_comments.select().where(_comments.c.id == comment_id)).fetchone()
        return _row_to_comment(row) if row is not None else None

    def list_comments(self, ticket_id: str, newest_first: bool = False) -> list[Comment]:
        """Return a ticket's comments, oldest first unless newest_first is set."""
        order = _comments.c.created_at.desc() if newest_first else _comments.c.created_at.asc()
        with self.engine.connect() as conn:
            rows = conn.execute(_comments.select().where(_comments.c.ticket_id == ticket_id).order_by(order)).fetchall()
        return [_row_to_comment(r) for r in rows]

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_ticket(row) -> Ticket:
    return Ticket(
        id=row.id,
        title=row.title,
        description=row.description,
        status=TicketStatus(row.status),
        priority=TicketPriority(row.priority),
        created_by=row.created_by,
        assigned_to=row.assigned_to,
        attachment=row.attachment,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_comment(row) -> Comment:
    return Comment(
        id=row.id,
        ticket_id=row.ticket_id,
        author_id=row.author_id,
        content=row.content,
        created_at=row.created_at,
    )
