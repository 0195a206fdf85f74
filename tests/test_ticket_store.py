"""
tests/test_ticket_store.py -- Unit tests for tickets/store.py (TicketStore).

Covers:
  - new tickets are OPEN and unassigned regardless of the input dataclass
  - scoping by filer and assignee, newest-first ordering, limit
  - assign -> IN_PROGRESS, unassign -> OPEN
  - zero-filled status counts and priority counts
  - comment thread ordering
"""

from __future__ import annotations

import pytest

from tickets.models import Comment, Ticket, TicketPriority, TicketStatus
from tickets.store import TicketStore


@pytest.fixture
def store(db_url):
    s = TicketStore(db_url)
    yield s
    s.close()


def _ticket(created_by: str = "u1", title: str = "Printer on fire", **kwargs) -> Ticket:
    return Ticket(title=title, description="Details", created_by=created_by, **kwargs)


class TestCreate:
    def test_new_ticket_is_open_and_unassigned(self, store: TicketStore) -> None:
        ticket_id = store.create_ticket(
            _ticket(status=TicketStatus.CLOSED, assigned_to="agent", priority=TicketPriority.HIGH)
        )
        ticket = store.get_ticket(ticket_id)
        assert ticket.status is TicketStatus.OPEN
        assert ticket.assigned_to is None
        assert ticket.priority is TicketPriority.HIGH
        assert ticket.created_at == ticket.updated_at

    def test_get_unknown_ticket(self, store: TicketStore) -> None:
        assert store.get_ticket("missing") is None


class TestListing:
    def test_scoped_by_creator(self, store: TicketStore) -> None:
        store.create_ticket(_ticket("u1"))
        store.create_ticket(_ticket("u2"))
        assert {t.created_by for t in store.list_tickets(created_by="u1")} == {"u1"}

    def test_scoped_by_assignee(self, store: TicketStore) -> None:
        mine = store.create_ticket(_ticket())
        store.create_ticket(_ticket())
        store.assign(mine, "agent-1")
        assert [t.id for t in store.list_tickets(assigned_to="agent-1")] == [mine]

    def test_newest_first_and_limit(self, store: TicketStore) -> None:
        for i in range(7):
            store.create_ticket(_ticket(title=f"t{i}"))
        tickets = store.list_tickets()
        assert len(tickets) == 7
        stamps = [t.created_at for t in tickets]
        assert stamps == sorted(stamps, reverse=True)
        assert len(store.list_tickets(limit=5)) == 5


class TestAssignAndStatus:
    def test_assign_moves_to_in_progress(self, store: TicketStore) -> None:
        ticket_id = store.create_ticket(_ticket())
        assert store.assign(ticket_id, "agent-1") is True
        ticket = store.get_ticket(ticket_id)
        assert ticket.assigned_to == "agent-1"
        assert ticket.status is TicketStatus.IN_PROGRESS

    def test_unassign_returns_to_open(self, store: TicketStore) -> None:
        ticket_id = store.create_ticket(_ticket())
        store.assign(ticket_id, "agent-1")
        store.assign(ticket_id, None)
        ticket = store.get_ticket(ticket_id)
        assert ticket.assigned_to is None
        assert ticket.status is TicketStatus.OPEN

    def test_assign_unknown_ticket(self, store: TicketStore) -> None:
        assert store.assign("missing", "agent-1") is False

    def test_update_status_any_transition(self, store: TicketStore) -> None:
        ticket_id = store.create_ticket(_ticket())
        assert store.update_status(ticket_id, TicketStatus.CLOSED) is True
        assert store.update_status(ticket_id, TicketStatus.OPEN) is True
        assert store.get_ticket(ticket_id).status is TicketStatus.OPEN

    def test_update_status_unknown_ticket(self, store: TicketStore) -> None:
        assert store.update_status("missing", TicketStatus.RESOLVED) is False


class TestAggregates:
    def test_status_counts_zero_filled(self, store: TicketStore) -> None:
        assert store.status_counts() == {"OPEN": 0, "IN_PROGRESS": 0, "RESOLVED": 0, "CLOSED": 0}

    def test_status_counts_scoped(self, store: TicketStore) -> None:
        a = store.create_ticket(_ticket("u1"))
        store.create_ticket(_ticket("u1"))
        store.create_ticket(_ticket("u2"))
        store.update_status(a, TicketStatus.RESOLVED)
        counts = store.status_counts(created_by="u1")
        assert counts["OPEN"] == 1
        assert counts["RESOLVED"] == 1
        assert sum(counts.values()) == 2

    def test_count_by_priority(self, store: TicketStore) -> None:
        store.create_ticket(_ticket(priority=TicketPriority.URGENT))
        store.create_ticket(_ticket(priority=TicketPriority.URGENT))
        store.create_ticket(_ticket(priority=TicketPriority.LOW))
        assert store.count_by_priority(TicketPriority.URGENT) == 2


class TestComments:
    def test_thread_order(self, store: TicketStore) -> None:
        ticket_id = store.create_ticket(_ticket())
        for text in ("first", "second", "third"):
            store.add_comment(Comment(ticket_id=ticket_id, author_id="u1", content=text))
        oldest = store.list_comments(ticket_id)
        newest = store.list_comments(ticket_id, newest_first=True)
        assert [c.created_at for c in oldest] == sorted(c.created_at for c in oldest)
        assert [c.created_at for c in newest] == sorted((c.created_at for c in newest), reverse=True)
        assert {c.content for c in newest} == {"first", "second", "third"}

    def test_get_comment(self, store: TicketStore) -> None:
        ticket_id = store.create_ticket(_ticket())
        comment_id = store.add_comment(Comment(ticket_id=ticket_id, author_id="u1", content="hello"))
        comment = store.get_comment(comment_id)
        assert comment.content == "hello"
        assert comment.ticket_id == ticket_id

    def test_comments_isolated_per_ticket(self, store: TicketStore) -> None:
        a = store.create_ticket(_ticket())
        b = store.create_ticket(_ticket())
        store.add_comment(Comment(ticket_id=a, author_id="u1", content="on a"))
        assert store.list_comments(b) == []
