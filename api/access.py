"""
api/access.py -- Ticket-scoped access checks and shared route helpers.

ticket_access() is the ownership-aware sibling of auth.dependencies.
require_roles(). It resolves the {ticket_id} path parameter and runs:

  authenticate (401) -> authorize role (403) -> ownership rule (403) -> 404

The ticket is loaded lazily inside the ownership predicate, so an
unauthenticated or wrong-role caller never triggers a ticket lookup and
cannot discover which ticket ids exist. A missing ticket only surfaces as 404
once the caller has passed the role check.

Ownership rules:
  is_creator  -- the ticket was filed by the caller
  is_assignee -- the ticket is assigned to the caller
  can_read_thread -- creator, assignee, or an admin
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from fastapi import HTTPException, Query, Request

from api.models import ErrorDetail
from auth.dependencies import guard
from auth.models import Principal, Role, User
from auth.store import UserStore
from tickets.models import Comment, Ticket, TicketPriority, TicketStatus
from tickets.query import SortField, SortOrder, TicketQuery
from tickets.store import TicketStore

TicketRule = Callable[[Principal, Ticket], bool]


@dataclass(frozen=True)
class TicketAccess:
    principal: Principal
    ticket: Ticket


def is_creator(principal: Principal, ticket: Ticket) -> bool:
    return ticket.created_by == principal.user_id


def is_assignee(principal: Principal, ticket: Ticket) -> bool:
    return ticket.assigned_to is not None and ticket.assigned_to == principal.user_id


def can_read_thread(principal: Principal, ticket: Ticket) -> bool:
    return principal.role is Role.ADMIN or is_creator(principal, ticket) or is_assignee(principal, ticket)


def ticket_not_found(ticket_id: str) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail=ErrorDetail(code="ticket_not_found", message=f"Ticket {ticket_id} not found.").model_dump(),
    )


def ticket_access(allowed_roles: Iterable[Role], rule: Optional[TicketRule] = None):
    """Return a dependency yielding TicketAccess for the {ticket_id} in the path."""
    allowed = frozenset(allowed_roles)

    def dependency(request: Request, ticket_id: str) -> TicketAccess:
        store: TicketStore = request.app.state.ticket_store
        loaded: list[Ticket] = []

        def owns(principal: Principal) -> bool:
            ticket = store.get_ticket(ticket_id)
            if ticket is None:
                # Reported as 404 below, after the role check already passed.
                return True
            loaded.append(ticket)
            return rule is None or rule(principal, ticket)

        principal = guard(request, allowed, owns=owns)
        if not loaded:
            raise ticket_not_found(ticket_id)
        return TicketAccess(principal=principal, ticket=loaded[0])

    return dependency


def ticket_query(
    status: Optional[TicketStatus] = None,
    priority: Optional[TicketPriority] = None,
    q: str = Query(default="", max_length=200),
    sort: SortField = SortField.created_at,
    order: SortOrder = SortOrder.desc,
) -> TicketQuery:
    """Dependency: parse the shared list-filter query parameters."""
    return TicketQuery(status=status, priority=priority, search=q, sort=sort, order=order)


def people_for(
    user_store: UserStore,
    tickets: Iterable[Ticket] = (),
    comments: Iterable[Comment] = (),
) -> dict[str, User]:
    """Load every user referenced by the given tickets and comments in one query."""
    ids: set[Optional[str]] = set()
    for t in tickets:
        ids.update((t.created_by, t.assigned_to))
    for c in comments:
        ids.add(c.author_id)
    return user_store.get_many(ids)
