"""
tickets/query.py -- Filter, search and sort for ticket lists.

The list endpoints (user, agent and admin queues) all accept the same query
parameters. Filtering happens in Python over the already-scoped list the
store returned: a queue is small, and search needs the creator's display
name, which lives in the user store rather than the tickets table.

Sort keys:
  created_at -- chronological (ISO 8601 strings sort correctly)
  title      -- case-insensitive alphabetical
  priority   -- severity rank: LOW < MEDIUM < HIGH < URGENT
  status     -- lifecycle rank: OPEN < IN_PROGRESS < RESOLVED < CLOSED
"""

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from tickets.models import Ticket, TicketPriority, TicketStatus


class SortField(str, Enum):
    created_at = "created_at"
    title = "title"
    priority = "priority"
    status = "status"


class SortOrder(str, Enum):
    asc = "asc"
    desc = "desc"


_PRIORITY_RANK = {p: i for i, p in enumerate(TicketPriority)}
_STATUS_RANK = {s: i for i, s in enumerate(TicketStatus)}


@dataclass(frozen=True)
class TicketQuery:
    """Optional filters plus a sort. The defaults return everything, newest first."""

    status: Optional[TicketStatus] = None
    priority: Optional[TicketPriority] = None
    search: str = ""
    sort: SortField = SortField.created_at
    order: SortOrder = SortOrder.desc


def _sort_key(field: SortField):
    if field is SortField.priority:
        return lambda t: _PRIORITY_RANK[t.priority]
    if field is SortField.status:
        return lambda t: _STATUS_RANK[t.status]
    if field is SortField.title:
        return lambda t: t.title.casefold()
    return lambda t: t.created_at


def apply_query(
    tickets: list[Ticket],
    query: TicketQuery,
    names: Optional[Mapping[str, str]] = None,
) -> list[Ticket]:
    """Return the tickets matching query, sorted. The input list is not modified.

    names maps user ids to display names; search matches a ticket when the
    needle occurs (case-insensitively) in its title or its creator's name.
    """
    names = names or {}
    result = list(tickets)

    if query.status is not None:
        result = [t for t in result if t.status == query.status]
    if query.priority is not None:
        result = [t for t in result if t.priority == query.priority]

    needle = query.search.strip().casefold()
    if needle:
        result = [
            t
            for t in result
            if needle in t.title.casefold() or needle in names.get(t.created_by, "").casefold()
        ]

    result.sort(key=_sort_key(SortField(query.sort)), reverse=SortOrder(query.order) is SortOrder.desc)
    return result
