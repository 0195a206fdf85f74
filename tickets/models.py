"""
tickets/models.py -- Domain dataclasses for support tickets and comments.

These are pure data containers with zero logic. Persistence lives in
tickets/store.py; filtering and sorting in tickets/query.py.

Separation of concerns: these dataclasses are the ticket domain's truth, just
as auth/models.py is the identity domain's truth. Users are referenced by id
only -- neither layer imports the other.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class TicketStatus(str, Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"


class TicketPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


@dataclass
class Ticket:
    """A support request filed by a user.

    status is a flat value; any status may be set from any other.
    assigned_to is None until an admin assigns an agent.

    id is None before the record is written to the database.
    """

    title: str
    description: str
    created_by: str  # user id of the filer
    priority: TicketPriority = TicketPriority.MEDIUM
    status: TicketStatus = TicketStatus.OPEN
    assigned_to: Optional[str] = None  # agent user id
    attachment: Optional[str] = None  # public path returned by POST /upload
    id: Optional[str] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""


@dataclass
class Comment:
    """One message in a ticket's thread. Append-only."""

    ticket_id: str
    author_id: str
    content: str
    id: Optional[str] = None
    created_at: str = ""
