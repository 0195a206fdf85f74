"""
api/routes/v1/tickets.py -- End-user ticket routes.

Routes (in registration order to avoid FastAPI path capture conflicts):
  GET  /tickets                      -- caller's own tickets (filter/sort/search)
  POST /tickets                      -- file a new ticket
  GET  /tickets/stats                -- caller's ticket counts + 5 most recent
  GET  /tickets/{ticket_id}          -- own ticket with its comment thread
  GET  /tickets/{ticket_id}/comments -- thread (creator, assignee or admin)
  POST /tickets/{ticket_id}/comments -- reply on own ticket

Any signed-in role may use these routes; they only ever expose tickets the
caller filed, except the comment thread, which the assigned agent and admins
can also read.
"""

from fastapi import APIRouter, Depends, Request

from api.access import (
    TicketAccess,
    can_read_thread,
    is_creator,
    people_for,
    ticket_access,
    ticket_query,
)
from api.models import (
    CommentCreate,
    CommentResponse,
    TicketCreate,
    TicketDetailResponse,
    TicketResponse,
    UserStatsResponse,
)
from auth.dependencies import get_current_principal
from auth.models import ALL_ROLES, Principal
from auth.store import UserStore
from tickets.models import Comment, Ticket, TicketStatus
from tickets.query import TicketQuery, apply_query
from tickets.store import TicketStore

# Auth policy:
# - every route: any role, via get_current_principal or ticket_access(ALL_ROLES, ...)
# - /tickets/{id} and POST comments: ownership = creator
# - GET comments: ownership = creator, assignee or admin
router = APIRouter()

_own_ticket = ticket_access(ALL_ROLES, is_creator)
_thread_reader = ticket_access(ALL_ROLES, can_read_thread)


@router.get("/tickets", response_model=list[TicketResponse])
def list_my_tickets(
    request: Request,
    query: TicketQuery = Depends(ticket_query),
    principal: Principal = Depends(get_current_principal),
) -> list[TicketResponse]:
    """Return the caller's tickets, newest first unless a sort is given."""
    ticket_store: TicketStore = request.app.state.ticket_store
    user_store: UserStore = request.app.state.user_store

    tickets = ticket_store.list_tickets(created_by=principal.user_id)
    people = people_for(user_store, tickets)
    names = {uid: u.name for uid, u in people.items()}
    return [TicketResponse.from_ticket(t, people) for t in apply_query(tickets, query, names)]


@router.post("/tickets", response_model=TicketResponse, status_code=201)
def create_ticket(
    request: Request,
    body: TicketCreate,
    principal: Principal = Depends(get_current_principal),
) -> TicketResponse:
    """File a new ticket. It starts OPEN and unassigned."""
    ticket_store: TicketStore = request.app.state.ticket_store
    user_store: UserStore = request.app.state.user_store

    ticket_id = ticket_store.create_ticket(
        Ticket(
            title=body.title,
            description=body.description,
            priority=body.priority,
            created_by=principal.user_id,
            attachment=body.attachment,
        )
    )
    created = ticket_store.get_ticket(ticket_id)
    return TicketResponse.from_ticket(created, people_for(user_store, [created]))


@router.get("/tickets/stats", response_model=UserStatsResponse)
def my_ticket_stats(request: Request, principal: Principal = Depends(get_current_principal)) -> UserStatsResponse:
    """Counts per status for the caller's tickets plus the five most recent."""
    ticket_store: TicketStore = request.app.state.ticket_store
    user_store: UserStore = request.app.state.user_store

    counts = ticket_store.status_counts(created_by=principal.user_id)
    recent = ticket_store.list_tickets(created_by=principal.user_id, limit=5)
    people = people_for(user_store, recent)
    return UserStatsResponse(
        total_tickets=sum(counts.values()),
        open_tickets=counts[TicketStatus.OPEN.value],
        in_progress_tickets=counts[TicketStatus.IN_PROGRESS.value],
        resolved_tickets=counts[TicketStatus.RESOLVED.value],
        recent_tickets=[TicketResponse.from_ticket(t, people) for t in recent],
    )


@router.get("/tickets/{ticket_id}", response_model=TicketDetailResponse)
def get_my_ticket(request: Request, access: TicketAccess = Depends(_own_ticket)) -> TicketDetailResponse:
    """Return one of the caller's tickets with its comments, newest first."""
    ticket_store: TicketStore = request.app.state.ticket_store
    user_store: UserStore = request.app.state.user_store

    comments = ticket_store.list_comments(access.ticket.id, newest_first=True)
    return ticket_detail(access.ticket, comments, people_for(user_store, [access.ticket], comments))


@router.get("/tickets/{ticket_id}/comments", response_model=list[CommentResponse])
def list_comments(request: Request, access: TicketAccess = Depends(_thread_reader)) -> list[CommentResponse]:
    """Return a ticket's comment thread, newest first."""
    ticket_store: TicketStore = request.app.state.ticket_store
    user_store: UserStore = request.app.state.user_store

    comments = ticket_store.list_comments(access.ticket.id, newest_first=True)
    people = people_for(user_store, comments=comments)
    return [CommentResponse.from_comment(c, people) for c in comments]


@router.post("/tickets/{ticket_id}/comments", response_model=CommentResponse, status_code=201)
def add_comment(
    request: Request,
    body: CommentCreate,
    access: TicketAccess = Depends(_own_ticket),
) -> CommentResponse:
    """Reply on the caller's own ticket."""
    return post_comment(request, access, body)


# ---------------------------------------------------------------------------
# Helpers shared with the agent and admin routers
# ---------------------------------------------------------------------------


def ticket_detail(ticket: Ticket, comments: list[Comment], people: dict, detail_cls=TicketDetailResponse):
    """Build a detail response of detail_cls (TicketDetailResponse or the admin variant)."""
    base = detail_cls.from_ticket(ticket, people)
    return base.model_copy(update={"comments": [CommentResponse.from_comment(c, people) for c in comments]})


def post_comment(request: Request, access: TicketAccess, body: CommentCreate) -> CommentResponse:
    ticket_store: TicketStore = request.app.state.ticket_store
    user_store: UserStore = request.app.state.user_store

    comment_id = ticket_store.add_comment(
        Comment(ticket_id=access.ticket.id, author_id=access.principal.user_id, content=body.content)
    )
    comment = ticket_store.get_comment(comment_id)
    return CommentResponse.from_comment(comment, people_for(user_store, comments=[comment]))
