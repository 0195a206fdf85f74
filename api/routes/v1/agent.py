"""
api/routes/v1/agent.py -- Support-agent work queue.

Routes:
  GET   /agent/tickets                     -- tickets assigned to the caller
  GET   /agent/stats                       -- counts for the caller's queue
  GET   /agent/tickets/{ticket_id}         -- assigned ticket with its thread
  POST  /agent/tickets/{ticket_id}/comments -- reply on an assigned ticket
  PATCH /agent/tickets/{ticket_id}/status  -- move an assigned ticket along

Every route requires role AGENT. Ticket-scoped routes additionally require
that the ticket is assigned to the caller; anything else is 403.
"""

import logging

from fastapi import APIRouter, Depends, Request

from api.access import TicketAccess, is_assignee, people_for, ticket_access, ticket_query
from api.models import (
    AgentStatsResponse,
    CommentCreate,
    CommentResponse,
    TicketDetailResponse,
    TicketResponse,
    TicketStatusUpdate,
)
from api.routes.v1.tickets import post_comment, ticket_detail
from auth.dependencies import require_agent
from auth.models import Principal, Role
from auth.store import UserStore
from tickets.models import TicketStatus
from tickets.query import TicketQuery, apply_query
from tickets.store import TicketStore

logger = logging.getLogger("helpdesk.api")

# Auth policy:
# - every route: role AGENT (require_agent / ticket_access({AGENT}, ...))
# - /agent/tickets/{id}/*: ownership = assignee
router = APIRouter()

_assigned_ticket = ticket_access({Role.AGENT}, is_assignee)


@router.get("/agent/tickets", response_model=list[TicketResponse])
def list_assigned(
    request: Request,
    query: TicketQuery = Depends(ticket_query),
    principal: Principal = Depends(require_agent),
) -> list[TicketResponse]:
    ticket_store: TicketStore = request.app.state.ticket_store
    user_store: UserStore = request.app.state.user_store

    tickets = ticket_store.list_tickets(assigned_to=principal.user_id)
    people = people_for(user_store, tickets)
    names = {uid: u.name for uid, u in people.items()}
    return [TicketResponse.from_ticket(t, people) for t in apply_query(tickets, query, names)]


@router.get("/agent/stats", response_model=AgentStatsResponse)
def agent_stats(request: Request, principal: Principal = Depends(require_agent)) -> AgentStatsResponse:
    ticket_store: TicketStore = request.app.state.ticket_store
    user_store: UserStore = request.app.state.user_store

    counts = ticket_store.status_counts(assigned_to=principal.user_id)
    recent = ticket_store.list_tickets(assigned_to=principal.user_id, limit=5)
    people = people_for(user_store, recent)
    return AgentStatsResponse(
        total_assigned=sum(counts.values()),
        open_tickets=counts[TicketStatus.OPEN.value],
        in_progress_tickets=counts[TicketStatus.IN_PROGRESS.value],
        resolved_tickets=counts[TicketStatus.RESOLVED.value],
        recent_tickets=[TicketResponse.from_ticket(t, people) for t in recent],
    )


@router.get("/agent/tickets/{ticket_id}", response_model=TicketDetailResponse)
def get_assigned(request: Request, access: TicketAccess = Depends(_assigned_ticket)) -> TicketDetailResponse:
    ticket_store: TicketStore = request.app.state.ticket_store
    user_store: UserStore = request.app.state.user_store

    comments = ticket_store.list_comments(access.ticket.id, newest_first=True)
    return ticket_detail(access.ticket, comments, people_for(user_store, [access.ticket], comments))


@router.post("/agent/tickets/{ticket_id}/comments", response_model=CommentResponse, status_code=201)
def reply(
    request: Request,
    body: CommentCreate,
    access: TicketAccess = Depends(_assigned_ticket),
) -> CommentResponse:
    return post_comment(request, access, body)


@router.patch("/agent/tickets/{ticket_id}/status", response_model=TicketResponse)
def set_status(
    request: Request,
    body: TicketStatusUpdate,
    access: TicketAccess = Depends(_assigned_ticket),
) -> TicketResponse:
    """Set the status of a ticket assigned to the caller. Any transition is allowed."""
    ticket_store: TicketStore = request.app.state.ticket_store
    user_store: UserStore = request.app.state.user_store

    ticket_store.update_status(access.ticket.id, body.status)
    logger.info(
        "Agent %s set ticket %s to %s", access.principal.user_id, access.ticket.id, body.status.value
    )
    updated = ticket_store.get_ticket(access.ticket.id)
    return TicketResponse.from_ticket(updated, people_for(user_store, [updated]))
