"""
api/routes/v1/admin.py -- Administration routes: users, roles, ticket triage.

Routes (in registration order to avoid FastAPI path capture conflicts):
  GET   /admin/users                      -- every account, newest first
  PATCH /admin/users/{user_id}/role       -- change an account's role
  GET   /admin/agents                     -- assignment picker (id + name)
  GET   /admin/stats                      -- system-wide counts + 5 most recent
  GET   /admin/tickets                    -- every ticket (filter/sort/search)
  GET   /admin/tickets/{ticket_id}        -- any ticket with its thread
  PATCH /admin/tickets/{ticket_id}        -- set status
  POST  /admin/tickets/{ticket_id}/assign -- assign to an agent, or unassign

Role changes:
  Take effect on the target's very next request: the gate re-reads the role
  on every call, so the target's existing token is not reissued.
  [M4] The last remaining ADMIN cannot be demoted. UserStore.update_role
  checks the admin count inside the UPDATE, so concurrent demotions of the
  last two admins cannot both succeed.
  Demoting an agent does not touch tickets already assigned to them.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from api.access import TicketAccess, people_for, ticket_access, ticket_query
from api.models import (
    AdminStatsResponse,
    AdminTicketDetailResponse,
    AdminTicketResponse,
    AgentSummary,
    ErrorDetail,
    RoleUpdate,
    TicketAssign,
    TicketStatusUpdate,
    UserResponse,
)
from api.routes.v1.tickets import ticket_detail
from auth.dependencies import require_admin
from auth.errors import LastAdmin, NotFound
from auth.models import Principal, Role
from auth.store import UserStore
from tickets.models import TicketPriority, TicketStatus
from tickets.query import TicketQuery, apply_query
from tickets.store import TicketStore

logger = logging.getLogger("helpdesk.api")

# Auth policy:
# - every route: role ADMIN, via require_admin or ticket_access({ADMIN})
# - no ownership rule: admins see every ticket
# - ticket responses embed the creator's email (AdminTicketResponse)
router = APIRouter()

_any_ticket = ticket_access({Role.ADMIN})


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@router.get("/admin/users", response_model=list[UserResponse])
def list_users(request: Request, _: Principal = Depends(require_admin)) -> list[UserResponse]:
    user_store: UserStore = request.app.state.user_store
    return [UserResponse.from_user(u) for u in user_store.list_users()]


@router.patch("/admin/users/{user_id}/role", response_model=UserResponse)
def change_role(
    request: Request,
    user_id: str,
    body: RoleUpdate,
    principal: Principal = Depends(require_admin),
) -> UserResponse:
    """Set a user's role. 404 for an unknown user, 400 when demoting the last admin."""
    user_store: UserStore = request.app.state.user_store

    target = user_store.find_by_id(user_id)
    if target is None:
        raise _user_not_found(user_id)

    try:
        updated = user_store.update_role(user_id, body.role)
    except NotFound:
        # Deleted between the lookup and the update.
        raise _user_not_found(user_id) from None
    except LastAdmin as exc:
        raise HTTPException(
            status_code=400,
            detail=ErrorDetail(code=exc.code, message=str(exc)).model_dump(),
        ) from None

    logger.info(
        "Admin %s changed role of user %s from %s to %s",
        principal.user_id,
        user_id,
        target.role.value,
        updated.role.value,
    )
    return UserResponse.from_user(updated)


@router.get("/admin/agents", response_model=list[AgentSummary])
def list_agents(request: Request, _: Principal = Depends(require_admin)) -> list[AgentSummary]:
    user_store: UserStore = request.app.state.user_store
    return [AgentSummary(id=u.id, name=u.name) for u in user_store.list_by_role(Role.AGENT)]


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


@router.get("/admin/stats", response_model=AdminStatsResponse)
def admin_stats(request: Request, _: Principal = Depends(require_admin)) -> AdminStatsResponse:
    ticket_store: TicketStore = request.app.state.ticket_store
    user_store: UserStore = request.app.state.user_store

    counts = ticket_store.status_counts()
    recent = ticket_store.list_tickets(limit=5)
    people = people_for(user_store, recent)
    return AdminStatsResponse(
        total_tickets=sum(counts.values()),
        open_tickets=counts[TicketStatus.OPEN.value],
        in_progress_tickets=counts[TicketStatus.IN_PROGRESS.value],
        resolved_tickets=counts[TicketStatus.RESOLVED.value],
        closed_tickets=counts[TicketStatus.CLOSED.value],
        urgent_tickets=ticket_store.count_by_priority(TicketPriority.URGENT),
        recent_tickets=[AdminTicketResponse.from_ticket(t, people) for t in recent],
    )


# ---------------------------------------------------------------------------
# Tickets
# ---------------------------------------------------------------------------


@router.get("/admin/tickets", response_model=list[AdminTicketResponse])
def list_all_tickets(
    request: Request,
    query: TicketQuery = Depends(ticket_query),
    _: Principal = Depends(require_admin),
) -> list[AdminTicketResponse]:
    ticket_store: TicketStore = request.app.state.ticket_store
    user_store: UserStore = request.app.state.user_store

    tickets = ticket_store.list_tickets()
    people = people_for(user_store, tickets)
    names = {uid: u.name for uid, u in people.items()}
    return [AdminTicketResponse.from_ticket(t, people) for t in apply_query(tickets, query, names)]


@router.get("/admin/tickets/{ticket_id}", response_model=AdminTicketDetailResponse)
def get_any_ticket(request: Request, access: TicketAccess = Depends(_any_ticket)) -> AdminTicketDetailResponse:
    ticket_store: TicketStore = request.app.state.ticket_store
    user_store: UserStore = request.app.state.user_store

    comments = ticket_store.list_comments(access.ticket.id, newest_first=True)
    people = people_for(user_store, [access.ticket], comments)
    return ticket_detail(access.ticket, comments, people, detail_cls=AdminTicketDetailResponse)


@router.patch("/admin/tickets/{ticket_id}", response_model=AdminTicketResponse)
def update_ticket(
    request: Request,
    body: TicketStatusUpdate,
    access: TicketAccess = Depends(_any_ticket),
) -> AdminTicketResponse:
    ticket_store: TicketStore = request.app.state.ticket_store
    user_store: UserStore = request.app.state.user_store

    ticket_store.update_status(access.ticket.id, body.status)
    logger.info("Admin %s set ticket %s to %s", access.principal.user_id, access.ticket.id, body.status.value)
    updated = ticket_store.get_ticket(access.ticket.id)
    return AdminTicketResponse.from_ticket(updated, people_for(user_store, [updated]))


@router.post("/admin/tickets/{ticket_id}/assign", response_model=AdminTicketResponse)
def assign_ticket(
    request: Request,
    body: TicketAssign,
    access: TicketAccess = Depends(_any_ticket),
) -> AdminTicketResponse:
    """Assign the ticket to an agent (-> IN_PROGRESS) or unassign it (-> OPEN).

    The target must be an existing account whose current role is AGENT.
    """
    ticket_store: TicketStore = request.app.state.ticket_store
    user_store: UserStore = request.app.state.user_store

    if body.agent_id:
        agent = user_store.find_by_id(body.agent_id)
        if agent is None or agent.role is not Role.AGENT:
            raise HTTPException(
                status_code=400,
                detail=ErrorDetail(
                    code="invalid_agent",
                    message="Tickets can only be assigned to an existing agent.",
                ).model_dump(),
            )

    ticket_store.assign(access.ticket.id, body.agent_id or None)
    updated = ticket_store.get_ticket(access.ticket.id)
    return AdminTicketResponse.from_ticket(updated, people_for(user_store, [updated]))


def _user_not_found(user_id: str) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail=ErrorDetail(code="user_not_found", message=f"User {user_id} not found.").model_dump(),
    )
