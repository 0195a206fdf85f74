"""
API request and response models for the helpdesk REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
tickets/models.py, which own the internal domain representation. Route
handlers map between the two.

Separation of concerns: domain models = domain truth; api/ models = API contract.
Password hashes never appear in any response model.
"""

from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import Role, User
from tickets.models import Comment, Ticket, TicketPriority, TicketStatus

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

# bcrypt only considers the first 72 bytes of a password.
_MAX_PASSWORD_BYTES = 72


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str


# ---------------------------------------------------------------------------
# Auth -- requests
# ---------------------------------------------------------------------------


class _PasswordMixin(BaseModel):
    @field_validator("password", check_fields=False)
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        if len(value.encode("utf-8")) > _MAX_PASSWORD_BYTES:
            raise ValueError(f"password must be at most {_MAX_PASSWORD_BYTES} bytes")
        return value


class RegisterRequest(_PasswordMixin):
    """Request body for POST /api/v1/auth/register. New accounts are always USER."""

    email: str = Field(min_length=3, max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=8, max_length=72)
    name: str = Field(min_length=1, max_length=255)


class LoginRequest(_PasswordMixin):
    """Request body for POST /api/v1/auth/login."""

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=72)


class RoleUpdate(BaseModel):
    """Request body for PATCH /api/v1/admin/users/{user_id}/role."""

    role: Role


# ---------------------------------------------------------------------------
# Auth -- responses
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of a user record."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    name: str
    role: Role
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(id=user.id, email=user.email, name=user.name, role=user.role, created_at=user.created_at)


class LoginResponse(BaseModel):
    """Response body for POST /api/v1/auth/login."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class AgentSummary(BaseModel):
    """One entry in GET /api/v1/admin/agents (the assignment picker)."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str


# ---------------------------------------------------------------------------
# Tickets -- requests
# ---------------------------------------------------------------------------


class TicketCreate(BaseModel):
    """Request body for POST /api/v1/tickets."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1, max_length=10_000)
    priority: TicketPriority = TicketPriority.MEDIUM
    attachment: Optional[str] = Field(default=None, max_length=512, pattern=r"^/uploads/[^/]+$")


class TicketStatusUpdate(BaseModel):
    """Request body for PATCH .../status (agent) and PATCH /admin/tickets/{id}."""

    status: TicketStatus


class TicketAssign(BaseModel):
    """Request body for POST /api/v1/admin/tickets/{id}/assign.

    agent_id=None unassigns the ticket and returns it to OPEN.
    """

    agent_id: Optional[str] = None


class CommentCreate(BaseModel):
    """Request body for POST .../comments."""

    model_config = ConfigDict(str_strip_whitespace=True)

    content: str = Field(min_length=1, max_length=5_000)


# ---------------------------------------------------------------------------
# Tickets -- responses
# ---------------------------------------------------------------------------


class PersonRef(BaseModel):
    """Embedded reference to a user: enough to render a name, nothing more."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str


class ContactRef(PersonRef):
    """PersonRef plus the account email. Only admin views embed this."""

    email: Optional[str] = None


class CommentResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    content: str
    author: Optional[PersonRef]
    author_role: Optional[Role] = None
    created_at: str

    @classmethod
    def from_comment(cls, comment: Comment, people: Mapping[str, User]) -> "CommentResponse":
        author = people.get(comment.author_id)
        return cls(
            id=comment.id,
            content=comment.content,
            author=_ref(comment.author_id, people),
            author_role=author.role if author is not None else None,
            created_at=comment.created_at,
        )


class TicketResponse(BaseModel):
    """One ticket as shown in queues and lists."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str
    status: TicketStatus
    priority: TicketPriority
    created_by: Optional[PersonRef]
    assigned_to: Optional[PersonRef]
    attachment: Optional[str] = None
    created_at: str
    updated_at: str

    @classmethod
    def from_ticket(cls, ticket: Ticket, people: Mapping[str, User]) -> "TicketResponse":
        """Build a TicketResponse from the domain Ticket plus a user lookup.

        Factory Method: the mapping lives here, next to the output model,
        rather than being repeated in each route handler.
        """
        return cls(
            id=ticket.id,
            title=ticket.title,
            description=ticket.description,
            status=ticket.status,
            priority=ticket.priority,
            created_by=cls.creator_ref(ticket.created_by, people),
            assigned_to=_ref(ticket.assigned_to, people),
            attachment=ticket.attachment,
            created_at=ticket.created_at,
            updated_at=ticket.updated_at,
        )

    @classmethod
    def creator_ref(cls, user_id: Optional[str], people: Mapping[str, User]) -> Optional[PersonRef]:
        return _ref(user_id, people)


class TicketDetailResponse(TicketResponse):
    """Ticket plus its comment thread."""

    comments: list[CommentResponse] = Field(default_factory=list)


class AdminTicketResponse(TicketResponse):
    """Ticket as admins see it: the creator reference carries their email."""

    created_by: Optional[ContactRef]

    @classmethod
    def creator_ref(cls, user_id: Optional[str], people: Mapping[str, User]) -> Optional[ContactRef]:
        if not user_id:
            return None
        person = people.get(user_id)
        if person is None:
            return ContactRef(id=user_id, name="Deleted user")
        return ContactRef(id=user_id, name=person.name, email=person.email)


class AdminTicketDetailResponse(AdminTicketResponse):
    comments: list[CommentResponse] = Field(default_factory=list)


class UserStatsResponse(BaseModel):
    """Response for GET /api/v1/tickets/stats."""

    model_config = ConfigDict(frozen=True)

    total_tickets: int
    open_tickets: int
    in_progress_tickets: int
    resolved_tickets: int
    recent_tickets: list[TicketResponse]


class AgentStatsResponse(BaseModel):
    """Response for GET /api/v1/agent/stats."""

    model_config = ConfigDict(frozen=True)

    total_assigned: int
    open_tickets: int
    in_progress_tickets: int
    resolved_tickets: int
    recent_tickets: list[TicketResponse]


class AdminStatsResponse(BaseModel):
    """Response for GET /api/v1/admin/stats."""

    model_config = ConfigDict(frozen=True)

    total_tickets: int
    open_tickets: int
    in_progress_tickets: int
    resolved_tickets: int
    closed_tickets: int
    urgent_tickets: int
    recent_tickets: list[AdminTicketResponse]


class UploadResponse(BaseModel):
    """Response for POST /api/v1/upload."""

    model_config = ConfigDict(frozen=True)

    filename: str
    path: str


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _ref(user_id: Optional[str], people: Mapping[str, User]) -> Optional[PersonRef]:
    if not user_id:
        return None
    person = people.get(user_id)
    return PersonRef(id=user_id, name=person.name if person is not None else "Deleted user")
