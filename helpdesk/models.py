"""Data models for the helpdesk API: stored entities, read-side views and request payloads."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python; either spelling accepted on input."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Role(str, Enum):
    ADMINISTRATOR = "administrator"
    MANAGER = "manager"
    AGENT = "agent"
    CUSTOMER = "customer"


class TicketStatus(str, Enum):
    """Ticket lifecycle states. Any state may move to any other."""

    OPEN = "open"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"
    CLOSED = "closed"

    @classmethod
    def _missing_(cls, value):
        # Legacy spelling from older clients and stored rows.
        if isinstance(value, str):
            normalized = value.strip().lower().replace("_", "-")
            for member in cls:
                if member.value == normalized:
                    return member
        return None


class TicketPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class NotificationType(str, Enum):
    """Known notification types. The stored field is a free string."""

    TICKET = "ticket"
    STATUS = "status"
    ASSIGNMENT = "assignment"
    ESCALATION = "escalation"
    FEEDBACK = "feedback"
    WARNING = "warning"
    SYSTEM = "system"
    INFO = "info"


# --- Stored entities ---


class User(CamelModel):
    id: int
    username: str
    password: str
    email: str
    role: Role = Role.AGENT
    full_name: str


class Ticket(CamelModel):
    id: int
    ticket_id: str = Field(..., description="Human-readable ticket code, e.g. TICK-2025-0001")
    subject: str
    description: str
    status: TicketStatus = TicketStatus.OPEN
    priority: TicketPriority = TicketPriority.MEDIUM
    assignee_id: Optional[int] = None
    customer_id: Optional[int] = None
    category: str = "General"
    first_response_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class TicketComment(CamelModel):
    id: int
    ticket_id: str
    user_id: Optional[int] = None
    content: str
    is_internal: bool = False
    created_at: datetime


class TicketRating(CamelModel):
    id: int
    ticket_id: str
    user_id: Optional[int] = None
    rating: int = Field(..., ge=1, le=5)
    feedback: Optional[str] = None
    created_at: datetime


class Notification(CamelModel):
    id: int
    user_id: int
    title: str
    message: str
    type: str = NotificationType.INFO.value
    is_read: bool = False
    ticket_id: Optional[str] = None
    created_at: datetime


class KnowledgeArticle(CamelModel):
    id: int
    title: str
    content: str
    excerpt: Optional[str] = None
    category: str
    author_id: Optional[int] = None
    views: int = 0
    rating: int = Field(default=0, description="Running sum of per-user ratings")
    rating_count: int = Field(default=0, description="Number of distinct users who rated")
    is_published: bool = False
    tags: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class ArticleRating(CamelModel):
    id: int
    article_id: int
    user_id: Optional[int] = None
    rating: int = Field(..., ge=1, le=5)
    created_at: datetime


# --- Read-side projections (assembled at read time, never stored) ---


class UserView(CamelModel):
    """User without the password."""

    id: int
    username: str
    email: str
    role: Role
    full_name: str


class TicketView(Ticket):
    assignee: Optional[str] = Field(None, description="Assignee full name")


class CommentView(TicketComment):
    author: Optional[str] = Field(None, description="Comment author full name")


class TicketDetails(TicketView):
    comments: list[CommentView] = Field(default_factory=list)
    rating: Optional[TicketRating] = None


class ArticleView(KnowledgeArticle):
    author: Optional[str] = None
    average_rating: float = Field(0.0, description="rating / ratingCount, 0 when never rated")
    user_rating: Optional[int] = Field(None, description="The requesting user's own rating")


class TicketReport(CamelModel):
    start: datetime
    end: datetime
    total: int
    by_status: dict[str, int]
    by_priority: dict[str, int]
    average_first_response_hours: Optional[float] = None
    average_resolution_hours: Optional[float] = None
    tickets: list[Ticket] = Field(default_factory=list)


# --- Request payloads ---


def _clean_tags(tags: Optional[list[str]]) -> Optional[list[str]]:
    if tags is None:
        return None
    return sorted({t.strip() for t in tags if t and t.strip()})


class UserCreate(CamelModel):
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    role: Role = Role.AGENT
    full_name: str = Field(..., min_length=1)


class UserUpdate(CamelModel):
    username: Optional[str] = Field(None, min_length=1, max_length=100)
    password: Optional[str] = Field(None, min_length=1)
    email: Optional[str] = Field(None, min_length=3)
    role: Optional[Role] = None
    full_name: Optional[str] = Field(None, min_length=1)


class TicketCreate(CamelModel):
    subject: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    priority: TicketPriority = TicketPriority.MEDIUM
    category: str = Field(default="General", min_length=1)
    customer_id: Optional[int] = None
    assignee_id: Optional[int] = None


class TicketUpdate(CamelModel):
    """Partial edit. A status here goes through the lifecycle like PATCH .../status."""

    subject: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1)
    priority: Optional[TicketPriority] = None
    category: Optional[str] = Field(None, min_length=1)
    assignee_id: Optional[int] = None
    customer_id: Optional[int] = None
    status: Optional[str] = None


class StatusChange(CamelModel):
    status: str = Field(..., description="open | in-progress | resolved | closed")


class CommentCreate(CamelModel):
    content: str = Field(..., min_length=1, max_length=5000)
    is_internal: bool = False
    user_id: Optional[int] = Field(None, description="Defaults to the requesting user")


class TicketRatingCreate(CamelModel):
    rating: int = Field(..., ge=1, le=5)
    feedback: Optional[str] = None
    user_id: Optional[int] = Field(None, description="Defaults to the requesting user")


class ArticleCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    excerpt: Optional[str] = None
    category: str = Field(..., min_length=1)
    author_id: Optional[int] = Field(None, description="Defaults to the requesting user")
    is_published: bool = False
    tags: list[str] = Field(default_factory=list)

    normalize_tags = field_validator("tags")(_clean_tags)


class ArticleUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = Field(None, min_length=1)
    excerpt: Optional[str] = None
    category: Optional[str] = Field(None, min_length=1)
    is_published: Optional[bool] = None
    tags: Optional[list[str]] = None

    normalize_tags = field_validator("tags")(_clean_tags)


class ArticlePublish(CamelModel):
    is_published: bool


class ArticleRate(CamelModel):
    rating: int = Field(..., ge=1, le=5)


class LoginRequest(CamelModel):
    email: str
    password: str


class SignupRequest(CamelModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)
    full_name: str = Field(..., min_length=1)
    username: Optional[str] = None


class VerifyCodeRequest(CamelModel):
    email: str
    code: str


class ForgotPasswordRequest(CamelModel):
    email: str


class ResetPasswordRequest(CamelModel):
    email: str
    code: str
    new_password: str = Field(..., min_length=1)
