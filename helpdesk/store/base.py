"""
Entity store interface: one keyed collection per record type.
MemoryStore and SqlStore implement it; the app receives one at startup.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Generic, Optional, TypeVar

from pydantic import BaseModel

from helpdesk.config import TICKET_CODE_PREFIX
from helpdesk.models import (
    ArticleRating,
    KnowledgeArticle,
    Notification,
    Ticket,
    TicketComment,
    TicketRating,
    User,
)

T = TypeVar("T", bound=BaseModel)

# (surrogate id, created_at) -> external key
KeyFactory = Callable[[int, datetime], str]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ticket_code(seq: int, created_at: datetime) -> str:
    """Deterministic ticket code from the surrogate id, e.g. TICK-2025-0001."""
    return f"{TICKET_CODE_PREFIX}-{created_at.year}-{seq:04d}"


def model_defaults(model: type[BaseModel], fields: dict[str, Any]) -> dict[str, Any]:
    """Fill optional fields the caller left out with the model's defaults."""
    values = dict(fields)
    for name, info in model.model_fields.items():
        if name not in values and not info.is_required():
            values[name] = info.get_default(call_default_factory=True)
    return values


class Collection(ABC, Generic[T]):
    """
    Keyed storage for one entity type.
    key_field is "id" except for tickets, which are addressed by their ticket code.
    """

    model: type[T]
    key_field: str = "id"

    def _has_field(self, name: str) -> bool:
        return name in self.model.model_fields

    def _order_field(self, order_by: str) -> str:
        # Users have no timestamps; they sort by id.
        return order_by if self._has_field(order_by) else "id"

    @abstractmethod
    def get(self, key: Any) -> Optional[T]:
        """Return the record with this key, or None."""

    @abstractmethod
    def find(self, *, order_by: str = "created_at", descending: bool = True, **filters: Any) -> list[T]:
        """Records whose fields equal every filter (None matches null). Ties on order_by break by id."""

    @abstractmethod
    def find_between(
        self,
        field: str,
        start: Any,
        end: Any,
        *,
        order_by: str = "created_at",
        descending: bool = True,
        **filters: Any,
    ) -> list[T]:
        """Records with start <= field <= end, plus equality filters."""

    def find_one(self, **filters: Any) -> Optional[T]:
        rows = self.find(order_by="id", descending=False, **filters)
        return rows[0] if rows else None

    @abstractmethod
    def create(self, fields: dict[str, Any]) -> T:
        """Insert a record; assigns id, key and default timestamps."""

    @abstractmethod
    def update(self, key: Any, fields: dict[str, Any]) -> Optional[T]:
        """Merge fields into one record and refresh updated_at. None if missing."""

    @abstractmethod
    def upsert(self, match: dict[str, Any], fields: dict[str, Any]) -> tuple[T, Optional[T]]:
        """
        Atomically merge fields into the record matching every field of match, or insert
        match + fields if there is none. Returns (stored record, previous version or None).
        """

    @abstractmethod
    def update_where(self, fields: dict[str, Any], **filters: Any) -> int:
        """Bulk update; returns the number of records changed."""

    @abstractmethod
    def increment(self, key: Any, **deltas: int) -> Optional[T]:
        """Atomic counter arithmetic (field = field + delta). Leaves updated_at alone."""

    @abstractmethod
    def delete(self, key: Any) -> bool:
        """True if a record existed and was removed."""

    @abstractmethod
    def delete_where(self, **filters: Any) -> int:
        """Bulk delete; returns the number of records removed."""


class Store(ABC):
    """All helpdesk collections behind one handle."""

    users: Collection[User]
    tickets: Collection[Ticket]
    comments: Collection[TicketComment]
    ticket_ratings: Collection[TicketRating]
    notifications: Collection[Notification]
    articles: Collection[KnowledgeArticle]
    article_ratings: Collection[ArticleRating]

    backend: str = ""

    def close(self) -> None:
        """Release connections (no-op for in-memory)."""
