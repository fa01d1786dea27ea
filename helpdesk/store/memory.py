"""
In-memory store: dict per collection with its own id counter and lock.
State belongs to the store instance, so every test can start from an empty one.
"""

import threading
from typing import Any, Optional

from helpdesk.errors import ValidationError
from helpdesk.models import (
    ArticleRating,
    KnowledgeArticle,
    Notification,
    Ticket,
    TicketComment,
    TicketRating,
    User,
)
from helpdesk.store.base import Collection, KeyFactory, Store, T, model_defaults, ticket_code, utcnow


class MemoryCollection(Collection[T]):
    def __init__(
        self,
        model: type[T],
        key_field: str = "id",
        key_factory: Optional[KeyFactory] = None,
        unique: tuple[tuple[str, ...], ...] = (),
    ):
        self.model = model
        self.key_field = key_field
        self._key_factory = key_factory
        self._unique = unique
        self._rows: dict[Any, T] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def _matches(self, row: T, filters: dict[str, Any]) -> bool:
        return all(getattr(row, name) == value for name, value in filters.items())

    def _sorted(self, rows: list[T], order_by: str, descending: bool) -> list[T]:
        field = self._order_field(order_by)
        return sorted(rows, key=lambda r: (getattr(r, field), r.id), reverse=descending)

    def get(self, key: Any) -> Optional[T]:
        with self._lock:
            row = self._rows.get(key)
            return row.model_copy(deep=True) if row is not None else None

    def find(self, *, order_by: str = "created_at", descending: bool = True, **filters: Any) -> list[T]:
        with self._lock:
            rows = [r.model_copy(deep=True) for r in self._rows.values() if self._matches(r, filters)]
        return self._sorted(rows, order_by, descending)

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
        with self._lock:
            rows = [
                r.model_copy(deep=True)
                for r in self._rows.values()
                if getattr(r, field) is not None
                and start <= getattr(r, field) <= end
                and self._matches(r, filters)
            ]
        return self._sorted(rows, order_by, descending)

    def _check_unique(self, row: T, skip_key: Any = None) -> None:
        """Same rule as the SQL unique constraints: null values never conflict."""
        for names in self._unique:
            wanted = {name: getattr(row, name) for name in names}
            if any(value is None for value in wanted.values()):
                continue
            for key, other in self._rows.items():
                if key != skip_key and self._matches(other, wanted):
                    raise ValidationError(f"{self.model.__name__}: conflicts with an existing record")

    def _insert(self, fields: dict[str, Any]) -> T:
        values = model_defaults(self.model, fields)
        now = utcnow()
        for stamp in ("created_at", "updated_at"):
            if self._has_field(stamp) and values.get(stamp) is None:
                values[stamp] = now
        values["id"] = self._next_id
        if self._key_factory is not None:
            values[self.key_field] = self._key_factory(self._next_id, values["created_at"])
        row = self.model.model_validate(values)
        self._check_unique(row)
        self._next_id += 1
        self._rows[getattr(row, self.key_field)] = row
        return row

    def create(self, fields: dict[str, Any]) -> T:
        with self._lock:
            return self._insert(fields).model_copy(deep=True)

    def _replace(self, key: Any, values: dict[str, Any]) -> T:
        row = self.model.model_validate(values)
        self._check_unique(row, skip_key=key)
        self._rows[key] = row
        return row

    def upsert(self, match: dict[str, Any], fields: dict[str, Any]) -> tuple[T, Optional[T]]:
        with self._lock:
            for key, current in self._rows.items():
                if self._matches(current, match):
                    values = current.model_dump()
                    values.update({k: v for k, v in fields.items() if k not in ("id", self.key_field)})
                    if self._has_field("updated_at"):
                        values["updated_at"] = utcnow()
                    return self._replace(key, values).model_copy(deep=True), current.model_copy(deep=True)
            return self._insert({**match, **fields}).model_copy(deep=True), None

    def update(self, key: Any, fields: dict[str, Any]) -> Optional[T]:
        with self._lock:
            current = self._rows.get(key)
            if current is None:
                return None
            values = current.model_dump()
            values.update({k: v for k, v in fields.items() if k not in ("id", self.key_field)})
            if self._has_field("updated_at"):
                values["updated_at"] = utcnow()
            return self._replace(key, values).model_copy(deep=True)

    def update_where(self, fields: dict[str, Any], **filters: Any) -> int:
        changed = 0
        with self._lock:
            for key, row in list(self._rows.items()):
                if not self._matches(row, filters):
                    continue
                values = row.model_dump()
                values.update(fields)
                if self._has_field("updated_at"):
                    values["updated_at"] = utcnow()
                self._replace(key, values)
                changed += 1
        return changed

    def increment(self, key: Any, **deltas: int) -> Optional[T]:
        with self._lock:
            current = self._rows.get(key)
            if current is None:
                return None
            values = current.model_dump()
            for name, delta in deltas.items():
                values[name] = values[name] + delta
            return self._replace(key, values).model_copy(deep=True)

    def delete(self, key: Any) -> bool:
        with self._lock:
            return self._rows.pop(key, None) is not None

    def delete_where(self, **filters: Any) -> int:
        with self._lock:
            keys = [k for k, r in self._rows.items() if self._matches(r, filters)]
            for k in keys:
                del self._rows[k]
        return len(keys)


class MemoryStore(Store):
    backend = "memory"

    def __init__(self):
        self.users = MemoryCollection(User, unique=(("username",),))
        self.tickets = MemoryCollection(Ticket, key_field="ticket_id", key_factory=ticket_code)
        self.comments = MemoryCollection(TicketComment)
        self.ticket_ratings = MemoryCollection(TicketRating, unique=(("ticket_id",),))
        self.notifications = MemoryCollection(Notification)
        self.articles = MemoryCollection(KnowledgeArticle)
        self.article_ratings = MemoryCollection(ArticleRating, unique=(("article_id", "user_id"),))
