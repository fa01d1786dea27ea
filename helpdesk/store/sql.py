"""
Relational store (SQLAlchemy): one table per collection, a session per call.
Updates run as single UPDATE ... WHERE statements; counters as col = col + delta.
"""

import logging
import threading
from contextlib import contextmanager
from datetime import timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
    create_engine,
    delete,
    select,
    update,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from helpdesk.errors import UnexpectedError, ValidationError
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

logger = logging.getLogger(__name__)

Base = declarative_base()

# sqlite_autoincrement on every table: ids, and so ticket codes, are never reused after a delete.


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetimes, also on backends (SQLite) that drop the offset."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class UserRow(Base):
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), unique=True, nullable=False)
    password = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    role = Column(String(32), nullable=False)
    full_name = Column(String(255), nullable=False)


class TicketRow(Base):
    __tablename__ = "tickets"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, index=True)
    ticket_id = Column(String(64), unique=True, nullable=False, index=True)
    subject = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    status = Column(String(32), nullable=False)
    priority = Column(String(32), nullable=False)
    assignee_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    category = Column(String(100), nullable=False)
    first_response_at = Column(UTCDateTime, nullable=True)
    resolved_at = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, index=True)
    updated_at = Column(UTCDateTime, nullable=False)


class TicketCommentRow(Base):
    __tablename__ = "ticket_comments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, index=True)
    ticket_id = Column(String(64), ForeignKey("tickets.ticket_id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    content = Column(Text, nullable=False)
    is_internal = Column(Boolean, nullable=False)
    created_at = Column(UTCDateTime, nullable=False)


class TicketRatingRow(Base):
    __tablename__ = "ticket_ratings"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, index=True)
    ticket_id = Column(String(64), ForeignKey("tickets.ticket_id"), unique=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    rating = Column(Integer, nullable=False)
    feedback = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, nullable=False)


class NotificationRow(Base):
    __tablename__ = "notifications"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(32), nullable=False)
    is_read = Column(Boolean, nullable=False)
    ticket_id = Column(String(64), nullable=True)  # not a FK: outlives the ticket
    created_at = Column(UTCDateTime, nullable=False)


class KnowledgeArticleRow(Base):
    __tablename__ = "knowledge_articles"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    excerpt = Column(Text, nullable=True)
    category = Column(String(100), nullable=False)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    views = Column(Integer, nullable=False)
    rating = Column(Integer, nullable=False)
    rating_count = Column(Integer, nullable=False)
    is_published = Column(Boolean, nullable=False)
    tags = Column(JSON, nullable=False)
    created_at = Column(UTCDateTime, nullable=False)
    updated_at = Column(UTCDateTime, nullable=False)


class ArticleRatingRow(Base):
    __tablename__ = "article_ratings"
    __table_args__ = (
        UniqueConstraint("article_id", "user_id", name="uq_article_rating_user"),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True, index=True)
    article_id = Column(Integer, ForeignKey("knowledge_articles.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    rating = Column(Integer, nullable=False)
    created_at = Column(UTCDateTime, nullable=False)


def _db_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


@contextmanager
def _db_errors(table: str):
    """Constraint violations become ValidationError, other database failures UnexpectedError."""
    try:
        yield
    except IntegrityError as e:
        raise ValidationError(f"{table}: conflicts with an existing record") from e
    except SQLAlchemyError as e:
        logger.error("Write to %s failed: %s", table, e)
        raise UnexpectedError(f"Could not write to {table}") from e


class SqlCollection(Collection[T]):
    def __init__(
        self,
        session_factory: sessionmaker,
        table: type,
        model: type[T],
        key_field: str = "id",
        key_factory: Optional[KeyFactory] = None,
    ):
        self._session_factory = session_factory
        self.table = table
        self.model = model
        self.key_field = key_field
        self._key_factory = key_factory
        self._upsert_lock = threading.Lock()

    @property
    def _key_column(self):
        return getattr(self.table, self.key_field)

    def _to_model(self, row) -> T:
        data = {c.key: getattr(row, c.key) for c in self.table.__table__.columns}
        return self.model.model_validate(data)

    def _where(self, filters: dict[str, Any]) -> list:
        clauses = []
        for name, value in filters.items():
            column = getattr(self.table, name)
            clauses.append(column.is_(None) if value is None else column == _db_value(value))
        return clauses

    def _order(self, order_by: str, descending: bool) -> list:
        column = getattr(self.table, self._order_field(order_by))
        if descending:
            return [column.desc(), self.table.id.desc()]
        return [column.asc(), self.table.id.asc()]

    def _values(self, fields: dict[str, Any]) -> dict[str, Any]:
        return {k: _db_value(v) for k, v in fields.items()}

    def get(self, key: Any) -> Optional[T]:
        with self._session_factory() as session:
            row = session.execute(select(self.table).where(self._key_column == key)).scalar_one_or_none()
            return self._to_model(row) if row is not None else None

    def find(self, *, order_by: str = "created_at", descending: bool = True, **filters: Any) -> list[T]:
        stmt = select(self.table).where(*self._where(filters)).order_by(*self._order(order_by, descending))
        with self._session_factory() as session:
            return [self._to_model(r) for r in session.execute(stmt).scalars().all()]

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
        column = getattr(self.table, field)
        stmt = (
            select(self.table)
            .where(column >= start, column <= end, *self._where(filters))
            .order_by(*self._order(order_by, descending))
        )
        with self._session_factory() as session:
            return [self._to_model(r) for r in session.execute(stmt).scalars().all()]

    def _insert(self, session, fields: dict[str, Any]):
        now = utcnow()
        values = model_defaults(self.model, fields)
        for stamp in ("created_at", "updated_at"):
            if self._has_field(stamp) and values.get(stamp) is None:
                values[stamp] = now
        if self._key_factory is not None:
            # Real key depends on the generated id; set it in the same transaction.
            values[self.key_field] = f"pending-{uuid4().hex}"
        row = self.table(**self._values(values))
        session.add(row)
        session.flush()
        if self._key_factory is not None:
            setattr(row, self.key_field, self._key_factory(row.id, values["created_at"]))
            session.flush()
        return row

    def create(self, fields: dict[str, Any]) -> T:
        with _db_errors(self.table.__tablename__), self._session_factory.begin() as session:
            return self._to_model(self._insert(session, fields))

    def _upsert_once(self, match: dict[str, Any], fields: dict[str, Any]) -> tuple[T, Optional[T]]:
        where = self._where(match)
        changes = self._values({k: v for k, v in fields.items() if k not in ("id", self.key_field)})
        if self._has_field("updated_at"):
            changes["updated_at"] = utcnow()
        with self._session_factory.begin() as session:
            # No-op write first: holds the row lock (the database write lock on SQLite) until commit.
            session.execute(update(self.table).where(*where).values({self.key_field: self._key_column}))
            row = session.execute(select(self.table).where(*where).with_for_update()).scalar_one_or_none()
            if row is None:
                return self._to_model(self._insert(session, {**match, **fields})), None
            previous = self._to_model(row)
            for name, value in changes.items():
                setattr(row, name, value)
            session.flush()
            return self._to_model(row), previous

    def upsert(self, match: dict[str, Any], fields: dict[str, Any]) -> tuple[T, Optional[T]]:
        with self._upsert_lock, _db_errors(self.table.__tablename__):
            try:
                return self._upsert_once(match, fields)
            except IntegrityError:
                # Another process inserted the same match first; the retry updates that row.
                return self._upsert_once(match, fields)

    def update(self, key: Any, fields: dict[str, Any]) -> Optional[T]:
        values = self._values({k: v for k, v in fields.items() if k not in ("id", self.key_field)})
        if self._has_field("updated_at"):
            values["updated_at"] = utcnow()
        if not values:
            return self.get(key)
        with _db_errors(self.table.__tablename__), self._session_factory.begin() as session:
            result = session.execute(
                update(self.table).where(self._key_column == key).values(**values)
            )
            if result.rowcount == 0:
                return None
            row = session.execute(select(self.table).where(self._key_column == key)).scalar_one()
            return self._to_model(row)

    def update_where(self, fields: dict[str, Any], **filters: Any) -> int:
        values = self._values(fields)
        if self._has_field("updated_at"):
            values["updated_at"] = utcnow()
        with _db_errors(self.table.__tablename__), self._session_factory.begin() as session:
            result = session.execute(
                update(self.table).where(*self._where(filters)).values(**values)
            )
            return result.rowcount

    def increment(self, key: Any, **deltas: int) -> Optional[T]:
        values = {name: getattr(self.table, name) + delta for name, delta in deltas.items()}
        with _db_errors(self.table.__tablename__), self._session_factory.begin() as session:
            result = session.execute(
                update(self.table).where(self._key_column == key).values(values)
            )
            if result.rowcount == 0:
                return None
            row = session.execute(select(self.table).where(self._key_column == key)).scalar_one()
            return self._to_model(row)

    def delete(self, key: Any) -> bool:
        with _db_errors(self.table.__tablename__), self._session_factory.begin() as session:
            result = session.execute(delete(self.table).where(self._key_column == key))
            return result.rowcount > 0

    def delete_where(self, **filters: Any) -> int:
        with _db_errors(self.table.__tablename__), self._session_factory.begin() as session:
            result = session.execute(delete(self.table).where(*self._where(filters)))
            return result.rowcount


class SqlStore(Store):
    backend = "sql"

    def __init__(self, url: str):
        kwargs: dict[str, Any] = {}
        if url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if url in ("sqlite://", "sqlite:///:memory:"):
                # One shared connection, otherwise each session sees its own empty database.
                kwargs["poolclass"] = StaticPool
        self.engine = create_engine(url, **kwargs)
        Base.metadata.create_all(self.engine)
        factory = sessionmaker(bind=self.engine, expire_on_commit=False)

        self.users = SqlCollection(factory, UserRow, User)
        self.tickets = SqlCollection(factory, TicketRow, Ticket, key_field="ticket_id", key_factory=ticket_code)
        self.comments = SqlCollection(factory, TicketCommentRow, TicketComment)
        self.ticket_ratings = SqlCollection(factory, TicketRatingRow, TicketRating)
        self.notifications = SqlCollection(factory, NotificationRow, Notification)
        self.articles = SqlCollection(factory, KnowledgeArticleRow, KnowledgeArticle)
        self.article_ratings = SqlCollection(factory, ArticleRatingRow, ArticleRating)
        logger.info("SQL store ready (%s).", self.engine.url.render_as_string(hide_password=True))

    def close(self) -> None:
        self.engine.dispose()
