"""User directory: CRUD plus the delete policy for records a user owns."""

import logging
from typing import Any, Optional

from helpdesk import activity
from helpdesk.errors import ValidationError
from helpdesk.models import Role, User, UserView
from helpdesk.store.base import Store

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("username", "password", "email", "role", "full_name")


def to_view(user: User) -> UserView:
    return UserView.model_validate(user.model_dump())


class UserDirectory:
    def __init__(self, store: Store):
        self.store = store

    def list_users(self, role: Optional[str] = None) -> list[User]:
        if role is not None:
            return self.store.users.find(order_by="id", descending=False, role=self._role(role))
        return self.store.users.find(order_by="id", descending=False)

    def get_user(self, user_id: int) -> Optional[User]:
        return self.store.users.get(user_id)

    def find_by_login(self, login: str) -> Optional[User]:
        """Match on email (case-insensitive) or username."""
        user = self.store.users.find_one(username=login)
        if user is not None:
            return user
        login = login.strip().lower()
        for candidate in self.store.users.find(order_by="id", descending=False):
            if candidate.email.lower() == login:
                return candidate
        return None

    def _role(self, role: Any) -> Role:
        try:
            return Role(role)
        except ValueError:
            raise ValidationError(
                f"Invalid role '{role}'. Use administrator, manager, agent, or customer."
            ) from None

    def _check_username(self, username: str, user_id: Optional[int] = None) -> None:
        other = self.store.users.find_one(username=username)
        if other is not None and other.id != user_id:
            raise ValidationError(f"Username '{username}' is already taken")

    def create_user(
        self,
        username: str,
        password: str,
        email: str,
        full_name: str,
        role: Role | str = Role.AGENT,
    ) -> User:
        username = username.strip()
        self._check_username(username)
        user = self.store.users.create(
            {
                "username": username,
                "password": password,
                "email": email.strip(),
                "full_name": full_name.strip(),
                "role": self._role(role),
            }
        )
        logger.info("Created user %s (%s).", user.id, user.username)
        activity.emit("user_created", {"user_id": user.id, "role": user.role.value})
        return user

    def update_user(self, user_id: int, partial: dict[str, Any]) -> Optional[User]:
        unknown = set(partial) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")
        fields = {k: v for k, v in partial.items() if v is not None}
        if "role" in fields:
            fields["role"] = self._role(fields["role"])
        if "username" in fields:
            fields["username"] = fields["username"].strip()
            self._check_username(fields["username"], user_id)
        return self.store.users.update(user_id, fields)

    def delete_user(self, user_id: int) -> bool:
        """
        Remove the user. References to them in tickets, comments, ratings and articles are
        set to null (records are kept); their notifications are deleted.
        """
        if self.store.users.get(user_id) is None:
            return False
        store = self.store
        orphaned = (
            store.tickets.update_where({"assignee_id": None}, assignee_id=user_id)
            + store.tickets.update_where({"customer_id": None}, customer_id=user_id)
            + store.comments.update_where({"user_id": None}, user_id=user_id)
            + store.ticket_ratings.update_where({"user_id": None}, user_id=user_id)
            + store.article_ratings.update_where({"user_id": None}, user_id=user_id)
            + store.articles.update_where({"author_id": None}, author_id=user_id)
        )
        store.notifications.delete_where(user_id=user_id)
        deleted = store.users.delete(user_id)
        if deleted:
            logger.info("Deleted user %s (%d references orphaned).", user_id, orphaned)
            activity.emit("user_deleted", {"user_id": user_id})
        return deleted
