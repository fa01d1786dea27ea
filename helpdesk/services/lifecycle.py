"""
Ticket lifecycle: status transitions and their side effects, field edits, comments and the
ticket rating, and the read-side projections the API returns.

Any status may move to any other (reopen included). Side effects:
  -> in-progress  firstResponseAt = now, only if unset
  -> resolved     resolvedAt = now
  -> closed/open  status write only
Status changes, assignments, escalations, comments and ratings notify the people involved
(never the actor). Missing tickets are reported as None; bad input raises ValidationError.
"""

import logging
from typing import Any, Callable, Optional

from helpdesk import activity
from helpdesk.errors import InvalidStatusError, ValidationError
from helpdesk.models import (
    CommentView,
    NotificationType,
    Ticket,
    TicketComment,
    TicketDetails,
    TicketPriority,
    TicketRating,
    TicketStatus,
    TicketView,
)
from helpdesk.services.notifications import NotificationDispatcher
from helpdesk.store.base import Store, utcnow

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("subject", "description", "priority", "category", "assignee_id", "customer_id")

STATUS_LABELS = {
    TicketStatus.OPEN: "Open",
    TicketStatus.IN_PROGRESS: "In Progress",
    TicketStatus.RESOLVED: "Resolved",
    TicketStatus.CLOSED: "Closed",
}

# (ticket, reason) -> None; wired to the escalation webhook by the API.
EscalationHook = Callable[[Ticket, str], None]


def parse_status(value: Any) -> TicketStatus:
    """Canonical status for value (legacy in_progress accepted). Raises InvalidStatusError."""
    try:
        return TicketStatus(value)
    except ValueError:
        raise InvalidStatusError(value) from None


def status_side_effects(ticket: Ticket, new_status: TicketStatus, now=None) -> dict[str, Any]:
    """Fields to write when ticket moves to new_status."""
    now = now or utcnow()
    fields: dict[str, Any] = {"status": new_status}
    if new_status == TicketStatus.IN_PROGRESS and ticket.first_response_at is None:
        fields["first_response_at"] = now
    elif new_status == TicketStatus.RESOLVED:
        fields["resolved_at"] = now
    return fields


class TicketLifecycle:
    def __init__(
        self,
        store: Store,
        dispatcher: Optional[NotificationDispatcher] = None,
        on_escalation: Optional[EscalationHook] = None,
    ):
        self.store = store
        self.dispatcher = dispatcher or NotificationDispatcher(store)
        self.on_escalation = on_escalation

    # --- helpers ---

    def _require_user(self, user_id: Optional[int], field: str) -> None:
        if user_id is not None and self.store.users.get(user_id) is None:
            raise ValidationError(f"{field}: user {user_id} does not exist")

    def _full_name(self, user_id: Optional[int]) -> Optional[str]:
        if user_id is None:
            return None
        user = self.store.users.get(user_id)
        return user.full_name if user else None

    def _notify_each(
        self,
        user_ids: list[Optional[int]],
        actor_id: Optional[int],
        title: str,
        message: str,
        type: NotificationType,
        ticket_id: str,
    ) -> None:
        seen = set()
        for uid in user_ids:
            if uid is None or uid == actor_id or uid in seen:
                continue
            seen.add(uid)
            self.dispatcher.notify(uid, title, message, type.value, ticket_id)

    def _escalate(self, ticket: Ticket, reason: str, actor_id: Optional[int]) -> None:
        self._notify_each(
            [ticket.assignee_id],
            actor_id,
            "Ticket Escalated",
            f"Ticket ({ticket.ticket_id}) has been escalated to urgent priority.",
            NotificationType.ESCALATION,
            ticket.ticket_id,
        )
        activity.emit("ticket_escalated", {"ticket_id": ticket.ticket_id, "reason": reason})
        if self.on_escalation is not None:
            try:
                self.on_escalation(ticket, reason)
            except Exception as e:
                logger.warning("Escalation hook failed for %s: %s", ticket.ticket_id, e)

    def _notify_assignment(self, ticket: Ticket, actor_id: Optional[int]) -> None:
        self._notify_each(
            [ticket.assignee_id],
            actor_id,
            "New Ticket Assigned",
            f"Ticket ({ticket.ticket_id}) \"{ticket.subject}\" has been assigned to you.",
            NotificationType.ASSIGNMENT,
            ticket.ticket_id,
        )

    # --- views ---

    def to_view(self, ticket: Ticket) -> TicketView:
        return TicketView(**ticket.model_dump(), assignee=self._full_name(ticket.assignee_id))

    def list_tickets(
        self,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        assignee_id: Optional[int] = None,
        customer_id: Optional[int] = None,
    ) -> list[TicketView]:
        """Newest first, optionally filtered."""
        filters: dict[str, Any] = {}
        if status is not None:
            filters["status"] = parse_status(status)
        if priority is not None:
            try:
                filters["priority"] = TicketPriority(priority)
            except ValueError:
                raise ValidationError(f"Invalid priority '{priority}'. Use low, medium, high, or urgent.") from None
        if assignee_id is not None:
            filters["assignee_id"] = assignee_id
        if customer_id is not None:
            filters["customer_id"] = customer_id
        return [self.to_view(t) for t in self.store.tickets.find(**filters)]

    def get_ticket(self, ticket_id: str) -> Optional[TicketView]:
        ticket = self.store.tickets.get(ticket_id)
        return self.to_view(ticket) if ticket else None

    def get_ticket_details(self, ticket_id: str, include_internal: bool = True) -> Optional[TicketDetails]:
        """Ticket + assignee name + comments (oldest first) + rating."""
        ticket = self.store.tickets.get(ticket_id)
        if ticket is None:
            return None
        return TicketDetails(
            **ticket.model_dump(),
            assignee=self._full_name(ticket.assignee_id),
            comments=self._comment_views(ticket_id, include_internal),
            rating=self.store.ticket_ratings.find_one(ticket_id=ticket_id),
        )

    # --- mutations ---

    def create_ticket(
        self,
        subject: str,
        description: str,
        priority: TicketPriority | str = TicketPriority.MEDIUM,
        customer_id: Optional[int] = None,
        assignee_id: Optional[int] = None,
        category: Optional[str] = None,
        actor_id: Optional[int] = None,
    ) -> Ticket:
        """New ticket in status open (priority medium, category General unless given)."""
        try:
            priority = TicketPriority(priority or TicketPriority.MEDIUM)
        except ValueError:
            raise ValidationError(f"Invalid priority '{priority}'. Use low, medium, high, or urgent.") from None
        self._require_user(customer_id, "customerId")
        self._require_user(assignee_id, "assigneeId")
        ticket = self.store.tickets.create(
            {
                "subject": subject.strip(),
                "description": description.strip(),
                "status": TicketStatus.OPEN,
                "priority": priority,
                "category": (category or "General").strip(),
                "customer_id": customer_id,
                "assignee_id": assignee_id,
                "first_response_at": None,
                "resolved_at": None,
            }
        )
        logger.info("Created ticket %s (priority=%s).", ticket.ticket_id, ticket.priority.value)
        activity.emit(
            "ticket_created",
            {"ticket_id": ticket.ticket_id, "priority": ticket.priority.value, "actor_id": actor_id},
        )
        self._notify_assignment(ticket, actor_id)
        if ticket.priority == TicketPriority.URGENT:
            self._escalate(ticket, "created", actor_id)
        return ticket

    def change_status(self, ticket_id: str, new_status: Any, actor_id: Optional[int] = None) -> Optional[Ticket]:
        """
        Move a ticket to new_status and apply its timestamp side effects.
        Raises InvalidStatusError before touching the ticket; None if the ticket is unknown.
        Backwards moves (e.g. resolved -> open) are allowed.
        """
        status = parse_status(new_status)
        ticket = self.store.tickets.get(ticket_id)
        if ticket is None:
            return None
        old_status = ticket.status
        updated = self.store.tickets.update(ticket_id, status_side_effects(ticket, status))
        if updated is None:
            return None
        if old_status != status:
            logger.info("Ticket %s: %s -> %s.", ticket_id, old_status.value, status.value)
            activity.emit(
                "ticket_status_changed",
                {"ticket_id": ticket_id, "from": old_status.value, "to": status.value, "actor_id": actor_id},
            )
            self._notify_each(
                [updated.customer_id, updated.assignee_id],
                actor_id,
                "Ticket Status Updated",
                f"Ticket ({ticket_id}) status has been changed from "
                f"{STATUS_LABELS[old_status]} to {STATUS_LABELS[status]}.",
                NotificationType.STATUS,
                ticket_id,
            )
        return updated

    def update_fields(self, ticket_id: str, partial: dict[str, Any], actor_id: Optional[int] = None) -> Optional[Ticket]:
        """
        General edit of subject, description, priority, category, assignee and customer.
        A "status" key is applied through change_status so its side effects still hold.
        Unknown keys raise ValidationError.
        """
        partial = dict(partial)
        status = partial.pop("status", None)
        unknown = set(partial) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")
        if status is not None:
            parse_status(status)
        if "priority" in partial:
            try:
                partial["priority"] = TicketPriority(partial["priority"])
            except ValueError:
                raise ValidationError(f"Invalid priority '{partial['priority']}'.") from None
        for field in ("subject", "description", "category"):
            if field in partial:
                if partial[field] is None or not str(partial[field]).strip():
                    raise ValidationError(f"{field} cannot be empty")
                partial[field] = str(partial[field]).strip()
        if "assignee_id" in partial:
            self._require_user(partial["assignee_id"], "assigneeId")
        if "customer_id" in partial:
            self._require_user(partial["customer_id"], "customerId")

        before = self.store.tickets.get(ticket_id)
        if before is None:
            return None
        ticket = before
        if partial:
            ticket = self.store.tickets.update(ticket_id, partial)
            if ticket is None:
                return None
            changed = {k: v for k, v in partial.items() if getattr(before, k) != v}
            if changed:
                activity.emit(
                    "ticket_updated",
                    {"ticket_id": ticket_id, "fields": sorted(changed), "actor_id": actor_id},
                )
            if "assignee_id" in changed:
                self._notify_assignment(ticket, actor_id)
            if changed.get("priority") == TicketPriority.URGENT:
                self._escalate(ticket, "escalated", actor_id)
        if status is not None:
            ticket = self.change_status(ticket_id, status, actor_id)
        return ticket

    def delete_ticket(self, ticket_id: str) -> bool:
        """Delete the ticket with its comments and rating. False if it did not exist."""
        if self.store.tickets.get(ticket_id) is None:
            return False
        self.store.comments.delete_where(ticket_id=ticket_id)
        self.store.ticket_ratings.delete_where(ticket_id=ticket_id)
        deleted = self.store.tickets.delete(ticket_id)
        if deleted:
            logger.info("Deleted ticket %s.", ticket_id)
            activity.emit("ticket_deleted", {"ticket_id": ticket_id})
        return deleted

    # --- comments ---

    def _comment_views(self, ticket_id: str, include_internal: bool) -> list[CommentView]:
        comments = self.store.comments.find(order_by="created_at", descending=False, ticket_id=ticket_id)
        return [
            CommentView(**c.model_dump(), author=self._full_name(c.user_id))
            for c in comments
            if include_internal or not c.is_internal
        ]

    def list_comments(self, ticket_id: str, include_internal: bool = True) -> Optional[list[CommentView]]:
        """Oldest first. None if the ticket is unknown."""
        if self.store.tickets.get(ticket_id) is None:
            return None
        return self._comment_views(ticket_id, include_internal)

    def add_comment(
        self,
        ticket_id: str,
        user_id: Optional[int],
        content: str,
        is_internal: bool = False,
    ) -> Optional[TicketComment]:
        ticket = self.store.tickets.get(ticket_id)
        if ticket is None:
            return None
        if not content or not content.strip():
            raise ValidationError("content cannot be empty")
        self._require_user(user_id, "userId")
        comment = self.store.comments.create(
            {"ticket_id": ticket_id, "user_id": user_id, "content": content.strip(), "is_internal": is_internal}
        )
        activity.emit(
            "ticket_commented",
            {"ticket_id": ticket_id, "comment_id": comment.id, "is_internal": is_internal},
        )
        recipients = [ticket.assignee_id] if is_internal else [ticket.assignee_id, ticket.customer_id]
        self._notify_each(
            recipients,
            user_id,
            "New Comment",
            f"New comment added to ticket ({ticket_id}).",
            NotificationType.TICKET,
            ticket_id,
        )
        return comment

    def delete_comment(self, ticket_id: str, comment_id: int) -> bool:
        comment = self.store.comments.get(comment_id)
        if comment is None or comment.ticket_id != ticket_id:
            return False
        return self.store.comments.delete(comment_id)

    # --- rating ---

    def get_rating(self, ticket_id: str) -> Optional[TicketRating]:
        return self.store.ticket_ratings.find_one(ticket_id=ticket_id)

    def rate_ticket(
        self,
        ticket_id: str,
        user_id: Optional[int],
        rating: int,
        feedback: Optional[str] = None,
    ) -> Optional[TicketRating]:
        """Create the ticket's rating, or replace the existing one (one rating per ticket)."""
        if not 1 <= rating <= 5:
            raise ValidationError("rating must be between 1 and 5")
        ticket = self.store.tickets.get(ticket_id)
        if ticket is None:
            return None
        self._require_user(user_id, "userId")
        fields: dict[str, Any] = {"rating": rating, "user_id": user_id}
        if feedback is not None:
            fields["feedback"] = feedback
        result, _ = self.store.ticket_ratings.upsert({"ticket_id": ticket_id}, fields)
        activity.emit("ticket_rated", {"ticket_id": ticket_id, "rating": rating})
        self._notify_each(
            [ticket.assignee_id],
            user_id,
            "Customer Feedback",
            f"Customer rated your resolution of ticket ({ticket_id}) with {rating} stars.",
            NotificationType.FEEDBACK,
            ticket_id,
        )
        return result
