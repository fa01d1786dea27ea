"""Ticket endpoints: CRUD, status transitions, comments and the ticket rating."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from helpdesk.deps import current_user_id, get_lifecycle
from helpdesk.models import (
    CommentCreate,
    CommentView,
    StatusChange,
    Ticket,
    TicketComment,
    TicketCreate,
    TicketDetails,
    TicketRating,
    TicketRatingCreate,
    TicketUpdate,
    TicketView,
)
from helpdesk.services.lifecycle import TicketLifecycle

router = APIRouter(prefix="/api/tickets", tags=["tickets"])


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail="Ticket not found")


@router.get("", response_model=list[TicketView])
def list_tickets(
    status: Optional[str] = None,
    priority: Optional[str] = None,
    assignee_id: Optional[int] = Query(None, alias="assigneeId"),
    customer_id: Optional[int] = Query(None, alias="customerId"),
    lifecycle: TicketLifecycle = Depends(get_lifecycle),
) -> list[TicketView]:
    """All tickets, newest first, with assignee names."""
    return lifecycle.list_tickets(status=status, priority=priority, assignee_id=assignee_id, customer_id=customer_id)


@router.post("", status_code=201, response_model=Ticket)
def create_ticket(
    payload: TicketCreate,
    actor_id: int = Depends(current_user_id),
    lifecycle: TicketLifecycle = Depends(get_lifecycle),
) -> Ticket:
    """Open a new ticket. Urgent tickets trigger the escalation webhook after the response."""
    return lifecycle.create_ticket(
        subject=payload.subject,
        description=payload.description,
        priority=payload.priority,
        customer_id=payload.customer_id,
        assignee_id=payload.assignee_id,
        category=payload.category,
        actor_id=actor_id,
    )


@router.get("/{ticket_id}", response_model=TicketDetails)
def get_ticket(ticket_id: str, lifecycle: TicketLifecycle = Depends(get_lifecycle)) -> TicketDetails:
    """Ticket with assignee name, comments (oldest first) and rating."""
    details = lifecycle.get_ticket_details(ticket_id)
    if details is None:
        raise _not_found()
    return details


@router.put("/{ticket_id}", response_model=Ticket)
def update_ticket(
    ticket_id: str,
    payload: TicketUpdate,
    actor_id: int = Depends(current_user_id),
    lifecycle: TicketLifecycle = Depends(get_lifecycle),
) -> Ticket:
    ticket = lifecycle.update_fields(ticket_id, payload.model_dump(exclude_unset=True), actor_id=actor_id)
    if ticket is None:
        raise _not_found()
    return ticket


@router.patch("/{ticket_id}/status", response_model=Ticket)
def change_status(
    ticket_id: str,
    payload: StatusChange,
    actor_id: int = Depends(current_user_id),
    lifecycle: TicketLifecycle = Depends(get_lifecycle),
) -> Ticket:
    """400 for an unknown status value, 404 for an unknown ticket."""
    ticket = lifecycle.change_status(ticket_id, payload.status, actor_id=actor_id)
    if ticket is None:
        raise _not_found()
    return ticket


@router.delete("/{ticket_id}")
def delete_ticket(ticket_id: str, lifecycle: TicketLifecycle = Depends(get_lifecycle)) -> dict:
    if not lifecycle.delete_ticket(ticket_id):
        raise _not_found()
    return {"success": True}


# --- Comments ---


@router.get("/{ticket_id}/comments", response_model=list[CommentView])
def list_comments(
    ticket_id: str,
    include_internal: bool = Query(True, alias="includeInternal"),
    lifecycle: TicketLifecycle = Depends(get_lifecycle),
) -> list[CommentView]:
    comments = lifecycle.list_comments(ticket_id, include_internal=include_internal)
    if comments is None:
        raise _not_found()
    return comments


@router.post("/{ticket_id}/comments", status_code=201, response_model=TicketComment)
def add_comment(
    ticket_id: str,
    payload: CommentCreate,
    actor_id: int = Depends(current_user_id),
    lifecycle: TicketLifecycle = Depends(get_lifecycle),
) -> TicketComment:
    user_id = payload.user_id if payload.user_id is not None else actor_id
    comment = lifecycle.add_comment(ticket_id, user_id, payload.content, is_internal=payload.is_internal)
    if comment is None:
        raise _not_found()
    return comment


@router.delete("/{ticket_id}/comments/{comment_id}")
def delete_comment(
    ticket_id: str,
    comment_id: int,
    lifecycle: TicketLifecycle = Depends(get_lifecycle),
) -> dict:
    if not lifecycle.delete_comment(ticket_id, comment_id):
        raise HTTPException(status_code=404, detail="Comment not found")
    return {"success": True}


# --- Rating ---


@router.get("/{ticket_id}/rating", response_model=Optional[TicketRating])
def get_rating(ticket_id: str, lifecycle: TicketLifecycle = Depends(get_lifecycle)) -> Optional[TicketRating]:
    """The ticket's rating, or null if nobody rated it yet."""
    if lifecycle.get_ticket(ticket_id) is None:
        raise _not_found()
    return lifecycle.get_rating(ticket_id)


@router.post("/{ticket_id}/rating", status_code=201, response_model=TicketRating)
def rate_ticket(
    ticket_id: str,
    payload: TicketRatingCreate,
    actor_id: int = Depends(current_user_id),
    lifecycle: TicketLifecycle = Depends(get_lifecycle),
) -> TicketRating:
    """Create the rating, or replace it if the ticket was already rated."""
    user_id = payload.user_id if payload.user_id is not None else actor_id
    rating = lifecycle.rate_ticket(ticket_id, user_id, payload.rating, payload.feedback)
    if rating is None:
        raise _not_found()
    return rating
