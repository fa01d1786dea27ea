"""Notification endpoints for the requesting user."""

from fastapi import APIRouter, Depends, HTTPException, Query

from helpdesk.deps import current_user_id, get_dispatcher
from helpdesk.models import Notification
from helpdesk.services.notifications import NotificationDispatcher

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


def _own(dispatcher: NotificationDispatcher, notification_id: int, user_id: int) -> Notification:
    notification = dispatcher.get(notification_id)
    if notification is None or notification.user_id != user_id:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification


@router.get("", response_model=list[Notification])
def list_notifications(
    unread_only: bool = Query(False, alias="unreadOnly"),
    user_id: int = Depends(current_user_id),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> list[Notification]:
    """Newest first."""
    return dispatcher.list_for_user(user_id, unread_only=unread_only)


@router.get("/unread-count")
def unread_count(
    user_id: int = Depends(current_user_id),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> dict:
    return {"count": dispatcher.unread_count(user_id)}


@router.put("/mark-all-read")
def mark_all_read(
    user_id: int = Depends(current_user_id),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> dict:
    return {"success": True, "updated": dispatcher.mark_all_read(user_id)}


@router.put("/{notification_id}/read", response_model=Notification)
def mark_read(
    notification_id: int,
    user_id: int = Depends(current_user_id),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> Notification:
    _own(dispatcher, notification_id, user_id)
    notification = dispatcher.mark_read(notification_id)
    if notification is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification


@router.delete("/{notification_id}")
def delete_notification(
    notification_id: int,
    user_id: int = Depends(current_user_id),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> dict:
    _own(dispatcher, notification_id, user_id)
    if not dispatcher.delete(notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"success": True}


@router.delete("")
def clear_notifications(
    user_id: int = Depends(current_user_id),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> dict:
    """Delete every notification of the requesting user."""
    return {"success": True, "deleted": dispatcher.delete_all(user_id)}
