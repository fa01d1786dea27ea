"""FastAPI dependencies: the injected store, the requesting principal and the services."""

from typing import Optional

from fastapi import BackgroundTasks, Depends, Header, HTTPException, Request

from helpdesk.config import DEMO_USER_ID
from helpdesk.models import Ticket
from helpdesk.services.auth import DemoAuth
from helpdesk.services.knowledge import KnowledgeBase
from helpdesk.services.lifecycle import TicketLifecycle
from helpdesk.services.notifications import NotificationDispatcher
from helpdesk.services.users import UserDirectory
from helpdesk.store.base import Store
from helpdesk.webhook import trigger_urgent_ticket_webhook


def get_store(request: Request) -> Store:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Store not ready")
    return store


def current_user_id(x_user_id: Optional[int] = Header(default=None)) -> int:
    """The acting user: X-User-Id header, else the demo user (no real sessions)."""
    return x_user_id if x_user_id is not None else DEMO_USER_ID


def get_dispatcher(store: Store = Depends(get_store)) -> NotificationDispatcher:
    return NotificationDispatcher(store)


def get_lifecycle(
    background_tasks: BackgroundTasks,
    store: Store = Depends(get_store),
) -> TicketLifecycle:
    def escalate(ticket: Ticket, reason: str) -> None:
        background_tasks.add_task(trigger_urgent_ticket_webhook, ticket, reason)

    return TicketLifecycle(store, NotificationDispatcher(store), on_escalation=escalate)


def get_knowledge(store: Store = Depends(get_store)) -> KnowledgeBase:
    return KnowledgeBase(store)


def get_users(store: Store = Depends(get_store)) -> UserDirectory:
    return UserDirectory(store)


def get_auth(users: UserDirectory = Depends(get_users)) -> DemoAuth:
    return DemoAuth(users)
