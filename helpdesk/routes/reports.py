"""Report endpoints."""

from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends

from helpdesk.deps import get_store
from helpdesk.models import TicketReport
from helpdesk.services.reports import ticket_report
from helpdesk.store.base import Store, utcnow

router = APIRouter(prefix="/api/reports", tags=["reports"])

DEFAULT_REPORT_DAYS = 30


@router.get("/tickets", response_model=TicketReport)
def tickets_report(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    store: Store = Depends(get_store),
) -> TicketReport:
    """Tickets created in [start, end]; defaults to the last 30 days."""
    end = end or utcnow()
    start = start or end - timedelta(days=DEFAULT_REPORT_DAYS)
    return ticket_report(store, start, end)
