"""Ticket reports over a creation-date range."""

from datetime import datetime, timezone
from typing import Optional

from helpdesk.errors import ValidationError
from helpdesk.models import Ticket, TicketPriority, TicketReport, TicketStatus
from helpdesk.store.base import Store


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _average_hours(tickets: list[Ticket], stamp: str) -> Optional[float]:
    spans = [
        (getattr(t, stamp) - t.created_at).total_seconds() / 3600
        for t in tickets
        if getattr(t, stamp) is not None
    ]
    if not spans:
        return None
    return round(sum(spans) / len(spans), 2)


def ticket_report(store: Store, start: datetime, end: datetime) -> TicketReport:
    """Tickets created within [start, end] with counts and average response/resolution times."""
    start, end = _as_utc(start), _as_utc(end)
    if start > end:
        raise ValidationError("start must not be after end")
    tickets = store.tickets.find_between("created_at", start, end)
    by_status = {s.value: 0 for s in TicketStatus}
    by_priority = {p.value: 0 for p in TicketPriority}
    for t in tickets:
        by_status[t.status.value] += 1
        by_priority[t.priority.value] += 1
    return TicketReport(
        start=start,
        end=end,
        total=len(tickets),
        by_status=by_status,
        by_priority=by_priority,
        average_first_response_hours=_average_hours(tickets, "first_response_at"),
        average_resolution_hours=_average_hours(tickets, "resolved_at"),
        tickets=tickets,
    )
