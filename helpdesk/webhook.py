"""
Slack/Discord webhook: POST when a ticket is created urgent or escalated to urgent.
Uses WEBHOOK_URL from config; no-op if unset.
"""

import asyncio
import json
import logging
import ssl
import urllib.request
from typing import Any

from helpdesk.config import WEBHOOK_TIMEOUT_SECONDS, WEBHOOK_URL
from helpdesk.models import Ticket, TicketPriority

logger = logging.getLogger(__name__)


def build_urgent_ticket_payload(ticket: Ticket, reason: str = "created") -> dict[str, Any]:
    """Build a Slack-compatible webhook payload."""
    return {
        "text": f"Urgent ticket {reason}: {ticket.ticket_id}",
        "blocks": [
            {
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": (
                        f"*Ticket:* `{ticket.ticket_id}`\n*Subject:* {ticket.subject}\n"
                        f"*Category:* {ticket.category}\n*Status:* {ticket.status.value}"
                    ),
                },
            },
        ],
    }


def _do_post(url: str, payload: dict[str, Any]) -> None:
    """Synchronous POST (run in thread)."""
    data = json.dumps(payload).encode("utf-8")
    req = urllib.request.Request(
        url,
        data=data,
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    ctx = ssl.create_default_context()
    with urllib.request.urlopen(req, timeout=WEBHOOK_TIMEOUT_SECONDS, context=ctx):
        pass


async def trigger_urgent_ticket_webhook(ticket: Ticket, reason: str = "created") -> bool:
    """
    If WEBHOOK_URL is set and the ticket is urgent, POST a notification.
    Runs as a background task after the response; failures are logged, never raised.
    Returns True if a POST was delivered.
    """
    if not WEBHOOK_URL or ticket.priority != TicketPriority.URGENT:
        return False
    payload = build_urgent_ticket_payload(ticket, reason)
    try:
        await asyncio.to_thread(_do_post, WEBHOOK_URL, payload)
    except Exception as e:
        logger.warning("Webhook POST for ticket %s failed: %s", ticket.ticket_id, e)
        return False
    logger.info("Webhook sent for urgent ticket %s (%s).", ticket.ticket_id, reason)
    return True
