"""
Activity log and urgent-ticket webhook (no Redis or network needed).
Run: pytest tests/test_events.py -v
"""

import asyncio
from datetime import datetime, timezone

from helpdesk import activity, webhook
from helpdesk.models import Ticket, TicketPriority


def _ticket(priority=TicketPriority.URGENT):
    now = datetime.now(timezone.utc)
    return Ticket(id=1, ticket_id="TICK-2025-0001", subject="DB down", description="d",
                  priority=priority, created_at=now, updated_at=now)


class TestActivity:
    def test_emit_and_recent(self):
        activity.emit("ticket_created", {"ticket_id": "TICK-2025-0001"})
        activity.emit("ticket_rated")
        events = activity.get_recent()
        assert [e["type"] for e in events] == ["ticket_created", "ticket_rated"]
        assert events[1]["data"] == {}
        assert [e["type"] for e in activity.get_recent(limit=1)] == ["ticket_rated"]

    def test_bounded(self, monkeypatch):
        monkeypatch.setattr(activity, "ACTIVITY_MAX_EVENTS", 3)
        for i in range(5):
            activity.emit("e", {"i": i})
        assert [e["data"]["i"] for e in activity.get_recent()] == [2, 3, 4]

    def test_subscriber_needs_redis_url(self, monkeypatch):
        monkeypatch.setattr(activity, "REDIS_URL", "")
        assert activity.start_redis_subscriber() is False


class TestWebhook:
    def test_payload(self):
        payload = webhook.build_urgent_ticket_payload(_ticket(), "escalated")
        assert payload["text"] == "Urgent ticket escalated: TICK-2025-0001"
        assert "DB down" in payload["blocks"][0]["text"]["text"]

    def test_noop_without_url(self, monkeypatch):
        monkeypatch.setattr(webhook, "WEBHOOK_URL", "")
        assert asyncio.run(webhook.trigger_urgent_ticket_webhook(_ticket())) is False

    def test_only_urgent(self, monkeypatch):
        sent = []
        monkeypatch.setattr(webhook, "WEBHOOK_URL", "https://hooks.example.com/x")
        monkeypatch.setattr(webhook, "_do_post", lambda url, payload: sent.append((url, payload)))
        assert asyncio.run(webhook.trigger_urgent_ticket_webhook(_ticket(TicketPriority.HIGH))) is False
        assert asyncio.run(webhook.trigger_urgent_ticket_webhook(_ticket())) is True
        assert sent[0][0] == "https://hooks.example.com/x"

    def test_failure_is_swallowed(self, monkeypatch):
        def boom(url, payload):
            raise OSError("connection refused")

        monkeypatch.setattr(webhook, "WEBHOOK_URL", "https://hooks.example.com/x")
        monkeypatch.setattr(webhook, "_do_post", boom)
        assert asyncio.run(webhook.trigger_urgent_ticket_webhook(_ticket())) is False
