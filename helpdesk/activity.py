"""
In-memory activity log for helpdesk events (ticket created, status changed, commented, rated...).
When REDIS_URL is set, events are also published on a pub/sub channel and events published by
other API processes are appended here by a background subscriber thread.
"""

import json
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

from helpdesk.config import ACTIVITY_MAX_EVENTS, REDIS_URL

logger = logging.getLogger(__name__)

ACTIVITY_CHANNEL = "helpdesk_activity"

# Tags our own messages so the subscriber does not append them twice.
_ORIGIN = uuid4().hex


@dataclass
class ActivityEvent:
    """A single domain event."""

    ts: float = field(default_factory=time.time)
    type: str = ""
    data: dict[str, Any] = field(default_factory=dict)


_events: list[ActivityEvent] = []
_lock = threading.Lock()
_redis_client = None


def _redis():
    import redis
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(REDIS_URL, decode_responses=True)
    return _redis_client


def _append(event_type: str, data: dict[str, Any]) -> None:
    with _lock:
        _events.append(ActivityEvent(type=event_type, data=data))
        while len(_events) > ACTIVITY_MAX_EVENTS:
            _events.pop(0)


def emit(event_type: str, data: dict[str, Any] | None = None) -> None:
    """Record an event locally and publish it to Redis if configured."""
    data = data or {}
    _append(event_type, data)
    if REDIS_URL:
        publish_event(event_type, data)


def get_recent(limit: int = 100) -> list[dict]:
    """Return the most recent events (newest last). Each item is dict with ts, type, data."""
    with _lock:
        out = [
            {"ts": e.ts, "type": e.type, "data": e.data}
            for e in _events[-limit:]
        ]
    return out


def clear() -> None:
    """Drop all recorded events (tests)."""
    with _lock:
        _events.clear()


def publish_event(event_type: str, data: dict[str, Any]) -> None:
    """Publish an event to Redis. Failures are logged, never raised."""
    try:
        payload = json.dumps({"type": event_type, "data": data, "origin": _ORIGIN}, default=str)
        _redis().publish(ACTIVITY_CHANNEL, payload)
    except Exception as e:
        logger.warning("Activity publish failed: %s", e)


def _redis_subscriber_thread() -> None:
    """Run in a daemon thread: subscribe to the channel and append events from other processes."""
    try:
        import redis
        r = redis.from_url(REDIS_URL, decode_responses=True)
        pubsub = r.pubsub()
        pubsub.subscribe(ACTIVITY_CHANNEL)
        logger.info("Activity subscriber listening on channel %s", ACTIVITY_CHANNEL)
        for message in pubsub.listen():
            if message["type"] != "message":
                continue
            try:
                payload = json.loads(message["data"])
                if payload.get("origin") == _ORIGIN:
                    continue
                _append(payload.get("type", "unknown"), payload.get("data", {}))
            except (ValueError, AttributeError) as e:
                logger.warning("Activity message parse error: %s", e)
    except Exception as e:
        logger.warning("Activity Redis subscriber failed: %s", e)


def start_redis_subscriber() -> bool:
    """Start the background subscriber. Returns False (and does nothing) without REDIS_URL."""
    if not REDIS_URL:
        return False
    t = threading.Thread(target=_redis_subscriber_thread, daemon=True)
    t.start()
    return True
