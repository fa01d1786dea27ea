"""Configuration for the helpdesk API (environment variables)."""

import os

# memory | sql
STORE_BACKEND: str = os.environ.get("STORE_BACKEND", "memory")
DATABASE_URL: str = os.environ.get("DATABASE_URL", "sqlite:///./helpdesk.db")
# Optional: if set, activity events are mirrored to a Redis pub/sub channel.
REDIS_URL: str = os.environ.get("REDIS_URL", "")
# Optional: Slack or Discord webhook URL; if set, urgent tickets trigger a POST.
WEBHOOK_URL: str = os.environ.get("WEBHOOK_URL", "")
WEBHOOK_TIMEOUT_SECONDS: int = int(os.environ.get("WEBHOOK_TIMEOUT_SECONDS", "5"))

CORS_ORIGINS: list[str] = [
    o.strip().rstrip("/")
    for o in os.environ.get("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
    if o.strip()
]

LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

# --- Demo principal / seed data ---
# No real sessions: requests without X-User-Id act as this user.
DEMO_USER_ID: int = int(os.environ.get("DEMO_USER_ID", "1"))
SEED_DEMO_DATA: bool = os.environ.get("SEED_DEMO_DATA", "true").lower() in ("1", "true", "yes")

# --- Ticket codes: <prefix>-<year>-<seq> ---
TICKET_CODE_PREFIX: str = os.environ.get("TICKET_CODE_PREFIX", "TICK")

# --- Demo auth ---
DEMO_ADMIN_EMAIL: str = os.environ.get("DEMO_ADMIN_EMAIL", "admin@email.com")
DEMO_ADMIN_PASSWORD: str = os.environ.get("DEMO_ADMIN_PASSWORD", "admin")
DEMO_VERIFICATION_CODE: str = os.environ.get("DEMO_VERIFICATION_CODE", "123456")

# --- Activity feed ---
ACTIVITY_MAX_EVENTS: int = int(os.environ.get("ACTIVITY_MAX_EVENTS", "200"))

# --- Server (python -m helpdesk) ---
HOST: str = os.environ.get("HOST", "127.0.0.1")
PORT: int = int(os.environ.get("PORT", "8000"))
