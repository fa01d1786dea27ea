"""Pick the store backend from configuration."""

import logging
from typing import Optional

from helpdesk.config import DATABASE_URL, STORE_BACKEND
from helpdesk.store.base import Store
from helpdesk.store.memory import MemoryStore

logger = logging.getLogger(__name__)


def create_store(backend: Optional[str] = None, url: Optional[str] = None) -> Store:
    """memory -> MemoryStore, sql -> SqlStore(url). Unknown backend raises ValueError."""
    backend = (backend or STORE_BACKEND).lower()
    if backend == "memory":
        logger.info("Using in-memory store.")
        return MemoryStore()
    if backend == "sql":
        from helpdesk.store.sql import SqlStore

        return SqlStore(url or DATABASE_URL)
    raise ValueError(f"Unknown STORE_BACKEND '{backend}' (use memory or sql)")
