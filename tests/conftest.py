"""Shared fixtures: a fresh store per test (in-memory and SQLite) and a few users."""

import pytest

from helpdesk import activity
from helpdesk.models import Role
from helpdesk.store.memory import MemoryStore
from helpdesk.store.sql import SqlStore


@pytest.fixture(params=["memory", "sql"])
def store(request, tmp_path):
    """
    memory or in-memory SQLite. Threaded tests ask for "sql-file" (indirect parametrize):
    a file database, so each thread gets its own connection.
    """
    if request.param == "memory":
        s = MemoryStore()
    elif request.param == "sql-file":
        s = SqlStore(f"sqlite:///{tmp_path / 'helpdesk.db'}")
    else:
        s = SqlStore("sqlite://")
    yield s
    s.close()


@pytest.fixture(autouse=True)
def reset_activity():
    activity.clear()
    yield
    activity.clear()


@pytest.fixture
def people(store):
    """admin (id 1), one agent and one customer."""
    admin = store.users.create(
        {"username": "admin", "password": "pw", "email": "admin@helpdesk.com",
         "full_name": "Administrator", "role": Role.ADMINISTRATOR}
    )
    agent = store.users.create(
        {"username": "agent1", "password": "pw", "email": "agent1@helpdesk.com",
         "full_name": "John Smith", "role": Role.AGENT}
    )
    customer = store.users.create(
        {"username": "customer1", "password": "pw", "email": "Jane@Example.com",
         "full_name": "Jane Smith", "role": Role.CUSTOMER}
    )
    return {"admin": admin, "agent": agent, "customer": customer}
