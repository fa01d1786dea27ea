"""
Ticket lifecycle: status side effects, edits, comments, rating, delete cascade.
Run: pytest tests/test_lifecycle.py -v
"""

import re
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from helpdesk import activity
from helpdesk.errors import InvalidStatusError, ValidationError
from helpdesk.models import TicketPriority, TicketStatus
from helpdesk.services.lifecycle import TicketLifecycle, parse_status


@pytest.fixture
def escalations():
    return []


@pytest.fixture
def lifecycle(store, escalations):
    return TicketLifecycle(store, on_escalation=lambda ticket, reason: escalations.append((ticket.ticket_id, reason)))


@pytest.fixture
def ticket(lifecycle, people):
    return lifecycle.create_ticket(
        subject="Email down",
        description="Cannot log in to webmail.",
        priority=TicketPriority.HIGH,
        customer_id=people["customer"].id,
        assignee_id=people["agent"].id,
        actor_id=people["admin"].id,
    )


def _notifications(store, user_id, type=None):
    found = store.notifications.find(user_id=user_id)
    return [n for n in found if type is None or n.type == type]


class TestParseStatus:
    def test_canonical_and_legacy_spelling(self):
        assert parse_status("in-progress") == TicketStatus.IN_PROGRESS
        assert parse_status("in_progress") == TicketStatus.IN_PROGRESS
        assert parse_status("RESOLVED") == TicketStatus.RESOLVED

    def test_unknown(self):
        with pytest.raises(InvalidStatusError):
            parse_status("pending")
        with pytest.raises(InvalidStatusError):
            parse_status(None)


class TestCreate:
    def test_defaults(self, lifecycle):
        t = lifecycle.create_ticket(subject="  Question ", description="How do I export?")
        assert re.match(r"^TICK-\d{4}-\d{4,}$", t.ticket_id)
        assert t.status == TicketStatus.OPEN
        assert t.priority == TicketPriority.MEDIUM
        assert t.category == "General"
        assert t.subject == "Question"
        assert t.first_response_at is None and t.resolved_at is None

    def test_unknown_user_rejected(self, lifecycle, store):
        with pytest.raises(ValidationError):
            lifecycle.create_ticket(subject="s", description="d", assignee_id=404)
        assert store.tickets.find() == []

    def test_invalid_priority(self, lifecycle):
        with pytest.raises(ValidationError):
            lifecycle.create_ticket(subject="s", description="d", priority="critical")

    def test_assignee_notified(self, ticket, store, people):
        notes = _notifications(store, people["agent"].id, "assignment")
        assert len(notes) == 1
        assert ticket.ticket_id in notes[0].message
        assert notes[0].ticket_id == ticket.ticket_id
        assert _notifications(store, people["admin"].id) == []

    def test_self_assignment_not_notified(self, lifecycle, store, people):
        agent_id = people["agent"].id
        lifecycle.create_ticket(subject="s", description="d", assignee_id=agent_id, actor_id=agent_id)
        assert _notifications(store, agent_id) == []

    def test_urgent_escalates(self, lifecycle, escalations, people):
        t = lifecycle.create_ticket(
            subject="DB down", description="Checkout broken", priority="urgent", assignee_id=people["agent"].id
        )
        assert escalations == [(t.ticket_id, "created")]

    def test_failing_escalation_hook_does_not_block(self, store, people):
        def boom(ticket, reason):
            raise RuntimeError("webhook down")

        lc = TicketLifecycle(store, on_escalation=boom)
        t = lc.create_ticket(subject="s", description="d", priority=TicketPriority.URGENT)
        assert store.tickets.get(t.ticket_id) is not None

    def test_activity_recorded(self, ticket):
        types = [e["type"] for e in activity.get_recent()]
        assert "ticket_created" in types


class TestStatusChange:
    def test_in_progress_sets_first_response_once(self, lifecycle, ticket):
        started = lifecycle.change_status(ticket.ticket_id, "in-progress")
        assert started.status == TicketStatus.IN_PROGRESS
        assert started.first_response_at is not None
        lifecycle.change_status(ticket.ticket_id, "open")
        again = lifecycle.change_status(ticket.ticket_id, "in_progress")
        assert again.first_response_at == started.first_response_at

    def test_resolved_sets_resolved_at(self, lifecycle, ticket):
        resolved = lifecycle.change_status(ticket.ticket_id, TicketStatus.RESOLVED)
        assert resolved.resolved_at is not None
        assert resolved.first_response_at is None

    def test_backwards_moves_allowed(self, lifecycle, ticket):
        lifecycle.change_status(ticket.ticket_id, "closed")
        assert lifecycle.change_status(ticket.ticket_id, "open").status == TicketStatus.OPEN

    def test_invalid_status_leaves_ticket_unchanged(self, lifecycle, ticket, store):
        with pytest.raises(InvalidStatusError):
            lifecycle.change_status(ticket.ticket_id, "bogus")
        assert store.tickets.get(ticket.ticket_id) == ticket

    def test_unknown_ticket(self, lifecycle):
        assert lifecycle.change_status("TICK-1999-0001", "closed") is None

    def test_notifies_everyone_but_actor(self, lifecycle, ticket, store, people):
        lifecycle.change_status(ticket.ticket_id, "resolved", actor_id=people["agent"].id)
        customer_notes = _notifications(store, people["customer"].id, "status")
        assert len(customer_notes) == 1
        assert "Open" in customer_notes[0].message and "Resolved" in customer_notes[0].message
        assert _notifications(store, people["agent"].id, "status") == []

    def test_same_status_is_quiet(self, lifecycle, ticket, store, people):
        lifecycle.change_status(ticket.ticket_id, "open", actor_id=people["admin"].id)
        assert _notifications(store, people["customer"].id, "status") == []


class TestUpdateFields:
    def test_partial_edit(self, lifecycle, ticket):
        updated = lifecycle.update_fields(ticket.ticket_id, {"subject": "Webmail down", "category": "Email"})
        assert updated.subject == "Webmail down"
        assert updated.category == "Email"
        assert updated.description == ticket.description

    def test_status_goes_through_lifecycle(self, lifecycle, ticket):
        updated = lifecycle.update_fields(ticket.ticket_id, {"status": "in-progress", "category": "Email"})
        assert updated.status == TicketStatus.IN_PROGRESS
        assert updated.first_response_at is not None

    def test_bad_status_changes_nothing(self, lifecycle, ticket, store):
        with pytest.raises(InvalidStatusError):
            lifecycle.update_fields(ticket.ticket_id, {"status": "bogus", "subject": "changed"})
        assert store.tickets.get(ticket.ticket_id).subject == ticket.subject

    def test_unknown_field(self, lifecycle, ticket):
        with pytest.raises(ValidationError):
            lifecycle.update_fields(ticket.ticket_id, {"resolved_at": None})

    def test_empty_subject(self, lifecycle, ticket):
        with pytest.raises(ValidationError):
            lifecycle.update_fields(ticket.ticket_id, {"subject": "   "})

    def test_missing_ticket(self, lifecycle):
        assert lifecycle.update_fields("TICK-1999-0001", {"subject": "x"}) is None

    def test_raise_to_urgent_escalates(self, lifecycle, ticket, escalations, store, people):
        lifecycle.update_fields(ticket.ticket_id, {"priority": "urgent"}, actor_id=people["admin"].id)
        assert escalations == [(ticket.ticket_id, "escalated")]
        assert len(_notifications(store, people["agent"].id, "escalation")) == 1

    def test_reassignment_notifies_new_assignee(self, lifecycle, ticket, store, people):
        lifecycle.update_fields(ticket.ticket_id, {"assignee_id": people["customer"].id}, actor_id=people["admin"].id)
        assert len(_notifications(store, people["customer"].id, "assignment")) == 1


class TestComments:
    def test_oldest_first_with_authors(self, lifecycle, ticket, people):
        lifecycle.add_comment(ticket.ticket_id, people["customer"].id, "first")
        lifecycle.add_comment(ticket.ticket_id, people["agent"].id, "second")
        lifecycle.add_comment(ticket.ticket_id, people["agent"].id, "note", is_internal=True)
        comments = lifecycle.list_comments(ticket.ticket_id)
        assert [c.content for c in comments] == ["first", "second", "note"]
        assert comments[0].author == "Jane Smith"
        public = lifecycle.list_comments(ticket.ticket_id, include_internal=False)
        assert [c.content for c in public] == ["first", "second"]

    def test_missing_ticket(self, lifecycle, people):
        assert lifecycle.add_comment("TICK-1999-0001", people["agent"].id, "hi") is None
        assert lifecycle.list_comments("TICK-1999-0001") is None

    def test_empty_content(self, lifecycle, ticket, people):
        with pytest.raises(ValidationError):
            lifecycle.add_comment(ticket.ticket_id, people["agent"].id, "  ")

    def test_customer_comment_notifies_assignee(self, lifecycle, ticket, store, people):
        lifecycle.add_comment(ticket.ticket_id, people["customer"].id, "any news?")
        assert len(_notifications(store, people["agent"].id, "ticket")) == 1
        assert _notifications(store, people["customer"].id, "ticket") == []

    def test_delete_comment_checks_ticket(self, lifecycle, ticket, people):
        comment = lifecycle.add_comment(ticket.ticket_id, people["agent"].id, "oops")
        assert lifecycle.delete_comment("TICK-1999-0001", comment.id) is False
        assert lifecycle.delete_comment(ticket.ticket_id, comment.id) is True
        assert lifecycle.list_comments(ticket.ticket_id) == []


class TestRating:
    def test_rate_and_replace(self, lifecycle, ticket, people):
        customer_id = people["customer"].id
        first = lifecycle.rate_ticket(ticket.ticket_id, customer_id, 3, "ok")
        second = lifecycle.rate_ticket(ticket.ticket_id, customer_id, 5, "Great")
        assert second.id == first.id
        assert lifecycle.get_rating(ticket.ticket_id).rating == 5
        details = lifecycle.get_ticket_details(ticket.ticket_id)
        assert details.rating.rating == 5
        assert details.rating.feedback == "Great"
        assert details.assignee == "John Smith"

    @pytest.mark.parametrize("store", ["memory", "sql-file"], indirect=True)
    def test_concurrent_ratings_keep_one_row(self, lifecycle, ticket, store, people):
        customer_id = people["customer"].id
        barrier = threading.Barrier(8)

        def rate(stars):
            barrier.wait()
            return lifecycle.rate_ticket(ticket.ticket_id, customer_id, stars)

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(rate, [i % 5 + 1 for i in range(8)]))
        assert len({r.id for r in results}) == 1
        assert len(store.ticket_ratings.find(ticket_id=ticket.ticket_id)) == 1

    def test_out_of_range(self, lifecycle, ticket, people):
        with pytest.raises(ValidationError):
            lifecycle.rate_ticket(ticket.ticket_id, people["customer"].id, 6)

    def test_missing_ticket(self, lifecycle, people):
        assert lifecycle.rate_ticket("TICK-1999-0001", people["customer"].id, 4) is None

    def test_assignee_gets_feedback(self, lifecycle, ticket, store, people):
        lifecycle.rate_ticket(ticket.ticket_id, people["customer"].id, 4)
        notes = _notifications(store, people["agent"].id, "feedback")
        assert len(notes) == 1 and "4 stars" in notes[0].message


class TestDelete:
    def test_cascades_to_comments_and_rating(self, lifecycle, ticket, store, people):
        lifecycle.add_comment(ticket.ticket_id, people["agent"].id, "working on it")
        lifecycle.rate_ticket(ticket.ticket_id, people["customer"].id, 4)
        assert lifecycle.delete_ticket(ticket.ticket_id) is True
        assert lifecycle.get_ticket(ticket.ticket_id) is None
        assert store.comments.find(ticket_id=ticket.ticket_id) == []
        assert store.ticket_ratings.find(ticket_id=ticket.ticket_id) == []
        assert lifecycle.delete_ticket(ticket.ticket_id) is False


class TestListing:
    def test_filters_and_assignee_names(self, lifecycle, ticket, people):
        other = lifecycle.create_ticket(subject="Other", description="d", priority="low")
        assert [t.ticket_id for t in lifecycle.list_tickets()] == [other.ticket_id, ticket.ticket_id]
        high = lifecycle.list_tickets(priority="high")
        assert [t.ticket_id for t in high] == [ticket.ticket_id]
        assert high[0].assignee == "John Smith"
        assert lifecycle.list_tickets(assignee_id=people["agent"].id)[0].ticket_id == ticket.ticket_id
        assert lifecycle.list_tickets(status="closed") == []

    def test_bad_filter(self, lifecycle):
        with pytest.raises(ValidationError):
            lifecycle.list_tickets(status="pending")
