"""
Knowledge base: listing, views and the per-user rating aggregate.
Run: pytest tests/test_knowledge.py -v
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from helpdesk.errors import ValidationError
from helpdesk.services.knowledge import KnowledgeBase, average_rating


@pytest.fixture
def kb(store):
    return KnowledgeBase(store)


@pytest.fixture
def article(kb, people):
    return kb.create_article(
        title="Reset your password",
        content="Open the login page and click Forgot Password.",
        category="Account Management",
        author_id=people["admin"].id,
        excerpt="Step-by-step reset guide",
        is_published=True,
        tags=["password", "account"],
    )


class TestRatingAggregate:
    def test_never_rated_averages_zero(self, kb, article):
        view = kb.get_article(article.id)
        assert view.rating_count == 0
        assert view.average_rating == 0.0
        assert average_rating(article) == 0.0

    def test_rerating_replaces_previous(self, kb, article, people):
        user_id = people["customer"].id
        kb.rate(article.id, user_id, 2)
        view = kb.rate(article.id, user_id, 5)
        assert view.rating_count == 1
        assert view.rating == 5
        assert view.average_rating == 5.0
        assert view.user_rating == 5

    def test_several_users(self, kb, article, people):
        kb.rate(article.id, people["customer"].id, 5)
        kb.rate(article.id, people["agent"].id, 4)
        view = kb.rate(article.id, people["admin"].id, 4)
        assert view.rating_count == 3
        assert view.rating == 13
        assert view.average_rating == 4.3

    def test_user_rating_is_per_user(self, kb, article, people):
        kb.rate(article.id, people["customer"].id, 3)
        assert kb.get_article(article.id, people["customer"].id).user_rating == 3
        assert kb.get_article(article.id, people["agent"].id).user_rating is None

    def test_invalid_rating(self, kb, article, people):
        for bad in (0, 6, True):
            with pytest.raises(ValidationError):
                kb.rate(article.id, people["customer"].id, bad)
        assert kb.get_article(article.id).rating_count == 0

    def test_missing_article(self, kb, people):
        assert kb.rate(404, people["customer"].id, 4) is None


def _at_once(count, call):
    """Run call(i) for i in range(count) on threads released together; re-raises the first failure."""
    barrier = threading.Barrier(count)

    def run(i):
        barrier.wait()
        return call(i)

    with ThreadPoolExecutor(max_workers=count) as pool:
        return [f.result() for f in [pool.submit(run, i) for i in range(count)]]


@pytest.mark.parametrize("store", ["memory", "sql-file"], indirect=True)
class TestConcurrentRating:
    def test_same_user_counts_once(self, kb, article, store, people):
        user_id = people["customer"].id
        _at_once(8, lambda i: kb.rate(article.id, user_id, 4))
        view = kb.get_article(article.id, user_id)
        assert view.rating_count == 1
        assert view.rating == 4
        assert view.user_rating == 4
        assert len(store.article_ratings.find(article_id=article.id)) == 1

    def test_mixed_rerates_keep_sum_consistent(self, kb, article, store, people):
        user_id = people["customer"].id
        _at_once(8, lambda i: kb.rate(article.id, user_id, i % 5 + 1))
        view = kb.get_article(article.id, user_id)
        assert view.rating_count == 1
        assert view.rating == view.user_rating


class TestArticles:
    def test_author_name_and_tags(self, kb, article):
        view = kb.to_view(article)
        assert view.author == "Administrator"
        assert view.tags == ["account", "password"]

    def test_unknown_author(self, kb):
        with pytest.raises(ValidationError):
            kb.create_article(title="t", content="c", category="x", author_id=404)

    def test_listing_hides_drafts(self, kb, article):
        draft = kb.create_article(title="Draft", content="wip", category="Misc", author_id=None)
        assert [a.id for a in kb.list_articles()] == [article.id]
        assert {a.id for a in kb.list_articles(include_unpublished=True)} == {article.id, draft.id}
        kb.set_published(draft.id, True)
        assert [a.id for a in kb.list_articles()] == [draft.id, article.id]

    def test_search_and_category(self, kb, article):
        assert [a.id for a in kb.list_articles(search="FORGOT")] == [article.id]
        assert [a.id for a in kb.list_articles(search="account")] == [article.id]
        assert kb.list_articles(search="printer") == []
        assert kb.list_articles(category="Security") == []
        assert len(kb.list_articles(category="Account Management")) == 1

    def test_views(self, kb, article):
        kb.record_view(article.id)
        assert kb.record_view(article.id).views == 2
        assert kb.record_view(404) is None

    def test_update(self, kb, article):
        updated = kb.update_article(article.id, {"title": "Password reset", "tags": ["b", "a", "a"]})
        assert updated.title == "Password reset"
        assert updated.tags == ["a", "b"]
        assert updated.content == article.content

    def test_counters_not_editable(self, kb, article):
        with pytest.raises(ValidationError):
            kb.update_article(article.id, {"views": 100})

    def test_delete_removes_ratings(self, kb, article, store, people):
        kb.rate(article.id, people["customer"].id, 4)
        assert kb.delete_article(article.id) is True
        assert store.article_ratings.find(article_id=article.id) == []
        assert kb.get_article(article.id) is None
        assert kb.delete_article(article.id) is False
