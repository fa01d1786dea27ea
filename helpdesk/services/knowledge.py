"""
Knowledge base: article CRUD, publishing, view counter and per-user ratings.

Ratings are kept as a running sum (article.rating) and count (article.rating_count) so the
average is O(1). Each user has at most one ArticleRating row per article; re-rating corrects
the sum by (new - old) instead of adding again, so the count stays the number of raters.
"""

import logging
from typing import Any, Optional

from helpdesk import activity
from helpdesk.errors import ValidationError
from helpdesk.models import ArticleView, KnowledgeArticle
from helpdesk.store.base import Store

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "content", "excerpt", "category", "is_published", "tags")


def average_rating(article: KnowledgeArticle) -> float:
    """rating / rating_count rounded to one decimal; 0 for an article nobody rated."""
    if article.rating_count <= 0:
        return 0.0
    return round(article.rating / article.rating_count, 1)


def _matches(article: KnowledgeArticle, term: str) -> bool:
    term = term.lower()
    haystack = [article.title, article.excerpt or "", article.content, *article.tags]
    return any(term in text.lower() for text in haystack)


class KnowledgeBase:
    def __init__(self, store: Store):
        self.store = store

    def to_view(self, article: KnowledgeArticle, user_id: Optional[int] = None) -> ArticleView:
        author = self.store.users.get(article.author_id) if article.author_id is not None else None
        return ArticleView(
            **article.model_dump(),
            author=author.full_name if author else None,
            average_rating=average_rating(article),
            user_rating=self.user_rating(article.id, user_id) if user_id is not None else None,
        )

    def list_articles(
        self,
        user_id: Optional[int] = None,
        include_unpublished: bool = False,
        category: Optional[str] = None,
        search: Optional[str] = None,
    ) -> list[ArticleView]:
        """Most recently updated first. Published only unless include_unpublished."""
        filters: dict[str, Any] = {}
        if not include_unpublished:
            filters["is_published"] = True
        if category:
            filters["category"] = category
        articles = self.store.articles.find(order_by="updated_at", **filters)
        if search and search.strip():
            articles = [a for a in articles if _matches(a, search.strip())]
        return [self.to_view(a, user_id) for a in articles]

    def get_article(self, article_id: int, user_id: Optional[int] = None) -> Optional[ArticleView]:
        article = self.store.articles.get(article_id)
        return self.to_view(article, user_id) if article else None

    def create_article(
        self,
        title: str,
        content: str,
        category: str,
        author_id: Optional[int],
        excerpt: Optional[str] = None,
        is_published: bool = False,
        tags: Optional[list[str]] = None,
    ) -> KnowledgeArticle:
        if author_id is not None and self.store.users.get(author_id) is None:
            raise ValidationError(f"authorId: user {author_id} does not exist")
        article = self.store.articles.create(
            {
                "title": title.strip(),
                "content": content,
                "excerpt": excerpt,
                "category": category.strip(),
                "author_id": author_id,
                "views": 0,
                "rating": 0,
                "rating_count": 0,
                "is_published": is_published,
                "tags": sorted(set(tags or [])),
            }
        )
        logger.info("Created article %s (%s).", article.id, article.title)
        activity.emit("article_created", {"article_id": article.id, "is_published": is_published})
        return article

    def update_article(self, article_id: int, partial: dict[str, Any]) -> Optional[KnowledgeArticle]:
        """Edit content fields. Counters (views, rating, ratingCount) are not editable here."""
        unknown = set(partial) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")
        fields = dict(partial)
        if "tags" in fields:
            fields["tags"] = sorted(set(fields["tags"] or []))
        for name in ("title", "content", "category"):
            if name in fields and (fields[name] is None or not str(fields[name]).strip()):
                raise ValidationError(f"{name} cannot be empty")
        if "is_published" in fields and fields["is_published"] is None:
            raise ValidationError("isPublished cannot be null")
        article = self.store.articles.update(article_id, fields)
        if article is not None:
            activity.emit("article_updated", {"article_id": article_id, "fields": sorted(fields)})
        return article

    def set_published(self, article_id: int, is_published: bool) -> Optional[KnowledgeArticle]:
        return self.update_article(article_id, {"is_published": is_published})

    def delete_article(self, article_id: int) -> bool:
        if self.store.articles.get(article_id) is None:
            return False
        self.store.article_ratings.delete_where(article_id=article_id)
        deleted = self.store.articles.delete(article_id)
        if deleted:
            activity.emit("article_deleted", {"article_id": article_id})
        return deleted

    def record_view(self, article_id: int) -> Optional[KnowledgeArticle]:
        return self.store.articles.increment(article_id, views=1)

    def user_rating(self, article_id: int, user_id: int) -> Optional[int]:
        row = self.store.article_ratings.find_one(article_id=article_id, user_id=user_id)
        return row.rating if row else None

    def rate(self, article_id: int, user_id: int, rating: int) -> Optional[ArticleView]:
        """
        Record user_id's rating of the article.
        The rating row is upserted atomically. Re-rating moves the sum by new - old;
        only the insert counts, so concurrent first ratings by one user count once.
        Returns the updated article view, or None if the article does not exist.
        """
        if not isinstance(rating, int) or isinstance(rating, bool) or not 1 <= rating <= 5:
            raise ValidationError("rating must be an integer between 1 and 5")
        if self.store.articles.get(article_id) is None:
            return None
        row, previous = self.store.article_ratings.upsert(
            {"article_id": article_id, "user_id": user_id}, {"rating": rating}
        )
        if previous is not None:
            article = self.store.articles.increment(article_id, rating=row.rating - previous.rating)
        else:
            article = self.store.articles.increment(article_id, rating=rating, rating_count=1)
        if article is None:
            return None
        activity.emit("article_rated", {"article_id": article_id, "user_id": user_id, "rating": rating})
        return self.to_view(article, user_id)
