"""Knowledge base endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from helpdesk.deps import current_user_id, get_knowledge
from helpdesk.models import ArticleCreate, ArticlePublish, ArticleRate, ArticleUpdate, ArticleView
from helpdesk.services.knowledge import KnowledgeBase

router = APIRouter(prefix="/api/knowledge-articles", tags=["knowledge"])


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail="Article not found")


@router.get("", response_model=list[ArticleView])
def list_articles(
    include_unpublished: bool = Query(False, alias="includeUnpublished"),
    category: Optional[str] = None,
    search: Optional[str] = None,
    user_id: int = Depends(current_user_id),
    kb: KnowledgeBase = Depends(get_knowledge),
) -> list[ArticleView]:
    """Published articles (most recently updated first), with the caller's own rating."""
    return kb.list_articles(
        user_id=user_id,
        include_unpublished=include_unpublished,
        category=category,
        search=search,
    )


@router.post("", status_code=201, response_model=ArticleView)
def create_article(
    payload: ArticleCreate,
    user_id: int = Depends(current_user_id),
    kb: KnowledgeBase = Depends(get_knowledge),
) -> ArticleView:
    article = kb.create_article(
        title=payload.title,
        content=payload.content,
        category=payload.category,
        author_id=payload.author_id if payload.author_id is not None else user_id,
        excerpt=payload.excerpt,
        is_published=payload.is_published,
        tags=payload.tags,
    )
    return kb.to_view(article, user_id)


@router.get("/{article_id}", response_model=ArticleView)
def get_article(
    article_id: int,
    user_id: int = Depends(current_user_id),
    kb: KnowledgeBase = Depends(get_knowledge),
) -> ArticleView:
    article = kb.get_article(article_id, user_id)
    if article is None:
        raise _not_found()
    return article


@router.api_route("/{article_id}", methods=["PUT", "PATCH"], response_model=ArticleView)
def update_article(
    article_id: int,
    payload: ArticleUpdate,
    user_id: int = Depends(current_user_id),
    kb: KnowledgeBase = Depends(get_knowledge),
) -> ArticleView:
    """Partial edit; only the fields present in the body change."""
    article = kb.update_article(article_id, payload.model_dump(exclude_unset=True))
    if article is None:
        raise _not_found()
    return kb.to_view(article, user_id)


@router.patch("/{article_id}/publish", response_model=ArticleView)
def publish_article(
    article_id: int,
    payload: ArticlePublish,
    user_id: int = Depends(current_user_id),
    kb: KnowledgeBase = Depends(get_knowledge),
) -> ArticleView:
    article = kb.set_published(article_id, payload.is_published)
    if article is None:
        raise _not_found()
    return kb.to_view(article, user_id)


@router.delete("/{article_id}")
def delete_article(article_id: int, kb: KnowledgeBase = Depends(get_knowledge)) -> dict:
    if not kb.delete_article(article_id):
        raise _not_found()
    return {"success": True}


@router.post("/{article_id}/rate", response_model=ArticleView)
def rate_article(
    article_id: int,
    payload: ArticleRate,
    user_id: int = Depends(current_user_id),
    kb: KnowledgeBase = Depends(get_knowledge),
) -> ArticleView:
    """One rating per user: rating again replaces the caller's previous rating."""
    article = kb.rate(article_id, user_id, payload.rating)
    if article is None:
        raise _not_found()
    return article


@router.post("/{article_id}/views")
def record_view(article_id: int, kb: KnowledgeBase = Depends(get_knowledge)) -> dict:
    article = kb.record_view(article_id)
    if article is None:
        raise _not_found()
    return {"success": True, "views": article.views}
