"""
Article command service: create, update, delete, favorite.

Design notes
------------
- Each function is one command. It loads the aggregate through
  ``ArticleRepository``, lets the aggregate enforce its own rules, and
  writes back through the repository. Everything is flushed into the
  caller's session, so the ``get_db`` dependency commits a command's
  effects together or rolls them all back.
- Slug uniqueness follows ``settings.SLUG_POLICY``. Under
  ``deterministic`` the store is checked for ``base``, ``base-2``...;
  a concurrent writer can still win the race, in which case the unique
  index fires on flush and the ``IntegrityError`` (whichever constraint
  fired, logged with the driver message) is re-raised as
  ``Conflict`` so the caller may retry.
- Nothing is retained between calls. Only favorite/unfavorite are safe
  to repeat blindly.
"""
import logging
from typing import Iterable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.cache import TAGS_KEY, cache
from conduit.config import settings
from conduit.domain.article import Article
from conduit.domain.slug import random_token, resolve_unique_slug
from conduit.exceptions import Conflict, Forbidden, NotFound
from conduit.repositories.article_repository import ArticleRepository
from conduit.repositories.comment_repository import CommentRepository

logger = logging.getLogger(__name__)

CONFLICT_MESSAGE = "Could not save the article because of a concurrent write, please retry"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _deterministic() -> bool:
    return settings.SLUG_POLICY == "deterministic"


async def _load(repo: ArticleRepository, slug: str) -> Article:
    article = await repo.find_by_slug(slug)
    if article is None:
        raise NotFound("Article not found")
    return article


async def _unique_slug(repo: ArticleRepository, article: Article) -> Article:
    """Resolve *article*'s candidate slug against every other stored article."""

    async def is_taken(candidate: str) -> bool:
        return await repo.slug_exists(candidate, exclude_id=article.id)

    return article.with_slug(await resolve_unique_slug(article.slug, is_taken))


async def _save(repo: ArticleRepository, article: Article) -> Article:
    try:
        return await repo.save(article)
    except IntegrityError as exc:
        logger.warning("Constraint violation while saving article slug=%r: %s", article.slug, exc.orig)
        raise Conflict(CONFLICT_MESSAGE) from exc


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

async def create_article(
    db: AsyncSession,
    user_id: int,
    title: str,
    description: str,
    body: str,
    tags: Iterable[str] = (),
) -> Article:
    """Validate, assign a unique slug, and persist a new article."""
    repo = ArticleRepository(db)

    if _deterministic():
        article = Article.create(title, description, body, user_id, tags)
        article = await _unique_slug(repo, article)
    else:
        article = Article.create(title, description, body, user_id, tags, token_source=random_token)

    saved = await _save(repo, article)
    await cache.invalidate_tags()
    logger.info("Article created: id=%d slug=%r author=%d", saved.id, saved.slug, user_id)
    return saved


async def update_article(
    db: AsyncSession,
    user_id: int,
    slug: str,
    title: Optional[str] = None,
    description: Optional[str] = None,
    body: Optional[str] = None,
    tags: Optional[Iterable[str]] = None,
) -> Article:
    """
    Apply the author's edits to the article at *slug*.

    Raises ``NotFound`` for an unknown slug and ``Forbidden`` when
    *user_id* is not the author. Under the deterministic policy a changed
    title moves the article to a new unique slug.
    """
    repo = ArticleRepository(db)
    current = await _load(repo, slug)

    updated = current.update(
        user_id,
        title,
        description,
        body,
        tags=tags,
        regenerate_slug=_deterministic(),
    )
    if updated.slug != current.slug:
        updated = await _unique_slug(repo, updated)

    saved = await _save(repo, updated)
    if tags is not None:
        await cache.invalidate_tags()
    logger.info("Article updated: id=%d slug=%r", saved.id, saved.slug)
    return saved


async def delete_article(db: AsyncSession, user_id: int, slug: str) -> None:
    """Delete the article at *slug* together with its comments."""
    repo = ArticleRepository(db)
    article = await _load(repo, slug)

    if not article.can_be_deleted_by(user_id):
        raise Forbidden("You can only delete your own articles")

    removed = await CommentRepository(db).delete_by_article_id(article.id)
    await repo.delete_by_id(article.id)
    logger.info("Article deleted: id=%d slug=%r (%d comments)", article.id, slug, removed)


async def favorite_article(db: AsyncSession, user_id: int, slug: str) -> Article:
    """Mark the article as a favorite of *user_id*. Repeating is harmless."""
    repo = ArticleRepository(db)
    article = await _load(repo, slug)
    await repo.favorite(article.id, user_id)
    return article


async def unfavorite_article(db: AsyncSession, user_id: int, slug: str) -> Article:
    repo = ArticleRepository(db)
    article = await _load(repo, slug)
    await repo.unfavorite(article.id, user_id)
    return article


async def get_all_tags(db: AsyncSession) -> list[str]:
    """Return every registered tag name in lexicographic order."""
    cached = await cache.get(TAGS_KEY)
    if cached is not None:
        return cached

    tags = await ArticleRepository(db).get_all_tags()
    await cache.set(TAGS_KEY, tags, ttl=settings.CACHE_TTL_TAGS)
    return tags
