"""
Article persistence port backed by SQLAlchemy async sessions.

Maps ``models.Article`` rows to and from the ``domain.Article`` aggregate.
Tag memberships and favorites live in Core association tables and are
written with Core statements; article rows go through the ORM unit of
work. Nothing here commits: the caller's session owns the transaction.
"""
import logging
from typing import Iterable, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit import models
from conduit.database import as_utc, insert_ignoring_conflicts
from conduit.domain.article import Article
from conduit.exceptions import NotFound

logger = logging.getLogger(__name__)


class ArticleRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _to_entity(row: models.Article, tags: Iterable[str]) -> Article:
        return Article.reconstitute(
            id=row.id,
            slug=row.slug,
            title=row.title,
            description=row.description,
            body=row.body,
            author_id=row.author_id,
            tags=tags,
            created_at=as_utc(row.created_at),
            updated_at=as_utc(row.updated_at),
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def save(self, article: Article) -> Article:
        """Insert *article* when it has no id, otherwise update it in place."""
        if article.id is None:
            return await self._insert(article)
        return await self._update(article)

    async def _insert(self, article: Article) -> Article:
        row = models.Article(
            slug=article.slug,
            title=article.title,
            description=article.description,
            body=article.body,
            author_id=article.author_id,
            created_at=article.created_at,
            updated_at=article.updated_at,
        )
        self._session.add(row)
        await self._session.flush()

        await self._save_tags(row.id, article.tags)
        logger.debug("Inserted article id=%d slug=%r", row.id, row.slug)
        return article.with_id(row.id)

    async def _update(self, article: Article) -> Article:
        row = await self._session.get(models.Article, article.id)
        if row is None:
            raise NotFound("Article not found")

        row.slug = article.slug
        row.title = article.title
        row.description = article.description
        row.body = article.body
        row.updated_at = article.updated_at
        await self._session.flush()

        # Replace the whole membership set rather than diffing it.
        await self._session.execute(
            delete(models.article_tags).where(models.article_tags.c.article_id == article.id)
        )
        await self._save_tags(article.id, article.tags)
        logger.debug("Updated article id=%d slug=%r", article.id, article.slug)
        return article

    async def _tag_id(self, name: str) -> int:
        """Return the registry id for *name*, inserting the tag on first use."""
        lookup = select(models.Tag.id).where(models.Tag.name == name)
        tag_id = (await self._session.execute(lookup)).scalar_one_or_none()
        if tag_id is None:
            await insert_ignoring_conflicts(self._session, models.Tag.__table__, name=name)
            tag_id = (await self._session.execute(lookup)).scalar_one()
        return tag_id

    async def _save_tags(self, article_id: int, tags: Iterable[str]) -> None:
        for name in sorted(tags):
            await insert_ignoring_conflicts(
                self._session,
                models.article_tags,
                article_id=article_id,
                tag_id=await self._tag_id(name),
            )

    async def delete_by_id(self, article_id: int) -> None:
        """
        Remove the article with its tag memberships and favorites.

        Comments are left to ``CommentRepository.delete_by_article_id``.
        """
        await self._session.execute(
            delete(models.article_tags).where(models.article_tags.c.article_id == article_id)
        )
        await self._session.execute(
            delete(models.favorites).where(models.favorites.c.article_id == article_id)
        )
        await self._session.execute(delete(models.Article).where(models.Article.id == article_id))
        logger.debug("Deleted article id=%d", article_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _load_tags(self, article_id: int) -> list[str]:
        result = await self._session.execute(
            select(models.Tag.name)
            .join(models.article_tags, models.article_tags.c.tag_id == models.Tag.id)
            .where(models.article_tags.c.article_id == article_id)
        )
        return list(result.scalars().all())

    async def _find_one(self, condition) -> Optional[Article]:
        result = await self._session.execute(select(models.Article).where(condition))
        row = result.scalar_one_or_none()
        if row is None:
            return None
        return self._to_entity(row, await self._load_tags(row.id))

    async def find_by_id(self, article_id: int) -> Optional[Article]:
        return await self._find_one(models.Article.id == article_id)

    async def find_by_slug(self, slug: str) -> Optional[Article]:
        return await self._find_one(models.Article.slug == slug)

    async def slug_exists(self, slug: str, exclude_id: Optional[int] = None) -> bool:
        q = select(models.Article.id).where(models.Article.slug == slug)
        if exclude_id is not None:
            q = q.where(models.Article.id != exclude_id)
        result = await self._session.execute(q.limit(1))
        return result.first() is not None

    async def get_all_tags(self) -> list[str]:
        result = await self._session.execute(select(models.Tag.name).order_by(models.Tag.name))
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Favorites
    # ------------------------------------------------------------------

    async def is_favorited(self, article_id: int, user_id: int) -> bool:
        result = await self._session.execute(
            select(models.favorites.c.article_id).where(
                models.favorites.c.article_id == article_id,
                models.favorites.c.user_id == user_id,
            )
        )
        return result.first() is not None

    async def favorite(self, article_id: int, user_id: int) -> None:
        """Record the favorite; a no-op when it already exists."""
        await insert_ignoring_conflicts(
            self._session, models.favorites, article_id=article_id, user_id=user_id
        )

    async def unfavorite(self, article_id: int, user_id: int) -> None:
        """Remove the favorite; a no-op when there is none."""
        await self._session.execute(
            delete(models.favorites).where(
                models.favorites.c.article_id == article_id,
                models.favorites.c.user_id == user_id,
            )
        )
