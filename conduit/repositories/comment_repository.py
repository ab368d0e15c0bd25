"""Comment persistence backed by SQLAlchemy async sessions."""
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit import models
from conduit.database import as_utc
from conduit.domain.comment import Comment
from conduit.exceptions import NotFound


class CommentRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @staticmethod
    def _to_entity(row: models.Comment) -> Comment:
        return Comment.reconstitute(
            id=row.id,
            article_id=row.article_id,
            author_id=row.author_id,
            body=row.body,
            created_at=as_utc(row.created_at),
            updated_at=as_utc(row.updated_at),
        )

    async def save(self, comment: Comment) -> Comment:
        if comment.id is None:
            row = models.Comment(
                article_id=comment.article_id,
                author_id=comment.author_id,
                body=comment.body,
                created_at=comment.created_at,
                updated_at=comment.updated_at,
            )
            self._session.add(row)
            await self._session.flush()
            return comment.with_id(row.id)

        row = await self._session.get(models.Comment, comment.id)
        if row is None:
            raise NotFound("Comment not found")
        row.body = comment.body
        row.updated_at = comment.updated_at
        await self._session.flush()
        return comment

    async def find_by_id(self, comment_id: int) -> Optional[Comment]:
        row = await self._session.get(models.Comment, comment_id)
        return self._to_entity(row) if row else None

    async def find_by_article_id(self, article_id: int) -> list[Comment]:
        result = await self._session.execute(
            select(models.Comment)
            .where(models.Comment.article_id == article_id)
            .order_by(models.Comment.created_at.desc(), models.Comment.id.desc())
        )
        return [self._to_entity(row) for row in result.scalars().all()]

    async def delete_by_id(self, comment_id: int) -> None:
        await self._session.execute(delete(models.Comment).where(models.Comment.id == comment_id))

    async def delete_by_article_id(self, article_id: int) -> int:
        """Delete every comment on *article_id* and return how many went."""
        result = await self._session.execute(
            delete(models.Comment).where(models.Comment.article_id == article_id)
        )
        return result.rowcount
