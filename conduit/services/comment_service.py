"""
Comment service: comments belong to exactly one article.

Comments are created, edited and deleted only by their author. Reads
embed the author's profile with the viewer's ``following`` flag, fetched
in one batched lookup for the whole list.
"""
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit import models
from conduit.domain.comment import Comment
from conduit.exceptions import Forbidden, NotFound
from conduit.repositories.article_repository import ArticleRepository
from conduit.repositories.comment_repository import CommentRepository
from conduit.schemas import CommentView, ProfileView
from conduit.services.profile_service import followed_user_ids

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _article_id(db: AsyncSession, slug: str) -> int:
    article = await ArticleRepository(db).find_by_slug(slug)
    if article is None:
        raise NotFound("Article not found")
    return article.id


async def _comment_on(db: AsyncSession, slug: str, comment_id: int) -> Comment:
    article_id = await _article_id(db, slug)
    comment = await CommentRepository(db).find_by_id(comment_id)
    if comment is None or comment.article_id != article_id:
        raise NotFound("Comment not found")
    return comment


async def _to_views(
    db: AsyncSession,
    comments: list[Comment],
    viewer_id: Optional[int],
) -> list[CommentView]:
    if not comments:
        return []

    author_ids = {c.author_id for c in comments}
    result = await db.execute(select(models.User).where(models.User.id.in_(author_ids)))
    authors = {user.id: user for user in result.scalars().all()}

    following: set[int] = set()
    if viewer_id is not None:
        following = await followed_user_ids(db, viewer_id, author_ids)

    views = []
    for comment in comments:
        author = authors[comment.author_id]
        views.append(
            CommentView(
                id=comment.id,
                body=comment.body,
                created_at=comment.created_at,
                updated_at=comment.updated_at,
                author=ProfileView(
                    username=author.username,
                    bio=author.bio,
                    image=author.image,
                    following=comment.author_id in following,
                ),
            )
        )
    return views


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def add_comment(db: AsyncSession, user_id: int, slug: str, body: str) -> CommentView:
    """Append a comment by *user_id* to the article at *slug*."""
    article_id = await _article_id(db, slug)
    comment = await CommentRepository(db).save(Comment.create(article_id, user_id, body))
    logger.info("Comment %d added to %r by %d", comment.id, slug, user_id)
    views = await _to_views(db, [comment], user_id)
    return views[0]


async def get_comments(
    db: AsyncSession,
    slug: str,
    viewer_id: Optional[int] = None,
) -> list[CommentView]:
    """Return the article's comments, newest first."""
    article_id = await _article_id(db, slug)
    comments = await CommentRepository(db).find_by_article_id(article_id)
    return await _to_views(db, comments, viewer_id)


async def update_comment(
    db: AsyncSession,
    user_id: int,
    slug: str,
    comment_id: int,
    body: str,
) -> CommentView:
    comment = await _comment_on(db, slug, comment_id)
    saved = await CommentRepository(db).save(comment.edit(user_id, body))
    views = await _to_views(db, [saved], user_id)
    return views[0]


async def delete_comment(db: AsyncSession, user_id: int, slug: str, comment_id: int) -> None:
    comment = await _comment_on(db, slug, comment_id)
    if not comment.can_be_deleted_by(user_id):
        raise Forbidden("You can only delete your own comments")
    await CommentRepository(db).delete_by_id(comment_id)
    logger.info("Comment %d deleted from %r", comment_id, slug)
