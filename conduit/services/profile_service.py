"""
Profile service: public user profiles and the follow relation.

Follows are stored in the ``follows`` association table as
(follower_id, followee_id). Following and unfollowing are idempotent.
"""
import logging
from typing import Iterable, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit import models
from conduit.database import insert_ignoring_conflicts
from conduit.exceptions import NotFound, ValidationFailure
from conduit.schemas import ProfileView

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _get_user(db: AsyncSession, username: str) -> models.User:
    result = await db.execute(select(models.User).where(models.User.username == username))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFound("User not found")
    return user


async def followed_user_ids(
    db: AsyncSession,
    viewer_id: int,
    user_ids: Iterable[int],
) -> set[int]:
    """Return the subset of *user_ids* that *viewer_id* follows."""
    user_ids = list(user_ids)
    if not user_ids:
        return set()
    result = await db.execute(
        select(models.follows.c.followee_id).where(
            models.follows.c.follower_id == viewer_id,
            models.follows.c.followee_id.in_(user_ids),
        )
    )
    return set(result.scalars().all())


def _profile(user: models.User, following: bool) -> ProfileView:
    return ProfileView(username=user.username, bio=user.bio, image=user.image, following=following)


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def get_profile(
    db: AsyncSession,
    username: str,
    viewer_id: Optional[int] = None,
) -> ProfileView:
    user = await _get_user(db, username)
    following = False
    if viewer_id is not None:
        following = user.id in await followed_user_ids(db, viewer_id, [user.id])
    return _profile(user, following)


async def follow_user(db: AsyncSession, follower_id: int, username: str) -> ProfileView:
    user = await _get_user(db, username)
    if user.id == follower_id:
        raise ValidationFailure({"username": ["cannot follow yourself"]})

    await insert_ignoring_conflicts(
        db, models.follows, follower_id=follower_id, followee_id=user.id
    )
    logger.info("User %d follows %r", follower_id, username)
    return _profile(user, True)


async def unfollow_user(db: AsyncSession, follower_id: int, username: str) -> ProfileView:
    user = await _get_user(db, username)
    await db.execute(
        delete(models.follows).where(
            models.follows.c.follower_id == follower_id,
            models.follows.c.followee_id == user.id,
        )
    )
    return _profile(user, False)
