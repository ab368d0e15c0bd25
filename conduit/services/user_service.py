"""
User service: registration and the caller's own account.

Credentials are out of scope here: a user is identified to the API by the
id an upstream gateway places in the ``X-User-Id`` header.
"""
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.exceptions import Conflict, Unauthorized, ValidationFailure
from conduit.models import User
from conduit.schemas import UserCreate, UserUpdate, UserView

logger = logging.getLogger(__name__)


def _user_to_view(user: User) -> UserView:
    return UserView(
        id=user.id,
        username=user.username,
        email=user.email,
        bio=user.bio,
        image=user.image,
    )


async def _taken_fields(
    db: AsyncSession,
    username: Optional[str],
    email: Optional[str],
    exclude_id: Optional[int] = None,
) -> dict[str, list[str]]:
    """Map each of *username* / *email* already held by another user to an error."""
    errors: dict[str, list[str]] = {}
    for field, column, value in (("email", User.email, email), ("username", User.username, username)):
        if value is None:
            continue
        q = select(User.id).where(column == value)
        if exclude_id is not None:
            q = q.where(User.id != exclude_id)
        if (await db.execute(q.limit(1))).first() is not None:
            errors[field] = ["is already taken"]
    return errors


async def _flush(db: AsyncSession) -> None:
    # The pre-check can lose a race with a concurrent registration.
    try:
        await db.flush()
    except IntegrityError as exc:
        logger.warning("Constraint violation while saving user: %s", exc.orig)
        raise Conflict("Username or email is already taken, please retry") from exc


async def create_user(db: AsyncSession, data: UserCreate) -> UserView:
    """
    Create a new user and return its view.

    A username or email that is already registered is reported per field
    as a ``ValidationFailure``.
    """
    errors = await _taken_fields(db, data.username, data.email)
    if errors:
        raise ValidationFailure(errors)

    user = User(
        username=data.username,
        email=data.email,
        bio=data.bio,
        image=data.image,
    )
    db.add(user)
    await _flush(db)
    logger.info("User registered: id=%d username=%r", user.id, user.username)
    return _user_to_view(user)


async def get_current_user(db: AsyncSession, user_id: int) -> UserView:
    user = await db.get(User, user_id)
    if user is None:
        raise Unauthorized("User not found")
    return _user_to_view(user)


async def update_user(db: AsyncSession, user_id: int, data: UserUpdate) -> UserView:
    """
    Apply the caller's account changes.

    Blank ``username`` / ``email`` values are ignored. ``bio`` and ``image``
    are replaced whenever they are present in the request, so an explicit
    null clears them.
    """
    user = await db.get(User, user_id)
    if user is None:
        raise Unauthorized("User not found")

    username = data.username if data.username and data.username.strip() else None
    email = data.email if data.email and data.email.strip() else None

    errors = await _taken_fields(db, username, email, exclude_id=user.id)
    if errors:
        raise ValidationFailure(errors)

    if username is not None:
        user.username = username
    if email is not None:
        user.email = email
    if "bio" in data.model_fields_set:
        user.bio = data.bio
    if "image" in data.model_fields_set:
        user.image = data.image

    await _flush(db)
    logger.info("User updated: id=%d", user.id)
    return _user_to_view(user)
