from typing import Optional

from fastapi import Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from conduit import models
from conduit.config import settings
from conduit.database import get_db
from conduit.exceptions import Unauthorized


class PaginationParams:
    """
    Reusable FastAPI dependency for the Conduit ``limit`` / ``offset``
    query parameters.

    Attributes
    ----------
    limit:
        Maximum number of articles returned, clamped to
        ``settings.MAX_PAGE_SIZE`` regardless of the value supplied.
    offset:
        Number of matching articles to skip (newest first).
    """

    def __init__(
        self,
        limit: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=1,
            description="Number of articles to return.",
        ),
        offset: int = Query(
            0,
            ge=0,
            description="Number of articles to skip.",
        ),
    ) -> None:
        self.limit = min(limit, settings.MAX_PAGE_SIZE)
        self.offset = offset


async def get_viewer_id(request: Request, db: AsyncSession = Depends(get_db)) -> Optional[int]:
    """
    Return the caller's user id, or None for anonymous requests.

    The id is trusted as supplied by the authenticating gateway, but it must
    name an existing user. A value that is not an integer, or an id with no
    user behind it, is rejected rather than treated as anonymous.
    """
    raw = request.headers.get(settings.USER_ID_HEADER)
    if raw is None or raw.strip() == "":
        return None
    try:
        user_id = int(raw)
    except ValueError:
        raise Unauthorized(f"Malformed {settings.USER_ID_HEADER} header")

    if await db.get(models.User, user_id) is None:
        raise Unauthorized("User not found")
    return user_id


async def require_user_id(user_id: Optional[int] = Depends(get_viewer_id)) -> int:
    """Like ``get_viewer_id`` but rejects anonymous callers with 401."""
    if user_id is None:
        raise Unauthorized()
    return user_id
