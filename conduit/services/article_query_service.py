"""
Article projection service: read-only assembly of ``ArticleView``.

Design notes
------------
- A view joins five sources: the article row, its author, its tag
  memberships, its favorites, and the viewer's follows.
- The article+author rows for a page are fetched in one statement with
  LIMIT/OFFSET applied after filtering. Tags, favorite counts, the
  viewer's favorites and the viewer's follows are then fetched with one
  ``IN (...)`` query each, keyed by the page's ids, so a page costs a
  fixed number of queries regardless of its size. The single-article
  path goes through the same assembler with a one-row page.
- An anonymous viewer (``viewer_id is None``) gets ``favorited=False``
  and ``following=False`` without any lookup.
"""
from collections import defaultdict
from typing import Optional, Sequence

from sqlalchemy import and_, func, select
from sqlalchemy.engine import Row
from sqlalchemy.ext.asyncio import AsyncSession

from conduit import models
from conduit.database import as_utc
from conduit.exceptions import NotFound, Unauthorized
from conduit.schemas import ArticleListView, ArticleView, ProfileView
from conduit.services.profile_service import followed_user_ids

# ---------------------------------------------------------------------------
# Query building
# ---------------------------------------------------------------------------

def _rows_query():
    return select(
        models.Article.id,
        models.Article.slug,
        models.Article.title,
        models.Article.description,
        models.Article.body,
        models.Article.author_id,
        models.Article.created_at,
        models.Article.updated_at,
        models.User.username,
        models.User.bio,
        models.User.image,
    ).join(models.User, models.User.id == models.Article.author_id)


def _filters(
    tag: Optional[str],
    author: Optional[str],
    favorited_by: Optional[str],
) -> list:
    """Each present filter narrows the candidate ids with its own sub-query."""
    conditions = []

    if tag is not None:
        conditions.append(
            models.Article.id.in_(
                select(models.article_tags.c.article_id)
                .join(models.Tag, models.Tag.id == models.article_tags.c.tag_id)
                .where(models.Tag.name == tag)
            )
        )

    if author is not None:
        conditions.append(
            models.Article.author_id.in_(
                select(models.User.id).where(models.User.username == author)
            )
        )

    if favorited_by is not None:
        conditions.append(
            models.Article.id.in_(
                select(models.favorites.c.article_id)
                .join(models.User, models.User.id == models.favorites.c.user_id)
                .where(models.User.username == favorited_by)
            )
        )

    return conditions


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

async def _assemble(
    db: AsyncSession,
    rows: Sequence[Row],
    viewer_id: Optional[int],
) -> list[ArticleView]:
    if not rows:
        return []

    ids = [row.id for row in rows]

    tags_by_article: dict[int, list[str]] = defaultdict(list)
    tag_rows = await db.execute(
        select(models.article_tags.c.article_id, models.Tag.name)
        .join(models.Tag, models.Tag.id == models.article_tags.c.tag_id)
        .where(models.article_tags.c.article_id.in_(ids))
        .order_by(models.Tag.name)
    )
    for article_id, name in tag_rows.all():
        tags_by_article[article_id].append(name)

    count_rows = await db.execute(
        select(models.favorites.c.article_id, func.count())
        .where(models.favorites.c.article_id.in_(ids))
        .group_by(models.favorites.c.article_id)
    )
    favorites_count = {article_id: count for article_id, count in count_rows.all()}

    favorited: set[int] = set()
    following: set[int] = set()
    if viewer_id is not None:
        fav_rows = await db.execute(
            select(models.favorites.c.article_id).where(
                models.favorites.c.user_id == viewer_id,
                models.favorites.c.article_id.in_(ids),
            )
        )
        favorited = set(fav_rows.scalars().all())
        following = await followed_user_ids(db, viewer_id, {row.author_id for row in rows})

    return [
        ArticleView(
            slug=row.slug,
            title=row.title,
            description=row.description,
            body=row.body,
            tag_list=tags_by_article.get(row.id, []),
            created_at=as_utc(row.created_at),
            updated_at=as_utc(row.updated_at),
            favorited=row.id in favorited,
            favorites_count=favorites_count.get(row.id, 0),
            author=ProfileView(
                username=row.username,
                bio=row.bio,
                image=row.image,
                following=row.author_id in following,
            ),
        )
        for row in rows
    ]


async def _page(
    db: AsyncSession,
    conditions: list,
    limit: int,
    offset: int,
    viewer_id: Optional[int],
) -> ArticleListView:
    where = and_(*conditions) if conditions else None

    count_q = select(func.count()).select_from(models.Article)
    rows_q = _rows_query()
    if where is not None:
        count_q = count_q.where(where)
        rows_q = rows_q.where(where)

    total: int = (await db.execute(count_q)).scalar_one()

    rows_q = (
        rows_q.order_by(models.Article.created_at.desc(), models.Article.id.desc())
        .limit(limit)
        .offset(offset)
    )
    rows = (await db.execute(rows_q)).all()

    return ArticleListView(
        articles=await _assemble(db, rows, viewer_id),
        articles_count=total,
    )


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def get_article_by_slug(
    db: AsyncSession,
    slug: str,
    viewer_id: Optional[int] = None,
) -> ArticleView:
    result = await db.execute(_rows_query().where(models.Article.slug == slug))
    row = result.first()
    if row is None:
        raise NotFound("Article not found")
    views = await _assemble(db, [row], viewer_id)
    return views[0]


async def get_articles(
    db: AsyncSession,
    tag: Optional[str] = None,
    author: Optional[str] = None,
    favorited_by: Optional[str] = None,
    limit: int = 20,
    offset: int = 0,
    viewer_id: Optional[int] = None,
) -> ArticleListView:
    """
    Return the newest articles matching every given filter.

    ``articles_count`` is the number of matches before pagination.
    """
    return await _page(db, _filters(tag, author, favorited_by), limit, offset, viewer_id)


async def get_articles_feed(
    db: AsyncSession,
    viewer_id: Optional[int],
    limit: int = 20,
    offset: int = 0,
) -> ArticleListView:
    """Return the newest articles written by authors *viewer_id* follows."""
    if viewer_id is None:
        raise Unauthorized()

    followed_authors = models.Article.author_id.in_(
        select(models.follows.c.followee_id).where(models.follows.c.follower_id == viewer_id)
    )
    return await _page(db, [followed_authors], limit, offset, viewer_id)
