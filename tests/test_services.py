"""
Direct service-layer tests for the article command service and the
set-like writes behind favorites, follows and tags.

These call the service functions with a database session, exercising the
aggregate rules, slug policies and repository writes without HTTP.
"""
import re

import pytest
from sqlalchemy import func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit import models
from conduit.database import insert_ignoring_conflicts
from conduit.exceptions import Conflict, Forbidden, NotFound, ValidationFailure
from conduit.repositories.article_repository import ArticleRepository
from conduit.services import article_service, comment_service, profile_service

from conftest import create_user


async def _count(db: AsyncSession, table, **where) -> int:
    q = select(func.count()).select_from(table)
    for column, value in where.items():
        q = q.where(table.c[column] == value)
    return (await db.execute(q)).scalar_one()


async def _favorites_count(db: AsyncSession, article_id: int) -> int:
    return await _count(db, models.favorites, article_id=article_id)


# ---------------------------------------------------------------------------
# create_article
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_article_persists_aggregate(db_session: AsyncSession, deterministic_slugs):
    user = await create_user(db_session, "author")
    article = await article_service.create_article(
        db_session, user.id, "  My Café Post!!  ", "About coffee", "Body text", ["coffee", "paris"]
    )
    assert article.id is not None
    assert article.slug == "my-cafe-post"
    assert article.author_id == user.id

    stored = await ArticleRepository(db_session).find_by_slug("my-cafe-post")
    assert stored is not None
    assert stored.id == article.id
    assert stored.tags == frozenset({"coffee", "paris"})
    assert stored.created_at == article.created_at


@pytest.mark.asyncio
async def test_same_title_gets_sequential_slugs(db_session: AsyncSession, deterministic_slugs):
    user = await create_user(db_session, "prolific")
    slugs = [
        (await article_service.create_article(db_session, user.id, "Same Title", "d", "b")).slug
        for _ in range(12)
    ]
    assert slugs[:3] == ["same-title", "same-title-2", "same-title-3"]
    assert len(set(slugs)) == len(slugs)


@pytest.mark.asyncio
async def test_random_policy_appends_token(db_session: AsyncSession, random_slugs):
    user = await create_user(db_session, "randomer")
    first = await article_service.create_article(db_session, user.id, "  My Café Post!!  ", "d", "b")
    second = await article_service.create_article(db_session, user.id, "  My Café Post!!  ", "d", "b")
    assert re.fullmatch(r"my-cafe-post-[0-9a-f]{8}", first.slug)
    assert first.slug != second.slug


@pytest.mark.asyncio
async def test_create_article_with_blank_fields_fails(db_session: AsyncSession):
    user = await create_user(db_session, "blank")
    with pytest.raises(ValidationFailure) as info:
        await article_service.create_article(db_session, user.id, "Title", " ", "")
    assert set(info.value.errors) == {"description", "body"}
    assert await _count(db_session, models.Article.__table__) == 0


@pytest.mark.asyncio
async def test_untitled_punctuation_falls_back(db_session: AsyncSession, deterministic_slugs):
    user = await create_user(db_session, "punct")
    first = await article_service.create_article(db_session, user.id, "?!?", "d", "b")
    second = await article_service.create_article(db_session, user.id, "...", "d", "b")
    assert (first.slug, second.slug) == ("article", "article-2")


@pytest.mark.asyncio
async def test_slug_race_surfaces_as_conflict(db_session: AsyncSession, deterministic_slugs, monkeypatch):
    """A concurrent writer that wins the slug lookup race trips the unique index."""
    user = await create_user(db_session, "racer")
    await article_service.create_article(db_session, user.id, "Race", "d", "b")

    async def never_taken(self, slug, exclude_id=None):
        return False

    monkeypatch.setattr(ArticleRepository, "slug_exists", never_taken)
    with pytest.raises(Conflict):
        await article_service.create_article(db_session, user.id, "Race", "d", "b")
    await db_session.rollback()


# ---------------------------------------------------------------------------
# update_article
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_by_non_owner_is_forbidden(db_session: AsyncSession, deterministic_slugs):
    owner = await create_user(db_session, "owner")
    other = await create_user(db_session, "other")
    await article_service.create_article(db_session, owner.id, "X", "d", "b")

    with pytest.raises(Forbidden):
        await article_service.update_article(db_session, other.id, "x", title="Stolen")

    stored = await ArticleRepository(db_session).find_by_slug("x")
    assert stored.title == "X"


@pytest.mark.asyncio
async def test_update_with_blank_fields_only_refreshes_timestamp(db_session: AsyncSession, deterministic_slugs):
    user = await create_user(db_session, "blanker")
    created = await article_service.create_article(db_session, user.id, "Keep Me", "desc", "body")

    updated = await article_service.update_article(
        db_session, user.id, created.slug, title="", description="   ", body=None
    )
    assert (updated.title, updated.description, updated.body, updated.slug) == (
        "Keep Me",
        "desc",
        "body",
        "keep-me",
    )
    assert updated.updated_at >= created.updated_at
    assert updated.created_at == created.created_at


@pytest.mark.asyncio
async def test_update_title_regenerates_unique_slug(db_session: AsyncSession, deterministic_slugs):
    user = await create_user(db_session, "renamer")
    await article_service.create_article(db_session, user.id, "Taken", "d", "b")
    created = await article_service.create_article(db_session, user.id, "Original", "d", "b")

    updated = await article_service.update_article(db_session, user.id, created.slug, title="Taken")
    assert updated.slug == "taken-2"

    repo = ArticleRepository(db_session)
    assert await repo.find_by_slug("original") is None
    assert (await repo.find_by_slug("taken-2")).id == created.id


@pytest.mark.asyncio
async def test_update_keeps_own_suffixed_slug(db_session: AsyncSession, deterministic_slugs):
    user = await create_user(db_session, "keeper")
    await article_service.create_article(db_session, user.id, "Dup", "d", "b")
    second = await article_service.create_article(db_session, user.id, "Dup", "d", "b")
    assert second.slug == "dup-2"

    updated = await article_service.update_article(db_session, user.id, "dup-2", title="DUP!")
    assert updated.slug == "dup-2"
    assert updated.title == "DUP!"


@pytest.mark.asyncio
async def test_update_title_keeps_slug_under_random_policy(db_session: AsyncSession, random_slugs):
    user = await create_user(db_session, "fixed")
    created = await article_service.create_article(db_session, user.id, "Fixed", "d", "b")
    updated = await article_service.update_article(db_session, user.id, created.slug, title="Moved")
    assert updated.slug == created.slug
    assert updated.title == "Moved"


@pytest.mark.asyncio
async def test_update_replaces_tag_associations(db_session: AsyncSession, deterministic_slugs):
    user = await create_user(db_session, "tagger")
    created = await article_service.create_article(db_session, user.id, "Tags", "d", "b", ["old", "keep"])
    await article_service.update_article(db_session, user.id, created.slug, tags=["keep", "new"])

    stored = await ArticleRepository(db_session).find_by_slug("tags")
    assert stored.tags == frozenset({"keep", "new"})
    assert await _count(db_session, models.article_tags, article_id=created.id) == 2
    # The registry keeps "old" even though nothing references it.
    assert await article_service.get_all_tags(db_session) == ["keep", "new", "old"]


@pytest.mark.asyncio
async def test_update_unknown_slug_is_not_found(db_session: AsyncSession):
    user = await create_user(db_session, "ghost")
    with pytest.raises(NotFound):
        await article_service.update_article(db_session, user.id, "missing", title="Ghost")


# ---------------------------------------------------------------------------
# delete_article
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_delete_article_cascades(db_session: AsyncSession, deterministic_slugs):
    author = await create_user(db_session, "deleter")
    reader = await create_user(db_session, "reader")
    created = await article_service.create_article(db_session, author.id, "Doomed", "d", "b", ["shared"])
    await article_service.create_article(db_session, author.id, "Survivor", "d", "b", ["shared"])
    await article_service.favorite_article(db_session, reader.id, "doomed")
    await comment_service.add_comment(db_session, reader.id, "doomed", "Nice")

    await article_service.delete_article(db_session, author.id, "doomed")

    assert await ArticleRepository(db_session).find_by_slug("doomed") is None
    assert await _count(db_session, models.article_tags, article_id=created.id) == 0
    assert await _favorites_count(db_session, created.id) == 0
    assert await _count(db_session, models.Comment.__table__, article_id=created.id) == 0
    assert await article_service.get_all_tags(db_session) == ["shared"]


@pytest.mark.asyncio
async def test_delete_by_non_owner_is_forbidden(db_session: AsyncSession, deterministic_slugs):
    author = await create_user(db_session, "author2")
    other = await create_user(db_session, "other2")
    await article_service.create_article(db_session, author.id, "Mine", "d", "b")

    with pytest.raises(Forbidden):
        await article_service.delete_article(db_session, other.id, "mine")
    assert await ArticleRepository(db_session).find_by_slug("mine") is not None


@pytest.mark.asyncio
async def test_delete_unknown_slug_is_not_found(db_session: AsyncSession):
    user = await create_user(db_session, "nobody")
    with pytest.raises(NotFound):
        await article_service.delete_article(db_session, user.id, "missing")


# ---------------------------------------------------------------------------
# favorites
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_favorite_is_idempotent(db_session: AsyncSession, deterministic_slugs):
    author = await create_user(db_session, "fav_author")
    fan = await create_user(db_session, "fan")
    created = await article_service.create_article(db_session, author.id, "Loved", "d", "b")

    await article_service.favorite_article(db_session, fan.id, "loved")
    await article_service.favorite_article(db_session, fan.id, "loved")
    assert await _favorites_count(db_session, created.id) == 1
    assert await ArticleRepository(db_session).is_favorited(created.id, fan.id)


@pytest.mark.asyncio
async def test_unfavorite_without_favorite_is_noop(db_session: AsyncSession, deterministic_slugs):
    author = await create_user(db_session, "unfav_author")
    created = await article_service.create_article(db_session, author.id, "Meh", "d", "b")

    await article_service.unfavorite_article(db_session, author.id, "meh")
    assert await _favorites_count(db_session, created.id) == 0


@pytest.mark.asyncio
async def test_author_may_favorite_own_article(db_session: AsyncSession, deterministic_slugs):
    author = await create_user(db_session, "narcissus")
    created = await article_service.create_article(db_session, author.id, "Me", "d", "b")

    await article_service.favorite_article(db_session, author.id, "me")
    assert await _favorites_count(db_session, created.id) == 1
    await article_service.unfavorite_article(db_session, author.id, "me")
    assert await _favorites_count(db_session, created.id) == 0


@pytest.mark.asyncio
async def test_favorite_unknown_slug_is_not_found(db_session: AsyncSession):
    user = await create_user(db_session, "lost")
    with pytest.raises(NotFound):
        await article_service.favorite_article(db_session, user.id, "missing")


# ---------------------------------------------------------------------------
# tags
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_all_tags_sorted_and_distinct(db_session: AsyncSession):
    user = await create_user(db_session, "tagged")
    await article_service.create_article(db_session, user.id, "One", "d", "b", ["zeta", "alpha"])
    await article_service.create_article(db_session, user.id, "Two", "d", "b", ["alpha", "Beta"])
    assert await article_service.get_all_tags(db_session) == ["Beta", "alpha", "zeta"]


# ---------------------------------------------------------------------------
# Concurrent writers on set-like tables
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_favorite_after_concurrent_favorite_is_noop(db_session: AsyncSession, deterministic_slugs):
    """Another request stored the same favorite first; ours must not fail on the primary key."""
    author = await create_user(db_session, "raced_author")
    fan = await create_user(db_session, "raced_fan")
    created = await article_service.create_article(db_session, author.id, "Raced", "d", "b")
    await db_session.execute(insert(models.favorites).values(article_id=created.id, user_id=fan.id))

    await article_service.favorite_article(db_session, fan.id, "raced")
    assert await _favorites_count(db_session, created.id) == 1


@pytest.mark.asyncio
async def test_follow_after_concurrent_follow_is_noop(db_session: AsyncSession):
    fan = await create_user(db_session, "eager")
    idol = await create_user(db_session, "idol")
    await db_session.execute(insert(models.follows).values(follower_id=fan.id, followee_id=idol.id))

    profile = await profile_service.follow_user(db_session, fan.id, "idol")
    assert profile.following is True
    assert await _count(db_session, models.follows, follower_id=fan.id) == 1


@pytest.mark.asyncio
async def test_tag_rows_written_concurrently_are_reused(db_session: AsyncSession, deterministic_slugs):
    user = await create_user(db_session, "tag_racer")
    created = await article_service.create_article(db_session, user.id, "Tagged Race", "d", "b", ["go"])
    tag_id = (await db_session.execute(select(models.Tag.id).where(models.Tag.name == "go"))).scalar_one()

    # Same registry name and same membership as rows that already exist.
    await insert_ignoring_conflicts(db_session, models.Tag.__table__, name="go")
    await insert_ignoring_conflicts(db_session, models.article_tags, article_id=created.id, tag_id=tag_id)

    assert await _count(db_session, models.Tag.__table__, name="go") == 1
    assert await _count(db_session, models.article_tags, article_id=created.id) == 1


# ---------------------------------------------------------------------------
# Storage limits
# ---------------------------------------------------------------------------

def test_title_and_slug_columns_are_unbounded():
    assert models.Article.__table__.c.title.type.length is None
    assert models.Article.__table__.c.slug.type.length is None


@pytest.mark.asyncio
async def test_long_title_is_stored(db_session: AsyncSession, deterministic_slugs):
    user = await create_user(db_session, "verbose")
    title = "word " * 400
    article = await article_service.create_article(db_session, user.id, title, "d", "b")

    stored = await ArticleRepository(db_session).find_by_slug(article.slug)
    assert stored.title == title
    assert len(stored.slug) > 1000
