from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import get_db
from conduit.dependencies import PaginationParams, get_viewer_id, require_user_id
from conduit.schemas import (
    ArticleCreateRequest,
    ArticleListView,
    ArticleResponse,
    ArticleUpdateRequest,
    CommentCreateRequest,
    CommentListResponse,
    CommentResponse,
)
from conduit.services import article_query_service, article_service, comment_service

router = APIRouter(prefix="/api/articles", tags=["articles"])


# --- Articles ---

@router.get("", response_model=ArticleListView)
async def list_articles(
    tag: Optional[str] = None,
    author: Optional[str] = None,
    favorited: Optional[str] = None,
    pagination: PaginationParams = Depends(),
    viewer_id: Optional[int] = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_db),
):
    return await article_query_service.get_articles(
        db,
        tag=tag,
        author=author,
        favorited_by=favorited,
        limit=pagination.limit,
        offset=pagination.offset,
        viewer_id=viewer_id,
    )


@router.get("/feed", response_model=ArticleListView)
async def feed_articles(
    pagination: PaginationParams = Depends(),
    user_id: int = Depends(require_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await article_query_service.get_articles_feed(
        db, user_id, limit=pagination.limit, offset=pagination.offset
    )


@router.get("/{slug}", response_model=ArticleResponse)
async def get_article(
    slug: str,
    viewer_id: Optional[int] = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_db),
):
    return {"article": await article_query_service.get_article_by_slug(db, slug, viewer_id)}


@router.post("", status_code=201, response_model=ArticleResponse)
async def create_article(
    data: ArticleCreateRequest,
    user_id: int = Depends(require_user_id),
    db: AsyncSession = Depends(get_db),
):
    new = data.article
    created = await article_service.create_article(
        db, user_id, new.title, new.description, new.body, new.tag_list
    )
    return {"article": await article_query_service.get_article_by_slug(db, created.slug, user_id)}


@router.put("/{slug}", response_model=ArticleResponse)
async def update_article(
    slug: str,
    data: ArticleUpdateRequest,
    user_id: int = Depends(require_user_id),
    db: AsyncSession = Depends(get_db),
):
    changes = data.article
    updated = await article_service.update_article(
        db,
        user_id,
        slug,
        title=changes.title,
        description=changes.description,
        body=changes.body,
        tags=changes.tag_list,
    )
    return {"article": await article_query_service.get_article_by_slug(db, updated.slug, user_id)}


@router.delete("/{slug}", status_code=204)
async def delete_article(
    slug: str,
    user_id: int = Depends(require_user_id),
    db: AsyncSession = Depends(get_db),
):
    await article_service.delete_article(db, user_id, slug)


# --- Favorites ---

@router.post("/{slug}/favorite", response_model=ArticleResponse)
async def favorite_article(
    slug: str,
    user_id: int = Depends(require_user_id),
    db: AsyncSession = Depends(get_db),
):
    await article_service.favorite_article(db, user_id, slug)
    return {"article": await article_query_service.get_article_by_slug(db, slug, user_id)}


@router.delete("/{slug}/favorite", response_model=ArticleResponse)
async def unfavorite_article(
    slug: str,
    user_id: int = Depends(require_user_id),
    db: AsyncSession = Depends(get_db),
):
    await article_service.unfavorite_article(db, user_id, slug)
    return {"article": await article_query_service.get_article_by_slug(db, slug, user_id)}


# --- Comments ---

@router.get("/{slug}/comments", response_model=CommentListResponse)
async def list_comments(
    slug: str,
    viewer_id: Optional[int] = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_db),
):
    return {"comments": await comment_service.get_comments(db, slug, viewer_id)}


@router.post("/{slug}/comments", status_code=201, response_model=CommentResponse)
async def add_comment(
    slug: str,
    data: CommentCreateRequest,
    user_id: int = Depends(require_user_id),
    db: AsyncSession = Depends(get_db),
):
    return {"comment": await comment_service.add_comment(db, user_id, slug, data.comment.body)}


@router.put("/{slug}/comments/{comment_id}", response_model=CommentResponse)
async def update_comment(
    slug: str,
    comment_id: int,
    data: CommentCreateRequest,
    user_id: int = Depends(require_user_id),
    db: AsyncSession = Depends(get_db),
):
    comment = await comment_service.update_comment(db, user_id, slug, comment_id, data.comment.body)
    return {"comment": comment}


@router.delete("/{slug}/comments/{comment_id}", status_code=204)
async def delete_comment(
    slug: str,
    comment_id: int,
    user_id: int = Depends(require_user_id),
    db: AsyncSession = Depends(get_db),
):
    await comment_service.delete_comment(db, user_id, slug, comment_id)
