from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Conduit payloads use camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- User / Profile ---

class UserCreate(CamelModel):
    username: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=255)
    bio: str | None = None
    image: str | None = None


class UserCreateRequest(BaseModel):
    user: UserCreate


class UserUpdate(CamelModel):
    username: str | None = Field(default=None, max_length=100)
    email: str | None = Field(default=None, max_length=255)
    bio: str | None = None
    image: str | None = None


class UserUpdateRequest(BaseModel):
    user: UserUpdate


class UserView(CamelModel):
    id: int
    username: str
    email: str
    bio: str | None = None
    image: str | None = None


class UserResponse(BaseModel):
    user: UserView


class ProfileView(CamelModel):
    username: str
    bio: str | None = None
    image: str | None = None
    following: bool = False


class ProfileResponse(BaseModel):
    profile: ProfileView


# --- Article ---

class ArticleCreate(CamelModel):
    title: str
    description: str
    body: str
    tag_list: list[str] = []


class ArticleCreateRequest(BaseModel):
    article: ArticleCreate


class ArticleUpdate(CamelModel):
    title: str | None = None
    description: str | None = None
    body: str | None = None
    tag_list: list[str] | None = None


class ArticleUpdateRequest(BaseModel):
    article: ArticleUpdate


class ArticleView(CamelModel):
    slug: str
    title: str
    description: str
    body: str
    tag_list: list[str]
    created_at: datetime
    updated_at: datetime
    favorited: bool
    favorites_count: int
    author: ProfileView


class ArticleResponse(BaseModel):
    article: ArticleView


class ArticleListView(CamelModel):
    articles: list[ArticleView]
    articles_count: int


class TagsResponse(BaseModel):
    tags: list[str]


# --- Comment ---

class CommentCreate(CamelModel):
    body: str


class CommentCreateRequest(BaseModel):
    comment: CommentCreate


class CommentView(CamelModel):
    id: int
    body: str
    created_at: datetime
    updated_at: datetime
    author: ProfileView


class CommentResponse(BaseModel):
    comment: CommentView


class CommentListResponse(BaseModel):
    comments: list[CommentView]
