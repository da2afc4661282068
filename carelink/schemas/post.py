from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from carelink.schemas.profile import AuthorOut


class PostCreate(BaseModel):
    content: str = Field(max_length=5000)
    image_url: str | None = None


class CommentCreate(BaseModel):
    content: str = Field(max_length=2000)


class PostOut(BaseModel):
    id: UUID
    content: str
    image_url: str | None = None
    created_at: datetime
    author: AuthorOut | None = None
    like_count: int = 0
    comment_count: int = 0
    liked_by_me: bool = False


class CommentOut(BaseModel):
    id: UUID
    post_id: UUID
    content: str
    created_at: datetime
    author: AuthorOut | None = None


class LikeToggleOut(BaseModel):
    liked: bool
    like_count: int
