from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from carelink.core.db import get_db
from carelink.core.deps import get_session_context
from carelink.core.session import SessionContext
from carelink.schemas.post import CommentCreate, CommentOut, LikeToggleOut, PostCreate, PostOut
from carelink.services import feed

router = APIRouter(prefix="/posts", tags=["posts"])


@router.get("", response_model=list[PostOut])
def list_posts(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    return feed.list_feed(db, ctx.user_id, limit=limit, offset=offset)


@router.post("", response_model=PostOut, status_code=status.HTTP_201_CREATED)
def create_post(
    payload: PostCreate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    post = feed.create_post(db, ctx, payload.content, payload.image_url)
    return PostOut(
        id=post.id,
        content=post.content,
        image_url=post.image_url,
        created_at=post.created_at,
        author=feed.author_cards(db, [ctx.user_id]).get(ctx.user_id),
    )


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_post(
    post_id: UUID,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    feed.delete_post(db, ctx, post_id)


@router.post("/{post_id}/like", response_model=LikeToggleOut)
def toggle_like(
    post_id: UUID,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    liked, count = feed.toggle_like(db, ctx, post_id)
    return LikeToggleOut(liked=liked, like_count=count)


@router.get("/{post_id}/comments", response_model=list[CommentOut])
def list_comments(
    post_id: UUID,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    return feed.list_comments(db, post_id)


@router.post("/{post_id}/comments", response_model=CommentOut, status_code=status.HTTP_201_CREATED)
def add_comment(
    post_id: UUID,
    payload: CommentCreate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    comment = feed.add_comment(db, ctx, post_id, payload.content)
    return CommentOut(
        id=comment.id,
        post_id=comment.post_id,
        content=comment.content,
        created_at=comment.created_at,
        author=feed.author_cards(db, [ctx.user_id]).get(ctx.user_id),
    )
