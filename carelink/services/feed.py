import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from carelink.core.errors import BackendError, NotFound, PermissionDenied, ValidationError
from carelink.core.session import SessionContext
from carelink.models.post import Comment, Like, Post
from carelink.models.profile import Profile
from carelink.services.realtime import change_feed
from carelink.services.verification import derive_badge, latest_statuses, render_badge

logger = logging.getLogger(__name__)


def _commit(db: Session, what: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("%s failed", what)
        raise BackendError() from exc


def _get_post(db: Session, post_id: UUID) -> Post:
    post = db.get(Post, post_id)
    if post is None:
        raise NotFound("Post not found")
    return post


def author_cards(db: Session, user_ids) -> dict[UUID, dict]:
    """Author identity and badge per user id, read fresh on every call."""
    ids = set(user_ids)
    if not ids:
        return {}
    profiles = db.execute(select(Profile).where(Profile.user_id.in_(ids))).scalars().all()
    statuses = latest_statuses(db, ids)
    cards = {}
    for profile in profiles:
        badge = render_badge(derive_badge(profile.role, statuses.get(profile.user_id)))
        cards[profile.user_id] = {
            "id": profile.user_id,
            "username": profile.username,
            "full_name": profile.full_name,
            "role": profile.role,
            "is_verified": badge.is_verified,
            "badge": badge.as_dict(),
        }
    return cards


def create_post(db: Session, ctx: SessionContext, content: str, image_url: str | None = None) -> Post:
    text = (content or "").strip()
    if not text:
        raise ValidationError("Post cannot be empty")
    post = Post(user_id=ctx.user_id, content=text, image_url=image_url)
    db.add(post)
    _commit(db, "Create post")
    db.refresh(post)
    change_feed.publish("posts", "INSERT", {"id": str(post.id), "user_id": str(post.user_id)})
    return post


def delete_post(db: Session, ctx: SessionContext, post_id: UUID) -> None:
    post = _get_post(db, post_id)
    if post.user_id != ctx.user_id:
        raise PermissionDenied("You can only delete your own posts")
    db.delete(post)
    _commit(db, "Delete post")
    change_feed.publish("posts", "DELETE", {"id": str(post_id), "user_id": str(ctx.user_id)})


def like_count(db: Session, post_id: UUID) -> int:
    return db.execute(select(func.count(Like.id)).where(Like.post_id == post_id)).scalar() or 0


def toggle_like(db: Session, ctx: SessionContext, post_id: UUID) -> tuple[bool, int]:
    """Like the post if the caller has not, otherwise remove the like.

    Returns ``(liked, like_count)`` after the change.
    """
    _get_post(db, post_id)
    existing = db.execute(
        select(Like).where(Like.post_id == post_id, Like.user_id == ctx.user_id)
    ).scalar_one_or_none()

    if existing is not None:
        like_id = existing.id
        db.delete(existing)
        _commit(db, "Unlike")
        liked = False
        change_feed.publish("likes", "DELETE", {"id": str(like_id), "post_id": str(post_id), "user_id": str(ctx.user_id)})
    else:
        like = Like(post_id=post_id, user_id=ctx.user_id)
        db.add(like)
        try:
            db.commit()
        except IntegrityError:
            # A concurrent toggle already inserted it.
            db.rollback()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Like failed post_id=%s", post_id)
            raise BackendError() from exc
        else:
            change_feed.publish("likes", "INSERT", {"id": str(like.id), "post_id": str(post_id), "user_id": str(ctx.user_id)})
        liked = True
    return liked, like_count(db, post_id)


def add_comment(db: Session, ctx: SessionContext, post_id: UUID, content: str) -> Comment:
    text = (content or "").strip()
    if not text:
        raise ValidationError("Comment cannot be empty")
    _get_post(db, post_id)
    comment = Comment(post_id=post_id, user_id=ctx.user_id, content=text)
    db.add(comment)
    _commit(db, "Add comment")
    db.refresh(comment)
    change_feed.publish("comments", "INSERT", {"id": str(comment.id), "post_id": str(post_id), "user_id": str(ctx.user_id)})
    return comment


def list_comments(db: Session, post_id: UUID) -> list[dict]:
    _get_post(db, post_id)
    comments = db.execute(
        select(Comment).where(Comment.post_id == post_id).order_by(Comment.created_at.desc())
    ).scalars().all()
    authors = author_cards(db, (c.user_id for c in comments))
    return [
        {
            "id": c.id,
            "post_id": c.post_id,
            "content": c.content,
            "created_at": c.created_at,
            "author": authors.get(c.user_id),
        }
        for c in comments
    ]


def _serialize_posts(db: Session, posts: list[Post], viewer_id: UUID) -> list[dict]:
    post_ids = [p.id for p in posts]
    if not post_ids:
        return []
    like_counts = dict(
        db.execute(
            select(Like.post_id, func.count(Like.id)).where(Like.post_id.in_(post_ids)).group_by(Like.post_id)
        ).all()
    )
    comment_counts = dict(
        db.execute(
            select(Comment.post_id, func.count(Comment.id)).where(Comment.post_id.in_(post_ids)).group_by(Comment.post_id)
        ).all()
    )
    liked = set(
        db.execute(
            select(Like.post_id).where(Like.post_id.in_(post_ids), Like.user_id == viewer_id)
        ).scalars().all()
    )
    authors = author_cards(db, (p.user_id for p in posts))
    return [
        {
            "id": p.id,
            "content": p.content,
            "image_url": p.image_url,
            "created_at": p.created_at,
            "author": authors.get(p.user_id),
            "like_count": like_counts.get(p.id, 0),
            "comment_count": comment_counts.get(p.id, 0),
            "liked_by_me": p.id in liked,
        }
        for p in posts
    ]


def list_feed(db: Session, viewer_id: UUID, limit: int = 50, offset: int = 0) -> list[dict]:
    posts = db.execute(
        select(Post).order_by(Post.created_at.desc()).offset(offset).limit(limit)
    ).scalars().all()
    return _serialize_posts(db, list(posts), viewer_id)


def list_user_posts(db: Session, viewer_id: UUID, author_id: UUID) -> list[dict]:
    posts = db.execute(
        select(Post).where(Post.user_id == author_id).order_by(Post.created_at.desc())
    ).scalars().all()
    return _serialize_posts(db, list(posts), viewer_id)
