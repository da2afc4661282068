import logging
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from carelink.core.errors import BackendError, Conflict, NotFound, PermissionDenied, ValidationError
from carelink.core.session import SessionContext
from carelink.models.friendship import Friendship, make_pair_key
from carelink.models.profile import Profile
from carelink.models.user import User
from carelink.services.realtime import change_feed

logger = logging.getLogger(__name__)

PENDING = "pending"
ACCEPTED = "accepted"


def _edge_between(db: Session, a: UUID, b: UUID) -> Friendship | None:
    return db.execute(
        select(Friendship).where(Friendship.pair_key == make_pair_key(a, b))
    ).scalar_one_or_none()


def _record(edge: Friendship) -> dict:
    return {
        "id": str(edge.id),
        "requester_id": str(edge.requester_id),
        "receiver_id": str(edge.receiver_id),
        "status": edge.status,
    }


def is_friend(db: Session, a: UUID, b: UUID) -> bool:
    edge = _edge_between(db, a, b)
    return edge is not None and edge.status == ACCEPTED


def is_pending(db: Session, a: UUID, b: UUID) -> bool:
    edge = _edge_between(db, a, b)
    return edge is not None and edge.status == PENDING


def relationship_status(db: Session, viewer_id: UUID, other_id: UUID) -> str:
    """How ``other_id`` relates to the viewer: self, friends, request_sent, request_received or none."""
    if viewer_id == other_id:
        return "self"
    edge = _edge_between(db, viewer_id, other_id)
    if edge is None:
        return "none"
    if edge.status == ACCEPTED:
        return "friends"
    return "request_sent" if edge.requester_id == viewer_id else "request_received"


def send_request(db: Session, ctx: SessionContext, receiver_id: UUID) -> Friendship:
    if receiver_id == ctx.user_id:
        raise ValidationError("You cannot send a friend request to yourself")
    if db.get(User, receiver_id) is None:
        raise NotFound("User not found")
    existing = _edge_between(db, ctx.user_id, receiver_id)
    if existing is not None:
        detail = "Already friends" if existing.status == ACCEPTED else "Friend request already pending"
        raise Conflict(detail)

    edge = Friendship(requester_id=ctx.user_id, receiver_id=receiver_id, status=PENDING)
    db.add(edge)
    try:
        db.commit()
    except IntegrityError as exc:
        # Lost a race against the other side's request.
        db.rollback()
        raise Conflict("Friend request already pending") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Friend request failed requester=%s receiver=%s", ctx.user_id, receiver_id)
        raise BackendError() from exc
    db.refresh(edge)
    change_feed.publish("friendships", "INSERT", _record(edge))
    return edge


def accept_request(db: Session, ctx: SessionContext, requester_id: UUID) -> Friendship:
    """Accept a pending request. Only its receiver may accept it."""
    edge = _edge_between(db, requester_id, ctx.user_id)
    if edge is None or edge.status != PENDING:
        raise NotFound("Friend request not found")
    if edge.receiver_id != ctx.user_id:
        raise PermissionDenied("Only the receiver can accept this request")

    edge.status = ACCEPTED
    db.add(edge)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Accepting friend request failed id=%s", edge.id)
        raise BackendError() from exc
    db.refresh(edge)
    change_feed.publish("friendships", "UPDATE", _record(edge))
    return edge


def cancel_request(db: Session, ctx: SessionContext, receiver_id: UUID) -> None:
    """Withdraw a pending request. Only the requester may cancel it."""
    edge = _edge_between(db, ctx.user_id, receiver_id)
    if edge is None or edge.status != PENDING:
        raise NotFound("Friend request not found")
    if edge.requester_id != ctx.user_id:
        raise PermissionDenied("Only the requester can cancel this request")

    snapshot = _record(edge)
    db.delete(edge)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Cancelling friend request failed id=%s", snapshot["id"])
        raise BackendError() from exc
    change_feed.publish("friendships", "DELETE", snapshot)


def _profiles_for(db: Session, user_ids) -> list[Profile]:
    ids = list(user_ids)
    if not ids:
        return []
    stmt = select(Profile).where(Profile.user_id.in_(ids)).order_by(Profile.username.asc())
    return list(db.execute(stmt).scalars().all())


def list_friends(db: Session, user_id: UUID) -> list[Profile]:
    edges = db.execute(
        select(Friendship).where(
            Friendship.status == ACCEPTED,
            or_(Friendship.requester_id == user_id, Friendship.receiver_id == user_id),
        )
    ).scalars().all()
    other_ids = {e.receiver_id if e.requester_id == user_id else e.requester_id for e in edges}
    return _profiles_for(db, other_ids)


def list_incoming(db: Session, user_id: UUID) -> list[Profile]:
    ids = db.execute(
        select(Friendship.requester_id).where(
            Friendship.receiver_id == user_id, Friendship.status == PENDING
        )
    ).scalars().all()
    return _profiles_for(db, ids)


def list_outgoing(db: Session, user_id: UUID) -> list[Profile]:
    ids = db.execute(
        select(Friendship.receiver_id).where(
            Friendship.requester_id == user_id, Friendship.status == PENDING
        )
    ).scalars().all()
    return _profiles_for(db, ids)


def suggestions(db: Session, user_id: UUID, limit: int = 10) -> list[Profile]:
    """Profiles with no edge of any status to ``user_id``."""
    stmt = (
        select(Profile)
        .join(User, User.id == Profile.user_id)
        .where(
            and_(
                Profile.user_id != user_id,
                Profile.user_id.not_in(select(Friendship.receiver_id).where(Friendship.requester_id == user_id)),
                Profile.user_id.not_in(select(Friendship.requester_id).where(Friendship.receiver_id == user_id)),
                User.role != "admin",
            )
        )
        .order_by(Profile.created_at.desc())
        .limit(limit)
    )
    return list(db.execute(stmt).scalars().all())
