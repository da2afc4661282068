from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from carelink.core.db import get_db
from carelink.core.deps import get_session_context
from carelink.core.session import SessionContext
from carelink.schemas.friendship import FriendsOverview, FriendshipOut
from carelink.schemas.profile import ProfileOut
from carelink.services import social_graph
from carelink.services.profiles import parse_user_id
from carelink.services.verification import profile_payloads

router = APIRouter(prefix="/friends", tags=["friends"])


@router.get("", response_model=FriendsOverview)
def overview(
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    return {
        "friends": profile_payloads(db, social_graph.list_friends(db, ctx.user_id)),
        "incoming": profile_payloads(db, social_graph.list_incoming(db, ctx.user_id)),
        "outgoing": profile_payloads(db, social_graph.list_outgoing(db, ctx.user_id)),
    }


@router.get("/suggestions", response_model=list[ProfileOut])
def suggestions(
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    return profile_payloads(db, social_graph.suggestions(db, ctx.user_id))


@router.post("/requests/{user_id}", response_model=FriendshipOut, status_code=status.HTTP_201_CREATED)
def send_request(
    user_id: str,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    return social_graph.send_request(db, ctx, parse_user_id(user_id))


@router.post("/requests/{user_id}/accept", response_model=FriendshipOut)
def accept_request(
    user_id: str,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    """Accept the request ``user_id`` sent to the caller."""
    return social_graph.accept_request(db, ctx, parse_user_id(user_id))


@router.delete("/requests/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def cancel_request(
    user_id: str,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    """Withdraw the request the caller sent to ``user_id``."""
    social_graph.cancel_request(db, ctx, parse_user_id(user_id))


@router.get("/status/{user_id}")
def friendship_status(
    user_id: str,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    other_id = parse_user_id(user_id)
    return {
        "is_friend": social_graph.is_friend(db, ctx.user_id, other_id),
        "is_pending": social_graph.is_pending(db, ctx.user_id, other_id),
        "relationship": social_graph.relationship_status(db, ctx.user_id, other_id),
    }
