import logging

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from carelink.core.config import settings
from carelink.core.db import get_db
from carelink.core.deps import get_blob_store, get_session_context
from carelink.core.errors import BackendError, NotFound, PermissionDenied
from carelink.core.session import SessionContext
from carelink.models.user import User
from carelink.schemas.post import PostOut
from carelink.schemas.profile import DeleteAccountRequest, ProfileDetailOut, ProfileOut, ProfileUpdate
from carelink.services import feed
from carelink.services.blob_store import BlobStoreError, LocalBlobStore
from carelink.services.profiles import get_profile, parse_user_id, search_profiles, update_profile
from carelink.services.social_graph import relationship_status
from carelink.services.verification import profile_payloads
from carelink.utils.audit import ACCOUNT_DELETED, client_ip, log_action

logger = logging.getLogger(__name__)
router = APIRouter(tags=["profiles"])


def _detail(db: Session, ctx: SessionContext, profile) -> ProfileDetailOut:
    data = profile_payloads(db, [profile])[0]
    return ProfileDetailOut(**data, relationship=relationship_status(db, ctx.user_id, profile.user_id))


@router.get("/profiles/me", response_model=ProfileDetailOut)
def get_my_profile(
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    return _detail(db, ctx, ctx.profile)


@router.put("/profiles/me", response_model=ProfileDetailOut)
def update_my_profile(
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    profile = update_profile(db, ctx.profile, payload.model_dump(exclude_unset=True))
    return _detail(db, ctx, profile)


@router.get("/profiles/search", response_model=list[ProfileOut])
def search(
    q: str = Query("", max_length=100),
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    return profile_payloads(db, search_profiles(db, q))


@router.get("/profiles/{user_id}", response_model=ProfileDetailOut)
def get_user_profile(
    user_id: str,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    profile = get_profile(db, parse_user_id(user_id))
    return _detail(db, ctx, profile)


@router.get("/profiles/{user_id}/posts", response_model=list[PostOut])
def get_user_posts(
    user_id: str,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    profile = get_profile(db, parse_user_id(user_id))
    return feed.list_user_posts(db, ctx.user_id, profile.user_id)


@router.post("/api/delete-account")
def delete_account(
    payload: DeleteAccountRequest,
    request: Request,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
    store: LocalBlobStore = Depends(get_blob_store),
):
    """Remove a user and everything they own. Users may only delete themselves."""
    if payload.userId != ctx.user_id and not ctx.is_admin:
        raise PermissionDenied("You can only delete your own account")

    user = db.get(User, payload.userId)
    if user is None:
        raise NotFound("User not found")

    email = user.email
    db.delete(user)
    try:
        db.flush()
        # The actor row is gone when users delete themselves.
        actor_id = None if payload.userId == ctx.user_id else ctx.user_id
        log_action(
            db,
            actor_id,
            ACCOUNT_DELETED,
            "user",
            payload.userId,
            details={"email": email},
            ip_address=client_ip(request),
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Account deletion failed user_id=%s", payload.userId)
        raise BackendError() from exc

    try:
        store.delete_prefix(settings.VERIFICATION_BUCKET, str(payload.userId))
    except (BlobStoreError, OSError):
        logger.warning("Account %s deleted but its verification files could not be removed", payload.userId)

    logger.info("Account deleted user_id=%s by=%s", payload.userId, ctx.user_id)
    return {"success": True}
