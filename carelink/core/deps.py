from uuid import UUID

from fastapi import Depends, Request, WebSocket, WebSocketException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from carelink.core.config import settings
from carelink.core.db import get_db
from carelink.core.errors import AuthenticationRequired, PermissionDenied
from carelink.core.security import decode_token
from carelink.core.session import SessionContext
from carelink.models.user import User
from carelink.services.blob_store import LocalBlobStore
from carelink.services.profiles import ensure_profile

ACCESS_TOKEN_COOKIE = "cl_access_token"


def _load_user(db: Session, token: str | None) -> User:
    if not token:
        raise AuthenticationRequired()

    try:
        payload = decode_token(token)
    except ValueError:
        raise AuthenticationRequired("Invalid token")

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationRequired("Invalid token")

    try:
        user_uuid = UUID(user_id)
    except ValueError:
        raise AuthenticationRequired("Invalid token")

    user = db.execute(select(User).where(User.id == user_uuid)).scalar_one_or_none()
    if not user or not user.is_active:
        raise AuthenticationRequired("Inactive user")
    return user


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    token = request.cookies.get(ACCESS_TOKEN_COOKIE)
    if not token and request.headers.get("authorization"):
        auth = request.headers["authorization"]
        if auth.startswith("Bearer "):
            token = auth[7:].strip()
    return _load_user(db, token)


def get_session_context(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> SessionContext:
    profile = ensure_profile(db, current_user)
    return SessionContext(user=current_user, profile=profile)


def get_websocket_session_context(websocket: WebSocket, db: Session = Depends(get_db)) -> SessionContext:
    # Browsers cannot set headers on a websocket handshake.
    token = websocket.query_params.get("token") or websocket.cookies.get(ACCESS_TOKEN_COOKIE)
    try:
        user = _load_user(db, token)
    except AuthenticationRequired as exc:
        raise WebSocketException(code=status.WS_1008_POLICY_VIOLATION, reason=exc.detail)
    return SessionContext(user=user, profile=ensure_profile(db, user))


def require_doctor(ctx: SessionContext = Depends(get_session_context)) -> SessionContext:
    if ctx.role != "doctor":
        raise PermissionDenied("Doctor only")
    return ctx


def require_admin(ctx: SessionContext = Depends(get_session_context)) -> SessionContext:
    if not ctx.is_admin:
        raise PermissionDenied("Admin only")
    return ctx


def get_blob_store() -> LocalBlobStore:
    return LocalBlobStore(settings.UPLOAD_DIR)
