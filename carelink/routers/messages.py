import asyncio
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session

from carelink.core.db import get_db
from carelink.core.deps import get_session_context, get_websocket_session_context
from carelink.core.errors import NotFound
from carelink.core.session import SessionContext
from carelink.schemas.message import ConversationOut, MessageCreate, MessageOut
from carelink.services import messaging
from carelink.services.profiles import get_profile, parse_user_id
from carelink.services.realtime import change_feed
from carelink.services.verification import profile_payloads

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/messages", tags=["messages"])


@router.get("/{user_id}", response_model=ConversationOut)
def get_conversation(
    user_id: str,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    partner = get_profile(db, parse_user_id(user_id))
    return {
        "partner": profile_payloads(db, [partner])[0],
        "messages": messaging.conversation(db, ctx.user_id, partner.user_id),
    }


@router.post("/{user_id}", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
def send_message(
    user_id: str,
    payload: MessageCreate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    return messaging.send_message(db, ctx, parse_user_id(user_id), payload.content)


@router.post("/{user_id}/read")
def mark_read(
    user_id: str,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    return {"updated": messaging.mark_read(db, ctx, parse_user_id(user_id))}


async def _wait_for_close(websocket: WebSocket) -> None:
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        return


@router.websocket("/{user_id}/live")
async def live_conversation(
    websocket: WebSocket,
    user_id: str,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_websocket_session_context),
):
    """Snapshot of the conversation followed by new messages as they are sent."""
    me = ctx.user_id
    try:
        other_id = get_profile(db, parse_user_id(user_id)).user_id
    except NotFound:
        db.close()
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Profile not found")
        return

    await websocket.accept()
    view = messaging.ConversationView(me, other_id)
    # Subscribe before reading the snapshot so nothing falls in between.
    subscription = change_feed.subscribe("messages", view.subscription_filters())
    closed = None
    try:
        try:
            for message in messaging.conversation(db, me, other_id):
                view.add(messaging.message_record(message))
        finally:
            # Live events carry whole records, so the session is not needed past the snapshot.
            db.close()
        await websocket.send_json({"type": "snapshot", "messages": view.messages})

        closed = asyncio.create_task(_wait_for_close(websocket))
        while True:
            next_event = asyncio.create_task(subscription.get())
            done, _ = await asyncio.wait({next_event, closed}, return_when=asyncio.FIRST_COMPLETED)
            if closed in done:
                next_event.cancel()
                break
            event = next_event.result()
            if view.apply(event):
                await websocket.send_json({"type": "message", "message": event.record})
    except WebSocketDisconnect:
        pass
    finally:
        subscription.close()
        if closed is not None:
            closed.cancel()
        logger.debug("Live conversation closed user=%s partner=%s", me, other_id)
