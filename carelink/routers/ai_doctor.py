import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from carelink.core.db import get_db
from carelink.core.deps import get_session_context
from carelink.core.errors import BackendError, ExternalServiceError, NotFound, ValidationError
from carelink.core.session import SessionContext
from carelink.models.ai_chat_history import AIChatHistory
from carelink.schemas.ai_chat import ChatHistoryCreate, ChatHistoryOut, ChatRequest, ChatTurn
from carelink.services import ai_assistant

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/ai-doctor", tags=["ai-doctor"])


def _failure(exc: ExternalServiceError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "reply": exc.reply},
    )


@router.post("/chat", response_model=ChatTurn)
def chat(
    payload: ChatRequest,
    request: Request,
    ctx: SessionContext = Depends(get_session_context),
):
    """Send the transcript to the assistant and relay its reply."""
    transcript = [{"role": turn.role, "content": turn.content} for turn in payload.messages]
    ai_assistant.check_transcript(transcript)
    api_key = ai_assistant.resolve_api_key(payload.api_key)

    if not payload.stream:
        try:
            return ai_assistant.complete_reply(api_key, transcript)
        except ExternalServiceError as exc:
            logger.warning("AI assistant unavailable for user=%s: %s", ctx.user_id, exc.detail)
            return _failure(exc)

    tokens = ai_assistant.stream_reply(api_key, transcript, referer=request.headers.get("origin"))
    try:
        # Pull the first token here so a total failure can still change the status code.
        first = next(tokens)
    except ExternalServiceError as exc:
        logger.warning("AI assistant unavailable for user=%s: %s", ctx.user_id, exc.detail)
        return _failure(exc)

    def relay():
        yield first
        try:
            yield from tokens
        except ExternalServiceError as exc:
            yield "\n\n" + (exc.reply or ai_assistant.apology())

    return StreamingResponse(relay(), media_type="text/plain; charset=utf-8")


@router.post("/history", response_model=ChatHistoryOut, status_code=status.HTTP_201_CREATED)
def save_history(
    payload: ChatHistoryCreate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    if not payload.symptom.strip() or not payload.chat_messages:
        raise ValidationError("Please enter a symptom and have at least one message in the chat")

    entry = AIChatHistory(
        user_id=ctx.user_id,
        symptom=payload.symptom.strip(),
        start_date=payload.start_date,
        end_date=None if payload.is_ongoing else payload.end_date,
        is_ongoing=payload.is_ongoing,
        duration=payload.duration or None,
        patterns=payload.patterns or None,
        notes=payload.notes or None,
        chat_messages=[turn.model_dump(mode="json") for turn in payload.chat_messages],
    )
    db.add(entry)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Saving chat history failed user=%s", ctx.user_id)
        raise BackendError("Error saving chat history") from exc
    db.refresh(entry)
    return entry


@router.get("/history", response_model=list[ChatHistoryOut])
def list_history(
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    stmt = (
        select(AIChatHistory)
        .where(AIChatHistory.user_id == ctx.user_id)
        .order_by(AIChatHistory.created_at.desc())
    )
    return list(db.execute(stmt).scalars().all())


def _own_entry(db: Session, ctx: SessionContext, history_id: UUID) -> AIChatHistory:
    entry = db.execute(
        select(AIChatHistory).where(
            AIChatHistory.id == history_id,
            AIChatHistory.user_id == ctx.user_id,
        )
    ).scalar_one_or_none()
    if entry is None:
        raise NotFound("Chat history not found")
    return entry


@router.get("/history/{history_id}", response_model=ChatHistoryOut)
def get_history(
    history_id: UUID,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    return _own_entry(db, ctx, history_id)


@router.delete("/history/{history_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_history(
    history_id: UUID,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    entry = _own_entry(db, ctx, history_id)
    db.delete(entry)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Deleting chat history failed id=%s", history_id)
        raise BackendError("Error deleting chat history") from exc
