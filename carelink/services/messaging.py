import logging
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from carelink.core.errors import BackendError, NotFound, ValidationError
from carelink.core.session import SessionContext
from carelink.models.base import utcnow
from carelink.models.message import Message
from carelink.models.user import User
from carelink.services.realtime import ChangeEvent, change_feed

logger = logging.getLogger(__name__)


def message_record(message: Message) -> dict:
    return {
        "id": str(message.id),
        "sender_id": str(message.sender_id),
        "receiver_id": str(message.receiver_id),
        "content": message.content,
        "created_at": message.created_at.isoformat() if message.created_at else None,
        "read_at": message.read_at.isoformat() if message.read_at else None,
    }


def send_message(db: Session, ctx: SessionContext, receiver_id: UUID, content: str) -> Message:
    text = (content or "").strip()
    if not text:
        raise ValidationError("Message cannot be empty")
    if db.get(User, receiver_id) is None:
        raise NotFound("User not found")

    message = Message(sender_id=ctx.user_id, receiver_id=receiver_id, content=text)
    db.add(message)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Sending message failed sender=%s receiver=%s", ctx.user_id, receiver_id)
        raise BackendError("Failed to send message. Please try again.") from exc
    db.refresh(message)
    change_feed.publish("messages", "INSERT", message_record(message))
    return message


def conversation(db: Session, user_id: UUID, other_id: UUID) -> list[Message]:
    """Messages between two users, oldest first."""
    sent = db.execute(
        select(Message).where(Message.sender_id == user_id, Message.receiver_id == other_id)
    ).scalars().all()
    received = db.execute(
        select(Message).where(Message.sender_id == other_id, Message.receiver_id == user_id)
    ).scalars().all()
    merged = {m.id: m for m in [*sent, *received]}
    return sorted(merged.values(), key=lambda m: m.created_at)


def mark_read(db: Session, ctx: SessionContext, other_id: UUID) -> int:
    """Stamp ``read_at`` on unread messages from ``other_id``. Returns how many changed."""
    result = db.execute(
        update(Message)
        .where(
            Message.sender_id == other_id,
            Message.receiver_id == ctx.user_id,
            Message.read_at.is_(None),
        )
        .values(read_at=utcnow())
    )
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Marking messages read failed user=%s", ctx.user_id)
        raise BackendError() from exc
    return result.rowcount or 0


class ConversationView:
    """Client-side transcript of one conversation.

    Seeded from a snapshot and then fed live change events. A message id is
    only ever appended once, whatever the transport redelivers.
    """

    def __init__(self, user_id, other_id, messages=()):
        self.user_id = str(user_id)
        self.other_id = str(other_id)
        self.messages: list[dict] = []
        self._seen: set[str] = set()
        for message in messages:
            self.add(message if isinstance(message, dict) else message_record(message))

    def belongs(self, record: dict) -> bool:
        pair = {record.get("sender_id"), record.get("receiver_id")}
        return pair == {self.user_id, self.other_id}

    def add(self, record: dict) -> bool:
        """Append a message record. Returns False for duplicates and foreign messages."""
        if not self.belongs(record):
            return False
        message_id = str(record["id"])
        if message_id in self._seen:
            return False
        self._seen.add(message_id)
        self.messages.append(record)
        return True

    def apply(self, event: ChangeEvent) -> bool:
        if event.table != "messages" or event.event != "INSERT":
            return False
        return self.add(event.record)

    def subscription_filters(self) -> dict:
        pair = {self.user_id, self.other_id}
        return {"sender_id": pair, "receiver_id": pair}
