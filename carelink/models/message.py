from sqlalchemy import Column, DateTime, ForeignKey, Text, Uuid

from carelink.models.base import BaseModel


class Message(BaseModel):
    __tablename__ = "messages"

    sender_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    receiver_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    content = Column(Text, nullable=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
