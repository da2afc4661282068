from sqlalchemy import JSON, Boolean, Column, Date, ForeignKey, String, Text, Uuid, text

from carelink.models.base import BaseModel


class AIChatHistory(BaseModel):
    """A saved AI assistant conversation together with the symptom log it belongs to."""
    __tablename__ = "ai_doctor_chat_history"

    user_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    symptom = Column(String(255), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    is_ongoing = Column(Boolean, nullable=False, default=True, server_default=text("true"))
    duration = Column(String(255), nullable=True)
    patterns = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    # [{"role": ..., "content": ..., "timestamp": ...}, ...]
    chat_messages = Column(JSON, nullable=False, default=list)
