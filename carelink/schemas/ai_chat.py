from datetime import date, datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime | None = None


class ChatRequest(BaseModel):
    """The whole client-held transcript, ending with the new user message."""
    messages: list[ChatTurn] = Field(min_length=1)
    api_key: str | None = None
    stream: bool = True


class ChatHistoryCreate(BaseModel):
    symptom: str
    start_date: date
    end_date: date | None = None
    is_ongoing: bool = True
    duration: str | None = None
    patterns: str | None = None
    notes: str | None = None
    chat_messages: list[ChatTurn]


class ChatHistoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    symptom: str
    start_date: date
    end_date: date | None = None
    is_ongoing: bool
    duration: str | None = None
    patterns: str | None = None
    notes: str | None = None
    chat_messages: list[ChatTurn]
    created_at: datetime
