from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from carelink.schemas.profile import ProfileOut


class MessageCreate(BaseModel):
    content: str = Field(max_length=5000)


class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    sender_id: UUID
    receiver_id: UUID
    content: str
    created_at: datetime
    read_at: datetime | None = None


class ConversationOut(BaseModel):
    partner: ProfileOut
    messages: list[MessageOut]
