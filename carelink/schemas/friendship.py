from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from carelink.schemas.profile import ProfileOut


class FriendshipOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    requester_id: UUID
    receiver_id: UUID
    status: str
    created_at: datetime


class FriendsOverview(BaseModel):
    friends: list[ProfileOut]
    incoming: list[ProfileOut]
    outgoing: list[ProfileOut]
