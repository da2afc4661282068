from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class BadgeOut(BaseModel):
    kind: Literal["patient", "unverified_doctor", "pending_doctor", "verified_doctor", "rejected_doctor"]
    label: str
    tone: str


class ProfileUpdate(BaseModel):
    """Editable profile fields. Username and role cannot be changed."""
    full_name: str | None = Field(default=None, max_length=255)
    bio: str | None = None
    specialization: str | None = None
    hospital: str | None = None
    years_of_experience: int | None = Field(default=None, ge=0, le=80)
    phone_number: str | None = None


class ProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    username: str
    full_name: str | None = None
    bio: str | None = None
    role: str
    is_verified: bool
    specialization: str | None = None
    license_number: str | None = None
    hospital: str | None = None
    years_of_experience: int | None = None
    phone_number: str | None = None
    created_at: datetime
    badge: BadgeOut | None = None


class ProfileDetailOut(ProfileOut):
    badge: BadgeOut
    # self | friends | request_sent | request_received | none
    relationship: str = "none"


class AuthorOut(BaseModel):
    id: UUID
    username: str
    full_name: str | None = None
    role: str
    is_verified: bool
    badge: BadgeOut


class DeleteAccountRequest(BaseModel):
    userId: UUID
