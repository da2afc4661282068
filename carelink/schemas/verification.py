from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from carelink.schemas.profile import BadgeOut


class VerificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    doctor_id_image_url: str | None = None
    status: str
    submitted_at: datetime | None = None
    verified_at: datetime | None = None
    created_at: datetime


class VerificationStatusOut(BaseModel):
    badge: BadgeOut
    latest: VerificationOut | None = None


class UploadVerificationResponse(BaseModel):
    success: bool = True
    message: str


class UploadUrlResponse(BaseModel):
    url: str
