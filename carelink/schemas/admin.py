from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from carelink.schemas.verification import VerificationOut


class PendingVerificationOut(VerificationOut):
    username: str | None = None
    full_name: str | None = None
    email: str | None = None


class AuditLogOut(BaseModel):
    id: UUID
    actor_id: UUID | None = None
    action: str
    entity_type: str
    entity_id: str
    timestamp: datetime
    ip_address: str | None = None
    details: str | None = None
