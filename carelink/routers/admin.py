from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from carelink.core.db import get_db
from carelink.core.deps import require_admin
from carelink.core.errors import ValidationError
from carelink.core.session import SessionContext
from carelink.models.audit_log import AuditLog
from carelink.models.profile import Profile
from carelink.models.user import User
from carelink.schemas.admin import AuditLogOut, PendingVerificationOut
from carelink.schemas.verification import VerificationOut
from carelink.services.verification import (
    VerificationStatus,
    list_verifications,
    normalize_status,
    review_verification,
)
from carelink.utils.audit import client_ip

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/verifications", response_model=list[PendingVerificationOut])
def list_doctor_verifications(
    status: str | None = Query("pending"),
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_admin),
):
    wanted = None
    if status:
        try:
            wanted = normalize_status(status)
        except ValueError:
            raise ValidationError(f"Unknown status: {status}")
    records = list_verifications(db, wanted)
    user_ids = {r.user_id for r in records}
    rows = db.execute(
        select(User.id, User.email, Profile.username, Profile.full_name)
        .outerjoin(Profile, Profile.user_id == User.id)
        .where(User.id.in_(user_ids))
    ).all() if user_ids else []
    people = {row[0]: row for row in rows}
    result = []
    for record in records:
        person = people.get(record.user_id)
        result.append(
            PendingVerificationOut(
                **VerificationOut.model_validate(record).model_dump(),
                email=person[1] if person else None,
                username=person[2] if person else None,
                full_name=person[3] if person else None,
            )
        )
    return result


@router.post("/verifications/{verification_id}/approve", response_model=VerificationOut)
def approve_verification(
    verification_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_admin),
):
    return review_verification(
        db, ctx, verification_id, VerificationStatus.VERIFIED, ip_address=client_ip(request)
    )


@router.post("/verifications/{verification_id}/reject", response_model=VerificationOut)
def reject_verification(
    verification_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_admin),
):
    return review_verification(
        db, ctx, verification_id, VerificationStatus.REJECTED, ip_address=client_ip(request)
    )


@router.get("/audit", response_model=list[AuditLogOut])
def list_audit_logs(
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_admin),
    action: str | None = Query(None),
    date_from: datetime | None = Query(None),
    date_to: datetime | None = Query(None),
):
    stmt = select(AuditLog).order_by(AuditLog.timestamp.desc())
    if action is not None:
        stmt = stmt.where(AuditLog.action == action)
    if date_from is not None:
        stmt = stmt.where(AuditLog.timestamp >= date_from)
    if date_to is not None:
        stmt = stmt.where(AuditLog.timestamp <= date_to)
    return [
        AuditLogOut(
            id=entry.id,
            actor_id=entry.actor_id,
            action=entry.action,
            entity_type=entry.entity_type,
            entity_id=entry.entity_id,
            timestamp=entry.timestamp,
            ip_address=entry.ip_address,
            details=entry.details,
        )
        for entry in db.execute(stmt).scalars().all()
    ]
