"""Doctor verification workflow.

The status column of the most recent ``DoctorVerification`` row is the
source of truth for a doctor's trust state. ``Profile.is_verified`` is a
cached projection kept in sync here and never read when deriving a badge.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from carelink.core.config import settings
from carelink.core.errors import BackendError, Conflict, NotFound, PermissionDenied, ValidationError
from carelink.core.session import SessionContext
from carelink.models.base import utcnow
from carelink.models.doctor_verification import DoctorVerification
from carelink.models.profile import Profile
from carelink.services.blob_store import BlobStoreError, LocalBlobStore, safe_filename
from carelink.services.realtime import change_feed
from carelink.utils.audit import VERIFICATION_SUBMITTED, log_action, review_action

logger = logging.getLogger(__name__)


class VerificationStatus(str, Enum):
    UNVERIFIED = "unverified"
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


# Spellings written by older clients.
_LEGACY_STATUSES = {
    "": VerificationStatus.UNVERIFIED,
    "none": VerificationStatus.UNVERIFIED,
    "approved": VerificationStatus.VERIFIED,
}


def normalize_status(raw: str | VerificationStatus | None) -> VerificationStatus:
    if isinstance(raw, VerificationStatus):
        return raw
    value = (raw or "").strip().lower()
    if value in _LEGACY_STATUSES:
        return _LEGACY_STATUSES[value]
    try:
        return VerificationStatus(value)
    except ValueError:
        raise ValueError(f"Unknown verification status: {raw!r}") from None


class BadgeKind(str, Enum):
    PATIENT = "patient"
    UNVERIFIED_DOCTOR = "unverified_doctor"
    PENDING_DOCTOR = "pending_doctor"
    VERIFIED_DOCTOR = "verified_doctor"
    REJECTED_DOCTOR = "rejected_doctor"


@dataclass(frozen=True)
class Badge:
    kind: BadgeKind
    label: str
    tone: str

    @property
    def is_verified(self) -> bool:
        return self.kind is BadgeKind.VERIFIED_DOCTOR

    def as_dict(self) -> dict:
        return {"kind": self.kind.value, "label": self.label, "tone": self.tone}


_BADGES = {
    BadgeKind.PATIENT: Badge(BadgeKind.PATIENT, "Patient", "neutral"),
    BadgeKind.UNVERIFIED_DOCTOR: Badge(BadgeKind.UNVERIFIED_DOCTOR, "Doctor (Unverified)", "muted"),
    BadgeKind.PENDING_DOCTOR: Badge(BadgeKind.PENDING_DOCTOR, "Doctor (Verification Pending)", "warning"),
    BadgeKind.VERIFIED_DOCTOR: Badge(BadgeKind.VERIFIED_DOCTOR, "Verified Doctor", "success"),
    BadgeKind.REJECTED_DOCTOR: Badge(BadgeKind.REJECTED_DOCTOR, "Doctor (Verification Rejected)", "danger"),
}

_STATUS_BADGES = {
    VerificationStatus.UNVERIFIED: BadgeKind.UNVERIFIED_DOCTOR,
    VerificationStatus.PENDING: BadgeKind.PENDING_DOCTOR,
    VerificationStatus.VERIFIED: BadgeKind.VERIFIED_DOCTOR,
    VerificationStatus.REJECTED: BadgeKind.REJECTED_DOCTOR,
}


def derive_badge(role: str | None, latest_status: str | VerificationStatus | None) -> BadgeKind:
    """Pick the badge for a user.

    Anyone who is not a doctor is a patient. A doctor without any
    verification row is unverified; otherwise the latest row's status decides.
    """
    if role != "doctor":
        return BadgeKind.PATIENT
    if latest_status is None:
        return BadgeKind.UNVERIFIED_DOCTOR
    return _STATUS_BADGES[normalize_status(latest_status)]


def render_badge(kind: BadgeKind) -> Badge:
    return _BADGES[kind]


def latest_verification(db: Session, user_id: UUID) -> DoctorVerification | None:
    stmt = (
        select(DoctorVerification)
        .where(DoctorVerification.user_id == user_id)
        .order_by(DoctorVerification.created_at.desc())
        .limit(1)
    )
    return db.execute(stmt).scalars().first()


def latest_statuses(db: Session, user_ids) -> dict[UUID, str]:
    """Latest raw status per user, for users that have at least one row."""
    ids = set(user_ids)
    if not ids:
        return {}
    stmt = (
        select(DoctorVerification.user_id, DoctorVerification.status)
        .where(DoctorVerification.user_id.in_(ids))
        .order_by(DoctorVerification.created_at.desc())
    )
    result: dict[UUID, str] = {}
    for user_id, status in db.execute(stmt).all():
        result.setdefault(user_id, status)
    return result


def badge_for_profile(db: Session, profile: Profile) -> Badge:
    latest = latest_verification(db, profile.user_id) if profile.role == "doctor" else None
    return render_badge(derive_badge(profile.role, latest.status if latest else None))


def profile_payloads(db: Session, profiles) -> list[dict]:
    """Serialise profiles with ``is_verified`` and ``badge`` taken from the latest status.

    The stored ``Profile.is_verified`` column is replaced, so a stale cache
    never reaches a client.
    """
    profiles = list(profiles)
    statuses = latest_statuses(db, (p.user_id for p in profiles if p.role == "doctor"))
    payloads = []
    for profile in profiles:
        badge = render_badge(derive_badge(profile.role, statuses.get(profile.user_id)))
        data = {column.key: getattr(profile, column.key) for column in Profile.__table__.columns}
        data["is_verified"] = badge.is_verified
        data["badge"] = badge.as_dict()
        payloads.append(data)
    return payloads


def validate_upload(content_type: str | None, size: int) -> None:
    """Reject a verification document before anything is stored."""
    content_type = (content_type or "").lower()
    if not (content_type.startswith("image/") or content_type == "application/pdf"):
        raise ValidationError("Please select an image file")
    if size <= 0:
        raise ValidationError("No file provided")
    if size > settings.MAX_VERIFICATION_FILE_BYTES:
        limit_mb = settings.MAX_VERIFICATION_FILE_BYTES // (1024 * 1024)
        raise ValidationError(f"Image size must be less than {limit_mb}MB")


def _publish(record: DoctorVerification, event: str) -> None:
    change_feed.publish(
        "doctor_verifications",
        event,
        {
            "id": str(record.id),
            "user_id": str(record.user_id),
            "status": record.status,
        },
    )


def submit_verification(
    db: Session,
    store: LocalBlobStore,
    ctx: SessionContext,
    filename: str | None,
    content_type: str | None,
    data: bytes,
    ip_address: str | None = None,
) -> DoctorVerification:
    """Store a doctor ID document and put the doctor in the review queue.

    The latest row is reused while it is still unverified or pending; after
    a decision a resubmission starts a new row so the history is kept.
    """
    if ctx.role != "doctor":
        raise PermissionDenied("Doctor only")
    validate_upload(content_type, len(data))

    path = f"{ctx.user_id}/{int(time.time() * 1000)}-{safe_filename(filename)}"
    try:
        store.upload(settings.VERIFICATION_BUCKET, path, data, upsert=True)
    except BlobStoreError as exc:
        logger.exception("Verification upload failed user_id=%s", ctx.user_id)
        raise BackendError("Failed to upload document. Please try again.") from exc

    now = utcnow()
    latest = latest_verification(db, ctx.user_id)
    reuse = latest is not None and normalize_status(latest.status) in (
        VerificationStatus.UNVERIFIED,
        VerificationStatus.PENDING,
    )
    record = latest if reuse else DoctorVerification(user_id=ctx.user_id)
    record.doctor_id_image_url = path
    record.status = VerificationStatus.PENDING.value
    record.submitted_at = now
    record.verified_at = None
    record.reviewed_by = None
    ctx.profile.is_verified = False
    ctx.profile.verification_date = None
    db.add(record)
    db.add(ctx.profile)
    try:
        db.flush()
        log_action(
            db,
            ctx.user_id,
            VERIFICATION_SUBMITTED,
            "doctor_verification",
            str(record.id),
            details={"path": path, "resubmission": latest is not None},
            ip_address=ip_address,
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("Verification record not saved; orphaned blob left at %s/%s", settings.VERIFICATION_BUCKET, path)
        raise BackendError("Failed to save verification. Please try again.") from exc

    db.refresh(record)
    logger.info("Verification submitted user_id=%s verification_id=%s", ctx.user_id, record.id)
    _publish(record, "UPDATE" if reuse else "INSERT")
    return record


def sync_profile_flag(db: Session, user_id: UUID) -> None:
    """Re-project the cached ``is_verified`` flag from the latest status. Does not commit."""
    profile = db.execute(select(Profile).where(Profile.user_id == user_id)).scalar_one_or_none()
    if profile is None:
        return
    latest = latest_verification(db, user_id)
    verified = latest is not None and normalize_status(latest.status) is VerificationStatus.VERIFIED
    profile.is_verified = verified
    profile.verification_date = latest.verified_at if verified else None
    db.add(profile)


def review_verification(
    db: Session,
    ctx: SessionContext,
    verification_id: UUID,
    decision: VerificationStatus,
    ip_address: str | None = None,
) -> DoctorVerification:
    if not ctx.is_admin:
        raise PermissionDenied("Admin only")
    if decision not in (VerificationStatus.VERIFIED, VerificationStatus.REJECTED):
        raise ValidationError("Decision must be verified or rejected")

    record = db.get(DoctorVerification, verification_id)
    if record is None:
        raise NotFound("Verification not found")
    if normalize_status(record.status) is not VerificationStatus.PENDING:
        raise Conflict("Only pending verifications can be reviewed")

    record.status = decision.value
    record.verified_at = utcnow() if decision is VerificationStatus.VERIFIED else None
    record.reviewed_by = ctx.user_id
    db.add(record)
    try:
        db.flush()
        sync_profile_flag(db, record.user_id)
        log_action(
            db,
            ctx.user_id,
            review_action(decision.value),
            "doctor_verification",
            str(record.id),
            details={"doctor_id": str(record.user_id)},
            ip_address=ip_address,
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Verification review failed verification_id=%s", verification_id)
        raise BackendError() from exc

    db.refresh(record)
    logger.info("Verification %s verification_id=%s by=%s", decision.value, record.id, ctx.user_id)
    _publish(record, "UPDATE")
    return record


def list_verifications(db: Session, status: VerificationStatus | None = None) -> list[DoctorVerification]:
    stmt = select(DoctorVerification).order_by(DoctorVerification.created_at.desc())
    if status is not None:
        stmt = stmt.where(DoctorVerification.status == status.value)
    return list(db.execute(stmt).scalars().all())


def normalize_stored_statuses(db: Session) -> int:
    """Rewrite legacy status spellings and re-sync every cached profile flag.

    Unknown values are reset to ``unverified`` so the doctor has to resubmit.
    Returns the number of rows rewritten.
    """
    changed = 0
    user_ids = set()
    for record in db.execute(select(DoctorVerification)).scalars():
        user_ids.add(record.user_id)
        try:
            canonical = normalize_status(record.status)
        except ValueError:
            logger.warning("Unknown verification status %r on %s, resetting", record.status, record.id)
            canonical = VerificationStatus.UNVERIFIED
        if record.status != canonical.value:
            record.status = canonical.value
            changed += 1
    db.flush()

    doctor_ids = db.execute(select(Profile.user_id).where(Profile.role == "doctor")).scalars().all()
    for user_id in user_ids | set(doctor_ids):
        sync_profile_flag(db, user_id)
    db.commit()
    logger.info("Normalized %s verification rows", changed)
    return changed


def verification_for_viewer(db: Session, ctx: SessionContext, verification_id: UUID) -> DoctorVerification:
    """A verification whose document the caller may see: their own, or any for an admin.

    Other users get the same 404 as for a missing row.
    """
    record = db.get(DoctorVerification, verification_id)
    if record is None or (record.user_id != ctx.user_id and not ctx.is_admin):
        raise NotFound("Verification not found")
    if not record.doctor_id_image_url:
        raise NotFound("Document not found")
    return record
