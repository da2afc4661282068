import json
from uuid import UUID

from fastapi import Request
from sqlalchemy.orm import Session

from carelink.models.audit_log import AuditLog

# Actions written to audit_logs.
VERIFICATION_SUBMITTED = "VERIFICATION_SUBMITTED"
ACCOUNT_DELETED = "ACCOUNT_DELETED"


def review_action(decision: str) -> str:
    """VERIFICATION_VERIFIED / VERIFICATION_REJECTED for a review decision."""
    return f"VERIFICATION_{decision.upper()}"


def client_ip(request: Request | None) -> str | None:
    """Caller address, preferring the first hop of X-Forwarded-For behind a proxy."""
    if request is None:
        return None
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",", 1)[0].strip()[:45] or None
    return request.client.host if request.client else None


def log_action(
    db: Session,
    actor_id: UUID | None,
    action: str,
    entity_type: str,
    entity_id,
    details: dict | None = None,
    ip_address: str | None = None,
) -> AuditLog:
    """Stage an audit row in the caller's transaction.

    ``actor_id`` is None when the actor no longer exists, e.g. a user who
    deleted their own account.
    """
    entry = AuditLog(
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        ip_address=ip_address,
        details=json.dumps(details, default=str, sort_keys=True) if details else None,
    )
    db.add(entry)
    return entry
