import logging
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from carelink.core.errors import BackendError, NotFound
from carelink.models.profile import Profile
from carelink.models.user import User

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("full_name", "bio", "specialization", "hospital", "years_of_experience", "phone_number")


def username_from_email(email: str) -> str:
    return email.split("@", 1)[0].strip().lower()


def _free_username(db: Session, base: str) -> str:
    candidate = base or "user"
    suffix = 1
    while db.execute(select(Profile.id).where(Profile.username == candidate)).first() is not None:
        suffix += 1
        candidate = f"{base}{suffix}"
    return candidate


def ensure_profile(db: Session, user: User) -> Profile:
    """Return the user's profile, creating it if it went missing."""
    profile = db.execute(select(Profile).where(Profile.user_id == user.id)).scalar_one_or_none()
    if profile is not None:
        return profile

    profile = Profile(
        user_id=user.id,
        username=_free_username(db, username_from_email(user.email)),
        role=user.role,
        is_verified=False,
    )
    db.add(profile)
    try:
        db.commit()
    except IntegrityError:
        # Another request created it first.
        db.rollback()
        return db.execute(select(Profile).where(Profile.user_id == user.id)).scalar_one()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Could not create missing profile user_id=%s", user.id)
        raise BackendError() from exc
    db.refresh(profile)
    logger.info("Created missing profile user_id=%s", user.id)
    return profile


def parse_user_id(raw: str) -> UUID:
    """Parse an id taken from a URL. Malformed ids are reported as not found."""
    try:
        return UUID(str(raw))
    except ValueError:
        raise NotFound("Profile not found")


def get_profile(db: Session, user_id: UUID) -> Profile:
    profile = db.execute(select(Profile).where(Profile.user_id == user_id)).scalar_one_or_none()
    if profile is None:
        raise NotFound("Profile not found")
    return profile


def update_profile(db: Session, profile: Profile, changes: dict) -> Profile:
    for field, value in changes.items():
        if field in EDITABLE_FIELDS:
            setattr(profile, field, value)
    db.add(profile)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Profile update failed user_id=%s", profile.user_id)
        raise BackendError() from exc
    db.refresh(profile)
    return profile


def search_profiles(db: Session, query: str, limit: int = 20) -> list[Profile]:
    """Case-insensitive substring match on username or full name. % and _ match literally."""
    q = query.strip()
    if not q:
        return []
    stmt = (
        select(Profile)
        .where(
            or_(
                Profile.username.icontains(q, autoescape=True),
                Profile.full_name.icontains(q, autoescape=True),
            )
        )
        .order_by(Profile.username.asc())
        .limit(limit)
    )
    return list(db.execute(stmt).scalars().all())
