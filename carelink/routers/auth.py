import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Response, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from carelink.core.config import settings
from carelink.core.db import get_db
from carelink.core.deps import ACCESS_TOKEN_COOKIE, get_current_user
from carelink.core.errors import AuthenticationRequired, BackendError, ValidationError
from carelink.core.security import create_access_token, get_password_hash, verify_password
from carelink.models.profile import Profile
from carelink.models.user import User
from carelink.schemas.auth import LoginRequest, LoginResponse, SignUpRequest, UserOut
from carelink.services.email_service import send_signup_email
from carelink.services.profiles import username_from_email

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])

ALREADY_REGISTERED = "This email is already registered. Please log in instead."


def _mask_email(email: str) -> str:
    if not email or "@" not in email:
        return email
    name, domain = email.split("@", 1)
    if len(name) <= 2:
        masked = (name[:1] + "*") if name else "*"
    else:
        masked = name[:1] + ("*" * (len(name) - 2)) + name[-1:]
    return f"{masked}@{domain}"


def _issue_token(response: Response, user: User) -> LoginResponse:
    token = create_access_token(sub=str(user.id), role=user.role)
    response.set_cookie(
        key=ACCESS_TOKEN_COOKIE,
        value=token,
        httponly=True,
        secure=settings.APP_ENV.lower() == "production",
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        path="/",
    )
    return LoginResponse(access_token=token, token_type="bearer", user_id=user.id, role=user.role)


@router.post("/signup", response_model=LoginResponse, status_code=status.HTTP_201_CREATED)
def sign_up(
    payload: SignUpRequest,
    response: Response,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    email = payload.email.strip().lower()
    username = username_from_email(email)
    if payload.role == "doctor" and not (payload.specialization or "").strip():
        raise ValidationError("Please select your specialization")

    taken = db.execute(select(User.id).where(User.email == email)).first() or db.execute(
        select(Profile.id).where(Profile.username == username)
    ).first()
    if taken:
        logger.warning("Signup rejected: already registered email=%s", _mask_email(email))
        raise ValidationError(ALREADY_REGISTERED)

    user = User(
        email=email,
        password_hash=get_password_hash(payload.password),
        role=payload.role,
        is_active=True,
    )
    db.add(user)
    try:
        db.flush()
        db.add(
            Profile(
                user_id=user.id,
                username=username,
                full_name=payload.full_name.strip(),
                role=payload.role,
                is_verified=False,
                specialization=payload.specialization if payload.role == "doctor" else None,
                license_number=payload.license_number if payload.role == "doctor" else None,
            )
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationError(ALREADY_REGISTERED)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Signup failed: database error")
        raise BackendError() from exc
    db.refresh(user)

    logger.info("User signed up email=%s role=%s", _mask_email(email), user.role)
    background_tasks.add_task(send_signup_email, to_email=email, full_name=payload.full_name)
    return _issue_token(response, user)


@router.post("/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    response: Response,
    db: Session = Depends(get_db),
):
    email = payload.email.strip().lower()
    try:
        user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
        if not user or not verify_password(payload.password, user.password_hash):
            logger.warning("Login failed email=%s", _mask_email(email))
            raise AuthenticationRequired("Incorrect email or password")
        if not user.is_active:
            logger.warning("Login failed: inactive user email=%s", _mask_email(email))
            raise AuthenticationRequired("Inactive user")
        return _issue_token(response, user)
    except HTTPException:
        raise
    except SQLAlchemyError as exc:
        logger.exception("Login failed: database error")
        raise BackendError("Database unavailable") from exc


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(key=ACCESS_TOKEN_COOKIE, path="/")
    return {"message": "Logged out"}


@router.get("/me", response_model=UserOut)
def me(current_user: User = Depends(get_current_user)):
    return current_user
