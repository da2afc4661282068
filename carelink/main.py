import logging
import os

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import select

from carelink.core.config import settings
from carelink.core.db import Base, SessionLocal, engine
from carelink.core.security import get_password_hash
from carelink.models import (  # noqa: F401  registers every table on Base.metadata
    ai_chat_history,
    audit_log,
    doctor_verification,
    friendship,
    message,
    post,
    profile,
)
from carelink.models.user import User
from carelink.routers import health
from carelink.routers.admin import router as admin_router
from carelink.routers.ai_doctor import router as ai_doctor_router
from carelink.routers.auth import router as auth_router
from carelink.routers.friends import router as friends_router
from carelink.routers.messages import router as messages_router
from carelink.routers.posts import router as posts_router
from carelink.routers.profiles import router as profiles_router
from carelink.routers.verification import router as verification_router
from carelink.services.profiles import ensure_profile

logger = logging.getLogger(__name__)
APP_VERSION = "0.1.0"

app = FastAPI(
    title="CareLink API",
    description="Healthcare social network: profiles, doctor verification, feed, friends, messaging and an AI assistant",
    version=APP_VERSION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_app_version_header(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-App-Version"] = APP_VERSION
    return response


@app.exception_handler(Exception)
def global_exception_handler(request: Request, exc: Exception):
    """Unhandled errors become a 500 that still carries CORS headers, so the browser sees the real error."""
    if isinstance(exc, HTTPException):
        raise exc
    logger.exception("Unhandled exception: %s", exc)
    origin = request.headers.get("origin", "")
    cors_headers = {}
    if origin in settings.CORS_ORIGINS:
        cors_headers["Access-Control-Allow-Origin"] = origin
        cors_headers["Access-Control-Allow-Credentials"] = "true"
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
        headers=cors_headers,
    )


app.include_router(health.router, tags=["health"])
app.include_router(auth_router)
app.include_router(profiles_router)
app.include_router(verification_router)
app.include_router(admin_router)
app.include_router(friends_router)
app.include_router(posts_router)
app.include_router(messages_router)
app.include_router(ai_doctor_router)


@app.on_event("startup")
def on_startup() -> None:
    Base.metadata.create_all(bind=engine)
    os.makedirs(os.path.join(settings.UPLOAD_DIR, settings.VERIFICATION_BUCKET), exist_ok=True)
    logger.info("App version: %s", APP_VERSION)
    seed_admin_user()


def seed_admin_user() -> None:
    """Create the reviewer account from ADMIN_EMAIL / ADMIN_PASSWORD when both are set."""
    if not settings.ADMIN_EMAIL or not settings.ADMIN_PASSWORD:
        return

    db = SessionLocal()
    try:
        existing = db.execute(select(User).where(User.email == settings.ADMIN_EMAIL)).scalar_one_or_none()
        if existing:
            return
        admin = User(
            email=settings.ADMIN_EMAIL,
            password_hash=get_password_hash(settings.ADMIN_PASSWORD),
            role="admin",
            is_active=True,
        )
        db.add(admin)
        db.commit()
        ensure_profile(db, admin)
        logger.info("Admin user created")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
