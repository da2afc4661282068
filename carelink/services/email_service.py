import asyncio
import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr

from carelink.core.config import settings

logger = logging.getLogger(__name__)


def _smtp_configured() -> bool:
    return all([settings.SMTP_HOST, settings.SMTP_USER, settings.SMTP_PASSWORD, settings.SMTP_FROM])


def _send_smtp_text_sync(to_email: str, subject: str, body: str) -> None:
    """Send a plain-text mail over SMTP (blocking)."""
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = formataddr((settings.PROJECT_NAME, settings.SMTP_FROM))
    msg["To"] = to_email
    msg.set_content(body)
    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as server:
        server.starttls()
        server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        server.send_message(msg)


async def _send(to_email: str, subject: str, body: str) -> bool:
    if not _smtp_configured():
        logger.warning("SMTP not configured: mail '%s' not sent", subject)
        return False
    try:
        await asyncio.to_thread(_send_smtp_text_sync, to_email, subject, body)
        return True
    except Exception as e:
        logger.exception("Failed to send mail '%s': %s", subject, e)
        return False


async def send_verification_submitted_email(doctor_name: str, doctor_email: str, verification_id: str) -> bool:
    """
    Tell the admin reviewers that a doctor ID is waiting for review.
    Returns False without raising when no notification address or SMTP is configured.
    """
    if not settings.ADMIN_NOTIFICATION_EMAIL:
        logger.info("ADMIN_NOTIFICATION_EMAIL not set: verification %s not announced", verification_id)
        return False

    subject = f"New doctor verification - {doctor_name}"
    body = f"""A doctor submitted an ID document for verification.

Doctor: {doctor_name} <{doctor_email}>
Verification: {verification_id}

Review it from the admin verification queue.

{settings.PROJECT_NAME}
"""
    return await _send(settings.ADMIN_NOTIFICATION_EMAIL, subject, body)


async def send_signup_email(to_email: str, full_name: str) -> bool:
    """Welcome mail pointing at the configured redirect URL."""
    link = settings.EMAIL_REDIRECT_URL or f"{settings.FRONTEND_URL.rstrip('/')}/auth/login"
    subject = f"Welcome to {settings.PROJECT_NAME}"
    body = f"""Hello {full_name or to_email},

Your account has been created. Sign in here:

{link}

If you did not create this account, you can ignore this mail.

{settings.PROJECT_NAME}
"""
    return await _send(to_email, subject, body)
