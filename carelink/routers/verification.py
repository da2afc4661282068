from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, File, Request, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from carelink.core.config import settings
from carelink.core.db import get_db
from carelink.core.deps import get_blob_store, get_session_context, require_doctor
from carelink.core.errors import NotFound
from carelink.core.session import SessionContext
from carelink.models.doctor_verification import DoctorVerification
from carelink.schemas.verification import (
    UploadUrlResponse,
    UploadVerificationResponse,
    VerificationOut,
    VerificationStatusOut,
)
from carelink.services.blob_store import BlobStoreError, LocalBlobStore
from carelink.services.email_service import send_verification_submitted_email
from carelink.services.verification import (
    badge_for_profile,
    latest_verification,
    submit_verification,
    validate_upload,
    verification_for_viewer,
)
from carelink.utils.audit import client_ip

router = APIRouter(tags=["verification"])


def document_url(record: DoctorVerification) -> str:
    return f"/api/doctor/verifications/{record.id}/document"


async def _submit(
    request: Request,
    file: UploadFile,
    db: Session,
    store: LocalBlobStore,
    ctx: SessionContext,
    background_tasks: BackgroundTasks,
) -> DoctorVerification:
    # Cheap check on the declared size before reading the body.
    if file.size is not None:
        validate_upload(file.content_type, file.size)
    contents = await file.read()
    record = submit_verification(
        db,
        store,
        ctx,
        file.filename,
        file.content_type,
        contents,
        ip_address=client_ip(request),
    )
    background_tasks.add_task(
        send_verification_submitted_email,
        doctor_name=ctx.profile.full_name or ctx.profile.username,
        doctor_email=ctx.user.email,
        verification_id=str(record.id),
    )
    return record


@router.post("/api/doctor/upload-verification", response_model=UploadVerificationResponse)
async def upload_verification(
    request: Request,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    store: LocalBlobStore = Depends(get_blob_store),
    ctx: SessionContext = Depends(require_doctor),
):
    await _submit(request, file, db, store, ctx, background_tasks)
    return UploadVerificationResponse(success=True, message="Verification submitted successfully")


@router.post("/api/upload-doctor-id", response_model=UploadUrlResponse)
async def upload_doctor_id(
    request: Request,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    store: LocalBlobStore = Depends(get_blob_store),
    ctx: SessionContext = Depends(require_doctor),
):
    record = await _submit(request, file, db, store, ctx, background_tasks)
    return UploadUrlResponse(url=document_url(record))


@router.get("/api/doctor/verifications/{verification_id}/document")
def verification_document(
    verification_id: UUID,
    db: Session = Depends(get_db),
    store: LocalBlobStore = Depends(get_blob_store),
    ctx: SessionContext = Depends(get_session_context),
):
    """The uploaded ID document. Only its owner and admins can read it."""
    record = verification_for_viewer(db, ctx, verification_id)
    try:
        path = store.local_path(settings.VERIFICATION_BUCKET, record.doctor_id_image_url)
    except BlobStoreError:
        raise NotFound("Document not found")
    return FileResponse(path, headers={"Cache-Control": "private, no-store"})


@router.get("/verification/me", response_model=VerificationStatusOut)
def my_verification(
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    latest = latest_verification(db, ctx.user_id) if ctx.role == "doctor" else None
    return VerificationStatusOut(
        badge=badge_for_profile(db, ctx.profile).as_dict(),
        latest=VerificationOut.model_validate(latest) if latest else None,
    )
