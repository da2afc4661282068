from sqlalchemy import Column, DateTime, ForeignKey, String, Uuid, text
from sqlalchemy.orm import relationship

from carelink.models.base import BaseModel


class DoctorVerification(BaseModel):
    """One submission of a doctor ID. The most recent row per user is authoritative."""
    __tablename__ = "doctor_verifications"

    user_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Path inside the verification bucket of the blob store.
    doctor_id_image_url = Column(String(512), nullable=True)
    status = Column(String(20), nullable=False, default="unverified", server_default=text("'unverified'"), index=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    user = relationship("User", back_populates="verifications", foreign_keys=[user_id])
