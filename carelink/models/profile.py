from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, Uuid, text
from sqlalchemy.orm import relationship

from carelink.models.base import BaseModel


class Profile(BaseModel):
    """Application-visible user record, one per user.

    ``is_verified`` is a cached projection of the latest doctor verification
    status and is never consulted on its own when deriving a badge.
    """
    __tablename__ = "profiles"

    user_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )
    username = Column(String(100), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=True)
    bio = Column(Text, nullable=True)
    role = Column(String(50), nullable=False, default="patient", server_default=text("'patient'"))
    is_verified = Column(Boolean, nullable=False, default=False, server_default=text("false"))
    verification_date = Column(DateTime(timezone=True), nullable=True)

    specialization = Column(String(255), nullable=True)
    license_number = Column(String(100), nullable=True)
    hospital = Column(String(255), nullable=True)
    years_of_experience = Column(Integer, nullable=True)
    phone_number = Column(String(50), nullable=True)

    user = relationship("User", back_populates="profile")
