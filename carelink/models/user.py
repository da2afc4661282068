from sqlalchemy import Boolean, Column, String, text
from sqlalchemy.orm import relationship

from carelink.models.base import BaseModel


class User(BaseModel):
    __tablename__ = "users"

    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    # Role chosen at signup: patient | doctor | admin
    role = Column(String(50), nullable=False, default="patient", server_default=text("'patient'"))
    is_active = Column(Boolean, nullable=False, default=True, server_default=text("true"))

    profile = relationship(
        "Profile",
        back_populates="user",
        uselist=False,
        cascade="all, delete",
    )
    verifications = relationship(
        "DoctorVerification",
        back_populates="user",
        foreign_keys="DoctorVerification.user_id",
        cascade="all, delete",
    )
    posts = relationship("Post", back_populates="author", cascade="all, delete")
    likes = relationship("Like", cascade="all, delete")
    comments = relationship("Comment", back_populates="author", cascade="all, delete")
    sent_messages = relationship(
        "Message",
        foreign_keys="Message.sender_id",
        cascade="all, delete",
    )
    received_messages = relationship(
        "Message",
        foreign_keys="Message.receiver_id",
        cascade="all, delete",
    )
    sent_requests = relationship(
        "Friendship",
        back_populates="requester",
        foreign_keys="Friendship.requester_id",
        cascade="all, delete",
    )
    received_requests = relationship(
        "Friendship",
        back_populates="receiver",
        foreign_keys="Friendship.receiver_id",
        cascade="all, delete",
    )
    chat_histories = relationship("AIChatHistory", cascade="all, delete")
