from sqlalchemy import Column, ForeignKey, String, UniqueConstraint, Uuid, text
from sqlalchemy.orm import relationship

from carelink.models.base import BaseModel


def make_pair_key(a, b) -> str:
    """Order-independent key for an unordered pair of user ids."""
    low, high = sorted((str(a), str(b)))
    return f"{low}:{high}"


class Friendship(BaseModel):
    __tablename__ = "friendships"
    __table_args__ = (UniqueConstraint("pair_key", name="uq_friendship_pair"),)

    requester_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    receiver_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # pending | accepted
    status = Column(String(20), nullable=False, default="pending", server_default=text("'pending'"))
    pair_key = Column(String(80), nullable=False)

    requester = relationship("User", foreign_keys=[requester_id], back_populates="sent_requests")
    receiver = relationship("User", foreign_keys=[receiver_id], back_populates="received_requests")

    def __init__(self, **kwargs):
        if "pair_key" not in kwargs and "requester_id" in kwargs and "receiver_id" in kwargs:
            kwargs["pair_key"] = make_pair_key(kwargs["requester_id"], kwargs["receiver_id"])
        super().__init__(**kwargs)
