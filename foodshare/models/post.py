"""Post store: donation and request posts with their lifecycle status."""
import enum

from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.sql import func
from foodshare.database import Base
from foodshare.models.user import new_id


class PostType(str, enum.Enum):
    donation = "donation"
    request = "request"


class PostStatus(str, enum.Enum):
    active = "active"
    claimed = "claimed"
    picked_up = "pickedUp"
    completed = "completed"
    # Terminal; set only by maintenance/admin tooling, never by a lifecycle transition
    expired = "expired"
    deleted = "deleted"


# Statuses in which claimer_id is set
CLAIMED_STATUSES = frozenset({PostStatus.claimed, PostStatus.picked_up, PostStatus.completed})


class Post(Base):
    __tablename__ = "food_posts"

    id = Column(String(36), primary_key=True, default=new_id)
    type = Column(SQLEnum(PostType), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    quantity = Column(String(255), nullable=False)
    location = Column(String(500), nullable=False)
    expiry_date = Column(DateTime(timezone=True), nullable=False)
    status = Column(SQLEnum(PostStatus), nullable=False, default=PostStatus.active, index=True)
    urgency = Column(String(50), nullable=True)  # requests only

    owner_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    claimer_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
