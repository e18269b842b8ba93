"""Post schemas."""
from datetime import datetime
from pydantic import BaseModel
from foodshare.models.post import PostStatus, PostType


class PostCreate(BaseModel):
    type: PostType
    title: str
    description: str
    quantity: str
    location: str
    expiry_date: datetime
    urgency: str | None = None  # requests only


class PostUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    quantity: str | None = None
    location: str | None = None
    expiry_date: datetime | None = None
    urgency: str | None = None


class PostResponse(BaseModel):
    id: str
    type: PostType
    title: str
    description: str
    quantity: str
    location: str
    expiry_date: datetime
    status: PostStatus
    urgency: str | None = None
    owner_id: str
    claimer_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True
