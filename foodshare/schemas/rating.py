"""Rating schemas."""
from datetime import datetime
from pydantic import BaseModel


class RatingCreate(BaseModel):
    rated_user_id: str
    post_id: str
    value: int
    comment: str | None = None


class RatingResponse(BaseModel):
    id: str
    rater_user_id: str
    rated_user_id: str
    post_id: str
    value: int
    comment: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class HasRatedResponse(BaseModel):
    has_rated: bool
