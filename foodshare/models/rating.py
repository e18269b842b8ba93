"""Ratings left between the two participants of a completed post."""
from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from foodshare.database import Base
from foodshare.models.user import new_id


class Rating(Base):
    __tablename__ = "ratings"
    __table_args__ = (
        UniqueConstraint("rater_user_id", "rated_user_id", "post_id", name="uq_ratings_rater_rated_post"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    rater_user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    rated_user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    post_id = Column(String(36), ForeignKey("food_posts.id"), nullable=False)
    value = Column(Integer, nullable=False)  # 1..5
    comment = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
