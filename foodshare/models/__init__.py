"""
All SQLAlchemy models. Schema is the source of truth for new DBs.
Base.metadata.create_all() creates every table; no migration scripts needed.
"""
from foodshare.models.user import User
from foodshare.models.post import Post, PostType, PostStatus
from foodshare.models.rating import Rating

__all__ = [
    "User",
    "Post",
    "PostType",
    "PostStatus",
    "Rating",
]
