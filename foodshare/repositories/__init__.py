"""Identity and post stores over the SQLAlchemy session."""
from foodshare.repositories.patch import UNSET
from foodshare.repositories.users import UserRepository, UserPatch, normalize_email
from foodshare.repositories.posts import PostRepository, PostPatch

__all__ = [
    "UNSET",
    "UserRepository",
    "UserPatch",
    "normalize_email",
    "PostRepository",
    "PostPatch",
]
