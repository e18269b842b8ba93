"""Post store access, including the conditional status write used by every transition."""
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from foodshare.errors import PostNotFound, StoreFailed
from foodshare.models.post import Post, PostStatus, PostType
from foodshare.repositories.patch import UNSET, patch_values


@dataclass
class PostPatch:
    """Content fields an owner may edit. Type, owner, status and claimer are not patchable."""
    title: Any = UNSET
    description: Any = UNSET
    quantity: Any = UNSET
    location: Any = UNSET
    expiry_date: Any = UNSET
    urgency: Any = UNSET


@dataclass
class NewPost:
    type: PostType
    title: str
    description: str
    quantity: str
    location: str
    expiry_date: datetime
    owner_id: str
    urgency: str | None = None


class PostRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, post_id: str) -> Post | None:
        return self.db.query(Post).filter(Post.id == post_id).first()

    def get(self, post_id: str) -> Post:
        post = self.find_by_id(post_id)
        if not post:
            raise PostNotFound(post_id)
        return post

    def reload(self, post_id: str) -> Post | None:
        """Fresh read bypassing the identity map (after a conditional write)."""
        return self.db.query(Post).filter(Post.id == post_id).populate_existing().first()

    def create(self, data: NewPost) -> Post:
        post = Post(
            type=data.type,
            title=data.title,
            description=data.description,
            quantity=data.quantity,
            location=data.location,
            expiry_date=data.expiry_date,
            urgency=data.urgency,
            owner_id=data.owner_id,
            claimer_id=None,
            status=PostStatus.active,
        )
        self.db.add(post)
        self._commit("create post")
        self.db.refresh(post)
        return post

    def update(self, post_id: str, patch: PostPatch, expected_status: PostStatus | None = None) -> Post | None:
        """Apply a content patch. With ``expected_status`` the write is conditional on it; None if it no longer holds."""
        values = {getattr(Post, name): value for name, value in patch_values(patch).items()}
        if not values:
            return self.get(post_id)
        query = self.db.query(Post).filter(Post.id == post_id)
        if expected_status is not None:
            query = query.filter(Post.status == expected_status)
        affected = query.update(values, synchronize_session=False)
        if affected == 0:
            self.db.rollback()
            return None
        self._commit("update post")
        return self.reload(post_id)

    def compare_and_set_status(
        self,
        post_id: str,
        expected: PostStatus,
        new: PostStatus,
        *,
        post_type: PostType | None = None,
        participant_id: str | None = None,
        claimer_id: str | None = None,
    ) -> bool:
        """Single conditional UPDATE: moves expected -> new only if every condition still holds.

        Does not commit; the caller commits (possibly together with other writes) or rolls back.
        """
        query = self.db.query(Post).filter(Post.id == post_id, Post.status == expected)
        if post_type is not None:
            query = query.filter(Post.type == post_type)
        if participant_id is not None:
            query = query.filter(or_(Post.owner_id == participant_id, Post.claimer_id == participant_id))
        values = {Post.status: new}
        if claimer_id is not None:
            values[Post.claimer_id] = claimer_id
        try:
            affected = query.update(values, synchronize_session=False)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreFailed(f"Could not update post status: {type(e).__name__}") from e
        return affected == 1

    def delete_if_status(self, post_id: str, owner_id: str, expected: PostStatus) -> bool:
        affected = self.db.query(Post).filter(
            Post.id == post_id,
            Post.owner_id == owner_id,
            Post.status == expected,
        ).delete(synchronize_session=False)
        if affected == 0:
            self.db.rollback()
            return False
        self._commit("delete post")
        return True

    def commit(self) -> None:
        self._commit("commit transition")

    def _commit(self, what: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreFailed(f"Could not {what}: {type(e).__name__}") from e
