"""Post lifecycle: claim/fulfill, pick-up, completion and deletion.

    ACTIVE --claim (donation)--> CLAIMED
    ACTIVE --fulfill (request)--> CLAIMED
    CLAIMED --mark_picked_up--> PICKED_UP
    PICKED_UP --mark_completed--> COMPLETED
    ACTIVE --delete (owner)--> removed

Each transition checks its preconditions on a fresh read, then writes with a
single conditional UPDATE keyed on the expected status. If the UPDATE touches
no row another request got there first and nothing was written. Notifications
go out after the commit and can never undo or block a transition.
"""
import logging
from datetime import date, datetime, time, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from foodshare.errors import (
    ClaimConflict,
    MissingField,
    NotAuthorized,
    NotAvailable,
    NotDeletable,
    NotOwner,
    PostNotFound,
    StoreFailed,
    ValidationError,
    WrongPostType,
    WrongState,
)
from foodshare.models.post import Post, PostStatus, PostType
from foodshare.models.user import User
from foodshare.repositories.posts import NewPost, PostPatch, PostRepository
from foodshare.repositories.patch import UNSET
from foodshare.repositories.users import UserRepository
from foodshare.services.notifications import NotificationKind, dispatch_quietly

logger = logging.getLogger(__name__)


def donor_of(post: Post) -> str | None:
    """Who gives the food: the owner of a donation, the fulfiller (claimer) of a request."""
    return post.owner_id if post.type == PostType.donation else post.claimer_id


def recipient_of(post: Post) -> str | None:
    """Who receives the food: the claimer of a donation, the owner of a request."""
    return post.claimer_id if post.type == PostType.donation else post.owner_id


def other_party(post: Post, user_id: str) -> str | None:
    if user_id == post.owner_id:
        return post.claimer_id
    if user_id == post.claimer_id:
        return post.owner_id
    return None


def is_participant(post: Post, user_id: str) -> bool:
    return user_id is not None and user_id in (post.owner_id, post.claimer_id)


def _status_label(status: PostStatus) -> str:
    return "picked up" if status == PostStatus.picked_up else status.value


def _as_expiry(value) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime.combine(value, time.max, tzinfo=timezone.utc)
    if isinstance(value, str) and value.strip():
        try:
            return _as_expiry(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
        except ValueError:
            raise ValidationError("expiryDate must be an ISO 8601 date")
    raise MissingField("expiry_date", "Expiry date is required")


def _required_text(value, field: str) -> str:
    if value is None or not str(value).strip():
        raise MissingField(field, f"{field.replace('_', ' ').capitalize()} is required")
    return str(value).strip()


class PostWorkflow:
    def __init__(self, db: Session, notifier):
        self.db = db
        self.posts = PostRepository(db)
        self.users = UserRepository(db)
        self.notifier = notifier

    # Creation and content edits

    def create_post(
        self,
        owner_id: str,
        type: PostType | str,
        title: str,
        description: str,
        quantity: str,
        location: str,
        expiry_date,
        urgency: str | None = None,
    ) -> Post:
        try:
            post_type = PostType(type)
        except ValueError:
            raise ValidationError("Post type must be 'donation' or 'request'")
        if urgency and post_type != PostType.request:
            raise ValidationError("Urgency can only be set on requests")
        self.users.get(owner_id)
        post = self.posts.create(
            NewPost(
                type=post_type,
                title=_required_text(title, "title"),
                description=_required_text(description, "description"),
                quantity=_required_text(quantity, "quantity"),
                location=_required_text(location, "location"),
                expiry_date=_as_expiry(expiry_date),
                owner_id=owner_id,
                urgency=(urgency or "").strip() or None,
            )
        )
        logger.info("Post %s (%s) created by %s", post.id, post_type.value, owner_id)
        return post

    def get_post(self, post_id: str) -> Post:
        return self.posts.get(post_id)

    def update_post(self, post_id: str, acting_user_id: str, patch: PostPatch) -> Post:
        """Owner edits content while the post is still ACTIVE."""
        post = self.posts.get(post_id)
        if post.owner_id != acting_user_id:
            raise NotOwner("Only the post owner can edit it")
        if post.status != PostStatus.active:
            raise WrongState(f'Cannot edit post with status "{post.status.value}"')
        for field in ("title", "description", "quantity", "location"):
            value = getattr(patch, field)
            if value is not UNSET:
                setattr(patch, field, _required_text(value, field))
        if patch.expiry_date is not UNSET:
            patch.expiry_date = _as_expiry(patch.expiry_date)
        if patch.urgency is not UNSET and patch.urgency and post.type != PostType.request:
            raise ValidationError("Urgency can only be set on requests")

        updated = self.posts.update(post_id, patch, expected_status=PostStatus.active)
        if updated is None:
            fresh = self.posts.reload(post_id)
            if fresh is None:
                raise PostNotFound(post_id)
            raise WrongState(f'Cannot edit post with status "{fresh.status.value}"')
        return updated

    # Transitions

    def claim(self, post_id: str, claimer_id: str) -> Post:
        return self._take(
            post_id,
            claimer_id,
            PostType.donation,
            wrong_type="Only donation posts can be claimed",
            unavailable="This post is not available for claiming",
        )

    def fulfill(self, post_id: str, fulfiller_id: str) -> Post:
        # The fulfiller of a request occupies the claimer slot
        return self._take(
            post_id,
            fulfiller_id,
            PostType.request,
            wrong_type="Only request posts can be fulfilled",
            unavailable="This request is not available for fulfilling",
        )

    def _take(self, post_id: str, user_id: str, required_type: PostType, wrong_type: str, unavailable: str) -> Post:
        post = self.posts.get(post_id)
        if post.type != required_type:
            raise WrongPostType(wrong_type)
        if post.status != PostStatus.active:
            raise NotAvailable(unavailable)
        if user_id == post.owner_id:
            raise ValidationError("You cannot claim or fulfill your own post")
        taker = self.users.get(user_id)

        if not self.posts.compare_and_set_status(
            post_id, PostStatus.active, PostStatus.claimed, post_type=required_type, claimer_id=user_id
        ):
            self.db.rollback()
            logger.info("Post %s: %s by %s lost the race", post_id, "claim" if required_type == PostType.donation else "fulfill", user_id)
            raise ClaimConflict(unavailable)
        self.posts.commit()

        post = self.posts.reload(post_id)
        logger.info("Post %s: active -> claimed by %s", post_id, user_id)

        owner = self.users.find_by_id(post.owner_id)
        if owner:
            if required_type == PostType.donation:
                kind, args = NotificationKind.donation_claimed, {"claimer_name": taker.name}
            else:
                kind, args = NotificationKind.request_fulfilled, {"fulfiller_name": taker.name}
            args.update(name=owner.name, post_title=post.title, post_id=post.id)
            dispatch_quietly(self.notifier, owner.email, owner.name, kind, args)
        return post

    def mark_picked_up(self, post_id: str, acting_user_id: str) -> Post:
        return self._advance(
            post_id,
            acting_user_id,
            PostStatus.claimed,
            PostStatus.picked_up,
            wrong_state="This post must be claimed before it can be marked as picked up",
            not_authorized="Only the post owner or claimer can mark it as picked up",
        )

    def mark_completed(self, post_id: str, acting_user_id: str) -> Post:
        return self._advance(
            post_id,
            acting_user_id,
            PostStatus.picked_up,
            PostStatus.completed,
            wrong_state="This post must be picked up before it can be marked as completed",
            not_authorized="Only the post owner or claimer can mark it as completed",
        )

    def _advance(
        self,
        post_id: str,
        acting_user_id: str,
        expected: PostStatus,
        new: PostStatus,
        wrong_state: str,
        not_authorized: str,
    ) -> Post:
        post = self.posts.get(post_id)
        if post.status != expected:
            raise WrongState(wrong_state)
        if not is_participant(post, acting_user_id):
            raise NotAuthorized(not_authorized)

        if not self.posts.compare_and_set_status(post_id, expected, new, participant_id=acting_user_id):
            self.db.rollback()
            fresh = self.posts.reload(post_id)
            if fresh is None:
                raise PostNotFound(post_id)
            if fresh.status != expected:
                raise WrongState(wrong_state)
            raise NotAuthorized(not_authorized)
        if new == PostStatus.completed:
            self._apply_reputation(post)
        self.posts.commit()

        post = self.posts.reload(post_id)
        logger.info("Post %s: %s -> %s by %s", post_id, expected.value, new.value, acting_user_id)
        self._notify_other_party(post, acting_user_id, new)
        return post

    def _apply_reputation(self, post: Post) -> None:
        """Completion ledger, in the caller's transaction. Depends on post type, not on who completed."""
        donor, recipient = donor_of(post), recipient_of(post)
        increments = {donor: {"donations": 1}, recipient: {"received": 1}}
        try:
            # Rows locked in id order so opposite-direction completions cannot deadlock
            for user_id in sorted(increments):
                self.users.increment_counters(user_id, **increments[user_id])
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreFailed(f"Could not update reputation counters: {type(e).__name__}") from e
        logger.info("Post %s completed: donations_count+1 for %s, received_count+1 for %s", post.id, donor, recipient)

    def _notify_other_party(self, post: Post, acting_user_id: str, status: PostStatus) -> None:
        actor: User | None = self.users.find_by_id(acting_user_id)
        target_id = other_party(post, acting_user_id)
        target: User | None = self.users.find_by_id(target_id) if target_id else None
        if not (actor and target):
            logger.warning("Post %s: no recipient for %s notification", post.id, status.value)
            return
        dispatch_quietly(
            self.notifier,
            target.email,
            target.name,
            NotificationKind.status_update,
            {
                "name": target.name,
                "post_title": post.title,
                "status": _status_label(status),
                "updater_name": actor.name,
                "post_id": post.id,
            },
        )

    # Deletion

    def delete(self, post_id: str, acting_user_id: str) -> None:
        post = self.posts.get(post_id)
        if post.owner_id != acting_user_id:
            raise NotOwner("Only the post owner can delete it")
        if post.status != PostStatus.active:
            raise NotDeletable(
                f'Cannot delete post with status "{post.status.value}". Only posts with status "active" can be deleted.'
            )
        if not self.posts.delete_if_status(post_id, acting_user_id, PostStatus.active):
            fresh = self.posts.reload(post_id)
            if fresh is None:
                raise PostNotFound(post_id)
            raise NotDeletable(
                f'Cannot delete post with status "{fresh.status.value}". Only posts with status "active" can be deleted.'
            )
        logger.info("Post %s deleted by owner %s", post_id, acting_user_id)
