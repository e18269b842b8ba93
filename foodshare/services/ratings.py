"""Ratings between the owner and claimer of a completed post, and the derived user rating."""
import logging
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from foodshare.errors import (
    AlreadyRated,
    InvalidRating,
    NotAuthorized,
    PostNotCompleted,
    StoreFailed,
    ValidationError,
)
from foodshare.models.post import PostStatus
from foodshare.models.rating import Rating
from foodshare.models.user import User
from foodshare.repositories.posts import PostRepository
from foodshare.repositories.users import UserRepository
from foodshare.services.notifications import NotificationKind, dispatch_quietly

logger = logging.getLogger(__name__)


def round_rating(average) -> float:
    """One decimal, halves rounded up (4.25 -> 4.3)."""
    if average is None:
        return 0.0
    return float(Decimal(str(average)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


class RatingService:
    def __init__(self, db: Session, notifier):
        self.db = db
        self.posts = PostRepository(db)
        self.users = UserRepository(db)
        self.notifier = notifier

    def rate(self, rater_user_id: str, rated_user_id: str, post_id: str, value: int, comment: str | None = None) -> Rating:
        if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 5:
            raise InvalidRating("Rating value must be an integer between 1 and 5")

        post = self.posts.get(post_id)
        if post.status != PostStatus.completed:
            raise PostNotCompleted()
        participants = (post.owner_id, post.claimer_id)
        if rater_user_id not in participants:
            raise NotAuthorized("Only the post owner or claimer can leave a rating")
        if rated_user_id not in participants:
            raise ValidationError("Can only rate users involved in this post")
        if rater_user_id == rated_user_id:
            raise ValidationError("You cannot rate yourself")
        if self.has_rated(rater_user_id, rated_user_id, post_id):
            raise AlreadyRated()

        # Concurrent ratings of the same user queue here, so each average sees every committed rating
        try:
            self.users.lock(rated_user_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreFailed(f"Could not lock rated user: {type(e).__name__}") from e

        rating = Rating(
            rater_user_id=rater_user_id,
            rated_user_id=rated_user_id,
            post_id=post_id,
            value=value,
            comment=(comment or "").strip() or None,
        )
        self.db.add(rating)
        try:
            self.db.flush()
        except IntegrityError:
            # Concurrent duplicate slipped past has_rated; the unique constraint decides
            self.db.rollback()
            raise AlreadyRated()

        average = self.db.query(func.avg(Rating.value)).filter(Rating.rated_user_id == rated_user_id).scalar()
        new_rating = round_rating(average)
        self.db.query(User).filter(User.id == rated_user_id).update({User.rating: new_rating}, synchronize_session=False)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise AlreadyRated()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreFailed(f"Could not save rating: {type(e).__name__}") from e
        self.db.refresh(rating)
        logger.info("Rating %s: %s rated %s %d stars on post %s (average now %.1f)",
                    rating.id, rater_user_id, rated_user_id, value, post_id, new_rating)

        rated = self.users.find_by_id(rated_user_id)
        rater = self.users.find_by_id(rater_user_id)
        if rated and rater:
            dispatch_quietly(
                self.notifier,
                rated.email,
                rated.name,
                NotificationKind.rating_received,
                {
                    "name": rated.name,
                    "rater_name": rater.name,
                    "value": value,
                    "post_title": post.title,
                    "comment": rating.comment,
                },
            )
        return rating

    def list_user_ratings(self, user_id: str) -> list[Rating]:
        return (
            self.db.query(Rating)
            .filter(Rating.rated_user_id == user_id)
            .order_by(Rating.created_at.desc())
            .all()
        )

    def has_rated(self, rater_user_id: str, rated_user_id: str, post_id: str) -> bool:
        return (
            self.db.query(Rating)
            .filter(
                Rating.rater_user_id == rater_user_id,
                Rating.rated_user_id == rated_user_id,
                Rating.post_id == post_id,
            )
            .first()
            is not None
        )
