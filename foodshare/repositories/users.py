"""Identity store access: lookups, creation and typed partial updates."""
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, undefer

from foodshare.errors import DuplicateEmail, StoreFailed, UserNotFound
from foodshare.models.user import User
from foodshare.repositories.patch import UNSET, apply_patch


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


@dataclass
class UserPatch:
    name: Any = UNSET
    avatar: Any = UNSET
    hashed_password: Any = UNSET
    is_email_verified: Any = UNSET
    verification_token: Any = UNSET
    verification_token_expiry: Any = UNSET
    password_reset_token: Any = UNSET
    password_reset_token_expiry: Any = UNSET


@dataclass
class NewUser:
    name: str
    email: str
    hashed_password: str
    avatar: str | None = None
    is_email_verified: bool = False
    verification_token: str | None = None
    verification_token_expiry: datetime | None = None


_SECRET_COLUMNS = (User.hashed_password, User.verification_token, User.password_reset_token)


class UserRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, user_id: str, include_secret: bool = False) -> User | None:
        query = self.db.query(User).filter(User.id == user_id)
        if include_secret:
            query = query.options(*[undefer(c) for c in _SECRET_COLUMNS])
        return query.first()

    def get(self, user_id: str) -> User:
        user = self.find_by_id(user_id)
        if not user:
            raise UserNotFound(f'User with ID "{user_id}" not found')
        return user

    def find_by_email(self, email: str, include_secret: bool = False) -> User | None:
        """Case-insensitive lookup. Secrets (password hash, OTP) load only when asked for."""
        query = self.db.query(User).filter(User.email == normalize_email(email))
        if include_secret:
            query = query.options(*[undefer(c) for c in _SECRET_COLUMNS])
        return query.first()

    def create(self, data: NewUser) -> User:
        """Insert a user with zeroed reputation counters and commit."""
        user = User(
            name=data.name,
            email=normalize_email(data.email),
            hashed_password=data.hashed_password,
            avatar=data.avatar,
            donations_count=0,
            received_count=0,
            rating=0.0,
            is_email_verified=data.is_email_verified,
            verification_token=data.verification_token,
            verification_token_expiry=data.verification_token_expiry,
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise DuplicateEmail()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreFailed(f"Could not create user: {type(e).__name__}") from e
        self.db.refresh(user)
        return user

    def update(self, user_id: str, patch: UserPatch) -> User:
        user = self.find_by_id(user_id, include_secret=True)
        if not user:
            raise UserNotFound(f'User with ID "{user_id}" not found')
        apply_patch(user, patch)
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreFailed(f"Could not update user: {type(e).__name__}") from e
        self.db.refresh(user)
        return user

    def lock(self, user_id: str) -> User:
        """SELECT ... FOR UPDATE on the user row for the rest of the caller's transaction."""
        user = self.db.query(User).filter(User.id == user_id).with_for_update().first()
        if not user:
            raise UserNotFound(f'User with ID "{user_id}" not found')
        return user

    def increment_counters(self, user_id: str, donations: int = 0, received: int = 0) -> int:
        """SQL-side increment; the caller owns the transaction. Returns affected rows."""
        values = {}
        if donations:
            values[User.donations_count] = User.donations_count + donations
        if received:
            values[User.received_count] = User.received_count + received
        if not values:
            return 0
        return self.db.query(User).filter(User.id == user_id).update(values, synchronize_session=False)
