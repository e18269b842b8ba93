"""Identity store: users and their reputation counters."""
import uuid

from sqlalchemy import Column, String, Integer, Float, Boolean, DateTime
from sqlalchemy.orm import deferred
from sqlalchemy.sql import func
from foodshare.database import Base


def new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    # Always stored lowercased and trimmed, so the unique index is case-insensitive
    email = Column(String(255), unique=True, index=True, nullable=False)
    # Secret columns are not loaded unless a query asks for them (see UserRepository.find_by_email)
    hashed_password = deferred(Column(String(255), nullable=False))
    avatar = Column(String(500), nullable=True)

    donations_count = Column(Integer, default=0, nullable=False)
    received_count = Column(Integer, default=0, nullable=False)
    rating = Column(Float, default=0.0, nullable=False)

    is_email_verified = Column(Boolean, default=False, nullable=False)
    # Legacy on-record OTP; also the login OTP store
    verification_token = deferred(Column(String(10), nullable=True))
    verification_token_expiry = Column(DateTime(timezone=True), nullable=True)

    password_reset_token = deferred(Column(String(255), nullable=True))
    password_reset_token_expiry = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
