"""Shared dependencies: DB session, current user, engine services."""
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from foodshare.database import get_db
from foodshare.models.user import User
from foodshare.repositories.users import UserRepository
from foodshare.services.auth import decode_token_with_error
from foodshare.services.lifecycle import PostWorkflow
from foodshare.services.notifications import get_notifier
from foodshare.services.ratings import RatingService
from foodshare.services.verification import VerificationService

security = HTTPBearer(auto_error=False)


def get_current_user(
    db: Session = Depends(get_db),
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> User:
    if not credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")
    token_str = (credentials.credentials or "").strip()
    payload, _ = decode_token_with_error(token_str)
    if not payload or not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    user = UserRepository(db).find_by_id(str(payload["sub"]))
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def get_verification_service(db: Session = Depends(get_db), notifier=Depends(get_notifier)) -> VerificationService:
    return VerificationService(db, notifier)


def get_post_workflow(db: Session = Depends(get_db), notifier=Depends(get_notifier)) -> PostWorkflow:
    return PostWorkflow(db, notifier)


def get_rating_service(db: Session = Depends(get_db), notifier=Depends(get_notifier)) -> RatingService:
    return RatingService(db, notifier)
