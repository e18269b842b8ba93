"""Ratings between participants of completed posts."""
from fastapi import APIRouter, Depends, Query

from foodshare.dependencies import get_current_user, get_rating_service
from foodshare.models.user import User
from foodshare.schemas.rating import HasRatedResponse, RatingCreate, RatingResponse
from foodshare.services.ratings import RatingService

router = APIRouter(prefix="/ratings", tags=["ratings"])


@router.post("/", response_model=RatingResponse, status_code=201)
def create_rating(
    data: RatingCreate,
    svc: RatingService = Depends(get_rating_service),
    current_user: User = Depends(get_current_user),
):
    rating = svc.rate(current_user.id, data.rated_user_id, data.post_id, data.value, data.comment)
    return RatingResponse.model_validate(rating)


@router.get("/user/{user_id}", response_model=list[RatingResponse])
def list_user_ratings(user_id: str, svc: RatingService = Depends(get_rating_service)):
    return [RatingResponse.model_validate(r) for r in svc.list_user_ratings(user_id)]


@router.get("/check", response_model=HasRatedResponse)
def check_rated(
    rated_user_id: str = Query(...),
    post_id: str = Query(...),
    svc: RatingService = Depends(get_rating_service),
    current_user: User = Depends(get_current_user),
):
    return HasRatedResponse(has_rated=svc.has_rated(current_user.id, rated_user_id, post_id))
