from foodshare.schemas.auth import Token, UserResponse, RegisterRequest, MessageResponse
from foodshare.schemas.post import PostCreate, PostUpdate, PostResponse
from foodshare.schemas.rating import RatingCreate, RatingResponse, HasRatedResponse
