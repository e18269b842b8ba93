"""Auth request/response schemas."""
from datetime import datetime
from pydantic import BaseModel, EmailStr


class RegisterRequest(BaseModel):
    name: str
    email: EmailStr
    password: str
    avatar: str | None = None


class RegisterVerifiedRequest(RegisterRequest):
    """Registration after the email was checked with the standalone verification code."""
    verification_code: str


class VerifyCodeRequest(BaseModel):
    # Plain str so an empty value reaches the service and is reported as a missing field
    email: str = ""
    otp: str = ""


class EmailRequest(BaseModel):
    email: str = ""


class PasswordLoginRequest(BaseModel):
    email: str = ""
    password: str = ""


class UserResponse(BaseModel):
    id: str
    name: str
    email: str
    avatar: str | None = None
    donations_count: int = 0
    received_count: int = 0
    rating: float = 0.0
    is_email_verified: bool = False
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class MessageResponse(BaseModel):
    message: str
    email: str | None = None


class VerificationCheckResponse(BaseModel):
    verified: bool
    message: str


class EmailAvailabilityResponse(BaseModel):
    available: bool
    message: str | None = None
