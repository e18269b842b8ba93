"""Authentication: OTP registration, email-code login, password login."""
from fastapi import APIRouter, Depends

from foodshare.dependencies import get_current_user, get_verification_service
from foodshare.models.user import User
from foodshare.schemas.auth import (
    EmailAvailabilityResponse,
    EmailRequest,
    MessageResponse,
    PasswordLoginRequest,
    RegisterRequest,
    RegisterVerifiedRequest,
    Token,
    UserResponse,
    VerificationCheckResponse,
    VerifyCodeRequest,
)
from foodshare.services.verification import AuthSession, RegistrationFields, VerificationService

router = APIRouter(prefix="/auth", tags=["auth"])


def _token(session: AuthSession) -> Token:
    return Token(
        access_token=session.access_token,
        token_type=session.token_type,
        user=UserResponse.model_validate(session.user),
    )


def _fields(data: RegisterRequest) -> RegistrationFields:
    return RegistrationFields(name=data.name, email=data.email, password=data.password, avatar=data.avatar)


@router.post("/register", response_model=MessageResponse)
def register(data: RegisterRequest, svc: VerificationService = Depends(get_verification_service)):
    ack = svc.request_registration(_fields(data))
    return MessageResponse(message=ack.message, email=ack.email)


@router.post("/verify-email")
def verify_email(data: VerifyCodeRequest, svc: VerificationService = Depends(get_verification_service)):
    session = svc.verify_registration(data.email, data.otp)
    if session is None:
        return MessageResponse(message="Email already verified", email=data.email.strip().lower())
    return _token(session)


@router.post("/resend-verification", response_model=MessageResponse)
def resend_verification(data: EmailRequest, svc: VerificationService = Depends(get_verification_service)):
    ack = svc.resend_verification(data.email)
    return MessageResponse(message=ack.message, email=ack.email)


@router.post("/check-email", response_model=EmailAvailabilityResponse)
def check_email(data: EmailRequest, svc: VerificationService = Depends(get_verification_service)):
    result = svc.check_email_available(data.email)
    return EmailAvailabilityResponse(available=result.available, message=result.message)


@router.post("/login/email", response_model=MessageResponse)
def request_login_email(data: EmailRequest, svc: VerificationService = Depends(get_verification_service)):
    ack = svc.request_login(data.email)
    return MessageResponse(message=ack.message, email=ack.email)


@router.post("/login/email/verify", response_model=Token)
def verify_login_email(data: VerifyCodeRequest, svc: VerificationService = Depends(get_verification_service)):
    return _token(svc.complete_login(data.email, data.otp))


@router.post("/login", response_model=Token)
def login(data: PasswordLoginRequest, svc: VerificationService = Depends(get_verification_service)):
    return _token(svc.login_with_password(data.email, data.password))


@router.post("/request-verification", response_model=MessageResponse)
def request_verification(data: EmailRequest, svc: VerificationService = Depends(get_verification_service)):
    ack = svc.request_standalone_verification(data.email)
    return MessageResponse(message=ack.message, email=ack.email)


@router.post("/verify-email-otp", response_model=VerificationCheckResponse)
def verify_email_otp(data: VerifyCodeRequest, svc: VerificationService = Depends(get_verification_service)):
    result = svc.check_standalone_verification(data.email, data.otp)
    return VerificationCheckResponse(verified=result.verified, message=result.message)


@router.post("/register-verified", response_model=Token)
def register_verified(data: RegisterVerifiedRequest, svc: VerificationService = Depends(get_verification_service)):
    return _token(svc.register_pre_verified(_fields(data), data.verification_code))


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    return UserResponse.model_validate(current_user)
