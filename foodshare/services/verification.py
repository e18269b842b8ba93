"""Identity verification: OTP-gated registration and passwordless login.

Three independent flows, each keyed by the normalized (trimmed, lowercased) email:

* registration: request_registration -> verify_registration. The prospective
  user waits in the in-process pending store until the code round trip
  succeeds; only then is a durable User written. When no pending entry exists,
  verify_registration falls back to the legacy code stored on the User record.
* login: request_login -> complete_login. The code lives on the User record
  (verification_token / verification_token_expiry) and is compared
  case-insensitively.
* standalone verify: request_standalone_verification ->
  check_standalone_verification -> register_pre_verified. A successful check
  leaves the entry in place so the registration call can re-validate the code.

Notification failures are fatal only for request_login; every other send is
fire-and-forget.
"""
import logging
from dataclasses import dataclass, replace
from datetime import timedelta

from sqlalchemy.orm import Session

from foodshare.config import get_settings
from foodshare.errors import (
    CodeExpired,
    DuplicateEmail,
    EmailNotVerified,
    InvalidCode,
    InvalidCredentials,
    MissingField,
    NoPendingRegistration,
    NotificationFailed,
    NoVerificationFound,
    UserAlreadyExists,
    UserNotFound,
    ValidationError,
)
from foodshare.models.user import User
from foodshare.repositories.users import NewUser, UserPatch, UserRepository, normalize_email
from foodshare.services.auth import create_access_token, get_password_hash, verify_password
from foodshare.services.clock import Clock, as_utc, utcnow
from foodshare.services.notifications import NotificationKind, dispatch_quietly
from foodshare.services.otp_store import (
    EmailVerificationState,
    ExpiringStore,
    PendingRegistration,
    generate_otp,
    get_email_verifications,
    get_pending_registrations,
)

logger = logging.getLogger(__name__)

PASSWORD_MIN_LENGTH = 8


@dataclass
class RegistrationFields:
    name: str
    email: str
    password: str
    avatar: str | None = None


@dataclass
class AuthSession:
    user: User
    access_token: str
    token_type: str = "bearer"


@dataclass
class Acknowledgement:
    message: str
    email: str


@dataclass
class VerificationCheck:
    verified: bool
    message: str


@dataclass
class EmailAvailability:
    available: bool
    message: str | None = None


def _require(value: str | None, field: str, message: str) -> str:
    if not value or not str(value).strip():
        raise MissingField(field, message)
    return value


def _validate_fields(fields: RegistrationFields) -> None:
    _require(fields.name, "name", "Name is required")
    _require(fields.email, "email", "Email is required")
    _require(fields.password, "password", "Password is required")
    if "@" not in fields.email:
        raise ValidationError("Email address is not valid")
    if len(fields.password) < PASSWORD_MIN_LENGTH:
        raise ValidationError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")


class VerificationService:
    def __init__(
        self,
        db: Session,
        notifier,
        pending_store: ExpiringStore[PendingRegistration] | None = None,
        email_store: ExpiringStore[EmailVerificationState] | None = None,
        clock: Clock | None = None,
    ):
        self.users = UserRepository(db)
        self.notifier = notifier
        self.pending = pending_store if pending_store is not None else get_pending_registrations()
        self.email_checks = email_store if email_store is not None else get_email_verifications()
        self.now = clock or utcnow
        settings = get_settings()
        self.registration_ttl = timedelta(minutes=settings.registration_otp_expire_minutes)
        self.login_ttl = timedelta(minutes=settings.login_otp_expire_minutes)

    def _session(self, user: User) -> AuthSession:
        return AuthSession(user=user, access_token=create_access_token(user.id, user.email))

    def _send_registration_code(self, email: str, name: str, otp: str) -> None:
        # Result deliberately not checked: the user can ask for a resend
        dispatch_quietly(
            self.notifier,
            email,
            name,
            NotificationKind.verification_otp,
            {"name": name, "otp": otp, "expires_minutes": int(self.registration_ttl.total_seconds() // 60)},
        )

    # Registration flow

    def request_registration(self, fields: RegistrationFields) -> Acknowledgement:
        _validate_fields(fields)
        email = normalize_email(fields.email)
        if self.users.find_by_email(email):
            raise DuplicateEmail()

        hashed = get_password_hash(fields.password)
        otp = generate_otp()
        # A repeat request overwrites the previous entry: one pending registration per email
        self.pending.set(
            email,
            PendingRegistration(
                email=email,
                name=fields.name.strip(),
                hashed_password=hashed,
                otp=otp,
                expires_at=self.now() + self.registration_ttl,
                avatar=fields.avatar,
            ),
        )
        logger.info("Registration code issued for %s", email)
        self._send_registration_code(email, fields.name.strip(), otp)
        return Acknowledgement(message="Verification code sent to your email", email=email)

    def verify_registration(self, email: str, otp: str) -> AuthSession | None:
        """Promote a pending registration into a verified user and log them in.

        Returns None when the legacy user is already verified (nothing to do).
        """
        _require(otp, "otp", "Verification code is required")
        _require(email, "email", "Email is required")
        key = normalize_email(email)

        pending = self.pending.get(key)
        if pending:
            if pending.otp != otp:
                logger.info("Registration verification failed for %s: wrong code", key)
                raise InvalidCode()
            if self.now() > pending.expires_at:
                logger.info("Registration verification failed for %s: code expired", key)
                raise CodeExpired()
            user = self.users.create(
                NewUser(
                    name=pending.name,
                    email=pending.email,
                    hashed_password=pending.hashed_password,
                    avatar=pending.avatar,
                    is_email_verified=True,
                )
            )
            self.pending.delete_if_same(key, pending)
            logger.info("User %s created from pending registration", user.id)
            return self._session(user)

        # Legacy: user record created before the pending flow existed
        user = self.users.find_by_email(key, include_secret=True)
        if not user:
            raise NoPendingRegistration()
        if user.is_email_verified:
            return None
        if user.verification_token != otp:
            logger.info("Legacy verification failed for %s: wrong code", key)
            raise InvalidCode()
        expiry = as_utc(user.verification_token_expiry)
        if expiry and self.now() > expiry:
            logger.info("Legacy verification failed for %s: code expired", key)
            raise CodeExpired()
        user = self.users.update(
            user.id,
            UserPatch(is_email_verified=True, verification_token=None, verification_token_expiry=None),
        )
        logger.info("Legacy user %s verified", user.id)
        return self._session(user)

    def resend_verification(self, email: str) -> Acknowledgement:
        _require(email, "email", "Email is required")
        key = normalize_email(email)

        pending = self.pending.get(key)
        if pending:
            otp = generate_otp()
            self.pending.set(key, replace(pending, otp=otp, expires_at=self.now() + self.registration_ttl))
            logger.info("Registration code reissued for %s", key)
            self._send_registration_code(key, pending.name, otp)
            return Acknowledgement(message="Verification code sent", email=key)

        user = self.users.find_by_email(key)
        if not user:
            raise NoPendingRegistration("No registration found with this email")
        if user.is_email_verified:
            raise ValidationError("Email is already verified")
        otp = generate_otp()
        self.users.update(
            user.id,
            UserPatch(verification_token=otp, verification_token_expiry=self.now() + self.registration_ttl),
        )
        logger.info("Legacy verification code reissued for user %s", user.id)
        self._send_registration_code(user.email, user.name, otp)
        return Acknowledgement(message="Verification code sent", email=user.email)

    def check_email_available(self, email: str) -> EmailAvailability:
        """Registered and pending emails get the same answer, so the check does not reveal which."""
        _require(email, "email", "Email is required")
        key = normalize_email(email)
        if self.users.find_by_email(key) or key in self.pending:
            return EmailAvailability(available=False, message="Email is not available for registration")
        return EmailAvailability(available=True)

    # Login flow

    def request_login(self, email: str) -> Acknowledgement:
        _require(email, "email", "Email is required")
        key = normalize_email(email)
        user = self.users.find_by_email(key)
        if not user:
            raise UserNotFound("User not found with this email")
        if not user.is_email_verified:
            raise EmailNotVerified()

        otp = generate_otp()
        minutes = int(self.login_ttl.total_seconds() // 60)
        self.users.update(user.id, UserPatch(verification_token=otp, verification_token_expiry=self.now() + self.login_ttl))
        logger.info("Login code issued for user %s", user.id)

        try:
            sent = self.notifier.send(
                user.email,
                user.name,
                NotificationKind.login_otp,
                {"name": user.name, "otp": otp, "expires_minutes": minutes},
            )
        except Exception:
            logger.exception("Login code email to %s raised", user.email)
            sent = False
        if not sent:
            raise NotificationFailed("Failed to send login email")
        return Acknowledgement(message="Login verification code sent successfully", email=user.email)

    def complete_login(self, email: str, otp: str) -> AuthSession:
        _require(otp, "otp", "Verification code is required")
        _require(email, "email", "Email is required")
        key = normalize_email(email)
        user = self.users.find_by_email(key, include_secret=True)
        if not user:
            raise UserNotFound()

        stored = user.verification_token
        # Case-insensitive on purpose: mail clients and autofill sometimes change case
        if not stored or stored.lower() != otp.lower():
            logger.info("Login failed for user %s: wrong code", user.id)
            raise InvalidCode()
        expiry = as_utc(user.verification_token_expiry)
        if expiry and self.now() > expiry:
            logger.info("Login failed for user %s: code expired", user.id)
            raise CodeExpired()

        user = self.users.update(user.id, UserPatch(verification_token=None, verification_token_expiry=None))
        logger.info("User %s logged in with email code", user.id)
        return self._session(user)

    def login_with_password(self, email: str, password: str) -> AuthSession:
        _require(email, "email", "Email is required")
        _require(password, "password", "Password is required")
        user = self.users.find_by_email(email, include_secret=True)
        if not user or not verify_password(password, user.hashed_password):
            raise InvalidCredentials()
        if not user.is_email_verified:
            raise EmailNotVerified()
        return self._session(user)

    # Standalone verify-before-register flow

    def request_standalone_verification(self, email: str) -> Acknowledgement:
        _require(email, "email", "Email is required")
        key = normalize_email(email)
        otp = generate_otp()
        self.email_checks.set(key, EmailVerificationState(email=key, otp=otp, expires_at=self.now() + self.registration_ttl))
        logger.info("Standalone verification code issued for %s", key)
        # No name yet at this point of the form
        self._send_registration_code(key, "User", otp)
        return Acknowledgement(message="Verification code sent to your email", email=key)

    def check_standalone_verification(self, email: str, otp: str) -> VerificationCheck:
        _require(otp, "otp", "Verification code is required")
        _require(email, "email", "Email is required")
        key = normalize_email(email)
        state = self.email_checks.get(key)
        if not state:
            raise NoVerificationFound()
        if state.otp != otp:
            raise InvalidCode()
        if self.now() > state.expires_at:
            raise CodeExpired()
        # Kept (not deleted) so register_pre_verified can check the same code
        self.email_checks.set(key, replace(state, verified=True))
        return VerificationCheck(verified=True, message="Email verified successfully")

    def register_pre_verified(self, fields: RegistrationFields, otp: str) -> AuthSession:
        _validate_fields(fields)
        key = normalize_email(fields.email)
        state = self.email_checks.get(key)
        if not state:
            raise EmailNotVerified("Email has not been verified")
        if state.otp != otp:
            raise EmailNotVerified("Invalid verification code")
        if self.now() > state.expires_at:
            raise EmailNotVerified("Verification code has expired")
        if self.users.find_by_email(key):
            raise UserAlreadyExists()

        hashed = get_password_hash(fields.password)
        try:
            user = self.users.create(
                NewUser(
                    name=fields.name.strip(),
                    email=key,
                    hashed_password=hashed,
                    avatar=fields.avatar,
                    is_email_verified=True,
                )
            )
        except DuplicateEmail:
            raise UserAlreadyExists()
        self.email_checks.delete_if_same(key, state)
        logger.info("User %s registered with a pre-verified email", user.id)
        return self._session(user)
