from datetime import timedelta

import pytest

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
from foodshare.models import User
from foodshare.services.auth import decode_token, get_password_hash
from foodshare.services.verification import RegistrationFields


def _fields(email="alice@example.com", name="Alice", password="s3cretpass"):
    return RegistrationFields(name=name, email=email, password=password)


def _wrong(otp):
    return "000000" if otp != "000000" else "111111"


class TestRegistration:
    def test_request_stores_pending_entry_and_sends_code(self, verification, notifier, db):
        ack = verification.request_registration(_fields(email="  Alice@Example.com "))

        assert ack.email == "alice@example.com"
        assert ack.message == "Verification code sent to your email"
        pending = verification.pending.get("alice@example.com")
        assert pending is not None
        assert pending.hashed_password != "s3cretpass"
        assert notifier.last()["kind"] == "verification_otp"
        assert notifier.last()["args"]["otp"] == pending.otp
        # No durable user before the code round trip
        assert db.query(User).count() == 0

    def test_repeat_request_replaces_the_code(self, verification):
        verification.request_registration(_fields())
        first = verification.pending.get("alice@example.com").otp
        verification.request_registration(_fields(name="Alice B"))

        pending = verification.pending.get("alice@example.com")
        assert len(verification.pending) == 1
        assert pending.name == "Alice B"
        if pending.otp != first:
            with pytest.raises(InvalidCode):
                verification.verify_registration("alice@example.com", first)

    def test_request_rejects_registered_email(self, verification, make_user):
        make_user(email="alice@example.com")
        with pytest.raises(DuplicateEmail):
            verification.request_registration(_fields(email="ALICE@example.com"))

    @pytest.mark.parametrize(
        "fields",
        [
            RegistrationFields(name="", email="a@example.com", password="s3cretpass"),
            RegistrationFields(name="A", email="", password="s3cretpass"),
            RegistrationFields(name="A", email="a@example.com", password=""),
            RegistrationFields(name="A", email="not-an-email", password="s3cretpass"),
            RegistrationFields(name="A", email="a@example.com", password="short"),
        ],
    )
    def test_request_validates_fields(self, verification, fields):
        with pytest.raises(ValidationError):
            verification.request_registration(fields)
        assert len(verification.pending) == 0

    def test_send_failure_does_not_fail_registration(self, verification, notifier):
        notifier.result = False
        verification.request_registration(_fields())
        notifier.error = RuntimeError("smtp down")
        ack = verification.request_registration(_fields())

        assert ack.email == "alice@example.com"
        assert "alice@example.com" in verification.pending

    def test_verify_creates_verified_user_and_session(self, verification):
        verification.request_registration(_fields(email="Alice@Example.com"))
        otp = verification.pending.get("alice@example.com").otp

        session = verification.verify_registration("ALICE@example.com ", otp)

        assert session.user.email == "alice@example.com"
        assert session.user.is_email_verified is True
        assert session.user.donations_count == 0
        assert session.user.received_count == 0
        assert session.user.rating == 0.0
        assert decode_token(session.access_token)["sub"] == session.user.id
        assert "alice@example.com" not in verification.pending

    def test_verify_wrong_code_keeps_pending_entry(self, verification):
        verification.request_registration(_fields())
        otp = verification.pending.get("alice@example.com").otp

        with pytest.raises(InvalidCode):
            verification.verify_registration("alice@example.com", _wrong(otp))
        assert "alice@example.com" in verification.pending

    def test_verify_expired_code(self, verification, clock, db):
        verification.request_registration(_fields())
        otp = verification.pending.get("alice@example.com").otp
        clock.advance(minutes=16)

        with pytest.raises(CodeExpired):
            verification.verify_registration("alice@example.com", otp)
        assert db.query(User).count() == 0

    def test_verify_at_exact_expiry_still_succeeds(self, verification, clock):
        verification.request_registration(_fields())
        otp = verification.pending.get("alice@example.com").otp
        clock.advance(minutes=15)

        assert verification.verify_registration("alice@example.com", otp) is not None

    def test_verify_requires_otp_before_email(self, verification):
        with pytest.raises(MissingField) as excinfo:
            verification.verify_registration("", "")
        assert excinfo.value.field == "otp"
        with pytest.raises(MissingField) as excinfo:
            verification.verify_registration("", "123456")
        assert excinfo.value.field == "email"

    def test_verify_without_pending_or_user(self, verification):
        with pytest.raises(NoPendingRegistration):
            verification.verify_registration("ghost@example.com", "123456")

    def test_legacy_user_verifies_with_code_on_record(self, verification, make_user, clock, reload_user):
        user = make_user(
            email="legacy@example.com",
            verified=False,
            verification_token="654321",
            verification_token_expiry=clock() + timedelta(minutes=15),
        )

        session = verification.verify_registration("legacy@example.com", "654321")

        assert session.user.id == user.id
        fresh = reload_user(user.id)
        assert fresh.is_email_verified is True
        assert fresh.verification_token is None
        assert fresh.verification_token_expiry is None

    def test_legacy_already_verified_returns_none(self, verification, make_user):
        make_user(email="done@example.com", verified=True)
        assert verification.verify_registration("done@example.com", "123456") is None

    def test_legacy_expired_and_wrong_codes(self, verification, make_user, clock):
        make_user(
            email="legacy@example.com",
            verified=False,
            verification_token="654321",
            verification_token_expiry=clock() + timedelta(minutes=15),
        )
        with pytest.raises(InvalidCode):
            verification.verify_registration("legacy@example.com", "111111")
        clock.advance(minutes=20)
        with pytest.raises(CodeExpired):
            verification.verify_registration("legacy@example.com", "654321")

    def test_resend_issues_new_code_for_pending(self, verification, notifier, clock):
        verification.request_registration(_fields())
        clock.advance(minutes=14)
        verification.resend_verification("alice@example.com")

        pending = verification.pending.get("alice@example.com")
        assert pending.expires_at == clock() + timedelta(minutes=15)
        assert notifier.last()["args"]["otp"] == pending.otp
        assert notifier.kinds() == ["verification_otp", "verification_otp"]

    def test_resend_for_unknown_or_verified_email(self, verification, make_user):
        with pytest.raises(NoPendingRegistration):
            verification.resend_verification("ghost@example.com")
        make_user(email="done@example.com", verified=True)
        with pytest.raises(ValidationError):
            verification.resend_verification("done@example.com")

    def test_check_email_available_does_not_distinguish_pending_from_registered(self, verification, make_user):
        make_user(email="taken@example.com")
        verification.request_registration(_fields(email="pending@example.com"))

        taken = verification.check_email_available("Taken@example.com")
        pending = verification.check_email_available("pending@example.com")
        free = verification.check_email_available("free@example.com")

        assert taken.available is False
        assert pending.available is False
        assert taken.message == pending.message
        assert free.available is True


class TestLogin:
    def test_login_round_trip(self, verification, notifier, make_user, reload_user):
        user = make_user(email="bob@example.com")

        ack = verification.request_login("BOB@example.com")
        assert ack.message == "Login verification code sent successfully"
        otp = notifier.last("login_otp")["args"]["otp"]

        session = verification.complete_login("bob@example.com", otp)

        assert session.user.id == user.id
        assert reload_user(user.id).verification_token is None

    def test_code_is_single_use(self, verification, notifier, make_user):
        make_user(email="bob@example.com")
        verification.request_login("bob@example.com")
        otp = notifier.last("login_otp")["args"]["otp"]
        verification.complete_login("bob@example.com", otp)

        with pytest.raises(InvalidCode):
            verification.complete_login("bob@example.com", otp)

    def test_code_comparison_is_case_insensitive(self, verification, make_user, clock):
        make_user(
            email="bob@example.com",
            verification_token="ab12cd",
            verification_token_expiry=clock() + timedelta(minutes=30),
        )
        assert verification.complete_login("bob@example.com", "AB12CD").user.email == "bob@example.com"

    def test_login_code_expires_after_thirty_minutes(self, verification, notifier, make_user, clock):
        make_user(email="bob@example.com")
        verification.request_login("bob@example.com")
        otp = notifier.last("login_otp")["args"]["otp"]
        clock.advance(minutes=31)

        with pytest.raises(CodeExpired):
            verification.complete_login("bob@example.com", otp)

    def test_request_login_unknown_or_unverified(self, verification, make_user):
        with pytest.raises(UserNotFound):
            verification.request_login("ghost@example.com")
        make_user(email="new@example.com", verified=False)
        with pytest.raises(EmailNotVerified):
            verification.request_login("new@example.com")

    def test_request_login_fails_when_email_cannot_be_sent(self, verification, notifier, make_user):
        make_user(email="bob@example.com")
        notifier.result = False
        with pytest.raises(NotificationFailed):
            verification.request_login("bob@example.com")

        notifier.result = True
        notifier.error = RuntimeError("mail provider timeout")
        with pytest.raises(NotificationFailed):
            verification.request_login("bob@example.com")

    def test_complete_login_without_code_on_record(self, verification, make_user):
        make_user(email="bob@example.com")
        with pytest.raises(InvalidCode):
            verification.complete_login("bob@example.com", "123456")
        with pytest.raises(UserNotFound):
            verification.complete_login("ghost@example.com", "123456")

    def test_password_login(self, verification, make_user, db):
        user = make_user(email="carol@example.com")
        user.hashed_password = get_password_hash("correct horse")
        db.commit()

        session = verification.login_with_password("Carol@example.com", "correct horse")
        assert session.user.id == user.id
        with pytest.raises(InvalidCredentials):
            verification.login_with_password("carol@example.com", "wrong password")
        with pytest.raises(InvalidCredentials):
            verification.login_with_password("ghost@example.com", "correct horse")


class TestStandaloneVerification:
    def test_full_flow_creates_user(self, verification, notifier):
        verification.request_standalone_verification("Dana@Example.com")
        message = notifier.last("verification_otp")
        assert message["name"] == "User"
        otp = message["args"]["otp"]

        check = verification.check_standalone_verification("dana@example.com", otp)
        assert check.verified is True
        assert check.message == "Email verified successfully"
        # Still present so registration can re-check the same code
        assert verification.email_checks.get("dana@example.com").verified is True

        session = verification.register_pre_verified(_fields(email="dana@example.com", name="Dana"), otp)
        assert session.user.is_email_verified is True
        assert "dana@example.com" not in verification.email_checks

    def test_check_errors(self, verification, notifier, clock):
        with pytest.raises(NoVerificationFound):
            verification.check_standalone_verification("dana@example.com", "123456")

        verification.request_standalone_verification("dana@example.com")
        otp = notifier.last()["args"]["otp"]
        with pytest.raises(InvalidCode):
            verification.check_standalone_verification("dana@example.com", _wrong(otp))
        clock.advance(minutes=16)
        with pytest.raises(CodeExpired):
            verification.check_standalone_verification("dana@example.com", otp)

    def test_register_pre_verified_rejections(self, verification, notifier, make_user, clock):
        with pytest.raises(EmailNotVerified):
            verification.register_pre_verified(_fields(email="dana@example.com"), "123456")

        verification.request_standalone_verification("dana@example.com")
        otp = notifier.last()["args"]["otp"]
        with pytest.raises(EmailNotVerified) as excinfo:
            verification.register_pre_verified(_fields(email="dana@example.com"), _wrong(otp))
        assert excinfo.value.message == "Invalid verification code"

        make_user(email="dana@example.com")
        with pytest.raises(UserAlreadyExists):
            verification.register_pre_verified(_fields(email="dana@example.com"), otp)

        clock.advance(minutes=16)
        with pytest.raises(EmailNotVerified) as excinfo:
            verification.register_pre_verified(_fields(email="dana@example.com"), otp)
        assert excinfo.value.message == "Verification code has expired"
