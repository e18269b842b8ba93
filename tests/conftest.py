import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Ensure predictable environment variables for tests before importing the app.
BASE_DIR = Path(__file__).resolve().parents[1]
TEST_DB_PATH = BASE_DIR / "test.db"

if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB_PATH}"
os.environ.setdefault("JWT_SECRET_KEY", "foodshare-test-secret-key-0123456789abcdef")
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["VERIFICATION_SWEEP_ENABLED"] = "false"
os.environ["MAILGUN_API_KEY"] = ""
os.environ["MAILGUN_DOMAIN"] = ""

from foodshare.database import Base, SessionLocal, engine  # noqa: E402  (import after env vars are set)
from foodshare.models import Post, PostType, User  # noqa: E402
from foodshare.services.lifecycle import PostWorkflow  # noqa: E402
from foodshare.services.notifications import render  # noqa: E402
from foodshare.services.otp_store import (  # noqa: E402
    ExpiringStore,
    get_email_verifications,
    get_pending_registrations,
)
from foodshare.services.ratings import RatingService  # noqa: E402
from foodshare.services.verification import VerificationService  # noqa: E402


class RecordingNotifier:
    """Dispatcher double: renders every message (catching bad template args) and records it."""

    def __init__(self):
        self.sent = []
        self.result = True
        self.error = None

    def send(self, to_email, to_name, kind, template_args):
        render(kind, template_args)
        self.sent.append({"to": to_email, "name": to_name, "kind": kind.value, "args": dict(template_args)})
        if self.error is not None:
            raise self.error
        return self.result

    def last(self, kind=None):
        for message in reversed(self.sent):
            if kind is None or message["kind"] == kind:
                return message
        return None

    def kinds(self):
        return [m["kind"] for m in self.sent]


class FakeClock:
    def __init__(self, start=None):
        self.current = start or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.current

    def advance(self, **kwargs):
        self.current = self.current + timedelta(**kwargs)


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    get_pending_registrations().clear()
    get_email_verifications().clear()
    yield


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def verification(db, notifier, clock):
    return VerificationService(
        db,
        notifier,
        pending_store=ExpiringStore("pending registration"),
        email_store=ExpiringStore("email verification"),
        clock=clock,
    )


@pytest.fixture()
def workflow(db, notifier):
    return PostWorkflow(db, notifier)


@pytest.fixture()
def ratings(db, notifier):
    return RatingService(db, notifier)


@pytest.fixture()
def make_user(db):
    counter = {"n": 0}

    def _make(name=None, email=None, verified=True, **extra):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            name=name or f"User {n}",
            email=(email or f"user{n}@example.com").lower(),
            hashed_password="not-a-real-hash",
            is_email_verified=verified,
            donations_count=0,
            received_count=0,
            rating=0.0,
            **extra,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture()
def make_post(workflow):
    def _make(owner, type=PostType.donation, title="Fresh bread", **extra):
        fields = {
            "description": "Two loaves from this morning",
            "quantity": "2 loaves",
            "location": "12 Main St",
            "expiry_date": datetime(2026, 3, 5, tzinfo=timezone.utc),
        }
        fields.update(extra)
        return workflow.create_post(owner_id=owner.id, type=type, title=title, **fields)

    return _make


@pytest.fixture()
def reload_user(db):
    def _reload(user_id):
        db.expire_all()
        return db.query(User).filter(User.id == user_id).one()

    return _reload


@pytest.fixture()
def reload_post(db):
    def _reload(post_id):
        db.expire_all()
        return db.query(Post).filter(Post.id == post_id).first()

    return _reload


@pytest.fixture()
def client(notifier):
    """Provide a TestClient wired to the recording notifier, without the background sweep."""
    from fastapi.testclient import TestClient

    import foodshare.main as main
    from foodshare.services.notifications import get_notifier

    main.app.dependency_overrides[get_notifier] = lambda: notifier
    with TestClient(main.app) as test_client:
        yield test_client
    main.app.dependency_overrides.pop(get_notifier, None)


