import threading
from datetime import datetime, timedelta, timezone

from foodshare.services.otp_store import (
    SWEEP_GRACE,
    EmailVerificationState,
    ExpiringStore,
    PendingRegistration,
    generate_otp,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _pending(email="a@example.com", otp="123456", expires_at=None):
    return PendingRegistration(
        email=email,
        name="Alice",
        hashed_password="hash",
        otp=otp,
        expires_at=expires_at or NOW + timedelta(minutes=15),
    )


def test_generate_otp_is_six_digits_in_range():
    for _ in range(500):
        otp = generate_otp()
        assert len(otp) == 6
        assert otp.isdigit()
        assert 100000 <= int(otp) <= 999999


def test_set_overwrites_previous_entry():
    store = ExpiringStore("pending registration")
    store.set("a@example.com", _pending(otp="111111"))
    store.set("a@example.com", _pending(otp="222222"))

    assert len(store) == 1
    assert store.get("a@example.com").otp == "222222"


def test_get_returns_expired_entries():
    store = ExpiringStore("pending registration")
    store.set("a@example.com", _pending(expires_at=NOW - timedelta(minutes=1)))

    assert store.get("a@example.com") is not None
    assert store.get("missing@example.com") is None


def test_delete_if_same_keeps_a_reissued_entry():
    store = ExpiringStore("pending registration")
    first = _pending(otp="111111")
    store.set("a@example.com", first)
    reissued = _pending(otp="222222")
    store.set("a@example.com", reissued)

    assert store.delete_if_same("a@example.com", first) is False
    assert "a@example.com" in store
    assert store.delete_if_same("a@example.com", reissued) is True
    assert "a@example.com" not in store


def test_sweep_keeps_recently_expired_entries_for_the_grace_period():
    store = ExpiringStore("email verification")
    store.set("fresh@example.com", EmailVerificationState(email="fresh@example.com", otp="1", expires_at=NOW + timedelta(minutes=5)))
    store.set("late@example.com", EmailVerificationState(email="late@example.com", otp="2", expires_at=NOW - timedelta(minutes=5)))
    store.set("dead@example.com", EmailVerificationState(email="dead@example.com", otp="3", expires_at=NOW - SWEEP_GRACE - timedelta(seconds=1)))

    removed = store.sweep(NOW)

    assert removed == 1
    assert "fresh@example.com" in store
    assert "late@example.com" in store
    assert "dead@example.com" not in store


def test_concurrent_writers_leave_one_entry_per_key():
    store = ExpiringStore("pending registration")
    barrier = threading.Barrier(8)

    def writer(i):
        barrier.wait()
        for n in range(50):
            store.set("a@example.com", _pending(otp=str(100000 + i * 100 + n)))
            store.set(f"user{i}@example.com", _pending(email=f"user{i}@example.com"))

    threads = [threading.Thread(target=writer, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(store) == 9
    assert store.get("a@example.com").email == "a@example.com"
