"""In-process expiring stores for the OTP round trips.

Pending registrations and standalone email verifications live only in this
process: a restart drops them and horizontally scaled deployments do not share
them. A shared TTL cache (e.g. Redis) behind the same get/set/delete/sweep
interface is the upgrade path.
"""
import logging
import secrets
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from functools import lru_cache
from typing import Generic, TypeVar

from foodshare.services.clock import utcnow

logger = logging.getLogger(__name__)

OTP_MIN = 100000
OTP_MAX = 999999

# Expired entries stay readable this long so late submissions get "expired" rather than "not found"
SWEEP_GRACE = timedelta(hours=1)


def generate_otp() -> str:
    """Uniformly random 6-digit code in 100000..999999."""
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))


@dataclass
class PendingRegistration:
    email: str
    name: str
    hashed_password: str
    otp: str
    expires_at: datetime
    avatar: str | None = None


@dataclass
class EmailVerificationState:
    email: str
    otp: str
    expires_at: datetime
    verified: bool = field(default=False)


T = TypeVar("T")


class ExpiringStore(Generic[T]):
    """Thread-safe map of key -> entry; every entry exposes ``expires_at``.

    One lock guards the whole map so a read-modify-write on the same key never
    tears. There is no cross-key coordination; concurrent writers of one key
    are last-write-wins.
    """

    def __init__(self, name: str):
        self.name = name
        self._entries: dict[str, T] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> T | None:
        """Return the entry, even when expired; callers decide how to report expiry."""
        with self._lock:
            return self._entries.get(key)

    def set(self, key: str, entry: T) -> None:
        with self._lock:
            self._entries[key] = entry

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def delete_if_same(self, key: str, entry: T) -> bool:
        """Remove ``key`` only if it still holds ``entry`` (not a newer reissue)."""
        with self._lock:
            if self._entries.get(key) is entry:
                del self._entries[key]
                return True
            return False

    def sweep(self, now: datetime | None = None) -> int:
        now = now or utcnow()
        with self._lock:
            dead = [k for k, e in self._entries.items() if e.expires_at + SWEEP_GRACE < now]
            for k in dead:
                del self._entries[k]
        if dead:
            logger.info("Swept %d expired %s entr%s", len(dead), self.name, "y" if len(dead) == 1 else "ies")
        return len(dead)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries


@lru_cache
def get_pending_registrations() -> ExpiringStore[PendingRegistration]:
    return ExpiringStore("pending registration")


@lru_cache
def get_email_verifications() -> ExpiringStore[EmailVerificationState]:
    return ExpiringStore("email verification")


def sweep_verification_stores() -> int:
    """Scheduler job: drop dead OTP entries from both process-wide stores."""
    now = utcnow()
    return get_pending_registrations().sweep(now) + get_email_verifications().sweep(now)
