"""Per-identity lockout after repeated failed logins."""

import logging
import math
import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass
class AttemptRecord:
    count: int
    last_attempt: float
    lock_until: float | None = None


class LoginThrottle:
    """
    Count failed logins per identity and lock the identity out for a
    cooldown window once ``max_attempts`` failures accumulate.

    Records expire lazily: a record whose lockout has elapsed, or whose
    last failure is older than the lockout window without having reached
    a lockout, is dropped the next time it is looked at.
    """

    def __init__(
        self,
        max_attempts: int = 5,
        lockout: timedelta = timedelta(minutes=15),
        clock: Callable[[], float] = time.time,
    ):
        self.max_attempts = max_attempts
        self.lockout_seconds = lockout.total_seconds()
        self.clock = clock
        self._lock = threading.Lock()
        self._records: dict[str, AttemptRecord] = {}

    def _current(self, identity: str, now: float) -> AttemptRecord | None:
        record = self._records.get(identity)
        if record is None:
            return None
        if record.lock_until is not None:
            stale = now >= record.lock_until
        else:
            stale = now - record.last_attempt >= self.lockout_seconds
        if stale:
            del self._records[identity]
            return None
        return record

    def _prune(self, now: float) -> None:
        for identity in list(self._records):
            self._current(identity, now)

    def record_failure(self, identity: str, now: float | None = None) -> AttemptRecord:
        """
        Register a failed login for ``identity``.

        Args:
            identity (str): Normalized login identity (email).
            now (float | None): Epoch seconds; defaults to the clock.

        Returns:
            AttemptRecord: Updated record for the identity.
        """
        now = self.clock() if now is None else now
        with self._lock:
            self._prune(now)
            record = self._current(identity, now)
            if record is None:
                record = AttemptRecord(count=0, last_attempt=now)
                self._records[identity] = record
            record.count += 1
            record.last_attempt = now
            if record.count >= self.max_attempts and record.lock_until is None:
                record.lock_until = now + self.lockout_seconds
                logger.warning(
                    "Locking out %s after %s failed logins", identity, record.count
                )
            return record

    def is_locked(self, identity: str, now: float | None = None) -> bool:
        return self.retry_after(identity, now) > 0

    def retry_after(self, identity: str, now: float | None = None) -> int:
        """Return the whole seconds left on a lockout, or 0 if not locked."""
        now = self.clock() if now is None else now
        with self._lock:
            record = self._current(identity, now)
            if record is None or record.lock_until is None:
                return 0
            return max(1, math.ceil(record.lock_until - now))

    def clear(self, identity: str) -> None:
        with self._lock:
            self._records.pop(identity, None)

    def __len__(self) -> int:
        return len(self._records)
