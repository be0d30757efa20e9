"""
Attempt limiter for login, registration and password-reset forms.

This discourages rapid resubmission; it is a UX nicety and not a security
control. Anyone can reset it by changing their client id, and Supabase Auth
applies the real throttling on its side.

Per key the store holds an ordered list of attempt timestamps
(``rate_<key>``) and one ``blocked_until_<key>`` timestamp, both in epoch
seconds. Exceeding the limit never raises: callers get a ``LimiterStatus``
and decide how to present the countdown.
"""

import math
import time
from typing import Callable, List, Optional

from pydantic import BaseModel

from services.state_store import StateStore
from utils.logging import setup_logger

logger = setup_logger(__name__)

DEFAULT_THRESHOLD = 3


class ExponentialBackoff:
    """``base * 2 ** (attempts - threshold)`` seconds: 60, 120, 240..."""

    def __init__(self, base_seconds: float = 60.0):
        self.base_seconds = base_seconds

    def __call__(self, attempts: int, threshold: int) -> float:
        return self.base_seconds * 2 ** max(attempts - threshold, 0)


class FlatBackoff:
    """Same block length regardless of how many attempts were made."""

    def __init__(self, seconds: float):
        self.seconds = seconds

    def __call__(self, attempts: int, threshold: int) -> float:
        return self.seconds


class LimiterStatus(BaseModel):
    blocked: bool
    retry_after: int = 0
    attempts: int = 0
    attempts_remaining: int = 0
    message: Optional[str] = None


def countdown_message(seconds: int) -> str:
    if seconds >= 120:
        return f"Too many attempts. Try again in {math.ceil(seconds / 60)} minutes."
    return f"Too many attempts. Try again in {seconds} seconds."


class AttemptLimiter:
    """
    Counts failed attempts per key and imposes a cooldown after ``threshold``.

    Args:
        store: Where attempt lists and block timestamps are persisted
        client_id: Store scope, one per client (browser, IP, ...)
        threshold: Failures that trigger a block
        backoff: Callable ``(attempts, threshold) -> seconds``
        window_seconds: Only attempts this recent are counted (None = all)
        clock: Returns the current time in epoch seconds
    """

    def __init__(
        self,
        store: StateStore,
        client_id: str,
        threshold: int = DEFAULT_THRESHOLD,
        backoff: Optional[Callable[[int, int], float]] = None,
        window_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.client_id = client_id
        self.threshold = threshold
        self.backoff = backoff or ExponentialBackoff()
        self.window_seconds = window_seconds
        self.clock = clock

    def _attempts(self, key: str, now: float) -> List[float]:
        attempts = self.store.get(self.client_id, f"rate_{key}", []) or []
        if self.window_seconds is not None:
            attempts = [t for t in attempts if now - t < self.window_seconds]
        return attempts

    def _blocked_until(self, key: str) -> Optional[float]:
        return self.store.get(self.client_id, f"blocked_until_{key}")

    def record_attempt(self, key: str) -> int:
        """Append the current time to ``key``'s attempts; returns the count."""
        now = self.clock()
        attempts = self._attempts(key, now)
        attempts.append(now)
        self.store.put(self.client_id, f"rate_{key}", attempts)
        return len(attempts)

    def is_blocked(self, key: str) -> bool:
        blocked_until = self._blocked_until(key)
        if blocked_until is None:
            return False
        if self.clock() < blocked_until:
            return True
        self.store.delete(self.client_id, f"blocked_until_{key}")
        return False

    def seconds_remaining(self, key: str) -> int:
        blocked_until = self._blocked_until(key)
        if blocked_until is None:
            return 0
        return max(math.ceil(blocked_until - self.clock()), 0)

    def status(self, key: str) -> LimiterStatus:
        attempts = len(self._attempts(key, self.clock()))
        if self.is_blocked(key):
            retry_after = self.seconds_remaining(key)
            return LimiterStatus(
                blocked=True,
                retry_after=retry_after,
                attempts=attempts,
                attempts_remaining=0,
                message=countdown_message(retry_after),
            )
        return LimiterStatus(
            blocked=False,
            attempts=attempts,
            attempts_remaining=max(self.threshold - attempts, 0),
        )

    def record_failure(self, key: str) -> LimiterStatus:
        """Record a failed attempt and start a block once the threshold is reached."""
        count = self.record_attempt(key)
        if count >= self.threshold:
            wait = self.backoff(count, self.threshold)
            self.store.put(
                self.client_id, f"blocked_until_{key}", self.clock() + wait
            )
            logger.warning(
                "Attempt limit reached",
                extra={
                    "limiter_key": key,
                    "client_id": self.client_id,
                    "attempts": count,
                    "block_seconds": wait,
                },
            )
        return self.status(key)

    def record_success(self, key: str) -> None:
        """A successful attempt clears the failure count and any block."""
        self.store.delete(self.client_id, f"rate_{key}")
        self.store.delete(self.client_id, f"blocked_until_{key}")
