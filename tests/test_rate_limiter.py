"""Tests for the attempt limiter."""

import pytest

from services.rate_limiter import (AttemptLimiter, ExponentialBackoff,
                                   FlatBackoff, countdown_message)
from services.state_store import JSONFileStateStore


@pytest.fixture
def store(tmp_path):
    return JSONFileStateStore(str(tmp_path / "limiter.json"))


class TestBackoff:
    """Tests for block length policies."""

    def test_exponential_doubles_after_threshold(self):
        """60 s at the threshold, doubling for every further failure."""
        backoff = ExponentialBackoff()
        assert [backoff(n, 3) for n in (3, 4, 5)] == [60, 120, 240]

    def test_flat(self):
        """Flat backoff ignores the attempt count."""
        assert FlatBackoff(600)(7, 3) == 600

    def test_countdown_message(self):
        """Short waits in seconds, long waits in minutes."""
        assert countdown_message(45) == "Too many attempts. Try again in 45 seconds."
        assert countdown_message(600) == "Too many attempts. Try again in 10 minutes."


class TestAttemptLimiter:
    """Tests for counting failures and blocking."""

    def test_blocks_on_third_failure(self, store, clock):
        """Two failures leave one attempt; the third blocks for 60 s."""
        limiter = AttemptLimiter(store, "browser-1", clock=clock)

        assert limiter.record_failure("login").attempts_remaining == 2
        assert limiter.record_failure("login").attempts_remaining == 1

        status = limiter.record_failure("login")
        assert status.blocked is True
        assert status.retry_after == 60
        assert status.message == "Too many attempts. Try again in 60 seconds."

    def test_block_expires(self, store, clock):
        """Once the wait has passed the key is usable again."""
        limiter = AttemptLimiter(store, "browser-1", clock=clock)
        for _ in range(3):
            limiter.record_failure("login")

        clock.advance(30)
        assert limiter.status("login").retry_after == 30

        clock.advance(31)
        assert limiter.is_blocked("login") is False
        assert store.get("browser-1", "blocked_until_login") is None

    def test_failure_after_block_doubles_wait(self, store, clock):
        """The fourth failure blocks for 120 s."""
        limiter = AttemptLimiter(store, "browser-1", clock=clock)
        for _ in range(3):
            limiter.record_failure("login")
        clock.advance(61)

        status = limiter.record_failure("login")
        assert status.blocked is True
        assert status.retry_after == 120

    def test_success_clears_state(self, store, clock):
        """A success wipes both the attempts and the block."""
        limiter = AttemptLimiter(store, "browser-1", clock=clock)
        limiter.record_failure("login")
        limiter.record_success("login")

        assert store.get("browser-1", "rate_login") is None
        assert limiter.status("login").attempts_remaining == 3

    def test_keys_and_clients_are_independent(self, store, clock):
        """Blocking one key or client leaves the others alone."""
        limiter = AttemptLimiter(store, "browser-1", clock=clock)
        for _ in range(3):
            limiter.record_failure("login")

        assert limiter.is_blocked("register") is False
        assert AttemptLimiter(store, "browser-2", clock=clock).is_blocked("login") is False

    def test_window_forgets_old_attempts(self, store, clock):
        """Attempts older than the window are not counted."""
        limiter = AttemptLimiter(store, "browser-1", window_seconds=60, clock=clock)
        limiter.record_failure("login")
        limiter.record_failure("login")
        clock.advance(61)

        status = limiter.record_failure("login")
        assert status.blocked is False
        assert status.attempts == 1

    def test_attempts_are_persisted(self, store, clock):
        """Attempt timestamps live under ``rate_<key>``."""
        AttemptLimiter(store, "browser-1", clock=clock).record_attempt("reset")
        assert store.get("browser-1", "rate_reset") == [clock.now]
