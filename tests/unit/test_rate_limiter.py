"""Tests for the per-sender fixed window rate limiter."""

from __future__ import annotations

from src.gateway.rate_limiter import SenderRateLimiter
from src.models import RateWindow
from src.store.expiring import MemoryExpiringStore
from tests.conftest import FakeClock, make_config

SENDER = "8801711112222"


def _limiter(
    store: MemoryExpiringStore, clock: FakeClock, max_messages: int = 10, window: int = 300,
) -> SenderRateLimiter:
    return SenderRateLimiter(
        store, max_messages=max_messages, window_seconds=window, clock=clock,
    )


class TestSenderRateLimiter:
    def test_ten_allowed_eleventh_denied(self, store, clock) -> None:
        limiter = _limiter(store, clock)
        for _ in range(10):
            assert limiter.check_and_record(SENDER).allowed is True
        assert limiter.check_and_record(SENDER).allowed is False

    def test_allowed_again_after_window(self, store, clock) -> None:
        limiter = _limiter(store, clock)
        for _ in range(11):
            limiter.check_and_record(SENDER)
        clock.advance(300)
        decision = limiter.check_and_record(SENDER)
        assert decision.allowed is True
        assert decision.count == 1

    def test_window_elapsed_exactly_at_boundary(self, store, clock) -> None:
        """now - window_started_at >= window starts a fresh window."""
        limiter = _limiter(store, clock, max_messages=1, window=60)
        assert limiter.check_and_record(SENDER).allowed is True
        clock.advance(59)
        assert limiter.check_and_record(SENDER).allowed is False
        clock.advance(1)
        assert limiter.check_and_record(SENDER).allowed is True

    def test_denials_still_counted(self, store, clock) -> None:
        limiter = _limiter(store, clock, max_messages=2)
        for _ in range(4):
            decision = limiter.check_and_record(SENDER)
        assert decision.count == 4
        assert decision.allowed is False

    def test_denial_does_not_move_window_start(self, store, clock) -> None:
        limiter = _limiter(store, clock, max_messages=1, window=60)
        started = clock.now
        limiter.check_and_record(SENDER)
        clock.advance(30)
        limiter.check_and_record(SENDER)
        window = RateWindow.model_validate_json(store.get(f"rate_limit:{SENDER}"))
        assert window.window_started_at == started
        assert window.count == 2

    def test_senders_are_independent(self, store, clock) -> None:
        limiter = _limiter(store, clock, max_messages=1)
        assert limiter.check_and_record(SENDER).allowed is True
        assert limiter.check_and_record("8801899998888").allowed is True

    def test_unreadable_record_starts_new_window(self, store, clock) -> None:
        store.put(f"rate_limit:{SENDER}", "not json", 60)
        decision = _limiter(store, clock).check_and_record(SENDER)
        assert decision.allowed is True
        assert decision.count == 1

    def test_from_config_uses_configured_limits(self, store, clock) -> None:
        config = make_config(max_messages_per_window=2, window_length_seconds=10)
        limiter = SenderRateLimiter.from_config(store, config, clock=clock)
        assert limiter.check_and_record(SENDER).allowed is True
        assert limiter.check_and_record(SENDER).allowed is True
        assert limiter.check_and_record(SENDER).allowed is False
        clock.advance(10)
        assert limiter.check_and_record(SENDER).allowed is True

    def test_defaults(self, store) -> None:
        limiter = SenderRateLimiter(store)
        assert limiter._max_messages == 10
        assert limiter._window_seconds == 300
