"""Per-sender fixed window rate limiter backed by the expiring store."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from pydantic import ValidationError

from src.config import GatewayConfig
from src.models import RateWindow
from src.store.expiring import Clock, ExpiringStore

logger = logging.getLogger(__name__)

_KEY_PREFIX = "rate_limit:"


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    count: int


class SenderRateLimiter:
    """Fixed window rate limiter per canonical sender id.

    Default: 10 messages per 300 seconds per sender. A denied message still
    increments the stored count but never moves the window start.
    """

    def __init__(
        self,
        store: ExpiringStore,
        max_messages: int = 10,
        window_seconds: int = 300,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._max_messages = max_messages
        self._window_seconds = window_seconds
        self._clock = clock or time.time

    @classmethod
    def from_config(
        cls, store: ExpiringStore, config: GatewayConfig, clock: Clock | None = None,
    ) -> SenderRateLimiter:
        return cls(
            store,
            max_messages=config.max_messages_per_window,
            window_seconds=config.window_length_seconds,
            clock=clock,
        )

    def check_and_record(self, sender_id: str) -> RateDecision:
        """Count one message for ``sender_id`` and report whether it is allowed."""
        now = self._clock()
        window = self._load(sender_id)

        if window is None or now - window.window_started_at >= self._window_seconds:
            window = RateWindow(sender_id=sender_id, window_started_at=now, count=1)
        else:
            window = window.model_copy(update={"count": window.count + 1})

        remaining = window.window_started_at + self._window_seconds - now
        self._store.put(self._key(sender_id), window.model_dump_json(), max(remaining, 1))

        allowed = window.count <= self._max_messages
        if not allowed:
            logger.warning(
                "Rate limit exceeded for %s (%d/%d in window)",
                sender_id, window.count, self._max_messages,
            )
        return RateDecision(allowed=allowed, count=window.count)

    def _load(self, sender_id: str) -> RateWindow | None:
        raw = self._store.get(self._key(sender_id))
        if raw is None:
            return None
        try:
            return RateWindow.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding unreadable rate window for %s", sender_id)
            return None

    @staticmethod
    def _key(sender_id: str) -> str:
        return f"{_KEY_PREFIX}{sender_id}"
