"""Conversation session storage.

A session exists only while a sender is expected to pick one of the options
they were shown. Presence of the record is the AWAITING_SELECTION state and
absence is IDLE. Records are always written or deleted whole.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence

from pydantic import ValidationError

from src.config import GatewayConfig
from src.models import ConversationSession, Option
from src.store.expiring import Clock, ExpiringStore

logger = logging.getLogger(__name__)

_KEY_PREFIX = "conversation:"


class ConversationSessionStore:
    """Stores one short-lived selection session per sender."""

    DEFAULT_TTL_SECONDS = 600

    def __init__(
        self,
        store: ExpiringStore,
        ttl_seconds: int | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._ttl_seconds = ttl_seconds or self.DEFAULT_TTL_SECONDS
        self._clock = clock or time.time

    @classmethod
    def from_config(
        cls, store: ExpiringStore, config: GatewayConfig, clock: Clock | None = None,
    ) -> ConversationSessionStore:
        return cls(store, ttl_seconds=config.session_ttl_seconds, clock=clock)

    def open(self, sender_id: str, options: Sequence[Option]) -> ConversationSession:
        """Create or overwrite the sender's session with a fresh TTL.

        Options are snapshotted with ordinal positions 1..n in the given order.

        Raises:
            ValueError: If ``options`` is empty.
        """
        if not options:
            raise ValueError("Cannot open a session without options")
        snapshot = [
            option.model_copy(update={"ordinal_position": position})
            for position, option in enumerate(options, start=1)
        ]
        session = ConversationSession(
            sender_id=sender_id,
            options=snapshot,
            created_at=self._clock(),
        )
        self._store.put(self._key(sender_id), session.model_dump_json(), self._ttl_seconds)
        logger.info(
            "Opened session for %s with %d options (expires in %ds)",
            sender_id, len(snapshot), self._ttl_seconds,
        )
        return session

    def get(self, sender_id: str) -> ConversationSession | None:
        """Return the sender's session, or None if absent, expired or invalid."""
        raw = self._store.get(self._key(sender_id))
        if raw is None:
            return None
        try:
            return ConversationSession.model_validate_json(raw)
        except ValidationError:
            logger.warning("Invalid session record for %s, clearing it", sender_id)
            self.close(sender_id)
            return None

    def close(self, sender_id: str) -> None:
        self._store.delete(self._key(sender_id))

    @staticmethod
    def _key(sender_id: str) -> str:
        return f"{_KEY_PREFIX}{sender_id}"
