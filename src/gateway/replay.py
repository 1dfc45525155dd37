"""Duplicate delivery suppression for provider message ids.

The provider may deliver the same message more than once. Each message id is
remembered for ``ttl_seconds``; a repeat inside that window is skipped.
"""

from __future__ import annotations

from src.store.expiring import ExpiringStore

_KEY_PREFIX = "seen_message:"


class DuplicateDeliveryGuard:
    def __init__(self, store: ExpiringStore, ttl_seconds: int = 600) -> None:
        self._store = store
        self._ttl_seconds = ttl_seconds

    def first_delivery(self, message_id: str | None) -> bool:
        """Return True if ``message_id`` has not been seen within the TTL.

        Messages without an id, or a zero TTL, are always treated as new.
        """
        if not message_id or self._ttl_seconds <= 0:
            return True
        key = f"{_KEY_PREFIX}{message_id}"
        if self._store.get(key) is not None:
            return False
        self._store.put(key, "1", self._ttl_seconds)
        return True
