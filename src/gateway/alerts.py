"""Operator alerts for provider instance trouble."""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from src.gateway.dispatcher import OutboundDispatcher

logger = logging.getLogger(__name__)

CRITICAL_STATUSES = frozenset({"disconnected", "unauthorized"})


class AdminNotifier:
    """Sends WhatsApp alerts to the configured admin contacts."""

    def __init__(self, dispatcher: OutboundDispatcher, admin_contacts: Sequence[str]) -> None:
        self._dispatcher = dispatcher
        self._admin_contacts = tuple(admin_contacts)

    async def status_changed(self, phone_id: str, status: str) -> int:
        body = (
            f"🚨 WhatsApp status alert: {status}\n\n"
            f"Phone ID: {phone_id}\n"
            f"Timestamp: {datetime.now(UTC).isoformat()}\n\n"
            "Please check the WhatsApp integration immediately."
        )
        return await self._broadcast(body)

    async def provider_error(self, error_data: dict[str, Any]) -> int:
        details = json.dumps(error_data, indent=2, default=str)[:1000]
        body = (
            "🚨 WhatsApp API error\n\n"
            f"{details}\n\n"
            f"Timestamp: {datetime.now(UTC).isoformat()}"
        )
        return await self._broadcast(body)

    async def _broadcast(self, body: str) -> int:
        """Send ``body`` to every admin; return how many sends succeeded."""
        if not self._admin_contacts:
            logger.info("No admin contacts configured, alert not sent")
            return 0
        delivered = 0
        for contact in self._admin_contacts:
            if await self._dispatcher.send(contact, body):
                delivered += 1
        if delivered < len(self._admin_contacts):
            logger.warning(
                "Admin alert delivered to %d of %d contacts",
                delivered, len(self._admin_contacts),
            )
        return delivered
