"""Maytapi webhook ingestion.

Parses provider callbacks, validates the callback source, and routes each
event type to its handler. Every path returns a ``StatusToken`` and the HTTP
layer always answers 200 with it, so a failure here never triggers the
provider's redelivery.
"""

from __future__ import annotations

import hmac
import json
import logging
import re
from typing import TYPE_CHECKING, Any

from src.gateway.alerts import CRITICAL_STATUSES, AdminNotifier
from src.models import (
    AuditEvent,
    AuditEventType,
    InboundEvent,
    MessageKind,
    RiskLevel,
    StatusToken,
)

if TYPE_CHECKING:
    from src.audit.logger import AuditLogger
    from src.config import GatewayConfig
    from src.gateway.orchestrator import ConversationOrchestrator
    from src.gateway.replay import DuplicateDeliveryGuard

logger = logging.getLogger(__name__)

_CONVERSATION_SUFFIX_RE = re.compile(r"@(c\.us|s\.whatsapp\.net)$")


def extract_sender_id(user: Any, conversation: Any) -> str | None:
    """Prefer ``user.phone``; fall back to the conversation id minus its suffix."""
    if isinstance(user, dict) and user.get("phone"):
        return str(user["phone"])
    if isinstance(conversation, str) and conversation:
        return _CONVERSATION_SUFFIX_RE.sub("", conversation)
    return None


def extract_text(message: dict[str, Any]) -> tuple[str, MessageKind] | None:
    """Return the usable text of a message and where it came from.

    Text messages use ``text``, media use ``caption`` and button replies use
    ``selectedButtonId``. Anything else has no processable text.
    """
    text = message.get("text")
    if message.get("type") == "text" and isinstance(text, str) and text.strip():
        return text.strip(), MessageKind.TEXT
    caption = message.get("caption")
    if isinstance(caption, str) and caption.strip():
        return caption.strip(), MessageKind.CAPTION
    button_id = message.get("selectedButtonId")
    if message.get("type") == "button_response" and button_id:
        return str(button_id), MessageKind.BUTTON
    return None


class WebhookIngestor:
    """Turns raw webhook deliveries into orchestrator calls and status tokens."""

    def __init__(
        self,
        config: GatewayConfig,
        orchestrator: ConversationOrchestrator,
        duplicate_guard: DuplicateDeliveryGuard | None = None,
        notifier: AdminNotifier | None = None,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._config = config
        self._orchestrator = orchestrator
        self._duplicates = duplicate_guard
        self._notifier = notifier
        self._audit = audit_logger

    async def handle(self, raw_payload: bytes | str | None) -> StatusToken:
        if not raw_payload:
            logger.warning("Webhook delivery with no data")
            return StatusToken.NO_DATA

        try:
            data = json.loads(raw_payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error("Invalid JSON in webhook delivery: %s", e)
            return StatusToken.INVALID_JSON
        if not isinstance(data, dict):
            logger.error("Webhook payload is not a JSON object")
            return StatusToken.INVALID_JSON

        if not self.is_valid_source(data):
            self._log_rejection(data)
            return StatusToken.UNAUTHORIZED

        try:
            return await self._dispatch(data)
        except Exception:
            logger.exception("Error processing %s webhook", data.get("type"))
            return StatusToken.PROCESSING_ERROR

    def is_valid_source(self, data: dict[str, Any]) -> bool:
        """Check product and phone ids against configuration in constant time."""
        for field_name, expected in (
            ("product_id", self._config.expected_product_id),
            ("phone_id", self._config.expected_phone_id),
        ):
            value = data.get(field_name)
            if value in (None, ""):
                logger.warning("Webhook missing required field: %s", field_name)
                return False
            if not hmac.compare_digest(str(value).encode(), str(expected).encode()):
                logger.warning("Webhook %s does not match configuration", field_name)
                return False
        return True

    async def _dispatch(self, data: dict[str, Any]) -> StatusToken:
        event_type = data.get("type")
        if event_type == "message":
            await self._handle_message(data)
            return StatusToken.MESSAGE_PROCESSED
        if event_type == "status":
            await self._handle_status(data)
            return StatusToken.STATUS_PROCESSED
        if event_type == "ack":
            self._handle_ack(data)
            return StatusToken.ACK_PROCESSED
        if event_type == "error":
            await self._handle_error(data)
            return StatusToken.ERROR_PROCESSED
        logger.info("Unhandled webhook type: %s", event_type)
        return StatusToken.UNHANDLED_TYPE

    async def _handle_message(self, data: dict[str, Any]) -> None:
        message = data.get("message")
        conversation = data.get("conversation")
        if not isinstance(message, dict) or not conversation:
            logger.warning("Message webhook missing message or conversation")
            return

        if message.get("fromMe"):
            logger.debug("Ignoring outgoing message %s", message.get("id"))
            return

        user = data.get("user")
        sender = extract_sender_id(user, conversation)
        if not sender:
            logger.warning("Could not extract sender from message webhook")
            return

        extracted = extract_text(message)
        if extracted is None:
            logger.info("No processable text in message type %s", message.get("type"))
            return
        text, kind = extracted

        message_id = message.get("id")
        message_id = str(message_id) if message_id is not None else None
        if self._duplicates and not self._duplicates.first_delivery(message_id):
            logger.info("Skipping duplicate delivery of message %s", message_id)
            return

        event = InboundEvent(
            raw_sender_id=sender,
            text=text,
            message_kind=kind,
            external_message_id=message_id,
            provider_metadata={
                "message_id": message_id,
                "message_type": message.get("type"),
                "timestamp": data.get("timestamp"),
                "product_id": data.get("product_id"),
                "phone_id": data.get("phone_id"),
                "user_name": user.get("name") if isinstance(user, dict) else None,
            },
        )
        await self._orchestrator.handle(event)

    async def _handle_status(self, data: dict[str, Any]) -> None:
        phone_id = str(data.get("phone_id"))
        status = str(data.get("status"))
        logger.info("Status update for %s: %s", phone_id, status)
        self._log_provider_event(
            AuditEventType.PROVIDER_STATUS,
            "status_change",
            {"phone_id": phone_id, "status": status},
        )

        if status in CRITICAL_STATUSES and self._notifier:
            await self._notifier.status_changed(phone_id, status)

    def _handle_ack(self, data: dict[str, Any]) -> None:
        acks = data.get("data")
        if not isinstance(acks, list):
            return
        for ack in acks:
            if isinstance(ack, dict):
                logger.info("Message %s status: %s", ack.get("msgId"), ack.get("ackType"))

    async def _handle_error(self, data: dict[str, Any]) -> None:
        logger.error("WhatsApp API error: %s", json.dumps(data, default=str))
        self._log_provider_event(AuditEventType.PROVIDER_ERROR, "api_error", data)
        if self._notifier:
            await self._notifier.provider_error(data)

    def _log_rejection(self, data: dict[str, Any]) -> None:
        if not self._audit:
            return
        self._audit.log(AuditEvent(
            event_type=AuditEventType.WEBHOOK_REJECTED,
            action="source_validation",
            result="blocked",
            risk_level=RiskLevel.HIGH,
            details={
                "product_id": data.get("product_id"),
                "phone_id": data.get("phone_id"),
                "type": data.get("type"),
            },
        ))

    def _log_provider_event(
        self, event_type: AuditEventType, action: str, details: dict[str, Any],
    ) -> None:
        if not self._audit:
            return
        self._audit.log(AuditEvent(
            event_type=event_type,
            action=action,
            result="success",
            risk_level=RiskLevel.MEDIUM,
            details=details,
        ))
