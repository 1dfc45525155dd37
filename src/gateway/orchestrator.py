"""Conversation orchestrator: one inbound message in, at most one reply out.

Pipeline per message:

1. Normalize the sender id (invalid ids are dropped without a reply)
2. Resolve the identity (unknown senders get the registration message)
3. Rate check (throttled senders get a notice; the command is not run)
4. Session lookup and command classification
5. State transition, reply composition and dispatch

Per-sender states are IDLE (no session) and AWAITING_SELECTION (session open).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.gateway import replies
from src.gateway.matcher import is_ordinal_reply
from src.gateway.normalizer import InvalidIdentifierError, normalize_sender_id
from src.models import (
    AuditEvent,
    AuditEventType,
    ConversationOutcome,
    ConversationSession,
    Identity,
    InboundEvent,
    Intent,
    OutboundReply,
    RiskLevel,
)

if TYPE_CHECKING:
    from src.audit.logger import AuditLogger
    from src.config import GatewayConfig
    from src.gateway.classifier import CommandClassifier
    from src.gateway.collaborators import IdentityResolver, ItemLister
    from src.gateway.dispatcher import OutboundDispatcher
    from src.gateway.matcher import OptionMatcher
    from src.gateway.rate_limiter import SenderRateLimiter
    from src.gateway.sessions import ConversationSessionStore

logger = logging.getLogger(__name__)


class ConversationOrchestrator:
    """Drives the per-sender IDLE / AWAITING_SELECTION dialogue."""

    def __init__(
        self,
        config: GatewayConfig,
        identities: IdentityResolver,
        items: ItemLister,
        rate_limiter: SenderRateLimiter,
        sessions: ConversationSessionStore,
        classifier: CommandClassifier,
        matcher: OptionMatcher,
        dispatcher: OutboundDispatcher,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._config = config
        self._identities = identities
        self._items = items
        self._rate_limiter = rate_limiter
        self._sessions = sessions
        self._classifier = classifier
        self._matcher = matcher
        self._dispatcher = dispatcher
        self._audit = audit_logger

    async def handle(self, event: InboundEvent) -> OutboundReply | None:
        """Process one inbound message and return the reply that was attempted.

        Returns None when the sender id is invalid and nothing was sent.
        Never raises: unexpected errors become an apologetic reply.
        """
        try:
            sender_id = normalize_sender_id(event.raw_sender_id)
        except InvalidIdentifierError:
            logger.warning("Dropping message from invalid sender id %r", event.raw_sender_id)
            return None

        try:
            return await self._converse(sender_id, event)
        except Exception:
            logger.exception("Error handling message from %s", sender_id)
            return await self._reply(
                sender_id, replies.processing_error(), ConversationOutcome.ERROR,
            )

    async def _converse(self, sender_id: str, event: InboundEvent) -> OutboundReply:
        identity = self._identities.resolve(sender_id)
        if identity is None:
            logger.info("Sender %s is not registered", sender_id)
            self._log_event(AuditEventType.UNREGISTERED_SENDER, sender_id, "blocked")
            return await self._reply(
                sender_id,
                replies.registration_required(self._config.support_contact),
                ConversationOutcome.REGISTRATION_REQUIRED,
            )

        decision = self._rate_limiter.check_and_record(sender_id)
        if not decision.allowed:
            self._log_event(
                AuditEventType.RATE_LIMITED, sender_id, "blocked",
                identity=identity, details={"count": decision.count},
            )
            return await self._reply(
                sender_id, replies.rate_limited(), ConversationOutcome.RATE_LIMITED,
            )

        logger.info(
            "Message from %s (%s, %s)", identity.display_name, identity.id, identity.role,
        )
        if self._audit:
            self._audit.message_received(
                sender_id, identity, event.text, dict(event.provider_metadata),
            )

        session = self._sessions.get(sender_id)
        intent = self._classifier.classify(event.text, has_open_session=session is not None)
        logger.debug("Classified message from %s as %s", sender_id, intent.value)

        if intent is Intent.CANCEL:
            self._sessions.close(sender_id)
            return await self._reply(
                sender_id, replies.cancelled(), ConversationOutcome.CANCELLED,
            )
        if intent is Intent.HELP:
            return await self._reply(
                sender_id,
                replies.help_text(identity, self._config.support_contact),
                ConversationOutcome.HELP,
            )
        if intent is Intent.DATA_REQUEST:
            return await self._list_options(sender_id, identity)
        if intent is Intent.SELECTION_REPLY and session is not None:
            return await self._resolve_selection(sender_id, identity, session, event.text)

        # Only a bare number reads as a late selection; other text after expiry
        # falls through to the unrecognized reply
        if is_ordinal_reply(event.text):
            return await self._reply(
                sender_id, replies.session_expired(), ConversationOutcome.SESSION_EXPIRED,
            )
        return await self._reply(
            sender_id,
            replies.unrecognized(identity, event.text),
            ConversationOutcome.UNRECOGNIZED,
        )

    async def _list_options(self, sender_id: str, identity: Identity) -> OutboundReply:
        options = self._items.list_items(identity)
        if not options:
            return await self._reply(
                sender_id,
                replies.no_items(identity, self._config.forms_url),
                ConversationOutcome.NO_ITEMS,
            )

        session = self._sessions.open(sender_id, options)
        return await self._reply(
            sender_id,
            replies.option_list(identity, session.options),
            ConversationOutcome.OPTIONS_LISTED,
        )

    async def _resolve_selection(
        self,
        sender_id: str,
        identity: Identity,
        session: ConversationSession,
        text: str,
    ) -> OutboundReply:
        selected = self._matcher.match(text, session.options)
        if selected is None:
            return await self._reply(
                sender_id,
                replies.selection_retry(text.strip(), session.options),
                ConversationOutcome.SELECTION_RETRY,
            )

        self._sessions.close(sender_id)
        if self._audit:
            self._audit.option_accessed(sender_id, identity, selected)
        logger.info("Sending %s link to %s", selected.display_label, identity.id)
        return await self._reply(
            sender_id, replies.option_selected(selected), ConversationOutcome.OPTION_SELECTED,
        )

    async def _reply(
        self, sender_id: str, body: str, outcome: ConversationOutcome,
    ) -> OutboundReply:
        was_sent = await self._dispatcher.send(sender_id, body)
        if not was_sent:
            logger.warning("Reply (%s) to %s was not delivered", outcome.value, sender_id)
            self._log_event(
                AuditEventType.SEND_FAILURE, sender_id, "failure",
                details={"outcome": outcome.value},
            )
        return OutboundReply(
            target_sender_id=sender_id, body=body, was_sent=was_sent, outcome=outcome,
        )

    def _log_event(
        self,
        event_type: AuditEventType,
        sender_id: str,
        result: str,
        identity: Identity | None = None,
        details: dict[str, object] | None = None,
    ) -> None:
        if not self._audit:
            return
        self._audit.log(AuditEvent(
            event_type=event_type,
            sender_id=sender_id,
            identity_id=identity.id if identity else None,
            action="conversation",
            result=result,
            risk_level=RiskLevel.MEDIUM if result == "blocked" else RiskLevel.INFO,
            details=details,
        ))
