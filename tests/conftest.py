"""Shared test fixtures for the sales messaging gateway."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.audit.logger import AuditLogger
from src.config import GatewayConfig
from src.gateway.classifier import CommandClassifier
from src.gateway.dispatcher import OutboundDispatcher
from src.gateway.matcher import OptionMatcher
from src.gateway.orchestrator import ConversationOrchestrator
from src.gateway.rate_limiter import SenderRateLimiter
from src.gateway.sessions import ConversationSessionStore
from src.models import (
    AuditEvent,
    AuditEventType,
    Identity,
    InboundEvent,
    Option,
    RiskLevel,
)
from src.store.expiring import MemoryExpiringStore

PRODUCT_ID = "product-123"
PHONE_ID = "90126"
REGISTERED_NUMBER = "01711112222"
REGISTERED_SENDER = "8801711112222"
UNREGISTERED_NUMBER = "01899998888"


class FakeClock:
    """Manually advanced clock shared by the store, limiter and sessions."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> MemoryExpiringStore:
    return MemoryExpiringStore(clock=clock)


@pytest.fixture
def mock_audit_logger() -> MagicMock:
    return MagicMock(spec=AuditLogger)


@pytest.fixture
def config_dir() -> Path:
    return Path(__file__).parent.parent / "config"


# --- Factory functions for test data ---


def make_config(**kwargs: Any) -> GatewayConfig:
    defaults: dict[str, Any] = {
        "expected_product_id": PRODUCT_ID,
        "expected_phone_id": PHONE_ID,
        "send_url": "https://provider.test/api/product-123/90126/sendMessage",
        "api_key": "test-api-key",
    }
    defaults.update(kwargs)
    return GatewayConfig(**defaults)


def make_identity(**kwargs: Any) -> Identity:
    defaults: dict[str, Any] = {
        "id": "BDO001",
        "display_name": "Rahim",
        "role": "BDO",
        "contact_handle": REGISTERED_SENDER,
    }
    defaults.update(kwargs)
    return Identity(**defaults)


def make_option(label: str, **kwargs: Any) -> Option:
    slug = label.lower().replace(" ", "-")
    defaults: dict[str, Any] = {
        "display_label": label,
        "record_count": 5,
        "last_updated_at": datetime(2025, 6, 1, tzinfo=UTC),
        "access_uri": f"https://sheets.test/{slug}",
    }
    defaults.update(kwargs)
    return Option(**defaults)


def make_event(text: str, sender: str = REGISTERED_NUMBER, **kwargs: Any) -> InboundEvent:
    return InboundEvent(raw_sender_id=sender, text=text, **kwargs)


def make_audit_event(**kwargs: Any) -> AuditEvent:
    defaults: dict[str, Any] = {
        "event_type": AuditEventType.MESSAGE_RECEIVED,
        "action": "test_action",
        "result": "success",
        "risk_level": RiskLevel.INFO,
    }
    defaults.update(kwargs)
    return AuditEvent(**defaults)


def make_message_payload(
    text: str = "need to see data",
    phone: str | None = REGISTERED_NUMBER,
    message_id: str = "msg-1",
    **overrides: Any,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "type": "message",
        "product_id": PRODUCT_ID,
        "phone_id": PHONE_ID,
        "message": {"id": message_id, "type": "text", "text": text, "fromMe": False},
        "conversation": f"{REGISTERED_SENDER}@c.us",
        "user": {"name": "Rahim", "phone": phone} if phone else None,
        "timestamp": 1_700_000_000,
    }
    payload.update(overrides)
    return payload


class StaticDirectory:
    """In-test identity resolver and item lister."""

    def __init__(
        self,
        identities: list[Identity] | None = None,
        items: dict[str, list[Option]] | None = None,
    ) -> None:
        self.identities = {i.contact_handle: i for i in identities or []}
        self.items = items or {}
        self.list_calls = 0

    def resolve(self, sender_id: str) -> Identity | None:
        return self.identities.get(sender_id)

    def list_items(self, identity: Identity) -> list[Option]:
        self.list_calls += 1
        return list(self.items.get(identity.id, []))


@pytest.fixture
def directory() -> StaticDirectory:
    identity = make_identity()
    return StaticDirectory(
        identities=[identity],
        items={identity.id: [make_option("Orders"), make_option("Visits")]},
    )


@pytest.fixture
def dispatcher() -> AsyncMock:
    mock = AsyncMock(spec=OutboundDispatcher)
    mock.send.return_value = True
    return mock


@pytest.fixture
def sessions(store: MemoryExpiringStore, clock: FakeClock) -> ConversationSessionStore:
    return ConversationSessionStore(store, ttl_seconds=600, clock=clock)


@pytest.fixture
def orchestrator(
    store: MemoryExpiringStore,
    clock: FakeClock,
    sessions: ConversationSessionStore,
    directory: StaticDirectory,
    dispatcher: AsyncMock,
) -> ConversationOrchestrator:
    config = make_config()
    return ConversationOrchestrator(
        config=config,
        identities=directory,
        items=directory,
        rate_limiter=SenderRateLimiter.from_config(store, config, clock=clock),
        sessions=sessions,
        classifier=CommandClassifier(config.commands),
        matcher=OptionMatcher(config.commands.aliases),
        dispatcher=dispatcher,
    )
