"""FastAPI application exposing the Maytapi webhook."""

from __future__ import annotations

import logging
import os

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from src.audit.logger import AuditLogger
from src.config import GatewayConfig
from src.gateway.alerts import AdminNotifier
from src.gateway.classifier import CommandClassifier
from src.gateway.collaborators import DirectoryFile, IdentityResolver, ItemLister, NullItemLister
from src.gateway.dispatcher import OutboundDispatcher
from src.gateway.ingestion import WebhookIngestor
from src.gateway.matcher import OptionMatcher
from src.gateway.orchestrator import ConversationOrchestrator
from src.gateway.rate_limiter import SenderRateLimiter
from src.gateway.replay import DuplicateDeliveryGuard
from src.gateway.sessions import ConversationSessionStore
from src.models import StatusToken
from src.store.expiring import ExpiringStore, MemoryExpiringStore, SQLiteExpiringStore

logger = logging.getLogger(__name__)


def create_app_from_env() -> FastAPI:
    """Factory for uvicorn --factory: reads config from environment variables."""
    config = GatewayConfig.from_env()
    store_path = os.environ.get("GATEWAY_STORE_PATH")
    store: ExpiringStore = (
        SQLiteExpiringStore(store_path) if store_path else MemoryExpiringStore()
    )
    directory = DirectoryFile(os.environ["DIRECTORY_PATH"])
    audit_log = os.environ.get("AUDIT_LOG_PATH")
    audit_logger = AuditLogger.from_env(audit_log) if audit_log else None
    return create_app(build_ingestor(config, store, directory, directory, audit_logger))


def build_ingestor(
    config: GatewayConfig,
    store: ExpiringStore,
    identities: IdentityResolver,
    items: ItemLister | None = None,
    audit_logger: AuditLogger | None = None,
    dispatcher: OutboundDispatcher | None = None,
) -> WebhookIngestor:
    """Wire the gateway components around one shared expiring store."""
    dispatcher = dispatcher or OutboundDispatcher.from_config(config)
    orchestrator = ConversationOrchestrator(
        config=config,
        identities=identities,
        items=items or NullItemLister(),
        rate_limiter=SenderRateLimiter.from_config(store, config),
        sessions=ConversationSessionStore.from_config(store, config),
        classifier=CommandClassifier(config.commands),
        matcher=OptionMatcher(config.commands.aliases),
        dispatcher=dispatcher,
        audit_logger=audit_logger,
    )
    return WebhookIngestor(
        config=config,
        orchestrator=orchestrator,
        duplicate_guard=DuplicateDeliveryGuard(store, config.dedupe_ttl_seconds),
        notifier=AdminNotifier(dispatcher, config.admin_contacts),
        audit_logger=audit_logger,
    )


def create_app(ingestor: WebhookIngestor) -> FastAPI:
    """Create the gateway app. The webhook always answers 200 with a status token."""
    app = FastAPI(docs_url=None, redoc_url=None)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/webhook")
    async def webhook(request: Request) -> PlainTextResponse:
        try:
            body = await request.body()
            token = await ingestor.handle(body)
        except Exception:
            logger.exception("Unhandled error in webhook endpoint")
            token = StatusToken.PROCESSING_ERROR
        return PlainTextResponse(token.value, status_code=200)

    return app
