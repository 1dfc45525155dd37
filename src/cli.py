"""Click CLI for operating the messaging gateway."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

import click
import httpx

from src.audit.logger import validate_audit_chain
from src.config import ConfigError, GatewayConfig
from src.gateway.dispatcher import OutboundDispatcher, register_webhook
from src.gateway.normalizer import InvalidIdentifierError, normalize_sender_id


@click.group()
def cli() -> None:
    """Sales messaging gateway operator CLI."""


@cli.command()
@click.argument("raw_number")
def normalize(raw_number: str) -> None:
    """Print the canonical sender id for RAW_NUMBER."""
    try:
        click.echo(normalize_sender_id(raw_number))
    except InvalidIdentifierError as e:
        click.echo(str(e), err=True)
        sys.exit(1)


def _load_config() -> GatewayConfig:
    try:
        return GatewayConfig.from_env()
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(2)


@cli.command()
@click.argument("target")
@click.argument("message")
def send(target: str, message: str) -> None:
    """Send MESSAGE to TARGET through the configured provider."""
    dispatcher = OutboundDispatcher.from_config(_load_config())
    if not asyncio.run(dispatcher.send(target, message)):
        click.echo(f"Failed to send message to {target}", err=True)
        sys.exit(1)
    click.echo(f"Message sent to {target}")


@cli.command("register-webhook")
@click.argument("webhook_url")
def register_webhook_command(webhook_url: str) -> None:
    """Point the provider's webhook at WEBHOOK_URL."""
    config = _load_config()
    try:
        result = asyncio.run(register_webhook(config, webhook_url))
    except httpx.HTTPError as e:
        click.echo(f"Webhook registration failed: {e}", err=True)
        sys.exit(1)
    click.echo(json.dumps(result, indent=2))


@cli.command("verify-audit")
@click.argument("log_path", type=click.Path(exists=True, dir_okay=False))
def verify_audit(log_path: str) -> None:
    """Check the hash chain of the audit log at LOG_PATH."""
    result = validate_audit_chain(Path(log_path))
    if not result.valid:
        click.echo(f"Audit chain broken at line {result.broken_at_line}", err=True)
        sys.exit(1)
    click.echo("Audit chain intact")
