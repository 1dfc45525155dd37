"""Outbound message delivery through the Maytapi send API.

Sends are single-shot by default. ``RetryConfig.max_retries`` enables retries
on 429/5xx with exponential backoff capped at ``backoff_cap_seconds``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from src.config import GatewayConfig, RetryConfig
from src.gateway.normalizer import InvalidIdentifierError, normalize_sender_id

logger = logging.getLogger(__name__)


class OutboundDispatcher:
    """Delivers text replies to canonical sender ids."""

    def __init__(
        self,
        send_url: str,
        api_key: str,
        retry: RetryConfig | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._send_url = send_url
        self._api_key = api_key
        self._retry = retry or RetryConfig()
        self._timeout_seconds = timeout_seconds

    @classmethod
    def from_config(cls, config: GatewayConfig) -> OutboundDispatcher:
        return cls(
            send_url=config.send_url,
            api_key=config.api_key,
            retry=config.retry,
            timeout_seconds=config.send_timeout_seconds,
        )

    def build_payload(self, target_id: str, body: str) -> dict[str, Any]:
        return {"to_number": target_id, "message": body, "type": "text"}

    async def send(self, target_id: str, body: str) -> bool:
        """Send ``body`` to ``target_id``; return True only on a 2xx response.

        Invalid targets are rejected without calling out. Transport errors,
        non-2xx responses and any other failure are logged and reported as False.
        """
        try:
            target = normalize_sender_id(target_id)
        except InvalidIdentifierError:
            logger.error("Refusing to send to invalid identifier %r", target_id)
            return False

        payload = self.build_payload(target, body)
        headers = {"x-maytapi-key": self._api_key}

        try:
            async with httpx.AsyncClient(verify=True) as client:
                for attempt in range(self._retry.max_retries + 1):
                    resp = await client.post(
                        self._send_url,
                        json=payload,
                        headers=headers,
                        timeout=self._timeout_seconds,
                    )
                    if 200 <= resp.status_code < 300:
                        logger.info("Message sent to %s", target)
                        return True
                    logger.error(
                        "Send to %s failed with status %d: %s",
                        target, resp.status_code, resp.text[:200],
                    )
                    if not self._should_retry(resp.status_code):
                        return False
                    if attempt < self._retry.max_retries:
                        delay = min(2 ** attempt, self._retry.backoff_cap_seconds)
                        await asyncio.sleep(delay)
        except httpx.HTTPError as exc:
            logger.error("Transport error sending to %s: %s", target, exc)
            return False
        except Exception:
            logger.exception("Unexpected error sending to %s", target)
            return False
        return False

    @staticmethod
    def _should_retry(status_code: int) -> bool:
        """Only retry on 429 (rate limit) or 5xx (server error)."""
        return status_code == 429 or status_code >= 500


async def register_webhook(config: GatewayConfig, webhook_url: str) -> dict[str, Any]:
    """Point the provider's webhook for this product at ``webhook_url``.

    Raises:
        httpx.HTTPStatusError: If the provider rejects the registration.
    """
    url = f"{config.provider_api_base.rstrip('/')}/{config.expected_product_id}/setWebhook"
    headers = {"accept": "application/json", "x-maytapi-key": config.api_key}
    async with httpx.AsyncClient(verify=True) as client:
        resp = await client.post(
            url,
            json={"webhook": webhook_url},
            headers=headers,
            timeout=config.send_timeout_seconds,
        )
        resp.raise_for_status()
        logger.info("Webhook registered: %s", webhook_url)
        return resp.json()
