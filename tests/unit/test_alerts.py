"""Tests for admin alert broadcasting."""

from __future__ import annotations

import pytest

from src.gateway.alerts import CRITICAL_STATUSES, AdminNotifier


def test_critical_statuses() -> None:
    assert CRITICAL_STATUSES == {"disconnected", "unauthorized"}


class TestAdminNotifier:
    @pytest.mark.asyncio
    async def test_status_alert_sent_to_every_admin(self, dispatcher) -> None:
        notifier = AdminNotifier(dispatcher, ["01711112222", "01822223333"])
        delivered = await notifier.status_changed("90126", "disconnected")
        assert delivered == 2
        assert dispatcher.send.await_count == 2
        targets = [c[0][0] for c in dispatcher.send.await_args_list]
        assert targets == ["01711112222", "01822223333"]
        body = dispatcher.send.await_args[0][1]
        assert "disconnected" in body
        assert "90126" in body

    @pytest.mark.asyncio
    async def test_error_alert_includes_details(self, dispatcher) -> None:
        notifier = AdminNotifier(dispatcher, ["01711112222"])
        await notifier.provider_error({"type": "error", "code": "E42"})
        body = dispatcher.send.await_args[0][1]
        assert "E42" in body

    @pytest.mark.asyncio
    async def test_error_details_truncated(self, dispatcher) -> None:
        notifier = AdminNotifier(dispatcher, ["01711112222"])
        await notifier.provider_error({"message": "x" * 5000})
        body = dispatcher.send.await_args[0][1]
        assert len(body) < 1200

    @pytest.mark.asyncio
    async def test_no_contacts_sends_nothing(self, dispatcher) -> None:
        notifier = AdminNotifier(dispatcher, [])
        assert await notifier.status_changed("90126", "unauthorized") == 0
        dispatcher.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_partial_delivery_counted(self, dispatcher) -> None:
        dispatcher.send.side_effect = [True, False]
        notifier = AdminNotifier(dispatcher, ["01711112222", "01822223333"])
        assert await notifier.status_changed("90126", "disconnected") == 1
