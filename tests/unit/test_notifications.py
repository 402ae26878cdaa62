"""Tests for alert notification delivery."""

from unittest.mock import AsyncMock, Mock, patch

import pytest

from bags.core.errors import MarketDataError
from bags.data.api_client import APIResponse
from bags.data.models import AlertDirection, NotificationMethod, PriceAlert
from bags.notifications import Notifier, NtfyClient, alert_message


@pytest.fixture
def ntfy():
    client = Mock(spec=NtfyClient)
    client.publish = AsyncMock(return_value=True)
    client.stop = AsyncMock()
    return client


class TestAlertMessage:
    """Test notification text."""

    def test_message(self):
        alert = PriceAlert("bitcoin", 45000.0, AlertDirection.BELOW)
        title, body = alert_message("Bitcoin", alert, 44321.5)
        assert title == "bags: Bitcoin alert"
        assert body == "Bitcoin hit below target 45000.00 (now 44321.50)"


class TestNotifier:
    """Test method dispatch."""

    @pytest.mark.asyncio
    async def test_desktop_only(self, ntfy):
        desktop = Mock()
        notifier = Notifier(ntfy=ntfy, desktop=desktop)

        await notifier.send(NotificationMethod.DESKTOP, "topic", "title", "body")

        desktop.assert_called_once_with("title", "body")
        ntfy.publish.assert_not_called()

    @pytest.mark.asyncio
    async def test_both(self, ntfy):
        desktop = Mock()
        notifier = Notifier(ntfy=ntfy, desktop=desktop)

        await notifier.send(NotificationMethod.BOTH, "topic", "title", "body")

        desktop.assert_called_once()
        ntfy.publish.assert_awaited_once_with("topic", "title", "body")

    @pytest.mark.asyncio
    async def test_ntfy_without_topic_skipped(self, ntfy):
        notifier = Notifier(ntfy=ntfy, desktop=Mock())
        await notifier.send(NotificationMethod.NTFY, "", "title", "body")
        ntfy.publish.assert_not_called()

    @pytest.mark.asyncio
    async def test_failures_are_logged_not_raised(self, ntfy):
        desktop = Mock(side_effect=NotImplementedError("no backend"))
        ntfy.publish.side_effect = MarketDataError("Network error: refused")
        notifier = Notifier(ntfy=ntfy, desktop=desktop)

        await notifier.send(NotificationMethod.BOTH, "topic", "title", "body")

        desktop.assert_called_once()
        ntfy.publish.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_stops_client(self, ntfy):
        await Notifier(ntfy=ntfy, desktop=Mock()).close()
        ntfy.stop.assert_awaited_once()


class TestNtfyClient:
    """Test publishing to a topic."""

    @pytest.mark.asyncio
    async def test_publish(self):
        client = NtfyClient()
        response = APIResponse(text="{}", status_code=200)
        with patch.object(client, '_make_request', new=AsyncMock(return_value=response)) as request:
            assert await client.publish("my-topic", "Title", "Body")

        request.assert_awaited_once_with("POST", "my-topic", headers={"Title": "Title"}, data="Body")

    @pytest.mark.asyncio
    async def test_rejected(self):
        client = NtfyClient()
        response = APIResponse(text="forbidden", status_code=403)
        with patch.object(client, '_make_request', new=AsyncMock(return_value=response)):
            assert not await client.publish("my-topic", "Title", "Body")
