"""Delivery of triggered price alerts to the desktop and to ntfy.sh."""

import asyncio
import logging
from typing import Callable, Optional, Tuple

from plyer import notification as plyer_notification

from .data.api_client import BaseAPIClient, APIClientConfig
from .data.models import NotificationMethod, PriceAlert

logger = logging.getLogger(__name__)

NTFY_URL = "https://ntfy.sh"
DESKTOP_TIMEOUT_SECS = 5


def alert_message(coin_name: str, alert: PriceAlert, current_price: float) -> Tuple[str, str]:
    """Build the title and body of an alert notification."""
    title = f"bags: {coin_name} alert"
    body = (f"{coin_name} hit {alert.direction.value} target "
            f"{alert.target_price:.2f} (now {current_price:.2f})")
    return title, body


def _show_desktop(title: str, body: str) -> None:
    plyer_notification.notify(
        title=title,
        message=body,
        app_name="bags",
        timeout=DESKTOP_TIMEOUT_SECS
    )


class NtfyClient(BaseAPIClient):
    """Publishes messages to an ntfy.sh topic."""

    def __init__(self, base_url: str = NTFY_URL):
        super().__init__(APIClientConfig(base_url=base_url, timeout=15, max_retries=0), "ntfy")

    async def publish(self, topic: str, title: str, body: str) -> bool:
        """POST a message to a topic.

        Returns:
            True if the server accepted the message
        """
        response = await self._make_request(
            "POST", topic, headers={"Title": title}, data=body)
        if not response.is_success:
            logger.warning(f"ntfy rejected message for topic {topic}: HTTP {response.status_code}")
        return response.is_success


class Notifier:
    """
    Sends alert notifications by the configured method.

    Delivery problems are logged and never raised; an alert that fails to
    notify is still triggered.
    """

    def __init__(self, ntfy: Optional[NtfyClient] = None,
                 desktop: Optional[Callable[[str, str], None]] = None):
        self.ntfy = ntfy or NtfyClient()
        self._desktop = desktop or _show_desktop

    async def send(self, method: NotificationMethod, topic: str, title: str, body: str) -> None:
        """Deliver one notification.

        Args:
            method: Delivery method
            topic: ntfy topic; empty skips ntfy delivery
            title: Notification title
            body: Notification text
        """
        if method.uses_desktop:
            try:
                await asyncio.to_thread(self._desktop, title, body)
            except Exception as e:
                logger.warning(f"Desktop notification failed: {e}")

        if method.uses_ntfy and topic:
            try:
                await self.ntfy.publish(topic, title, body)
            except Exception as e:
                logger.warning(f"ntfy notification failed: {e}")

    async def close(self) -> None:
        await self.ntfy.stop()
