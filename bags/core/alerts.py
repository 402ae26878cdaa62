"""Price alert evaluation."""

import asyncio
import logging
from typing import Callable, List, Optional, Set, Tuple

from ..data.models import Coin, NotificationMethod, PriceAlert
from ..data.session import SessionStore
from ..data.store import SecureStore
from ..notifications import Notifier, alert_message
from .errors import StoreError
from .state import AppState

logger = logging.getLogger(__name__)

AlertKey = Tuple[str, float]


def _mark_triggered(store: SecureStore, coin_id: str, target_price: float) -> None:
    store.mark_alert_triggered(coin_id, target_price)


class AlertEngine:
    """
    Moves alerts from armed to triggered when the snapshot crosses a target.

    The in-memory flag is set first, so a later pass over the same snapshot
    never fires twice. Fired alerts are queued for ``persist()``, which only
    tries the store lock; writes that could not run stay queued for the next
    pass and are written with a blocking call by ``flush()`` at shutdown.
    """

    def __init__(self,
                 session: Optional[SessionStore] = None,
                 notifier: Optional[Notifier] = None,
                 bell: Optional[Callable[[], None]] = None):
        self.session = session
        self.notifier = notifier
        self.bell = bell
        self.pending: List[AlertKey] = []
        self._tasks: Set[asyncio.Task] = set()

    def evaluate(self, state: AppState, now: float) -> List[PriceAlert]:
        """Check every armed alert against the current snapshot.

        Args:
            state: Application state holding alerts and coins
            now: Monotonic timestamp for the row flash

        Returns:
            Alerts that fired during this pass
        """
        fired: List[PriceAlert] = []
        for alert in state.alerts:
            if alert.triggered:
                continue
            coin = state.find_coin(alert.coin_id)
            if coin is None or not alert.is_hit(coin.current_price):
                continue

            alert.triggered = True
            state.flash(coin.id, now)
            if self.bell is not None:
                self.bell()
            self._notify(state, coin, alert)
            if self.session is not None:
                self.pending.append(alert.key)
            fired.append(alert)

            logger.info(f"Alert fired: {coin.id} {alert.direction.value} {alert.target_price}")

        return fired

    def _notify(self, state: AppState, coin: Coin, alert: PriceAlert) -> None:
        if self.notifier is None or state.notification_method is NotificationMethod.NONE:
            return

        title, body = alert_message(coin.name, alert, coin.current_price)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No event loop running, alert notification not sent")
            return

        task = loop.create_task(
            self.notifier.send(state.notification_method, state.ntfy_topic, title, body))
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning(f"Alert notification failed: {task.exception()}")

    async def _try_mark(self, key: AlertKey) -> bool:
        try:
            ran, _ = await self.session.try_run(_mark_triggered, *key)
        except StoreError as e:
            logger.warning(f"Failed to persist triggered alert {key}: {e}")
            return False
        if not ran:
            logger.debug(f"Queued triggered alert {key} for retry")
        return ran

    async def persist(self) -> None:
        """Write queued flags without waiting for the store lock."""
        if self.session is None or not self.pending:
            return
        written = [key for key in list(self.pending) if await self._try_mark(key)]
        self.pending = [key for key in self.pending if key not in written]

    async def flush(self) -> None:
        """Write every queued flag, waiting for the lock, and await notifications."""
        if self.session is not None:
            while self.pending:
                key = self.pending[0]
                try:
                    await self.session.run(_mark_triggered, *key)
                except StoreError as e:
                    logger.error(f"Dropping triggered alert {key}: {e}")
                self.pending.pop(0)

        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
