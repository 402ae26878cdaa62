"""
Application controller.

Owns the application state and every collaborator that performs I/O: the
market data source, the unlocked store, the chart cache, the alert engine
and the refresh scheduler. Keys and scheduled refreshes are processed one at
a time under a single lock, so a refresh started by a key completes before
the next key is looked at.
"""

import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional, Tuple

from ..data.clients.coingecko import CoinGeckoClient
from ..data.models import (
    CURRENCIES, GlobalMarketStats, Holding, NotificationMethod, PriceAlert, Tab
)
from ..data.session import SessionStore
from ..data.source import MarketDataSource
from ..data.store import DEFAULT_ITERATIONS, SecureStore
from ..notifications import Notifier
from ..ui.theme import THEME_NAMES
from .alerts import AlertEngine
from .chart_cache import ChartCache
from .config import ConfigManager
from .errors import ConfigError, MarketDataError, StoreAuthenticationError, StoreError
from .input import (
    AddAlert, AddFromSearch, ClearTriggeredAlerts, Effect, FetchChart, KeyEvent,
    NOTIFICATION_METHODS, OpenStore, Refresh, SaveSettings, Search, SetBuyPrice,
    SetHolding, ToggleFavourite, handle_key
)
from .logging import log_user_error
from .modes import Browsing, ChartPopup, Locked, SearchQuery, SearchResults
from .scheduler import RefreshScheduler
from .state import AppState

logger = logging.getLogger(__name__)

SNAPSHOT_LIMIT = 50

SETTING_COINGECKO_KEY = "coingecko_api_key"
SETTING_CMC_KEY = "cmc_api_key"
SETTING_CURRENCY = "currency"
SETTING_NOTIFICATIONS = "notification_method"
SETTING_NTFY_TOPIC = "ntfy_topic"

SourceFactory = Callable[[Optional[str]], MarketDataSource]


def default_source(api_key: Optional[str]) -> MarketDataSource:
    return CoinGeckoClient(api_key=api_key or None)


# Store operations, run as ``operation(store, *args)`` through the session

def _read_settings(store: SecureStore) -> Dict[str, Optional[str]]:
    keys = (SETTING_COINGECKO_KEY, SETTING_CMC_KEY, SETTING_NOTIFICATIONS, SETTING_NTFY_TOPIC)
    return {key: store.get_setting(key) for key in keys}


def _read_portfolio(store: SecureStore) -> Tuple[List[str], List[Holding], List[PriceAlert]]:
    return store.get_favourites(), store.get_holdings(), store.get_alerts()


def _write_settings(store: SecureStore, values: Dict[str, str]) -> None:
    for key, value in values.items():
        store.set_setting(key, value)


def _ensure_favourite(store: SecureStore, coin_id: str) -> None:
    if not store.is_favourite(coin_id):
        store.add_favourite(coin_id)


class Controller:
    """
    Drives the application: feeds keys to the input handlers and carries out
    the effects they return.

    Results of slow operations are applied only while the mode that asked for
    them is still active; a search that finishes after the user closed the
    search popup is discarded.
    """

    def __init__(self,
                 config_manager: ConfigManager,
                 state: Optional[AppState] = None,
                 source_factory: SourceFactory = default_source,
                 notifier: Optional[Notifier] = None,
                 bell: Optional[Callable[[], None]] = None,
                 clock: Callable[[], float] = time.monotonic,
                 store_iterations: int = DEFAULT_ITERATIONS):
        """Initialize the controller.

        Args:
            config_manager: Loaded configuration manager
            state: Initial state; built from the configuration when omitted
            source_factory: Builds a market data source from an optional API key
            notifier: Alert notification sender
            bell: Called when an alert fires
            clock: Monotonic time source
            store_iterations: PBKDF2 iterations for a newly created store
        """
        self.config_manager = config_manager
        self.clock = clock
        self.store_iterations = store_iterations
        self.state = state or self._initial_state()

        self.source_factory = source_factory
        self.source = source_factory(None)
        self.chart_cache = ChartCache(self.source)
        self.session: Optional[SessionStore] = None
        self.notifier = notifier or Notifier()
        self.alert_engine = AlertEngine(notifier=self.notifier, bell=bell)
        self.scheduler = RefreshScheduler(self.state.refresh_interval_secs, clock)

        self._lock = asyncio.Lock()
        self._handlers = {
            OpenStore: self._open_store,
            Refresh: self._refresh,
            FetchChart: self._fetch_chart,
            ToggleFavourite: self._toggle_favourite,
            SetHolding: self._set_holding,
            SetBuyPrice: self._set_buy_price,
            AddAlert: self._add_alert,
            ClearTriggeredAlerts: self._clear_triggered_alerts,
            Search: self._search,
            AddFromSearch: self._add_from_search,
            SaveSettings: self._save_settings,
        }

    def _initial_state(self) -> AppState:
        config = self.config_manager.config
        return AppState(
            currency=config.currency,
            theme=config.theme,
            refresh_interval_secs=config.refresh_interval_secs,
            mode=Locked(is_new=not SecureStore.exists(self.config_manager.db_path)),
        )

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    async def feed(self, key: KeyEvent) -> None:
        """Handle one key and everything it sets off."""
        async with self._lock:
            effects = handle_key(self.state, key)
            await self._run(effects)

    async def perform(self, effects: List[Effect]) -> None:
        """Carry out effects in order."""
        async with self._lock:
            await self._run(effects)

    # Mouse gestures apply only while browsing with no popup or picker open

    async def scroll(self, delta: int) -> None:
        """Move the selection by ``delta`` rows."""
        async with self._lock:
            if isinstance(self.state.mode, Browsing):
                self.state.move_selection(delta)

    async def select_row(self, row: int) -> None:
        """Select the coin at ``row`` of the current table page."""
        async with self._lock:
            if isinstance(self.state.mode, Browsing):
                self.state.select_page_row(row)

    async def select_tab(self, tab: Tab) -> None:
        async with self._lock:
            if isinstance(self.state.mode, Browsing):
                self.state.switch_tab(tab)

    async def tick(self, now: Optional[float] = None) -> bool:
        """Expire transient signals and run a scheduled refresh when due.

        Returns:
            True if a refresh was started
        """
        now = self.clock() if now is None else now
        self.state.expire(now)

        if self.session is None or self.busy or not self.scheduler.due(now):
            return False

        self.scheduler.mark_attempt(now)
        logger.debug("Scheduled refresh")
        await self.perform([Refresh()])
        return True

    async def shutdown(self) -> None:
        """Write queued alert flags and close network sessions."""
        await self.alert_engine.flush()
        await self.notifier.close()
        await self.source.stop()
        logger.info("Controller shut down")

    async def _run(self, effects: List[Effect]) -> None:
        for effect in effects:
            handler = self._handlers[type(effect)]
            logger.debug(f"Running effect {type(effect).__name__}")
            await handler(effect)

    # Unlock

    async def _open_store(self, effect: OpenStore) -> None:
        path = self.config_manager.db_path
        try:
            store = await asyncio.to_thread(
                SecureStore.open, path, effect.password, self.store_iterations)
        except StoreAuthenticationError as e:
            logger.warning(f"Unlock failed: {e}")
            self.state.mode = Locked(is_new=False, error="Wrong password")
            return
        except StoreError as e:
            message = f"DB error: {e}"
            log_user_error(message)
            self.state.mode = Locked(is_new=effect.create, error=message)
            return

        logger.info(f"Store unlocked: {path}")
        self.session = SessionStore(store)
        self.alert_engine.session = self.session

        await self._load_settings()
        await self._replace_source(self.state.coingecko_api_key)

        self.state.mode = Browsing()
        self.state.loading = True
        await self._refresh(Refresh())

    async def _load_settings(self) -> None:
        try:
            settings = await self.session.run(_read_settings)
        except StoreError as e:
            logger.error(f"Failed to read settings: {e}")
            return

        self.state.coingecko_api_key = settings[SETTING_COINGECKO_KEY] or ""
        self.state.cmc_api_key = settings[SETTING_CMC_KEY] or ""
        self.state.notification_method = NotificationMethod.parse(settings[SETTING_NOTIFICATIONS])
        self.state.ntfy_topic = settings[SETTING_NTFY_TOPIC] or ""

    async def _replace_source(self, api_key: str) -> None:
        old = self.source
        self.source = self.source_factory(api_key or None)
        self.chart_cache.source = self.source
        await old.stop()

    # Refresh

    async def _refresh(self, effect: Refresh) -> None:
        state = self.state
        self.scheduler.mark_attempt()
        try:
            coins = await self.source.fetch_snapshot(state.currency, SNAPSHOT_LIMIT)
        except MarketDataError as e:
            logger.warning(f"Market refresh failed: {e}")
            state.set_error(f"API: {e}", self.clock())
        else:
            state.coins = coins
            state.last_refresh = self.clock()
            state.clear_error()
            self.scheduler.mark_success()
            logger.info(f"Market snapshot refreshed: {len(coins)} coins")

        await self._reload_portfolio()
        state.clamp_selection()
        self.alert_engine.evaluate(state, self.clock())
        await self.alert_engine.persist()

        stats = await self._fetch_global_stats()
        if stats is not None:
            state.global_stats = stats
        state.loading = False

    async def _fetch_global_stats(self) -> Optional[GlobalMarketStats]:
        try:
            stats = await self.source.fetch_global_stats(self.state.currency)
        except MarketDataError as e:
            logger.debug(f"Global stats unavailable: {e}")
            return None

        try:
            index, label = await self.source.fetch_sentiment()
        except MarketDataError as e:
            logger.debug(f"Fear & Greed index unavailable: {e}")
            return stats
        return stats.with_sentiment(index, label)

    async def _reload_portfolio(self) -> None:
        """Re-read favourites, holdings and alerts from the store."""
        if self.session is None:
            return
        try:
            favourites, holdings, alerts = await self.session.run(_read_portfolio)
        except StoreError as e:
            logger.error(f"Failed to read portfolio: {e}")
            return

        # Flags still queued for writing are triggered in memory already
        pending = set(self.alert_engine.pending)
        for alert in alerts:
            if alert.key in pending:
                alert.triggered = True

        self.state.favourites = favourites
        self.state.holdings = holdings
        self.state.alerts = alerts

    # Chart

    async def _fetch_chart(self, effect: FetchChart) -> None:
        mode = self.state.mode
        if not isinstance(mode, ChartPopup) or mode.coin_id != effect.coin_id:
            return

        self.state.chart_loading = True
        try:
            await self.chart_cache.get_or_fetch(effect.coin_id, effect.range_days, self.state.currency)
        except MarketDataError as e:
            logger.warning(f"Chart fetch failed for {effect.coin_id}: {e}")
            self.state.set_error(f"Chart: {e}", self.clock())
        finally:
            self.state.chart_loading = False

    # Store writes

    async def _write(self, operation, *args) -> bool:
        if self.session is None:
            return False
        try:
            await self.session.run(operation, *args)
        except StoreError as e:
            logger.error(f"Store write failed: {e}")
            return False
        return True

    async def _toggle_favourite(self, effect: ToggleFavourite) -> None:
        if await self._write(SecureStore.toggle_favourite, effect.coin_id):
            await self._reload_portfolio()
            self.state.clamp_selection()

    async def _set_holding(self, effect: SetHolding) -> None:
        if await self._write(SecureStore.set_holding, effect.coin_id, effect.amount, effect.buy_price):
            await self._reload_portfolio()
            self.state.clamp_selection()

    async def _set_buy_price(self, effect: SetBuyPrice) -> None:
        if await self._write(SecureStore.set_buy_price, effect.coin_id, effect.price):
            await self._reload_portfolio()

    async def _add_alert(self, effect: AddAlert) -> None:
        if await self._write(SecureStore.add_alert, effect.coin_id, effect.target_price, effect.direction):
            await self._reload_portfolio()

    async def _clear_triggered_alerts(self, effect: ClearTriggeredAlerts) -> None:
        if await self._write(SecureStore.delete_triggered_alerts, effect.coin_id):
            await self._reload_portfolio()

    # Search

    async def _search(self, effect: Search) -> None:
        mode = self.state.mode
        try:
            results = await self.source.search(effect.query)
        except MarketDataError as e:
            logger.warning(f"Search failed for {effect.query!r}: {e}")
            if self.state.mode is mode and isinstance(mode, SearchQuery):
                message = f"Search: {e}"
                log_user_error(message)
                mode.error = message
                mode.loading = False
            return

        if self.state.mode is not mode:
            logger.debug("Search finished after popup closed, discarding results")
            return

        if not results:
            mode.error = "No results found"
            mode.loading = False
        else:
            self.state.mode = SearchResults(query=effect.query, results=results)

    async def _add_from_search(self, effect: AddFromSearch) -> None:
        result = effect.result
        if not await self._write(_ensure_favourite, result.id):
            return

        if self.state.find_coin(result.id) is None:
            try:
                coin = await self.source.fetch_single(result.id, self.state.currency)
            except MarketDataError as e:
                logger.warning(f"Failed to fetch {result.id}: {e}")
                self.state.set_error(f"API: {e}", self.clock())
            else:
                if coin is not None:
                    self.state.coins = self.state.coins + [coin]

        await self._reload_portfolio()
        self.state.select_first()

    # Settings

    async def _save_settings(self, effect: SaveSettings) -> None:
        form = effect.form
        state = self.state
        currency = CURRENCIES[form.currency_idx]
        method = NOTIFICATION_METHODS[form.notification_idx]

        await self._write(_write_settings, {
            SETTING_COINGECKO_KEY: form.coingecko_api_key,
            SETTING_CMC_KEY: form.coinmarketcap_api_key,
            SETTING_CURRENCY: currency,
            SETTING_NOTIFICATIONS: method.value,
            SETTING_NTFY_TOPIC: form.ntfy_topic,
        })

        key_changed = form.coingecko_api_key != state.coingecko_api_key
        currency_changed = currency != state.currency

        state.coingecko_api_key = form.coingecko_api_key
        state.cmc_api_key = form.coinmarketcap_api_key
        state.notification_method = method
        state.ntfy_topic = form.ntfy_topic
        state.currency = currency
        state.theme = THEME_NAMES[form.theme_idx]

        try:
            self.config_manager.set("currency", currency)
            self.config_manager.set("theme", state.theme)
            self.config_manager.save()
        except ConfigError as e:
            logger.error(f"Failed to save config: {e}")
            state.set_error(f"Config: {e}", self.clock())

        if key_changed:
            await self._replace_source(state.coingecko_api_key)
        self.chart_cache.clear()
        logger.info(f"Settings saved (currency={currency}, theme={state.theme}, notifications={method.value})")

        if currency_changed:
            state.loading = True
            await self._refresh(Refresh())
