"""
Candlefeed – Market Feed Service (Consumer API)
=================================================
Punto de entrada para consumidores: suscribirse a un símbolo y recibir
la serie de velas viva, el tick actual y el estado de la conexión.

FLUJO DE UNA SUSCRIPCIÓN:
  1. subscribe(symbol, granularity)
  2. Historical Loader → serie inicial (nunca falla)  → HistoryLoaded
  3. Connection Supervisor arranca la fuente de ticks
  4. Cada tick → Live Feed Reconciler → CandleUpdated + TickReceived
  5. Cada transición de conexión → ConnectionStateChanged
  6. unsubscribe() / cambio de símbolo → teardown y serie descartada

Los renderers son solo suscriptores del IEventPublisher: nada en este
módulo depende de cómo se dibuja la serie.
"""

from __future__ import annotations

from typing import Callable, Optional

from candlefeed.application.dto.market_snapshot import MarketSnapshot
from candlefeed.application.ports.event_publisher import IEventPublisher
from candlefeed.application.ports.market_data_provider import ILiveFeed
from candlefeed.application.services.connection_supervisor import ConnectionSupervisor
from candlefeed.application.use_cases.load_history_usecase import (
    SOURCE_UNAVAILABLE,
    LoadHistoryUseCase,
)
from candlefeed.domain.events.domain_events import (
    CandleUpdated,
    ConnectionStateChanged,
    HistoryLoaded,
    TickReceived,
)
from candlefeed.domain.services.live_feed_reconciler import LiveFeedReconciler
from candlefeed.domain.services.synthetic_price_generator import SyntheticPriceGenerator
from candlefeed.domain.value_objects.connection_state import ConnectionState
from candlefeed.domain.value_objects.granularity import granularity_to_seconds
from candlefeed.domain.value_objects.tick import Tick
from candlefeed.shared.config.settings import Settings
from candlefeed.shared.logging.logger import get_logger

logger = get_logger("market_feed")

SupervisorFactory = Callable[..., ConnectionSupervisor]


class MarketSubscription:
    """
    Una suscripción viva a (símbolo, granularidad).

    Es la dueña de la serie: la crea vacía, la puebla una vez con el
    Historical Loader y desde ahí solo el reconciliador la muta.
    """

    def __init__(
        self,
        symbol: str,
        granularity: str,
        loader: LoadHistoryUseCase,
        supervisor_factory: SupervisorFactory,
        publisher: IEventPublisher,
        settings: Settings,
    ) -> None:
        self.symbol = symbol.strip().upper()
        self.granularity = granularity
        self._loader = loader
        self._publisher = publisher
        self._history_limit = settings.history_limit
        self._default_anchor = settings.default_anchor_price

        self._reconciler = LiveFeedReconciler(
            granularity_to_seconds(granularity),
            backfill=settings.backfill_gaps,
        )
        self._supervisor = supervisor_factory(
            on_tick=self._on_tick,
            on_state_change=self._on_state_change,
        )

        self._active = False
        self._current_tick: Optional[Tick] = None
        self._history_source = SOURCE_UNAVAILABLE

    # ──────────────────────── Ciclo de vida ─────────────────────────────

    async def open(self) -> None:
        """Carga el histórico y arranca la fuente de ticks."""
        self._active = True
        result = await self._loader.execute(self.symbol, self.granularity, self._history_limit)
        if not self._active:
            return

        self._reconciler.seed(result.series)
        self._history_source = result.source
        await self._publisher.publish(HistoryLoaded(
            symbol=self.symbol,
            granularity=self.granularity,
            source=result.source,
            candles=self._reconciler.snapshot(),
        ))
        if not self._active:
            return

        last = self._reconciler.last_candle
        anchor = last.close if last is not None else self._default_anchor
        await self._supervisor.start(self.symbol, anchor)

    async def reconnect(self) -> None:
        """Forzar un nuevo intento en vivo (sale de simulated / error)."""
        if self._active:
            await self._supervisor.reconnect()

    async def unsubscribe(self) -> None:
        """Teardown síncrono: ningún evento se publica después de esto."""
        if not self._active:
            return
        self._active = False
        await self._supervisor.stop()
        self._reconciler.reset()
        self._current_tick = None
        logger.info("Suscripción cerrada: %s %s", self.symbol, self.granularity)

    @property
    def active(self) -> bool:
        return self._active

    # ──────────────────────── Lectura ───────────────────────────────────

    @property
    def connection_state(self) -> ConnectionState:
        return self._supervisor.state

    def snapshot(self) -> MarketSnapshot:
        series = self._reconciler.snapshot()
        return MarketSnapshot(
            symbol=self.symbol,
            granularity=self.granularity,
            series=series,
            current_tick=self._current_tick,
            connection_state=self._supervisor.state,
            history_source=self._history_source,
            history_unavailable=self._history_source == SOURCE_UNAVAILABLE,
        )

    @property
    def stats(self) -> dict:
        return {
            "symbol": self.symbol,
            "granularity": self.granularity,
            "active": self._active,
            "history_source": self._history_source,
            "reconciler": self._reconciler.stats,
            "supervisor": self._supervisor.stats,
        }

    # ──────────────────────── Callbacks del supervisor ──────────────────

    async def _on_tick(self, tick: Tick, simulated: bool) -> None:
        if not self._active:
            return
        delta = self._reconciler.apply(tick)
        if delta is None:
            return
        self._current_tick = tick

        for filler in delta.backfilled:
            await self._publisher.publish(CandleUpdated(symbol=self.symbol, candle=filler, is_new=True))
        await self._publisher.publish(CandleUpdated(
            symbol=self.symbol, candle=delta.candle, is_new=delta.is_new
        ))
        await self._publisher.publish(TickReceived(tick=tick, simulated=simulated))

    async def _on_state_change(self, previous: ConnectionState, current: ConnectionState) -> None:
        if not self._active:
            return
        await self._publisher.publish(ConnectionStateChanged(
            symbol=self.symbol, previous=previous.value, current=current.value
        ))


class MarketFeedService:
    """
    Servicio de suscripción inyectado explícitamente (sin singleton).

    Mantiene como máximo UNA suscripción activa: suscribirse a otro
    símbolo cierra la anterior.
    """

    def __init__(
        self,
        loader: LoadHistoryUseCase,
        live_feed: ILiveFeed,
        generator: SyntheticPriceGenerator,
        publisher: IEventPublisher,
        settings: Settings,
    ) -> None:
        self._loader = loader
        self._live_feed = live_feed
        self._generator = generator
        self._publisher = publisher
        self._settings = settings
        self._current: Optional[MarketSubscription] = None

    @property
    def current(self) -> Optional[MarketSubscription]:
        return self._current

    def _make_supervisor(self, on_tick, on_state_change) -> ConnectionSupervisor:
        return ConnectionSupervisor(
            live_feed=self._live_feed,
            generator=self._generator,
            settings=self._settings,
            on_tick=on_tick,
            on_state_change=on_state_change,
        )

    async def subscribe(self, symbol: str, granularity: Optional[str] = None) -> MarketSubscription:
        """
        Suscribirse a un símbolo.

        Raises:
            SetupFailureError: si la granularidad no es soportada
        """
        granularity = granularity or self._settings.default_granularity
        granularity_to_seconds(granularity)

        await self.unsubscribe()

        subscription = MarketSubscription(
            symbol=symbol,
            granularity=granularity,
            loader=self._loader,
            supervisor_factory=self._make_supervisor,
            publisher=self._publisher,
            settings=self._settings,
        )
        self._current = subscription
        logger.info("Nueva suscripción: %s %s", subscription.symbol, granularity)
        await subscription.open()
        return subscription

    async def unsubscribe(self) -> None:
        if self._current is not None:
            previous, self._current = self._current, None
            await previous.unsubscribe()

    async def reconnect(self) -> None:
        if self._current is not None:
            await self._current.reconnect()
