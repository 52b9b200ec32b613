"""
Dependency Injection Container.

Único lugar donde se crean dependencias concretas (adapters HTTP/WS,
Event Bus, generador, use cases). Vive en la capa más externa.

No hay contenedor global: quien arranca la app (lifespan de main.py o
un test) construye su propio Container y es dueño de su ciclo de vida.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from candlefeed.application.ports.market_data_provider import ILiveFeed
from candlefeed.application.services.market_feed_service import MarketFeedService
from candlefeed.application.use_cases.load_history_usecase import LoadHistoryUseCase
from candlefeed.domain.services.synthetic_price_generator import SyntheticPriceGenerator
from candlefeed.infrastructure.external.binance_rest_adapter import BinanceRestAdapter
from candlefeed.infrastructure.external.binance_ws_adapter import BinanceLiveFeed
from candlefeed.infrastructure.external.coingecko_adapter import CoinGeckoAdapter
from candlefeed.infrastructure.external.event_bus_adapter import EventBusAdapter
from candlefeed.presentation.websocket.websocket_manager import WebSocketManager
from candlefeed.shared.config.settings import Settings
from candlefeed.shared.logging.logger import get_logger

logger = get_logger("container")


@dataclass
class Container:
    """
    Contenedor de Inyección de Dependencias.

    Las dependencias se crean de forma perezosa y se cachean por
    contenedor. override() permite inyectar fakes en tests.
    """

    settings: Settings = field(default_factory=Settings)

    _event_bus: Optional[EventBusAdapter] = None
    _generator: Optional[SyntheticPriceGenerator] = None
    _primary: Optional[BinanceRestAdapter] = None
    _secondary: Optional[CoinGeckoAdapter] = None
    _live_feed: Optional[ILiveFeed] = None
    _history_loader: Optional[LoadHistoryUseCase] = None
    _market_feed: Optional[MarketFeedService] = None
    _ws_manager: Optional[WebSocketManager] = None

    # ==================== Infraestructura ====================

    @property
    def event_bus(self) -> EventBusAdapter:
        if self._event_bus is None:
            self._event_bus = EventBusAdapter(self.settings.event_bus_max_queue_size)
        return self._event_bus

    @property
    def primary(self) -> BinanceRestAdapter:
        """Fuente primaria (Binance REST)."""
        if self._primary is None:
            self._primary = BinanceRestAdapter(self.settings)
        return self._primary

    @property
    def secondary(self) -> CoinGeckoAdapter:
        """Fuente secundaria (CoinGecko)."""
        if self._secondary is None:
            self._secondary = CoinGeckoAdapter(self.settings)
        return self._secondary

    @property
    def live_feed(self) -> ILiveFeed:
        if self._live_feed is None:
            self._live_feed = BinanceLiveFeed(self.settings)
        return self._live_feed

    @property
    def ws_manager(self) -> WebSocketManager:
        if self._ws_manager is None:
            self._ws_manager = WebSocketManager(self.event_bus)
        return self._ws_manager

    # ==================== Domain Services ====================

    @property
    def generator(self) -> SyntheticPriceGenerator:
        if self._generator is None:
            s = self.settings
            self._generator = SyntheticPriceGenerator(
                volatility=s.synthetic_volatility,
                drift=s.synthetic_drift,
                spread=s.synthetic_spread,
                price_floor=s.synthetic_price_floor,
                tick_volatility=s.synthetic_tick_volatility,
            )
        return self._generator

    # ==================== Use Cases / Services ====================

    @property
    def history_loader(self) -> LoadHistoryUseCase:
        if self._history_loader is None:
            self._history_loader = LoadHistoryUseCase(
                history_sources=[self.primary, self.secondary],
                price_sources=[self.primary, self.secondary],
                generator=self.generator,
                strategy_timeout=self.settings.history_strategy_timeout,
                default_anchor_price=self.settings.default_anchor_price,
                seed=self.settings.synthetic_seed,
            )
        return self._history_loader

    @property
    def market_feed(self) -> MarketFeedService:
        if self._market_feed is None:
            self._market_feed = MarketFeedService(
                loader=self.history_loader,
                live_feed=self.live_feed,
                generator=self.generator,
                publisher=self.event_bus,
                settings=self.settings,
            )
        return self._market_feed

    # ==================== Lifecycle ====================

    def override(self, name: str, instance: Any) -> None:
        """
        Override una dependencia (útil para tests con fakes).

        Args:
            name: Nombre de la dependencia (ej: 'live_feed')
            instance: Instancia a usar
        """
        attr_name = f"_{name}"
        if attr_name not in self.__dataclass_fields__:
            raise ValueError(f"Unknown dependency: {name}")
        setattr(self, attr_name, instance)

    async def aclose(self) -> None:
        """Cierra suscripción, broadcast, bus y clientes HTTP propios."""
        if self._market_feed is not None:
            await self._market_feed.unsubscribe()
        if self._ws_manager is not None:
            await self._ws_manager.stop()
        if self._event_bus is not None:
            self._event_bus.close()
        for source in (self._primary, self._secondary):
            if source is not None:
                await source.aclose()
        logger.info("Container cerrado")
