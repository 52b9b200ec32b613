"""
Load History Use Case (Historical Loader).

Carga una ventana acotada de velas pasadas con fallback en cascada.
NUNCA falla: agota estrategias en orden y devuelve la primera serie
estructuralmente válida.

ESTRATEGIAS (secuenciales, nunca en carrera):
  1. Fuentes históricas en orden (Binance klines → CoinGecko diario)
  2. Generador sintético anclado en el precio actual (best-effort)
  3. Generador sintético anclado en el precio por defecto

Cada estrategia tiene su timeout. Un fallo (red, payload malformado,
vacío, timeout, registro inválido) se loguea y se intenta la siguiente.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from candlefeed.application.ports.market_data_provider import (
    ICurrentPriceSource,
    IHistoricalDataSource,
    describe_sources,
)
from candlefeed.domain.entities.candle import Candle
from candlefeed.domain.exceptions.domain_errors import SetupFailureError
from candlefeed.domain.services.candle_normalizer import (
    normalize,
    normalize_price_points,
    validate_series,
)
from candlefeed.domain.services.synthetic_price_generator import SyntheticPriceGenerator
from candlefeed.domain.value_objects.granularity import granularity_to_seconds
from candlefeed.domain.value_objects.tick import Tick
from candlefeed.shared.logging.logger import get_logger

logger = get_logger("load_history")

SOURCE_UNAVAILABLE = "unavailable"
DEFAULT_INTERVAL = 3600


@dataclass
class HistoryResult:
    """Resultado de la carga histórica."""
    series: List[Candle] = field(default_factory=list)
    source: str = SOURCE_UNAVAILABLE
    degraded: bool = True  # True si la serie no viene de una fuente real

    @property
    def unavailable(self) -> bool:
        return not self.series


class LoadHistoryUseCase:
    """
    Caso de uso: cargar la serie inicial de una suscripción.

    Este use case:
    1. Intenta cada fuente histórica real en orden
    2. Normaliza y valida su respuesta
    3. Si todas fallan, genera datos sintéticos anclados en el mejor
       precio disponible
    """

    def __init__(
        self,
        history_sources: Sequence[IHistoricalDataSource],
        price_sources: Sequence[ICurrentPriceSource],
        generator: SyntheticPriceGenerator,
        strategy_timeout: float = 10.0,
        default_anchor_price: float = 112_000.0,
        seed: int = 42,
    ) -> None:
        self._history_sources = list(history_sources)
        self._price_sources = list(price_sources)
        self._generator = generator
        self._timeout = strategy_timeout
        self._default_anchor = default_anchor_price
        self._seed = seed

    async def _run_strategy(
        self,
        label: str,
        strategy: Callable[[], Awaitable[List[Candle]]],
    ) -> Optional[List[Candle]]:
        """Ejecuta una estrategia con timeout; None si falla o no es válida."""
        try:
            series = await asyncio.wait_for(strategy(), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("Estrategia '%s' superó el timeout (%.1fs)", label, self._timeout)
            return None
        except Exception as exc:
            logger.warning("Estrategia '%s' falló: %s", label, exc)
            return None

        if not validate_series(series):
            logger.warning("Estrategia '%s' devolvió una serie vacía o inválida", label)
            return None
        return series

    async def _from_source(
        self,
        source: IHistoricalDataSource,
        symbol: str,
        granularity: str,
        count: int,
        interval: int,
    ) -> List[Candle]:
        raw: List[Any] = await source.fetch_history(symbol, granularity, count)
        if getattr(source, "record_format", "ohlc") == "price_points":
            series = normalize_price_points(raw, seed=self._seed)
        else:
            series = normalize(raw, fallback_spacing=interval)
        return series[-count:]

    async def fetch_current_tick(self, symbol: str) -> Optional[Tick]:
        """Precio actual desde la primera fuente que responda; None si ninguna."""
        for source in self._price_sources:
            label = getattr(source, "name", type(source).__name__)
            try:
                return await asyncio.wait_for(source.fetch_current_tick(symbol), timeout=self._timeout)
            except asyncio.TimeoutError:
                logger.warning("Precio actual: '%s' superó el timeout", label)
            except Exception as exc:
                logger.warning("Precio actual: '%s' falló: %s", label, exc)
        return None

    async def execute(self, symbol: str, granularity: str, count: int) -> HistoryResult:
        """
        Carga la serie inicial.

        Args:
            symbol: Par de trading
            granularity: Intervalo textual (e.g. "1h")
            count: Velas deseadas (> 0)

        Returns:
            HistoryResult con la serie y la fuente que la produjo
        """
        if count <= 0:
            logger.warning("Carga histórica con count=%d: serie vacía", count)
            return HistoryResult()

        try:
            interval = granularity_to_seconds(granularity)
        except SetupFailureError as exc:
            # Las fuentes reales fallarán; el sintético usa cadencia horaria
            logger.error("%s; se asume %ds", exc.message, DEFAULT_INTERVAL)
            interval = DEFAULT_INTERVAL
        logger.info(
            "Cargando histórico %s %s x%d (fuentes: %s)",
            symbol, granularity, count, ", ".join(describe_sources(self._history_sources)),
        )

        # ── 1. Fuentes reales ──
        for source in self._history_sources:
            label = getattr(source, "name", type(source).__name__)
            series = await self._run_strategy(
                label,
                lambda src=source: self._from_source(src, symbol, granularity, count, interval),
            )
            if series:
                logger.info("✓ Histórico desde '%s': %d velas", label, len(series))
                return HistoryResult(series=series, source=label, degraded=False)

        # ── 2. Sintético anclado en el precio actual ──
        # Cada fuente de precio tiene su propio timeout dentro de fetch_current_tick
        tick = await self.fetch_current_tick(symbol)
        if tick is None:
            logger.warning("Sin precio actual para %s: se usa el precio por defecto", symbol)
            series = None
        else:
            async def _current_price_strategy() -> List[Candle]:
                return self._generator.generate(tick.price, count, self._seed, cadence_seconds=interval)

            series = await self._run_strategy("synthetic:current_price", _current_price_strategy)
        if series:
            logger.info("Histórico sintético anclado en precio actual (%d velas)", len(series))
            return HistoryResult(series=series, source="synthetic:current_price", degraded=True)

        # ── 3. Sintético anclado en el precio por defecto ──
        async def _default_price_strategy() -> List[Candle]:
            return self._generator.generate(
                self._default_anchor, count, self._seed, cadence_seconds=interval
            )

        series = await self._run_strategy("synthetic:default", _default_price_strategy)
        if series:
            logger.info("Histórico sintético con precio por defecto %.2f", self._default_anchor)
            return HistoryResult(series=series, source="synthetic:default", degraded=True)

        logger.error("Datos históricos no disponibles para %s: todas las estrategias fallaron", symbol)
        return HistoryResult()

    async def load(self, symbol: str, granularity: str, count: int) -> List[Candle]:
        """Atajo: solo la serie."""
        return (await self.execute(symbol, granularity, count)).series
