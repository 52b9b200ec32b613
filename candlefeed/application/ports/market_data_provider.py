"""
Candlefeed – Application Ports: Market Data Sources
=====================================================
Interfaces para obtener datos de mercado.

Los use cases piden datos; la infraestructura decide CÓMO obtenerlos
(REST de Binance, CoinGecko, fakes en tests, etc.)

CONTRATO DE ERRORES:
- Las fuentes REST lanzan SourceUnavailableError ante red caída, status
  no-2xx o payload vacío/malformado.
- El stream en vivo lanza ConnectionLostError si el socket no abre o se
  corta, y SetupFailureError si el destino de suscripción es inválido.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, List, Sequence

from candlefeed.domain.value_objects.tick import Tick


class IHistoricalDataSource(ABC):
    """
    Fuente de velas históricas crudas.

    IMPLEMENTACIONES:
    - BinanceRestAdapter (klines OHLCV por par)
    - CoinGeckoAdapter (puntos diarios [ts, precio] por id de activo)
    """

    name: str = "historical"
    # "ohlc" → normalize(); "price_points" → normalize_price_points()
    record_format: str = "ohlc"

    @abstractmethod
    async def fetch_history(
        self,
        symbol: str,
        granularity: str,
        count: int,
    ) -> List[Any]:
        """
        Obtiene registros históricos crudos (aún sin normalizar).

        Args:
            symbol: Par de trading (e.g. "BTCUSDT")
            granularity: Intervalo textual (e.g. "1h")
            count: Cantidad de registros deseada

        Returns:
            Registros crudos en el formato nativo de la fuente
        """
        pass


class ICurrentPriceSource(ABC):
    """Fuente del último precio y agregados de 24h."""

    name: str = "price"

    @abstractmethod
    async def fetch_current_tick(self, symbol: str) -> Tick:
        """
        Obtiene el precio actual como Tick.

        Args:
            symbol: Par de trading

        Returns:
            Tick con precio > 0 y agregados 24h si la fuente los da
        """
        pass


class ILiveFeed(ABC):
    """
    Stream de ticks en tiempo real de un símbolo.

    Cada llamada a stream() abre UNA conexión; cerrar el iterador
    (aclose) cierra el socket.
    """

    @abstractmethod
    def stream(self, symbol: str) -> AsyncIterator[Tick]:
        """
        Itera ticks hasta que el socket se cierre.

        Args:
            symbol: Par a suscribir

        Yields:
            Tick a medida que llegan (mensajes malformados se descartan)
        """
        pass


def describe_sources(sources: Sequence[object]) -> list[str]:
    """Nombres de fuentes para logs / diagnóstico."""
    return [getattr(s, "name", type(s).__name__) for s in sources]
