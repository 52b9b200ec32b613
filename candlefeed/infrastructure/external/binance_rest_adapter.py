"""
Binance REST Adapter.

Fuente primaria de velas históricas (GET /klines) y de precio actual
con agregados de 24h (GET /ticker/24hr), vía httpx.AsyncClient.

Cualquier fallo (red, status no-2xx, JSON inválido, payload vacío o
malformado) se traduce a SourceUnavailableError: el Historical Loader
lo absorbe y pasa a la siguiente estrategia.
"""

from __future__ import annotations

import math
import time
from typing import Any, Callable, List, Optional

import httpx

from candlefeed.application.ports.market_data_provider import (
    ICurrentPriceSource,
    IHistoricalDataSource,
)
from candlefeed.domain.exceptions.domain_errors import SourceUnavailableError
from candlefeed.domain.value_objects.tick import Tick
from candlefeed.shared.config.settings import Settings
from candlefeed.shared.logging.logger import get_logger

logger = get_logger("binance_rest")

# Binance limita /klines a 1000 velas por request
MAX_KLINES = 1000


def to_float(value: Any) -> Optional[float]:
    """float desde número o string; None si no es un número finito."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


class BinanceRestAdapter(IHistoricalDataSource, ICurrentPriceSource):
    """
    Implementación de las fuentes primarias usando la API pública de Binance.

    El cliente HTTP puede inyectarse (tests con httpx.MockTransport);
    si no, se crea uno propio que se cierra en aclose().
    """

    name = "binance"
    record_format = "ohlc"

    def __init__(
        self,
        settings: Settings,
        client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._base_url = settings.binance_rest_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=settings.http_timeout)
        self._clock = clock

    async def _get_json(self, path: str, params: dict) -> Any:
        url = f"{self._base_url}{path}"
        try:
            response = await self._client.get(
                url, params=params, headers={"Accept": "application/json"}
            )
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise SourceUnavailableError(
                f"Binance API error: {exc.response.status_code}", source=self.name
            ) from exc
        except httpx.HTTPError as exc:
            raise SourceUnavailableError(f"Binance no disponible: {exc}", source=self.name) from exc
        except ValueError as exc:
            raise SourceUnavailableError("Respuesta no-JSON de Binance", source=self.name) from exc

    # ════════════════════════════════════════════════════════════════
    #  IHistoricalDataSource
    # ════════════════════════════════════════════════════════════════

    async def fetch_history(self, symbol: str, granularity: str, count: int) -> List[Any]:
        """Klines crudas: [openTime, open, high, low, close, volume, closeTime, ...]."""
        params = {"symbol": symbol.upper(), "interval": granularity, "limit": min(count, MAX_KLINES)}
        data = await self._get_json("/klines", params)

        if not isinstance(data, list) or not data:
            raise SourceUnavailableError("Binance no devolvió klines", source=self.name)

        logger.info("Binance: %d klines recibidas (%s %s)", len(data), symbol, granularity)
        return data

    # ════════════════════════════════════════════════════════════════
    #  ICurrentPriceSource
    # ════════════════════════════════════════════════════════════════

    async def fetch_current_tick(self, symbol: str) -> Tick:
        """Último precio + agregados 24h desde /ticker/24hr."""
        data = await self._get_json("/ticker/24hr", {"symbol": symbol.upper()})
        if not isinstance(data, dict):
            raise SourceUnavailableError("Formato de ticker inválido", source=self.name)

        price = to_float(data.get("lastPrice"))
        if price is None or price <= 0:
            raise SourceUnavailableError(
                f"Precio inválido en ticker: {data.get('lastPrice')!r}", source=self.name
            )

        return Tick(
            symbol=str(data.get("symbol") or symbol.upper()),
            price=price,
            received_at=self._clock(),
            high_24h=to_float(data.get("highPrice")),
            low_24h=to_float(data.get("lowPrice")),
            volume_24h=to_float(data.get("volume")),
            change=to_float(data.get("priceChange")),
            change_percent=to_float(data.get("priceChangePercent")),
        )

    async def aclose(self) -> None:
        """Cerrar el cliente HTTP si es propio."""
        if self._owns_client:
            await self._client.aclose()
