"""
Binance WebSocket Live Feed
============================
Stream de ticks en vivo desde wss://stream.binance.com:9443/ws/<par>@ticker.

Cada llamada a stream() abre UNA conexión y la cierra al terminar el
iterador. No hay reconexión aquí: el ConnectionSupervisor es el único
dueño del ciclo de vida de la fuente de ticks.

MENSAJES:
- Payload 24hrTicker: s (símbolo), c (último), p/P (cambio abs/%),
  h/l (high/low 24h), v (volumen 24h).
- Mensajes malformados (no-JSON, sin precio, precio ≤ 0, otro símbolo)
  se descartan y loguean; NO alteran el estado de la conexión.

ERRORES:
- Destino inválido (símbolo malformado, URI inválida) → SetupFailureError.
- Socket que no abre o se corta con error → ConnectionLostError.
- Cierre limpio del servidor → el iterador simplemente termina.
"""

from __future__ import annotations

import json
import re
import time
from typing import AsyncIterator, Callable, Optional

import websockets
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI

from candlefeed.application.ports.market_data_provider import ILiveFeed
from candlefeed.domain.exceptions.domain_errors import ConnectionLostError, SetupFailureError
from candlefeed.domain.value_objects.tick import Tick
from candlefeed.infrastructure.external.binance_rest_adapter import to_float
from candlefeed.shared.config.settings import Settings
from candlefeed.shared.logging.logger import get_logger

logger = get_logger("binance_ws")

_SYMBOL_RE = re.compile(r"^[A-Z0-9]{5,20}$")


def stream_target(symbol: str) -> str:
    """Nombre de stream de Binance para un par; SetupFailureError si es inválido."""
    normalized = (symbol or "").strip().upper()
    if not _SYMBOL_RE.match(normalized):
        raise SetupFailureError(f"Destino de suscripción malformado: {symbol!r}", target=symbol)
    return f"{normalized.lower()}@ticker"


class BinanceLiveFeed(ILiveFeed):
    """
    Implementación de ILiveFeed sobre el stream @ticker de Binance.

    El conector es inyectable (tests con sockets falsos); por defecto
    websockets.connect.
    """

    def __init__(
        self,
        settings: Settings,
        connector: Optional[Callable[..., object]] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._base_url = settings.binance_ws_url.rstrip("/")
        self._ping_interval = settings.ws_ping_interval
        self._connector = connector or websockets.connect
        self._clock = clock

        # Estadísticas de monitoreo
        self._messages_received: int = 0
        self._messages_dropped: int = 0

    def url_for(self, symbol: str) -> str:
        return f"{self._base_url}/{stream_target(symbol)}"

    async def stream(self, symbol: str) -> AsyncIterator[Tick]:
        """Itera ticks del par hasta que el socket se cierre."""
        url = self.url_for(symbol)
        expected = symbol.strip().upper()

        try:
            async with self._connector(
                url,
                ping_interval=self._ping_interval,
                close_timeout=10,
                max_size=2**20,  # 1 MB máximo por mensaje
            ) as ws:
                logger.info("Conectado a Binance WebSocket: %s", url)
                async for raw_msg in ws:
                    tick = self.parse_message(raw_msg, expected)
                    if tick is not None:
                        yield tick
            logger.info("Binance WebSocket cerrado por el servidor (%s)", expected)
        except InvalidURI as exc:
            raise SetupFailureError(f"URI de stream inválida: {url}", target=url) from exc
        except ConnectionClosed as exc:
            raise ConnectionLostError(f"Conexión cerrada: {exc}", symbol=expected) from exc
        except InvalidHandshake as exc:
            raise ConnectionLostError(f"Handshake rechazado: {exc}", symbol=expected) from exc
        except OSError as exc:
            raise ConnectionLostError(f"Error de red: {exc}", symbol=expected) from exc

    def parse_message(self, raw_msg: str | bytes, expected_symbol: str) -> Optional[Tick]:
        """Tick desde un mensaje 24hrTicker; None si está malformado."""
        self._messages_received += 1
        try:
            data = json.loads(raw_msg)
        except (json.JSONDecodeError, TypeError, UnicodeDecodeError):
            return self._drop("mensaje no-JSON")

        if not isinstance(data, dict):
            return self._drop("payload no es un objeto")

        symbol = data.get("s")
        if symbol and str(symbol).upper() != expected_symbol:
            return self._drop(f"símbolo inesperado {symbol!r}")

        price = to_float(data.get("c"))
        if price is None or price <= 0:
            return self._drop(f"precio inválido {data.get('c')!r}")

        return Tick(
            symbol=expected_symbol,
            price=price,
            received_at=self._clock(),
            high_24h=to_float(data.get("h")),
            low_24h=to_float(data.get("l")),
            volume_24h=to_float(data.get("v")),
            change=to_float(data.get("p")),
            change_percent=to_float(data.get("P")),
        )

    def _drop(self, reason: str) -> None:
        self._messages_dropped += 1
        logger.warning("Mensaje de Binance descartado: %s", reason)
        return None

    @property
    def stats(self) -> dict:
        return {
            "messages_received": self._messages_received,
            "messages_dropped": self._messages_dropped,
        }
