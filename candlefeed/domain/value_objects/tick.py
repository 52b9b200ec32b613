"""
Candlefeed – Domain Value Object: Tick
========================================
Observación de precio efímera, ya sea del stream en vivo o del
generador sintético.

- frozen=True → inmutable, seguro para pasar entre coroutines.
- slots=True  → menor footprint de memoria en hot-path.
- Los agregados de 24h son solo para display; el reconciliador usa
  exclusivamente `price` y `received_at`.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Tick:
    """Tick de precio atómico."""

    symbol: str                          # par de trading (e.g. "BTCUSDT")
    price: float                         # último precio
    received_at: float                   # reloj de pared (epoch seg) al recibirlo
    high_24h: float | None = None
    low_24h: float | None = None
    volume_24h: float | None = None
    change: float | None = None          # variación absoluta 24h
    change_percent: float | None = None  # variación % 24h

    def to_dict(self) -> dict:
        """Serialización para WebSocket / frontend."""
        return {
            "symbol": self.symbol,
            "price": self.price,
            "received_at": self.received_at,
            "high_24h": self.high_24h,
            "low_24h": self.low_24h,
            "volume_24h": self.volume_24h,
            "change": self.change,
            "change_percent": self.change_percent,
        }
