"""
Candlefeed – Domain Entity: Candle
====================================
Vela OHLC(V) canónica: la unidad de la serie que ve el consumidor.

Decisiones de diseño:
- frozen=True → inmutable. El reconciliador nunca muta una vela: la
  reemplaza por una nueva (dataclasses.replace), así los snapshots ya
  entregados al renderer no cambian por debajo.
- open_time en segundos enteros: único y estrictamente creciente en la serie.
- Invariante: low ≤ min(open, close) ≤ max(open, close) ≤ high.
"""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Candle:
    """Vela OHLCV con timestamp de apertura."""

    open_time: int                 # epoch (seg) de apertura del bucket
    open: float
    high: float
    low: float
    close: float
    volume: float | None = None    # opcional, nunca negativo

    @property
    def is_consistent(self) -> bool:
        """True si precios positivos/finitos y high/low envuelven open/close."""
        prices = (self.open, self.high, self.low, self.close)
        if not all(math.isfinite(p) and p > 0 for p in prices):
            return False
        if self.volume is not None and (not math.isfinite(self.volume) or self.volume < 0):
            return False
        return self.low <= min(self.open, self.close) <= max(self.open, self.close) <= self.high

    def to_dict(self) -> dict:
        """Serialización para WebSocket / frontend."""
        return {
            "open_time": self.open_time,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }
