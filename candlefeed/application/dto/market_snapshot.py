"""
Candlefeed – Application DTO: Market Snapshot
===============================================
Vista de solo lectura de una suscripción para el renderer / la API.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from candlefeed.domain.entities.candle import Candle
from candlefeed.domain.value_objects.connection_state import ConnectionState
from candlefeed.domain.value_objects.tick import Tick


@dataclass(frozen=True)
class MarketSnapshot:
    """Estado observable de una suscripción en un instante."""

    symbol: str
    granularity: str
    series: Tuple[Candle, ...]
    current_tick: Optional[Tick]
    connection_state: ConnectionState
    history_source: str
    history_unavailable: bool

    @property
    def current_price(self) -> Optional[float]:
        if self.current_tick is not None:
            return self.current_tick.price
        return self.series[-1].close if self.series else None

    def to_dict(self, include_series: bool = True) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "symbol": self.symbol,
            "granularity": self.granularity,
            "connection_state": self.connection_state.value,
            "history_source": self.history_source,
            "history_unavailable": self.history_unavailable,
            "current_price": self.current_price,
            "current_tick": self.current_tick.to_dict() if self.current_tick else None,
            "candle_count": len(self.series),
        }
        if include_series:
            data["series"] = [c.to_dict() for c in self.series]
        return data
