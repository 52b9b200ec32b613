"""
Candlefeed – Domain Events
============================
Hechos que la suscripción emite hacia sus consumidores (renderer,
broadcast WebSocket, tests). Son inmutables y llevan timestamp.

El renderer nunca recibe una referencia mutable a la serie: recibe
deltas de una vela (CandleUpdated) o el snapshot inicial (HistoryLoaded).
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from candlefeed.domain.entities.candle import Candle
from candlefeed.domain.value_objects.tick import Tick


@dataclass(frozen=True)
class DomainEvent:
    """Evento base de dominio."""

    event_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_type": self.__class__.__name__,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class HistoryLoaded(DomainEvent):
    """Evento: la serie inicial quedó poblada por el Historical Loader."""

    symbol: str = ""
    granularity: str = ""
    source: str = ""
    candles: Tuple[Candle, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        base = super().to_dict()
        base.update({
            "symbol": self.symbol,
            "granularity": self.granularity,
            "source": self.source,
            "candles": [c.to_dict() for c in self.candles],
        })
        return base


@dataclass(frozen=True)
class CandleUpdated(DomainEvent):
    """Evento: se abrió una vela nueva (is_new) o se actualizó la última."""

    symbol: str = ""
    candle: Optional[Candle] = None
    is_new: bool = False

    def to_dict(self) -> Dict[str, Any]:
        base = super().to_dict()
        base.update({
            "symbol": self.symbol,
            "candle": self.candle.to_dict() if self.candle else None,
            "is_new": self.is_new,
        })
        return base


@dataclass(frozen=True)
class TickReceived(DomainEvent):
    """Evento: llegó un tick (en vivo o simulado)."""

    tick: Optional[Tick] = None
    simulated: bool = False

    def to_dict(self) -> Dict[str, Any]:
        base = super().to_dict()
        base.update({
            "tick": self.tick.to_dict() if self.tick else None,
            "simulated": self.simulated,
        })
        return base


@dataclass(frozen=True)
class ConnectionStateChanged(DomainEvent):
    """Evento: transición del ConnectionState de una suscripción."""

    symbol: str = ""
    previous: str = ""
    current: str = ""

    def to_dict(self) -> Dict[str, Any]:
        base = super().to_dict()
        base.update({
            "symbol": self.symbol,
            "previous": self.previous,
            "current": self.current,
        })
        return base
