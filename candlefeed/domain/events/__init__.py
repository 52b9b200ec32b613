"""Domain events."""
from candlefeed.domain.events.domain_events import (
    DomainEvent,
    HistoryLoaded,
    CandleUpdated,
    TickReceived,
    ConnectionStateChanged,
)

__all__ = [
    "DomainEvent",
    "HistoryLoaded",
    "CandleUpdated",
    "TickReceived",
    "ConnectionStateChanged",
]
