"""
Event Bus Adapter.

Implementa IEventPublisher con dos tipos de consumidor:

- handlers async: reciben el DomainEvent tal cual, en línea con publish().
- canales: una asyncio.Queue acotada por consumidor que acepta VARIOS
  tipos de evento. Un solo canal conserva el orden de publicación entre
  tipos (HistoryLoaded siempre antes que el primer CandleUpdated).

Cada item de un canal es (event_type, event.to_dict()).

CÓMO SE EVITA BLOQUEAR AL PRODUCTOR:
- Canal lleno → se descarta el item MÁS ANTIGUO y se cuenta.
- Un handler que falla se loguea y no afecta a los demás.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, List, Tuple

from candlefeed.application.ports.event_publisher import EventHandler, IEventPublisher
from candlefeed.domain.events.domain_events import DomainEvent
from candlefeed.shared.logging.logger import get_logger

logger = get_logger("event_bus_adapter")

ChannelItem = Tuple[str, Dict[str, Any]]


@dataclass
class _Channel:
    name: str
    event_types: FrozenSet[str]
    queue: asyncio.Queue
    dropped: int = 0

    def offer(self, item: ChannelItem) -> None:
        if self.queue.full():
            self.queue.get_nowait()
            self.dropped += 1
            logger.warning("Canal '%s' lleno – item antiguo descartado (%d)", self.name, self.dropped)
        self.queue.put_nowait(item)


class EventBusAdapter(IEventPublisher):
    """Bus en memoria: handlers en línea + canales ordenados por consumidor."""

    def __init__(self, max_queue_size: int = 10_000):
        self._max_queue_size = max_queue_size
        self._channels: List[_Channel] = []
        self._handlers: Dict[str, List[EventHandler]] = {}
        self._published = 0

    async def publish(self, event: DomainEvent) -> None:
        event_type = type(event).__name__
        self._published += 1

        for handler in list(self._handlers.get(event_type, [])):
            try:
                await handler(event)
            except Exception:
                logger.exception("Error en handler de %s", event_type)

        channels = [c for c in self._channels if event_type in c.event_types]
        if not channels:
            return
        item = (event_type, event.to_dict())
        for channel in channels:
            channel.offer(item)

    def register_handler(self, event_type: str, handler: EventHandler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)
        logger.info("Handler registrado para eventos %s", event_type)

    def open_channel(self, event_types: Iterable[str], consumer_name: str) -> asyncio.Queue:
        """
        Abre un canal para un consumidor.

        Args:
            event_types: nombres de clase de los eventos a recibir
            consumer_name: nombre para logs y stats

        Returns:
            Queue exclusiva con items (event_type, payload) en orden de publicación.
        """
        channel = _Channel(
            name=consumer_name,
            event_types=frozenset(event_types),
            queue=asyncio.Queue(maxsize=self._max_queue_size),
        )
        self._channels.append(channel)
        logger.info(
            "Canal '%s' abierto para %s (max_queue=%d)",
            consumer_name,
            ", ".join(sorted(channel.event_types)),
            self._max_queue_size,
        )
        return channel.queue

    def close_channel(self, queue: asyncio.Queue) -> None:
        self._channels = [c for c in self._channels if c.queue is not queue]

    def close(self) -> None:
        """Soltar todos los canales y handlers (shutdown)."""
        self._channels.clear()
        self._handlers.clear()

    @property
    def subscriber_count(self) -> int:
        return len(self._channels) + sum(len(h) for h in self._handlers.values())

    @property
    def stats(self) -> dict:
        return {
            "published": self._published,
            "channels": {
                c.name: {"pending": c.queue.qsize(), "dropped": c.dropped}
                for c in self._channels
            },
            "handlers": sum(len(h) for h in self._handlers.values()),
        }
