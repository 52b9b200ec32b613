"""
Candlefeed – Application Port: Event Publisher
================================================
Interfaz para publicar eventos de la suscripción.

La suscripción publica eventos; la infraestructura decide CÓMO
entregarlos (handlers en memoria, colas por consumidor, WebSocket).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Awaitable, Callable

from candlefeed.domain.events.domain_events import DomainEvent

EventHandler = Callable[[DomainEvent], Awaitable[None]]


class IEventPublisher(ABC):
    """
    Interfaz para publicar eventos del sistema.

    IMPLEMENTACIONES:
    - EventBusAdapter (asyncio.Queue fan-out + handlers)
    """

    @abstractmethod
    async def publish(self, event: DomainEvent) -> None:
        """
        Publica un evento de dominio a todos sus suscriptores.

        Args:
            event: Evento a distribuir
        """
        pass

    @abstractmethod
    def register_handler(self, event_type: str, handler: EventHandler) -> None:
        """
        Registra un handler para un tipo de evento.

        Args:
            event_type: Nombre de la clase del evento (e.g. "CandleUpdated")
            handler: Función async que recibe el evento
        """
        pass
