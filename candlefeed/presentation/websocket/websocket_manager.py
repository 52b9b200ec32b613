"""
Candlefeed – WebSocket Manager (broadcast a clientes frontend)
================================================================
Gestiona conexiones WebSocket de clientes y les reenvía los eventos de
la suscripción activa. El renderer del frontend es solo un suscriptor
más del Event Bus.

ARQUITECTURA:
  EventBus ──(HistoryLoaded, CandleUpdated,
              TickReceived, ConnectionStateChanged)──▸ canal "ws_broadcast"
       │
       ▼
  [Cliente WS 1, Cliente WS 2, ...]   {"type": "candle" | "tick" | ..., "data": {...}}

Un único canal conserva el orden de publicación entre tipos de evento,
así un cliente nunca ve un "candle" anterior al "history" que lo contiene.
El envío a cada cliente usa asyncio.wait_for con timeout; un cliente
lento o caído se elimina sin afectar a los demás.
"""

from __future__ import annotations

import asyncio
import json
from typing import Optional, Set

from fastapi import WebSocket, WebSocketDisconnect

from candlefeed.infrastructure.external.event_bus_adapter import EventBusAdapter
from candlefeed.shared.logging.logger import get_logger

logger = get_logger("ws_manager")

# Evento de dominio → tipo de mensaje hacia el cliente
BROADCAST_TOPICS = {
    "HistoryLoaded": "history",
    "CandleUpdated": "candle",
    "TickReceived": "tick",
    "ConnectionStateChanged": "connection_state",
}

SEND_TIMEOUT = 5.0


class WebSocketManager:
    """Gestiona conexiones de clientes y broadcast de eventos en tiempo real."""

    def __init__(self, event_bus: EventBusAdapter) -> None:
        self._event_bus = event_bus
        self._clients: Set[WebSocket] = set()
        self._queue: Optional[asyncio.Queue] = None
        self._task: Optional[asyncio.Task] = None
        self._sent = 0

    async def start(self) -> None:
        if self._task is not None:
            return
        self._queue = self._event_bus.open_channel(BROADCAST_TOPICS, "ws_broadcast")
        self._task = asyncio.create_task(self._broadcast_loop(self._queue), name="ws-broadcast")
        logger.info(
            "WebSocketManager iniciado – broadcast de %s", ", ".join(BROADCAST_TOPICS.values())
        )

    async def stop(self) -> None:
        """Cancelar broadcast y cerrar todos los clientes."""
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
        if self._queue is not None:
            self._event_bus.close_channel(self._queue)
            self._queue = None

        for ws in list(self._clients):
            try:
                await ws.close()
            except (RuntimeError, OSError) as exc:
                logger.debug("Error cerrando cliente WS: %s", exc)
        self._clients.clear()
        logger.info("WebSocketManager detenido (%d mensajes enviados)", self._sent)

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._clients.add(websocket)
        logger.info("Cliente WS conectado. Total: %d", len(self._clients))

    def disconnect(self, websocket: WebSocket) -> None:
        self._clients.discard(websocket)
        logger.info("Cliente WS desconectado. Total: %d", len(self._clients))

    async def send_snapshot(self, websocket: WebSocket, snapshot: dict) -> None:
        """Estado inicial para un cliente recién conectado."""
        await websocket.send_text(json.dumps({"type": "snapshot", "data": snapshot}))

    async def _broadcast_loop(self, queue: asyncio.Queue) -> None:
        try:
            while True:
                event_type, data = await queue.get()
                if not self._clients:
                    continue

                payload = json.dumps({"type": BROADCAST_TOPICS[event_type], "data": data})
                disconnected: list[WebSocket] = []
                await asyncio.gather(
                    *(self._safe_send(ws, payload, disconnected) for ws in list(self._clients))
                )
                for ws in disconnected:
                    self._clients.discard(ws)
        except asyncio.CancelledError:
            pass  # Shutdown limpio

    async def _safe_send(
        self, ws: WebSocket, payload: str, disconnected: list[WebSocket]
    ) -> None:
        """Enviar con timeout; si falla, marcar el cliente para limpieza."""
        try:
            await asyncio.wait_for(ws.send_text(payload), timeout=SEND_TIMEOUT)
            self._sent += 1
        except (WebSocketDisconnect, asyncio.TimeoutError, RuntimeError, OSError) as exc:
            logger.debug("Cliente WS descartado: %s", exc)
            disconnected.append(ws)

    @property
    def client_count(self) -> int:
        return len(self._clients)
