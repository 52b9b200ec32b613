"""
Candlefeed – API Routes (FastAPI)
===================================
Endpoints REST y WebSocket sobre la suscripción activa.

Endpoints disponibles:
  WS   /ws/market       → snapshot inicial + candle / tick / connection_state
  GET  /api/health      → health check
  GET  /api/status      → estado de la suscripción, supervisor y bus
  GET  /api/candles     → últimas N velas de la serie viva
  POST /api/reconnect   → forzar reintento en vivo
  POST /api/subscribe   → cambiar de símbolo / granularidad

Las dependencias se leen de app.state.container (construido en el
lifespan de main.py); no hay estado global en este módulo.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field

from candlefeed.domain.exceptions.domain_errors import SetupFailureError
from candlefeed.domain.value_objects.granularity import GRANULARITY_SECONDS
from candlefeed.shared.logging.logger import get_logger

logger = get_logger("api.routes")

router = APIRouter()

MAX_CANDLES_RESPONSE = 1000


class SubscribeRequest(BaseModel):
    """Body para cambiar la suscripción activa."""
    symbol: str = Field(min_length=1, max_length=20)
    granularity: Optional[str] = None


def _container(request: Request):
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise HTTPException(status_code=503, detail="Server not ready")
    return container


# ─── WebSocket endpoint para streaming a frontend ─────────────────────

@router.websocket("/ws/market")
async def market_stream(websocket: WebSocket) -> None:
    """
    El cliente recibe un snapshot al conectar y después los eventos de
    la suscripción. El broadcast lo maneja WebSocketManager; este handler
    solo gestiona el ciclo de vida de la conexión.
    """
    container = getattr(websocket.app.state, "container", None)
    if container is None:
        await websocket.close(code=1011, reason="Server not ready")
        return

    ws_manager = container.ws_manager
    await ws_manager.connect(websocket)
    try:
        subscription = container.market_feed.current
        if subscription is not None:
            await ws_manager.send_snapshot(websocket, subscription.snapshot().to_dict())
        while True:
            data = await websocket.receive_text()
            logger.debug("Mensaje de cliente WS: %s", data[:100])
    except WebSocketDisconnect:
        pass
    finally:
        ws_manager.disconnect(websocket)


# ─── REST endpoints ────────────────────────────────────────────────────

@router.get("/api/health")
async def health_check() -> dict:
    """Health check para monitoreo."""
    return {"status": "ok", "service": "candlefeed"}


@router.get("/api/status")
async def system_status(request: Request) -> dict:
    """Estado de la suscripción activa, supervisor, live feed y bus."""
    container = _container(request)
    subscription = container.market_feed.current
    return {
        "subscription": subscription.snapshot().to_dict(include_series=False) if subscription else None,
        "stats": subscription.stats if subscription else {},
        "live_feed": getattr(container.live_feed, "stats", {}),
        "event_bus": container.event_bus.stats,
        "ws_clients": container.ws_manager.client_count,
    }


@router.get("/api/candles")
async def get_candles(
    request: Request,
    count: int = Query(default=100, ge=1, le=MAX_CANDLES_RESPONSE),
) -> dict:
    """Últimas N velas de la serie viva."""
    subscription = _container(request).market_feed.current
    if subscription is None:
        return {"error": "Sin suscripción activa", "candles": []}

    snapshot = subscription.snapshot()
    candles = snapshot.series[-count:]
    return {
        "symbol": snapshot.symbol,
        "granularity": snapshot.granularity,
        "source": snapshot.history_source,
        "connection_state": snapshot.connection_state.value,
        "count": len(candles),
        "candles": [c.to_dict() for c in candles],
    }


@router.post("/api/reconnect")
async def reconnect(request: Request) -> dict:
    """Forzar un nuevo intento de conexión en vivo."""
    market_feed = _container(request).market_feed
    if market_feed.current is None:
        raise HTTPException(status_code=409, detail="Sin suscripción activa")

    await market_feed.reconnect()
    return {"connection_state": market_feed.current.connection_state.value}


@router.post("/api/subscribe")
async def subscribe(request: Request, body: SubscribeRequest) -> dict:
    """Cambiar la suscripción activa (cierra la anterior)."""
    market_feed = _container(request).market_feed
    try:
        subscription = await market_feed.subscribe(body.symbol, body.granularity)
    except SetupFailureError as exc:
        raise HTTPException(
            status_code=422,
            detail={**exc.to_dict(), "available": list(GRANULARITY_SECONDS)},
        ) from exc

    logger.info("Suscripción cambiada a %s %s", subscription.symbol, subscription.granularity)
    return subscription.snapshot().to_dict(include_series=False)
