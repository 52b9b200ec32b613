"""
Candlefeed – Presentation Layer
=================================
API HTTP y WebSocket.

Este módulo contiene:
- api/: FastAPI routes
- websocket/: broadcast de eventos a clientes

REGLA DE DEPENDENCIA:
Esta capa solo habla con el Market Feed Service a través del Container.
"""

from candlefeed.presentation.api.routes import router
from candlefeed.presentation.websocket.websocket_manager import WebSocketManager

__all__ = [
    "router",
    "WebSocketManager",
]
