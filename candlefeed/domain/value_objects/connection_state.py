"""
Candlefeed – Domain Value Object: ConnectionState
===================================================
Estado observable de la fuente de ticks de una suscripción.
Solo el ConnectionSupervisor lo modifica.
"""

from __future__ import annotations

from enum import Enum


class ConnectionState(str, Enum):
    """Estados posibles de la conexión en vivo."""
    CONNECTING = "connecting"      # abriendo socket, sin mensajes aún
    LIVE = "live"                  # ticks reales del upstream
    SIMULATED = "simulated"        # ticks del generador sintético
    DISCONNECTED = "disconnected"  # socket cerrado tras haber estado live
    ERROR = "error"                # fallo de setup, requiere reconnect()
