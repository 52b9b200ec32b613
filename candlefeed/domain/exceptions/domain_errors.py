"""
Candlefeed – Domain Exceptions
================================
Taxonomía de errores del agregador.

Ninguno de estos errores llega al consumidor como fallo duro: los de
calidad de datos se recuperan (síntesis o descarte), los de
disponibilidad con fallback en cascada, y los de conexión degradando
el ConnectionState.

JERARQUÍA:
    DomainError (base)
    ├── InvalidRecordError      → lote histórico rechazado
    ├── InvalidTimestampError   → timestamp sintetizado
    ├── InvalidTickError        → tick descartado
    ├── SourceUnavailableError  → siguiente estrategia de carga
    ├── ConnectionLostError     → disconnected / simulated
    └── SetupFailureError       → error hasta reconnect()
"""

from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Excepción base para errores de dominio."""

    def __init__(self, message: str, code: str = "DOMAIN_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "error": self.code,
            "message": self.message,
        }


class InvalidRecordError(DomainError):
    """Registro con un OHLC no finito o no positivo tras el parseo."""

    def __init__(self, message: str, record: Any = None, field: str | None = None):
        super().__init__(message, code="INVALID_RECORD")
        self.record = record
        self.field = field


class InvalidTimestampError(DomainError):
    """Timestamp que no se puede resolver a un instante válido."""

    def __init__(self, message: str, value: Any = None):
        super().__init__(message, code="INVALID_TIMESTAMP")
        self.value = value


class InvalidTickError(DomainError):
    """Tick con precio no positivo o no finito."""

    def __init__(self, message: str, price: Any = None):
        super().__init__(message, code="INVALID_TICK")
        self.price = price


class SourceUnavailableError(DomainError):
    """Fuente remota caída, respuesta no-2xx, vacía o malformada."""

    def __init__(self, message: str, source: str | None = None):
        super().__init__(message, code="SOURCE_UNAVAILABLE")
        self.source = source


class ConnectionLostError(DomainError):
    """El stream en vivo se cortó o no pudo abrirse."""

    def __init__(self, message: str, symbol: str | None = None):
        super().__init__(message, code="CONNECTION_LOST")
        self.symbol = symbol


class SetupFailureError(DomainError):
    """Fallo irrecuperable de setup (e.g. destino de suscripción malformado)."""

    def __init__(self, message: str, target: str | None = None):
        super().__init__(message, code="SETUP_FAILURE")
        self.target = target
