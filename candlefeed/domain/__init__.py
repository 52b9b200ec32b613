"""
Candlefeed – Domain Layer
===========================
Núcleo puro del sistema. Sin I/O ni frameworks externos.

Este módulo contiene:
- entities/: Candle
- value_objects/: Tick, ConnectionState, granularidad
- services/: normalizador, generador sintético, reconciliador
- events/: eventos de dominio
- exceptions/: excepciones de dominio

REGLA DE DEPENDENCIA:
Este módulo NO puede importar de:
- infrastructure/
- presentation/
- application/
"""

from candlefeed.domain.exceptions.domain_errors import DomainError
from candlefeed.domain.entities.candle import Candle
from candlefeed.domain.value_objects.tick import Tick
from candlefeed.domain.value_objects.connection_state import ConnectionState

__all__ = [
    "DomainError",
    "Candle",
    "Tick",
    "ConnectionState",
]
