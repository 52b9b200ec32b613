"""
Candlefeed – Application Layer
================================
Capa de casos de uso y orquestación.

Este módulo contiene:
- use_cases/: Historical Loader (fallback en cascada)
- services/: Connection Supervisor y Market Feed Service
- ports/: Interfaces hacia infraestructura
- dto/: Data Transfer Objects

REGLA DE DEPENDENCIA:
Esta capa puede importar de:
- domain/ (entidades, servicios, eventos)
- ports/ propios (interfaces hacia infra)

NO puede importar de:
- infrastructure/ (implementaciones concretas)
- presentation/ (API)
"""

from candlefeed.application.use_cases.load_history_usecase import (
    HistoryResult,
    LoadHistoryUseCase,
)
from candlefeed.application.services.connection_supervisor import ConnectionSupervisor
from candlefeed.application.services.market_feed_service import (
    MarketFeedService,
    MarketSubscription,
)

__all__ = [
    "HistoryResult",
    "LoadHistoryUseCase",
    "ConnectionSupervisor",
    "MarketFeedService",
    "MarketSubscription",
]
