"""Application use cases - Business logic orchestration."""

from candlefeed.application.use_cases.load_history_usecase import (
    HistoryResult,
    LoadHistoryUseCase,
)

__all__ = [
    "HistoryResult",
    "LoadHistoryUseCase",
]
