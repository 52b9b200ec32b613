"""
Candlefeed – Domain Value Object: Granularity
===============================================
Conversión de intervalos textuales ("1m", "1h", ...) a segundos.

Los nombres coinciden con los intervalos de klines de Binance, así el
mismo string viaja sin traducción hasta la fuente primaria.
"""

from __future__ import annotations

import math
from typing import Dict

from candlefeed.domain.exceptions.domain_errors import SetupFailureError

# Mapeo de nombre de intervalo a segundos
GRANULARITY_SECONDS: Dict[str, int] = {
    "1m": 60,
    "3m": 180,
    "5m": 300,
    "15m": 900,
    "30m": 1800,
    "1h": 3600,
    "2h": 7200,
    "4h": 14400,
    "6h": 21600,
    "8h": 28800,
    "12h": 43200,
    "1d": 86400,
    "3d": 259200,
    "1w": 604800,
}


def granularity_to_seconds(granularity: str) -> int:
    """Segundos de un intervalo; SetupFailureError si no es soportado."""
    try:
        return GRANULARITY_SECONDS[granularity]
    except KeyError:
        raise SetupFailureError(
            f"Granularidad no soportada: {granularity!r}",
            target=granularity,
        ) from None


def align_to_interval(epoch: float, interval_seconds: int) -> int:
    """Alinear un timestamp al inicio de su intervalo."""
    return int(math.floor(epoch / interval_seconds) * interval_seconds)
