"""
Domain services.

Servicios puros de dominio (sin I/O):
- candle_normalizer: registros crudos → serie canónica
- synthetic_price_generator: velas y ticks sintéticos sembrados
- live_feed_reconciler: fusión tick → vela en curso / roll-over
"""
from candlefeed.domain.services.candle_normalizer import (
    normalize,
    normalize_price_points,
    resolve_timestamp,
    validate_series,
)
from candlefeed.domain.services.synthetic_price_generator import (
    SimulatedTickState,
    SyntheticPriceGenerator,
)
from candlefeed.domain.services.live_feed_reconciler import (
    CandleDelta,
    LiveFeedReconciler,
    apply_tick,
)

__all__ = [
    "normalize",
    "normalize_price_points",
    "resolve_timestamp",
    "validate_series",
    "SimulatedTickState",
    "SyntheticPriceGenerator",
    "CandleDelta",
    "LiveFeedReconciler",
    "apply_tick",
]
