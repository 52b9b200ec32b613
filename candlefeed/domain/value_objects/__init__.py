"""Domain value objects."""
from candlefeed.domain.value_objects.tick import Tick
from candlefeed.domain.value_objects.connection_state import ConnectionState
from candlefeed.domain.value_objects.granularity import (
    GRANULARITY_SECONDS,
    align_to_interval,
    granularity_to_seconds,
)

__all__ = [
    "Tick",
    "ConnectionState",
    "GRANULARITY_SECONDS",
    "align_to_interval",
    "granularity_to_seconds",
]
