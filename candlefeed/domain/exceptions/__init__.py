"""Domain exceptions."""
from candlefeed.domain.exceptions.domain_errors import (
    DomainError,
    InvalidRecordError,
    InvalidTimestampError,
    InvalidTickError,
    SourceUnavailableError,
    ConnectionLostError,
    SetupFailureError,
)

__all__ = [
    "DomainError",
    "InvalidRecordError",
    "InvalidTimestampError",
    "InvalidTickError",
    "SourceUnavailableError",
    "ConnectionLostError",
    "SetupFailureError",
]
