"""
Candlefeed – Logging configuration
====================================
Una línea por evento, con el componente como namespace
(candlefeed.<componente>). Se configura una vez en el lifespan de main.py.

Todos los módulos obtienen su logger con:
    from candlefeed.shared.logging.logger import get_logger
    logger = get_logger("connection_supervisor")
"""

from __future__ import annotations

import logging
import sys

ROOT_NAMESPACE = "candlefeed"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-30s | %(message)s"
DEBUG_FORMAT = "%(asctime)s.%(msecs)03d | %(levelname)-8s | %(name)-30s | %(funcName)s:%(lineno)d | %(message)s"

# Librerías que loguean cada frame / request
NOISY_LOGGERS = ("websockets", "httpx", "httpcore", "uvicorn.access")


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(level: int | str = logging.INFO) -> None:
    """Configura el root logger una sola vez al arranque.

    Acepta el nivel como int o como nombre ("debug", "INFO", ...), que es
    como llega desde Settings.log_level. En DEBUG el formato incluye
    función y línea, útil para seguir las transiciones del supervisor.
    """
    numeric = _resolve_level(level)
    fmt = DEBUG_FORMAT if numeric <= logging.DEBUG else LOG_FORMAT

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(fmt, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(handler)
    root.setLevel(numeric)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT_NAMESPACE}.{name}")
