"""
Candlefeed – Settings (Pydantic BaseSettings)
=============================================
Configuración centralizada cargada desde variables de entorno / .env.
Se usa pydantic-settings para validación estricta al arranque.

Los componentes reciben una instancia de Settings por inyección; la
instancia de módulo `settings` solo la usa el entry point (main.py).
"""

from __future__ import annotations

from typing import Dict

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ─── Fuentes upstream ───────────────────────────────────────────────
    binance_rest_url: str = Field(
        default="https://api.binance.com/api/v3",
        description="API REST pública de Binance (klines + ticker 24h)",
    )
    binance_ws_url: str = Field(
        default="wss://stream.binance.com:9443/ws",
        description="Endpoint WebSocket de streams de Binance",
    )
    coingecko_url: str = Field(
        default="https://api.coingecko.com/api/v3",
        description="API pública de CoinGecko (fuente secundaria)",
    )
    coingecko_asset_ids: Dict[str, str] = Field(
        default={"BTCUSDT": "bitcoin", "ETHUSDT": "ethereum", "SOLUSDT": "solana"},
        description="Par de trading → id genérico de activo en CoinGecko",
    )
    http_timeout: float = Field(
        default=10.0, description="Timeout (seg) de cada request HTTP",
    )

    # ─── Suscripción por defecto ────────────────────────────────────────
    default_symbol: str = Field(default="BTCUSDT", description="Par suscrito al arrancar")
    default_granularity: str = Field(default="1h", description="Intervalo de vela por defecto")

    # ─── Historical Loader ──────────────────────────────────────────────
    history_limit: int = Field(
        default=100, description="Cantidad de velas históricas a cargar",
    )
    history_strategy_timeout: float = Field(
        default=10.0, description="Timeout (seg) de cada estrategia de carga",
    )
    default_anchor_price: float = Field(
        default=112_000.0, description="Precio ancla de último recurso para datos sintéticos",
    )

    # ─── Generador sintético ────────────────────────────────────────────
    synthetic_seed: int = Field(default=42, description="Semilla del generador sintético")
    synthetic_volatility: float = Field(
        default=0.015, description="Amplitud máxima del término aleatorio por paso",
    )
    synthetic_drift: float = Field(
        default=0.003, description="Sesgo alcista máximo por paso (tendencia hacia el ancla)",
    )
    synthetic_spread: float = Field(
        default=0.01, description="Spread máximo de high/low sobre max/min(open, close)",
    )
    synthetic_price_floor: float = Field(
        default=1000.0, description="Precio mínimo generado",
    )
    synthetic_tick_volatility: float = Field(
        default=0.003, description="Volatilidad por tick en modo simulado",
    )

    # ─── Connection Supervisor ──────────────────────────────────────────
    live_connect_timeout: float = Field(
        default=10.0, description="Tiempo máximo (seg) hasta el primer mensaje en vivo",
    )
    disconnected_fallback_delay: float = Field(
        default=3.0, description="Espera (seg) en 'disconnected' antes de simular",
    )
    simulation_tick_interval: float = Field(
        default=1.0, description="Periodo (seg) del timer de ticks simulados",
    )
    live_auto_retry: bool = Field(
        default=False, description="Reintentar la conexión en vivo desde 'simulated'",
    )
    ws_reconnect_base_delay: float = Field(
        default=1.0, description="Delay base (seg) para backoff exponencial",
    )
    ws_reconnect_max_delay: float = Field(
        default=60.0, description="Delay máximo (seg) entre reconexiones",
    )
    ws_ping_interval: float = Field(
        default=20.0, description="Intervalo (seg) de ping del WebSocket en vivo",
    )

    # ─── Live Feed Reconciler ───────────────────────────────────────────
    backfill_gaps: bool = Field(
        default=False, description="Rellenar intervalos saltados con velas planas",
    )

    # ─── Event Bus ──────────────────────────────────────────────────────
    event_bus_max_queue_size: int = Field(
        default=10_000,
        description="Tamaño máximo de cola del Event Bus para contrapresión",
    )

    # ─── Server ─────────────────────────────────────────────────────────
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8888)
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO", description="Nivel del root logger")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


# Instancia por defecto – solo para el entry point
settings = Settings()
