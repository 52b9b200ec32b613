"""
Candlefeed – Main Application Entry Point
===========================================
Orquesta el agregador de velas: histórico + stream en vivo + simulación.

ARQUITECTURA DE ARRANQUE:
  1. Configurar logging
  2. FastAPI lifespan:
     a. Construir el Container (dueño de todas las dependencias)
     b. Iniciar WebSocketManager (broadcast a frontend)
     c. Suscribir el símbolo por defecto (histórico + supervisor)
  3. Shutdown: cerrar suscripción, broadcast y clientes HTTP

FLUJO DE DATOS:
  Binance REST / CoinGecko / Generador → LoadHistoryUseCase → serie inicial
  Binance WS ─┐
              ├→ ConnectionSupervisor → LiveFeedReconciler → EventBus
  Simulación ─┘                                     → WebSocketManager → Frontend

  uvicorn candlefeed.main:app --host 0.0.0.0 --port 8888
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from candlefeed.container import Container
from candlefeed.presentation.api.routes import router
from candlefeed.shared.config.settings import Settings, settings
from candlefeed.shared.logging.logger import get_logger, setup_logging

logger = get_logger("main")


def create_app(app_settings: Settings = settings) -> FastAPI:
    """Fábrica de la app; los tests pasan su propio Settings."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(app_settings.log_level)
        logger.info("=" * 60)
        logger.info("  Candlefeed - OHLC candle aggregator")
        logger.info("  Símbolo: %s  (granularidad: %s)",
                    app_settings.default_symbol, app_settings.default_granularity)
        logger.info("  Histórico: %d velas, timeout %.1fs por estrategia",
                    app_settings.history_limit, app_settings.history_strategy_timeout)
        logger.info("  Live: %s (timeout conexión %.1fs, auto-retry=%s)",
                    app_settings.binance_ws_url, app_settings.live_connect_timeout,
                    app_settings.live_auto_retry)
        logger.info("=" * 60)

        container = Container(settings=app_settings)
        app.state.container = container

        await container.ws_manager.start()
        await container.market_feed.subscribe(
            app_settings.default_symbol, app_settings.default_granularity
        )
        logger.info("✓ Todos los componentes iniciados correctamente")

        yield  # ← La app está corriendo aquí

        logger.info("Iniciando shutdown...")
        await container.aclose()
        app.state.container = None
        logger.info("✓ Shutdown completo")

    app = FastAPI(
        title="Candlefeed",
        description="Agregador de velas OHLC con histórico en cascada, stream en vivo y simulación",
        version="0.1.0",
        lifespan=lifespan,
    )

    # CORS para frontend local
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


app = create_app()


def run() -> None:
    """Entry point de consola: `candlefeed`."""
    import uvicorn

    uvicorn.run(
        "candlefeed.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
