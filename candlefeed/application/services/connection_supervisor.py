"""
Candlefeed – Connection Supervisor
===================================
Dueño ÚNICO de la fuente de ticks de una suscripción: el stream en vivo
o el timer de simulación. Nunca hay dos fuentes activas a la vez.

MÁQUINA DE ESTADOS:
  start()                         → connecting
  connecting + primer mensaje     → live
  connecting + error/timeout/fin  → simulated   (nunca pasa por live)
  live + cierre/error del socket  → disconnected
  disconnected + espera (3s)      → simulated
  simulated + reconnect()         → connecting
  destino inválido (símbolo/URI)  → error       (solo reconnect() sale)

TEARDOWN:
  stop() apaga el flag de vida ANTES de cancelar tareas; cada mutación
  de estado y cada emisión lo verifica, así ningún callback se dispara
  después del teardown.
"""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import random
import time
from typing import AsyncIterator, Awaitable, Callable, Optional

from candlefeed.application.ports.market_data_provider import ILiveFeed
from candlefeed.domain.exceptions.domain_errors import SetupFailureError
from candlefeed.domain.services.synthetic_price_generator import (
    SimulatedTickState,
    SyntheticPriceGenerator,
)
from candlefeed.domain.value_objects.connection_state import ConnectionState
from candlefeed.domain.value_objects.tick import Tick
from candlefeed.shared.config.settings import Settings
from candlefeed.shared.logging.logger import get_logger

logger = get_logger("connection_supervisor")

TickCallback = Callable[[Tick, bool], Awaitable[None]]
StateCallback = Callable[[ConnectionState, ConnectionState], Awaitable[None]]


async def _first_tick(ticks: AsyncIterator[Tick]) -> Optional[Tick]:
    async for tick in ticks:
        return tick
    return None


class ConnectionSupervisor:
    """
    Supervisa la conexión en vivo de un símbolo y cae a simulación.

    Callbacks:
        on_tick(tick, simulated): cada tick entregado, en orden
        on_state_change(previous, current): cada transición
    """

    def __init__(
        self,
        live_feed: ILiveFeed,
        generator: SyntheticPriceGenerator,
        settings: Settings,
        on_tick: TickCallback,
        on_state_change: Optional[StateCallback] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._live_feed = live_feed
        self._generator = generator
        self._on_tick = on_tick
        self._on_state_change = on_state_change
        self._clock = clock

        self._connect_timeout = settings.live_connect_timeout
        self._fallback_delay = settings.disconnected_fallback_delay
        self._tick_interval = settings.simulation_tick_interval
        self._auto_retry = settings.live_auto_retry
        self._base_delay = settings.ws_reconnect_base_delay
        self._max_delay = settings.ws_reconnect_max_delay
        self._seed = settings.synthetic_seed
        # Jitter sembrado: sin aleatoriedad ambiental
        self._rng = random.Random(settings.synthetic_seed)

        self._state = ConnectionState.DISCONNECTED
        self._running = False
        self._symbol: Optional[str] = None
        self._last_price: Optional[float] = None
        self._tick_state: Optional[SimulatedTickState] = None

        # Tareas: stream en vivo, timer de simulación, timer pendiente
        self._live_task: Optional[asyncio.Task] = None
        self._sim_task: Optional[asyncio.Task] = None
        self._timer_task: Optional[asyncio.Task] = None

        # Estadísticas de monitoreo
        self._reconnect_attempt: int = 0
        self._live_ticks: int = 0
        self._simulated_ticks: int = 0
        self._last_tick_time: float = 0.0

    # ════════════════════════════════════════════════════════════════
    #  API pública
    # ════════════════════════════════════════════════════════════════

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def running(self) -> bool:
        return self._running

    @property
    def last_price(self) -> Optional[float]:
        return self._last_price

    async def start(self, symbol: str, anchor_price: float) -> None:
        """Arranca la supervisión de `symbol`; `anchor_price` ancla la simulación."""
        if self._running:
            await self.stop()

        self._running = True
        self._symbol = symbol.strip().upper()
        self._last_price = anchor_price
        self._tick_state = None
        self._reconnect_attempt = 0
        logger.info("Supervisor iniciado para %s (ancla %.2f)", self._symbol, anchor_price)
        await self._launch_live()

    async def reconnect(self) -> None:
        """Tear-down de la fuente actual y nuevo intento en vivo."""
        if not self._running:
            logger.warning("reconnect() ignorado: supervisor detenido")
            return
        await self._cancel_tasks()
        logger.info("Reconexión solicitada para %s", self._symbol)
        await self._launch_live()

    async def stop(self) -> None:
        """Detiene todo; ningún callback se dispara después de esto."""
        self._running = False
        await self._cancel_tasks()
        self._state = ConnectionState.DISCONNECTED
        logger.info("Supervisor detenido (%s)", self._symbol)

    # ════════════════════════════════════════════════════════════════
    #  Estado y emisión (protegidos por el flag de vida)
    # ════════════════════════════════════════════════════════════════

    async def _set_state(self, new_state: ConnectionState) -> None:
        if not self._running or new_state == self._state:
            return
        previous, self._state = self._state, new_state
        logger.info("Conexión %s: %s → %s", self._symbol, previous.value, new_state.value)
        if self._on_state_change is not None:
            try:
                await self._on_state_change(previous, new_state)
            except Exception:
                logger.exception("Error en callback de cambio de estado")

    async def _emit(self, tick: Tick, simulated: bool) -> None:
        if not self._running:
            return
        self._last_price = tick.price
        self._last_tick_time = self._clock()
        if simulated:
            self._simulated_ticks += 1
        else:
            self._live_ticks += 1
        try:
            await self._on_tick(tick, simulated)
        except Exception:
            logger.exception("Error en callback de tick")

    # ════════════════════════════════════════════════════════════════
    #  Gestión de tareas
    # ════════════════════════════════════════════════════════════════

    async def _cancel_tasks(self) -> None:
        """Cancela todas las tareas salvo la que está ejecutando esta llamada."""
        current = asyncio.current_task()
        pending = []
        for attr in ("_live_task", "_sim_task", "_timer_task"):
            task: Optional[asyncio.Task] = getattr(self, attr)
            setattr(self, attr, None)
            if task is None or task is current or task.done():
                continue
            task.cancel()
            pending.append(task)
        for task in pending:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _launch_live(self) -> None:
        await self._set_state(ConnectionState.CONNECTING)
        self._live_task = asyncio.create_task(self._run_live(self._symbol))

    # ════════════════════════════════════════════════════════════════
    #  Fuente en vivo
    # ════════════════════════════════════════════════════════════════

    async def _run_live(self, symbol: str) -> None:
        went_live = False
        reason = "stream cerrado por el servidor"
        try:
            async with contextlib.aclosing(self._live_feed.stream(symbol)) as ticks:
                # ── CASO 1: esperar el primer mensaje con timeout ──
                try:
                    first = await asyncio.wait_for(_first_tick(ticks), timeout=self._connect_timeout)
                except asyncio.TimeoutError:
                    first = None
                    reason = f"sin mensajes tras {self._connect_timeout:.1f}s"
                else:
                    if first is None:
                        reason = "stream terminó antes del primer mensaje"

                # ── CASO 2: conexión establecida ──
                if first is not None:
                    went_live = True
                    self._reconnect_attempt = 0
                    await self._set_state(ConnectionState.LIVE)
                    await self._emit(first, simulated=False)
                    async for tick in ticks:
                        await self._emit(tick, simulated=False)
        except SetupFailureError as exc:
            logger.error("Fallo de configuración de la suscripción: %s", exc)
            await self._set_state(ConnectionState.ERROR)
            return
        except Exception as exc:
            reason = str(exc)

        if not self._running:
            return

        # El stream ya está cerrado: recién ahora puede arrancar otra fuente
        if not went_live:
            logger.warning("Conexión en vivo de %s falló: %s", symbol, reason)
            await self._enter_simulation()
            return

        # ── CASO 3: se perdió una conexión que estaba en vivo ──
        logger.warning("Conexión en vivo de %s perdida: %s", symbol, reason)
        await self._set_state(ConnectionState.DISCONNECTED)
        self._timer_task = asyncio.create_task(self._fallback_after_delay())

    async def _fallback_after_delay(self) -> None:
        await asyncio.sleep(self._fallback_delay)
        if self._running and self._state == ConnectionState.DISCONNECTED:
            await self._enter_simulation()

    # ════════════════════════════════════════════════════════════════
    #  Fuente simulada
    # ════════════════════════════════════════════════════════════════

    async def _enter_simulation(self) -> None:
        if not self._running:
            return
        # Una sola fuente activa: cerrar stream y timers pendientes
        await self._cancel_tasks()

        anchor = self._last_price
        if self._tick_state is None:
            self._tick_state = self._generator.initial_tick_state(anchor, self._seed)
        else:
            self._tick_state = dataclasses.replace(self._tick_state, price=anchor)

        await self._set_state(ConnectionState.SIMULATED)
        self._sim_task = asyncio.create_task(self._run_simulation())
        if self._auto_retry:
            self._timer_task = asyncio.create_task(self._retry_after_backoff())

    async def _run_simulation(self) -> None:
        while self._running:
            await asyncio.sleep(self._tick_interval)
            if not self._running or self._tick_state is None:
                return
            price, self._tick_state = self._generator.next_tick(self._tick_state)
            tick = Tick(symbol=self._symbol, price=price, received_at=self._clock())
            await self._emit(tick, simulated=True)

    async def _retry_after_backoff(self) -> None:
        """Reintento automático con backoff exponencial + jitter."""
        delay = min(self._base_delay * (2 ** self._reconnect_attempt), self._max_delay)
        jitter = self._rng.uniform(0, delay * 0.1)
        self._reconnect_attempt += 1

        logger.info(
            "Reintentando en vivo en %.2fs (intento %d)", delay + jitter, self._reconnect_attempt
        )
        await asyncio.sleep(delay + jitter)
        if self._running and self._state == ConnectionState.SIMULATED:
            await self.reconnect()

    # ════════════════════════════════════════════════════════════════
    #  Stats
    # ════════════════════════════════════════════════════════════════

    @property
    def stats(self) -> dict:
        return {
            "symbol": self._symbol,
            "state": self._state.value,
            "running": self._running,
            "live_ticks": self._live_ticks,
            "simulated_ticks": self._simulated_ticks,
            "reconnect_attempts": self._reconnect_attempt,
            "last_tick_age_sec": (
                self._clock() - self._last_tick_time if self._last_tick_time else None
            ),
        }
