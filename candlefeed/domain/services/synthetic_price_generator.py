"""
Candlefeed – Synthetic Price Generator
========================================
Genera velas e ticks plausibles cuando ninguna fuente real responde.

VELAS (generate):
  - Paseo aleatorio: close[i] = close[i-1] * (1 + drift_i + random_i)
    con random_i ∈ [-vol/2, vol/2] y drift_i = drift * i / count
    (sesgo alcista suave: la serie "sube" hacia el ancla).
  - El paseo se escala para que el último cierre sea el ancla.
  - high/low = max/min(open, close) * (1 ± u * spread).
  - Redondeo a 2 decimales y piso positivo (price_floor).
  - Tiempos: count puntos hacia atrás desde `now` a cadencia fija; si dos
    caen en el mismo slot, el que colisiona retrocede un slot.

TICKS (next_tick):
  - Misma regla de paseo acotado sobre un precio corriente, sin drift.
  - Función pura: el estado (precio + estado del RNG) viaja en
    SimulatedTickState, así el supervisor no guarda aleatoriedad ambiente.

DETERMINISMO:
  - Un único random.Random sembrado por llamada. Mismos argumentos →
    misma salida.
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass
from typing import List, Optional, Tuple

from candlefeed.domain.entities.candle import Candle
from candlefeed.domain.value_objects.granularity import align_to_interval
from candlefeed.shared.logging.logger import get_logger

logger = get_logger("synthetic_generator")

# Tope duro del cambio por paso (±2%)
MAX_STEP_CHANGE = 0.02
# Ruido extra del modo tick (±0.05%)
_TICK_NOISE = 0.001


@dataclass(frozen=True)
class SimulatedTickState:
    """Estado del modo tick: precio corriente + estado serializado del RNG."""

    price: float
    rng_state: tuple
    floor: float = 0.01
    step: int = 0


class SyntheticPriceGenerator:
    """
    Generador sembrado de series OHLC y ticks sintéticos.

    Uso:
        gen = SyntheticPriceGenerator()
        candles = gen.generate(65_000.0, 100, seed=42)
        state = gen.initial_tick_state(65_000.0, seed=42)
        price, state = gen.next_tick(state)
    """

    def __init__(
        self,
        volatility: float = 0.015,
        drift: float = 0.003,
        spread: float = 0.01,
        price_floor: float = 1000.0,
        tick_volatility: float = 0.003,
        cadence_seconds: int = 3600,
        slot_seconds: Optional[int] = None,
    ) -> None:
        self._volatility = volatility
        self._drift = drift
        self._spread = spread
        self._price_floor = price_floor
        self._tick_volatility = tick_volatility
        self._cadence = cadence_seconds
        self._slot = slot_seconds or cadence_seconds

    # ──────────────────────── Helpers ───────────────────────────────────

    def _floor_for(self, anchor_price: float) -> float:
        # Con anclas bajas el piso baja a la mitad del ancla
        return min(self._price_floor, anchor_price * 0.5)

    @staticmethod
    def _bounded(change: float) -> float:
        return max(-MAX_STEP_CHANGE, min(MAX_STEP_CHANGE, change))

    def _finish(self, value: float, floor: float) -> float:
        return max(round(value, 2), floor)

    def _timestamps(self, count: int, now: float, cadence: int, slot_size: int) -> List[int]:
        """Slots únicos, de más reciente a más antiguo, sin colisiones."""
        used: set[int] = set()
        times: List[int] = []
        for k in range(count):
            slot = align_to_interval(now - k * cadence, slot_size)
            while slot in used:
                slot -= slot_size
            # Mantener orden estrictamente decreciente
            if times and slot >= times[-1]:
                slot = times[-1] - slot_size
            used.add(slot)
            times.append(slot)
        times.reverse()
        return times

    # ──────────────────────── Velas ─────────────────────────────────────

    def generate(
        self,
        anchor_price: float,
        count: int,
        seed: int,
        now: Optional[float] = None,
        cadence_seconds: Optional[int] = None,
    ) -> List[Candle]:
        """
        Generar `count` velas que terminan aproximadamente en `anchor_price`.

        Args:
            anchor_price: precio de referencia (> 0) del último cierre
            count: cantidad de velas (> 0)
            seed: semilla del RNG
            now: instante de la vela más reciente (default: time.time())
            cadence_seconds: separación entre velas (default: la del generador)

        Returns:
            Velas ordenadas por open_time ASC (longitud ≤ count).
        """
        if anchor_price <= 0:
            raise ValueError(f"anchor_price debe ser > 0 (recibido {anchor_price})")
        if count <= 0:
            raise ValueError(f"count debe ser > 0 (recibido {count})")

        rng = random.Random(seed)
        floor = self._floor_for(anchor_price)

        # Paseo relativo: path[0] es el open del primer candle
        path = [1.0]
        for i in range(count):
            drift_term = self._drift * (i / count)
            random_term = (rng.random() - 0.5) * self._volatility
            path.append(path[-1] * (1 + self._bounded(drift_term + random_term)))

        scale = anchor_price / path[-1]
        cadence = cadence_seconds or self._cadence
        slot_size = self._slot if cadence_seconds is None else cadence_seconds
        times = self._timestamps(count, time.time() if now is None else now, cadence, slot_size)

        candles: List[Candle] = []
        for i in range(count):
            open_ = path[i] * scale
            close = path[i + 1] * scale
            high = max(open_, close) * (1 + rng.random() * self._spread)
            low = min(open_, close) * (1 - rng.random() * self._spread)
            volume = float(rng.randrange(100, 1100))

            candle = Candle(
                open_time=times[i],
                open=self._finish(open_, floor),
                high=self._finish(high, floor),
                low=self._finish(low, floor),
                close=self._finish(close, floor),
                volume=volume,
            )
            if not candle.is_consistent:
                logger.error("Vela sintética inválida descartada: %s", candle)
                continue
            candles.append(candle)

        logger.info(
            "Generadas %d velas sintéticas (ancla=%.2f, seed=%d, rango=%.2f–%.2f)",
            len(candles),
            anchor_price,
            seed,
            min((c.low for c in candles), default=0.0),
            max((c.high for c in candles), default=0.0),
        )
        return candles

    # ──────────────────────── Ticks ─────────────────────────────────────

    def initial_tick_state(self, anchor_price: float, seed: int) -> SimulatedTickState:
        """Estado inicial del modo tick anclado en `anchor_price`."""
        if anchor_price <= 0:
            raise ValueError(f"anchor_price debe ser > 0 (recibido {anchor_price})")
        return SimulatedTickState(
            price=anchor_price,
            rng_state=random.Random(seed).getstate(),
            floor=self._floor_for(anchor_price),
        )

    def next_tick(self, state: SimulatedTickState) -> Tuple[float, SimulatedTickState]:
        """Aplicar un paso del paseo acotado. Función pura sobre `state`."""
        rng = random.Random()
        rng.setstate(state.rng_state)

        trend = (rng.random() - 0.5) * 2 * self._tick_volatility
        noise = (rng.random() - 0.5) * _TICK_NOISE
        raw = state.price * (1 + self._bounded(trend + noise))
        price = self._finish(raw, state.floor)

        return price, SimulatedTickState(
            price=price,
            rng_state=rng.getstate(),
            floor=state.floor,
            step=state.step + 1,
        )
