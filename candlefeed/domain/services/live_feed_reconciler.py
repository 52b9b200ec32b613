"""
Candlefeed – Live Feed Reconciler
===================================
Fusiona ticks en la vela en curso o abre una nueva en el límite del
intervalo. Es el dueño de la serie durante la vida de la suscripción.

ALGORITMO (por tick):
  1. Serie vacía → primera vela en floor(received_at / intervalo),
     O=H=L=C=precio.
  2. elapsed = received_at - last.open_time
  3. elapsed ≥ intervalo → roll-over: UNA vela nueva en el límite alineado
     ≤ received_at. Los intervalos saltados NO se rellenan salvo que
     `backfill` esté activo (velas planas al cierre anterior).
  4. Si no → la última vela se reemplaza con close=precio y high/low
     extendidos. Nada más cambia.

CÓMO SE EVITA MUTAR SNAPSHOTS:
- Las velas son frozen. La última se REEMPLAZA (dataclasses.replace),
  nunca se modifica in-place, así los snapshots ya entregados no cambian.
- snapshot() devuelve una tupla.

TICKS FUERA DE ORDEN:
- No se reordena nada. Un tick con received_at anterior al último aplicado
  se fusiona en la última vela mientras elapsed < intervalo.

COMPLEJIDAD: O(1) por tick (sin backfill) – sin I/O, sin await.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence

from candlefeed.domain.entities.candle import Candle
from candlefeed.domain.exceptions.domain_errors import InvalidTickError
from candlefeed.domain.value_objects.granularity import align_to_interval
from candlefeed.domain.value_objects.tick import Tick
from candlefeed.shared.logging.logger import get_logger

logger = get_logger("live_feed_reconciler")


@dataclass(frozen=True, slots=True)
class CandleDelta:
    """Resultado de aplicar un tick: la vela creada o actualizada."""

    candle: Candle
    is_new: bool
    backfilled: tuple[Candle, ...] = ()


def _check_tick(tick: Tick) -> None:
    price = tick.price
    if isinstance(price, bool) or not isinstance(price, (int, float)):
        raise InvalidTickError(f"Precio de tick no numérico: {price!r}", price=price)
    if not math.isfinite(price) or price <= 0:
        raise InvalidTickError(f"Precio de tick no positivo o no finito: {price!r}", price=price)


def _flat_candle(open_time: int, price: float) -> Candle:
    return Candle(open_time=open_time, open=price, high=price, low=price, close=price)


def _merge(last: Candle, price: float) -> Candle:
    return replace(
        last,
        close=price,
        high=max(last.high, price),
        low=min(last.low, price),
    )


def _skipped_boundaries(last: Candle, boundary: int, interval_seconds: int) -> List[int]:
    start = align_to_interval(last.open_time, interval_seconds) + interval_seconds
    return [t for t in range(start, boundary, interval_seconds) if t > last.open_time]


def apply_tick(
    series: Sequence[Candle],
    tick: Tick,
    interval_seconds: int,
    backfill: bool = False,
) -> List[Candle]:
    """
    Transición pura: devuelve una serie nueva con el tick aplicado.

    Raises:
        InvalidTickError: precio ≤ 0 o no finito (la serie no se toca).
    """
    _check_tick(tick)
    result = list(series)

    if not result:
        boundary = align_to_interval(tick.received_at, interval_seconds)
        result.append(_flat_candle(boundary, tick.price))
        return result

    last = result[-1]
    elapsed = tick.received_at - last.open_time

    if elapsed >= interval_seconds:
        boundary = align_to_interval(tick.received_at, interval_seconds)
        if backfill:
            result.extend(
                _flat_candle(t, last.close)
                for t in _skipped_boundaries(last, boundary, interval_seconds)
            )
        result.append(_flat_candle(boundary, tick.price))
    else:
        result[-1] = _merge(last, tick.price)
    return result


class LiveFeedReconciler:
    """
    Dueño de la serie de UNA suscripción.

    Uso:
        reconciler = LiveFeedReconciler(interval_seconds=3600)
        reconciler.seed(historical)
        delta = reconciler.apply(tick)
        if delta:
            # delta.candle → renderer (update de un solo punto)
    """

    def __init__(self, interval_seconds: int, backfill: bool = False) -> None:
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds debe ser > 0 (recibido {interval_seconds})")
        self._interval = interval_seconds
        self._backfill = backfill
        self._series: List[Candle] = []

        # Contadores de monitoreo
        self._ticks_applied: int = 0
        self._ticks_rejected: int = 0
        self._rollovers: int = 0

    @property
    def interval_seconds(self) -> int:
        return self._interval

    @property
    def last_candle(self) -> Optional[Candle]:
        return self._series[-1] if self._series else None

    def seed(self, series: Sequence[Candle]) -> None:
        """Poblar la serie inicial (una sola vez, desde el Historical Loader)."""
        self._series = list(series)
        logger.info(
            "Serie inicial cargada: %d velas (intervalo=%ds)", len(self._series), self._interval
        )

    def reset(self) -> None:
        """Descartar la serie (fin de suscripción)."""
        self._series = []

    def apply(self, tick: Tick) -> Optional[CandleDelta]:
        """
        Aplicar un tick. Retorna el delta, o None si el tick fue descartado.

        Operación O(1) – sin I/O, sin bloqueo.
        """
        try:
            _check_tick(tick)
        except InvalidTickError as exc:
            self._ticks_rejected += 1
            logger.warning("Tick descartado (%s): %s", tick.symbol, exc.message)
            return None

        last = self.last_candle

        # ── CASO 1: Serie vacía → primera vela ──
        if last is None:
            candle = _flat_candle(align_to_interval(tick.received_at, self._interval), tick.price)
            self._series.append(candle)
            self._ticks_applied += 1
            return CandleDelta(candle=candle, is_new=True)

        # ── CASO 2: Tick pertenece a la vela actual ──
        if tick.received_at - last.open_time < self._interval:
            candle = _merge(last, tick.price)
            self._series[-1] = candle
            self._ticks_applied += 1
            return CandleDelta(candle=candle, is_new=False)

        # ── CASO 3: Roll-over → abrir vela en el siguiente límite ──
        boundary = align_to_interval(tick.received_at, self._interval)
        backfilled: tuple[Candle, ...] = ()
        if self._backfill:
            backfilled = tuple(
                _flat_candle(t, last.close)
                for t in _skipped_boundaries(last, boundary, self._interval)
            )
            self._series.extend(backfilled)

        candle = _flat_candle(boundary, tick.price)
        self._series.append(candle)
        self._ticks_applied += 1
        self._rollovers += 1

        logger.debug(
            "Roll-over: vela cerrada O=%.2f H=%.2f L=%.2f C=%.2f → nueva en %d (%d backfill)",
            last.open,
            last.high,
            last.low,
            last.close,
            boundary,
            len(backfilled),
        )
        return CandleDelta(candle=candle, is_new=True, backfilled=backfilled)

    def snapshot(self) -> tuple[Candle, ...]:
        """Copia de solo lectura de la serie."""
        return tuple(self._series)

    @property
    def stats(self) -> dict:
        """Estadísticas del reconciliador para monitoreo."""
        return {
            "candles": len(self._series),
            "ticks_applied": self._ticks_applied,
            "ticks_rejected": self._ticks_rejected,
            "rollovers": self._rollovers,
            "interval_seconds": self._interval,
        }
