"""
Candlefeed – Candle Normalizer
================================
Convierte registros crudos de cualquier fuente en la serie canónica.

ALGORITMO:
  1. Parsear OHLC(V) desde la codificación de la fuente (número o texto,
     dict o array posicional estilo kline).
  2. Resolver el timestamp a segundos enteros (seg / ms / µs por magnitud,
     ISO-8601 o datetime).
  3. Ordenar ascendente por tiempo resuelto.
  4. Descartar duplicados de tiempo: gana la primera aparición.

POLÍTICA DE ERRORES:
- OHLC no finito o no positivo → InvalidRecordError (el lote entero falla,
  el Historical Loader pasa a la siguiente estrategia).
- Timestamp irresoluble → InvalidTimestampError recuperado: se sintetiza
  un tiempo a partir de la posición del registro entre sus vecinos.
- high/low que no envuelven open/close → se ensanchan (reparación local).
"""

from __future__ import annotations

import math
import random
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from candlefeed.domain.entities.candle import Candle
from candlefeed.domain.exceptions.domain_errors import (
    InvalidRecordError,
    InvalidTimestampError,
)
from candlefeed.shared.logging.logger import get_logger

logger = get_logger("candle_normalizer")

# Claves aceptadas para el tiempo de apertura en registros tipo dict
_TIME_KEYS = ("open_time", "openTime", "time", "timestamp", "t")
_PRICE_FIELDS = ("open", "high", "low", "close")

# Umbrales de magnitud para distinguir unidades de epoch
_MICROS_THRESHOLD = 1e14
_MILLIS_THRESHOLD = 1e11

# Spread máximo al sintetizar high/low desde cierres adyacentes
_POINT_SPREAD = 0.02


@dataclass
class _ParsedRecord:
    """Registro intermedio (solo uso interno)."""

    index: int
    open_time: Optional[int]
    open: float
    high: float
    low: float
    close: float
    volume: Optional[float]


def _parse_price(value: Any, field: str, record: Any) -> float:
    if isinstance(value, bool):
        raise InvalidRecordError(f"Campo '{field}' booleano", record=record, field=field)
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise InvalidRecordError(
            f"Campo '{field}' no numérico: {value!r}", record=record, field=field
        ) from None
    if not math.isfinite(price) or price <= 0:
        raise InvalidRecordError(
            f"Campo '{field}' no finito o no positivo: {value!r}", record=record, field=field
        )
    return price


def _parse_volume(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        volume = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(volume) or volume < 0:
        return None
    return volume


def resolve_timestamp(value: Any) -> int:
    """
    Resolver un timestamp a segundos enteros desde epoch.

    Acepta números o strings numéricos en seg/ms/µs, strings ISO-8601 y
    datetime. Lanza InvalidTimestampError si no hay instante válido.
    """
    if isinstance(value, datetime):
        moment = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        return int(moment.timestamp())

    if value is None or isinstance(value, bool):
        raise InvalidTimestampError(f"Timestamp ausente o inválido: {value!r}", value=value)

    number: Optional[float] = None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        try:
            number = float(text)
        except ValueError:
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                raise InvalidTimestampError(
                    f"Timestamp no parseable: {value!r}", value=value
                ) from None
            return resolve_timestamp(parsed)
    else:
        raise InvalidTimestampError(f"Tipo de timestamp no soportado: {type(value).__name__}", value=value)

    if not math.isfinite(number) or number <= 0:
        raise InvalidTimestampError(f"Timestamp fuera de rango: {value!r}", value=value)

    if number >= _MICROS_THRESHOLD:
        number /= 1_000_000
    elif number >= _MILLIS_THRESHOLD:
        number /= 1_000
    return int(number)


def _extract(record: Any) -> tuple[Any, Any, Any, Any, Any, Any]:
    """(time, open, high, low, close, volume) desde dict o array kline."""
    if isinstance(record, Mapping):
        raw_time = next((record[k] for k in _TIME_KEYS if k in record), None)
        try:
            prices = [record[f] for f in _PRICE_FIELDS]
        except KeyError as exc:
            raise InvalidRecordError(
                f"Falta el campo {exc.args[0]!r}", record=record, field=exc.args[0]
            ) from None
        return (raw_time, *prices, record.get("volume"))

    if isinstance(record, Sequence) and not isinstance(record, (str, bytes)):
        if len(record) < 5:
            raise InvalidRecordError(
                f"Array con {len(record)} elementos, se esperaban al menos 5", record=record
            )
        volume = record[5] if len(record) > 5 else None
        return (record[0], record[1], record[2], record[3], record[4], volume)

    raise InvalidRecordError(f"Formato de registro no soportado: {type(record).__name__}", record=record)


def _parse_record(index: int, record: Any) -> _ParsedRecord:
    raw_time, raw_open, raw_high, raw_low, raw_close, raw_volume = _extract(record)

    open_ = _parse_price(raw_open, "open", record)
    high = _parse_price(raw_high, "high", record)
    low = _parse_price(raw_low, "low", record)
    close = _parse_price(raw_close, "close", record)

    if high < max(open_, close) or low > min(open_, close):
        logger.debug(
            "Registro #%d con high/low inconsistentes, ensanchando (O=%s H=%s L=%s C=%s)",
            index, open_, high, low, close,
        )
        high = max(high, open_, close)
        low = min(low, open_, close)

    try:
        open_time: Optional[int] = resolve_timestamp(raw_time)
    except InvalidTimestampError as exc:
        logger.warning("Registro #%d: %s – se sintetizará el timestamp", index, exc.message)
        open_time = None

    return _ParsedRecord(
        index=index,
        open_time=open_time,
        open=open_,
        high=high,
        low=low,
        close=close,
        volume=_parse_volume(raw_volume),
    )


def _synthesize_times(parsed: List[_ParsedRecord], spacing: int, now: float) -> None:
    """
    Asignar tiempo a los registros sin timestamp válido según sus vecinos.

    - Vecinos válidos a ambos lados → interpolación lineal por índice.
    - Solo un lado → extrapolación a `spacing` segundos por posición.
    - Ninguno → now - (n - i) * spacing.
    """
    valid = [(p.index, p.open_time) for p in parsed if p.open_time is not None]
    total = len(parsed)

    for rec in parsed:
        if rec.open_time is not None:
            continue
        prev = next(((i, t) for i, t in reversed(valid) if i < rec.index), None)
        nxt = next(((i, t) for i, t in valid if i > rec.index), None)

        if prev and nxt:
            (pi, pt), (ni, nt) = prev, nxt
            rec.open_time = int(pt + (nt - pt) * (rec.index - pi) / (ni - pi))
        elif prev:
            pi, pt = prev
            rec.open_time = int(pt + (rec.index - pi) * spacing)
        elif nxt:
            ni, nt = nxt
            rec.open_time = int(nt - (ni - rec.index) * spacing)
        else:
            rec.open_time = int(now - (total - rec.index) * spacing)


def normalize(
    raw_records: Iterable[Any],
    fallback_spacing: int = 3600,
    now: Optional[float] = None,
) -> List[Candle]:
    """
    Normalizar un lote crudo a una serie canónica.

    Args:
        raw_records: dicts o arrays kline con OHLC numérico o textual
        fallback_spacing: separación (seg) usada al sintetizar timestamps
        now: reloj de referencia para síntesis sin vecinos (default: time.time())

    Returns:
        Lista de Candle con open_time estrictamente creciente.

    Raises:
        InvalidRecordError: si algún OHLC es no finito o no positivo.
    """
    parsed = [_parse_record(i, record) for i, record in enumerate(raw_records)]
    if not parsed:
        return []

    if any(p.open_time is None for p in parsed):
        _synthesize_times(parsed, fallback_spacing, time.time() if now is None else now)

    # sorted() es estable: ante empate se conserva el orden de entrada
    parsed.sort(key=lambda p: p.open_time)

    series: List[Candle] = []
    seen: set[int] = set()
    for p in parsed:
        if p.open_time in seen:
            continue
        seen.add(p.open_time)
        series.append(
            Candle(
                open_time=p.open_time,
                open=p.open,
                high=p.high,
                low=p.low,
                close=p.close,
                volume=p.volume,
            )
        )

    dropped = len(parsed) - len(series)
    if dropped:
        logger.info("Normalización: %d duplicados descartados", dropped)
    return series


def normalize_price_points(
    points: Iterable[Sequence[Any]],
    seed: int = 0,
    fallback_spacing: int = 86400,
    now: Optional[float] = None,
) -> List[Candle]:
    """
    Construir velas desde puntos [timestamp, precio] sin desglose OHLC.

    open = cierre anterior (el primero usa su propio precio), close = precio,
    high/low = max/min(open, close) ± spread pseudoaleatorio (≤ 2%) con
    semilla fija, todo redondeado a 2 decimales.
    """
    rng = random.Random(seed)
    records: list[dict] = []
    previous: Optional[float] = None

    for point in points:
        if isinstance(point, (str, bytes)) or not isinstance(point, Sequence) or len(point) < 2:
            raise InvalidRecordError(f"Punto de precio malformado: {point!r}", record=point)
        raw_time, raw_price = point[0], point[1]
        price = _parse_price(raw_price, "close", point)
        open_ = previous if previous is not None else price
        high = max(open_, price) * (1 + rng.random() * _POINT_SPREAD)
        low = min(open_, price) * (1 - rng.random() * _POINT_SPREAD)
        records.append({
            "open_time": raw_time,
            "open": round(open_, 2),
            "high": round(high, 2),
            "low": round(low, 2),
            "close": round(price, 2),
        })
        previous = price

    return normalize(records, fallback_spacing=fallback_spacing, now=now)


def validate_series(series: Sequence[Candle]) -> bool:
    """Chequeo estructural: no vacía, tiempos estrictamente crecientes, OHLC consistente."""
    if not series:
        return False
    last_time: Optional[int] = None
    for candle in series:
        if not candle.is_consistent:
            return False
        if last_time is not None and candle.open_time <= last_time:
            return False
        last_time = candle.open_time
    return True
