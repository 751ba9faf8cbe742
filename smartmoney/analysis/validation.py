"""Input validation for candle series handed to the engine."""

import math
from dataclasses import replace
from typing import Any, Optional

from smartmoney.analysis.models import PriceCandle

_PRICE_FIELDS = ("open", "high", "low", "close", "volume")


class ValidationError(ValueError):
    """Malformed candle input. ``index`` is the first offending position."""

    def __init__(self, message: str, index: Optional[int] = None) -> None:
        super().__init__(message)
        self.index = index


def validate_candles(
    candles: Any,
    volumes: Optional[list[float]] = None,
) -> list[PriceCandle]:
    """Check a candle series and return it as a list.

    When *volumes* is given it must have one entry per candle; each value
    replaces the candle's own volume so the returned series carries a
    single volume source.

    Raises ``ValidationError`` for a missing/non-sequence input, a length
    mismatch, a non-finite price or volume, a candle with ``high < low``,
    or a timestamp that does not strictly increase.
    """
    if candles is None:
        raise ValidationError("Candle series is required, got None")
    if not isinstance(candles, (list, tuple)):
        raise ValidationError(
            f"Candle series must be a list, got {type(candles).__name__}"
        )

    series = list(candles)

    for i, candle in enumerate(series):
        if not isinstance(candle, PriceCandle):
            raise ValidationError(
                f"Candle {i} is {type(candle).__name__}, expected PriceCandle",
                index=i,
            )

    if volumes is not None:
        if not isinstance(volumes, (list, tuple)):
            raise ValidationError(
                f"Volume array must be a list, got {type(volumes).__name__}"
            )
        if len(volumes) != len(series):
            raise ValidationError(
                f"Volume array length {len(volumes)} does not match "
                f"{len(series)} candles",
                index=min(len(volumes), len(series)),
            )
        merged: list[PriceCandle] = []
        for i, (candle, volume) in enumerate(zip(series, volumes)):
            try:
                merged.append(replace(candle, volume=float(volume)))
            except (TypeError, ValueError):
                raise ValidationError(
                    f"Volume {i} is not numeric: {volume!r}", index=i
                ) from None
        series = merged

    for i, candle in enumerate(series):
        for name in _PRICE_FIELDS:
            value = getattr(candle, name)
            try:
                finite = math.isfinite(value)
            except TypeError:
                finite = False
            if not finite:
                raise ValidationError(
                    f"Candle {i} has non-numeric or non-finite {name}: {value!r}", index=i
                )
        if candle.high < candle.low:
            raise ValidationError(
                f"Candle {i} has high {candle.high} below low {candle.low}",
                index=i,
            )
        if i > 0 and candle.timestamp <= series[i - 1].timestamp:
            raise ValidationError(
                f"Candle {i} timestamp {candle.timestamp} is not after "
                f"{series[i - 1].timestamp}",
                index=i,
            )

    return series


def candles_from_records(records: list[dict]) -> list[PriceCandle]:
    """Convert loosely typed dict records into ``PriceCandle`` objects.

    Accepts ``timestamp`` or ``time`` keys; numeric strings are parsed and a
    missing volume defaults to zero.  Raises ``ValidationError`` naming the
    first record that cannot be converted.
    """
    candles: list[PriceCandle] = []
    for i, rec in enumerate(records):
        try:
            ts = rec.get("timestamp", rec.get("time"))
            candles.append(
                PriceCandle(
                    timestamp=int(ts),
                    open=float(rec["open"]),
                    high=float(rec["high"]),
                    low=float(rec["low"]),
                    close=float(rec["close"]),
                    volume=float(rec.get("volume") or 0),
                )
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise ValidationError(f"Record {i} is not a valid candle: {exc}", index=i) from exc
    return candles
