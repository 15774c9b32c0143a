from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from .fields import FALLBACK_PRICE_FIELDS, Schema, coerce_position, coerce_price, find_key, resolve_schema

logger = logging.getLogger(__name__)

INTERVALS_PER_DAY = 96
INTERVALS_PER_HOUR = 4
MINUTES_PER_INTERVAL = 15


@dataclass(frozen=True, eq=False)
class CanonicalSeries:
    """One day of quarter-hour prices with parallel 1-based positions and HH:MM labels."""

    positions: list[int]
    prices: np.ndarray
    labels: list[str]
    schema: Schema = field(default_factory=Schema)
    is_demo: bool = False

    def __len__(self) -> int:
        return len(self.labels)

    @property
    def finite_prices(self) -> np.ndarray:
        return self.prices[np.isfinite(self.prices)]

    @property
    def all_nan(self) -> bool:
        return self.finite_prices.size == 0

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {"position": self.positions, "label": self.labels, "price": self.prices}
        )


def position_label(position: int) -> str:
    """1-based quarter-hour position -> "HH:MM" (position 1 is 00:00)."""
    zero = position - 1
    hour = zero // INTERVALS_PER_HOUR
    minute = (zero % INTERVALS_PER_HOUR) * MINUTES_PER_INTERVAL
    return f"{hour:02d}:{minute:02d}"


def demo_series(length: int = INTERVALS_PER_DAY) -> CanonicalSeries:
    """Deterministic sinusoidal day used when the backend returns no records."""
    positions = list(range(1, length + 1))
    prices = np.array(
        [round(30 + 8 * math.sin((i / length) * math.pi * 2), 2) for i in range(length)],
        dtype=float,
    )
    return CanonicalSeries(
        positions=positions,
        prices=prices,
        labels=[position_label(p) for p in positions],
        schema=Schema(position_field="position", price_field="preis"),
        is_demo=True,
    )


def _record_price(record: Any, price_field: Optional[str]) -> float:
    if not isinstance(record, Mapping):
        return math.nan
    if price_field and record.get(price_field) is not None:
        return coerce_price(record[price_field])
    fallback = find_key(record, FALLBACK_PRICE_FIELDS)
    return coerce_price(record[fallback]) if fallback else math.nan


def build_series(records: Sequence[Any], schema: Optional[Schema] = None) -> CanonicalSeries:
    """
    Build the canonical series from raw API records.

    - empty input -> ``demo_series()``
    - position from the schema's position field, else the array index + 1
    - price from the schema's price field, else ``FALLBACK_PRICE_FIELDS``
    - unparsable or missing prices are kept as NaN

    ``schema`` defaults to detection on the first record.
    """
    if not records:
        return demo_series()
    if schema is None:
        schema = resolve_schema(records[0])

    positions: list[int] = []
    prices: list[float] = []
    for idx, record in enumerate(records):
        pos = None
        if schema.position_field and isinstance(record, Mapping):
            pos = coerce_position(record.get(schema.position_field))
        positions.append(pos if pos is not None else idx + 1)
        prices.append(_record_price(record, schema.price_field))

    series = CanonicalSeries(
        positions=positions,
        prices=np.array(prices, dtype=float),
        labels=[position_label(p) for p in positions],
        schema=schema,
    )
    logger.debug("Built series of %d intervals (%d finite)", len(series), series.finite_prices.size)
    return series
