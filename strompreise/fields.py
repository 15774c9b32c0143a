from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

# ---------------------------------------------------------
# Field priority tables
# ---------------------------------------------------------
# Backends have used several naming schemes over time (SMARD/ENTSO-E style
# "Price_Amount", German "preis", generic "value"). First match wins.
POSITION_FIELDS: tuple[str, ...] = ("position", "Position", "pos", "index", "zeit", "time_index")
PRICE_FIELDS: tuple[str, ...] = (
    "price",
    "Price_Amount",
    "Price",
    "value",
    "price_amount",
    "PriceAmount",
    "preis",
    "Preis",
)
# per-record fallback when the sample did not reveal a price field
FALLBACK_PRICE_FIELDS: tuple[str, ...] = ("price", "Price_Amount", "value", "preis", "Preis")
# overlay endpoints
OVERLAY_PRICE_FIELDS: tuple[str, ...] = ("preis", "Price_Amount", "value")

_NOT_NUMERIC = re.compile(r"[^0-9.\-+eE]")


@dataclass(frozen=True)
class Schema:
    position_field: Optional[str] = None
    price_field: Optional[str] = None


def find_key(record: Any, candidates: Sequence[str]) -> Optional[str]:
    """Return the first candidate that is a key of ``record``, else None."""
    if not isinstance(record, Mapping):
        return None
    for name in candidates:
        if name in record:
            return name
    return None


def resolve_schema(sample: Any) -> Schema:
    return Schema(
        position_field=find_key(sample, POSITION_FIELDS),
        price_field=find_key(sample, PRICE_FIELDS),
    )


def coerce_price(raw: Any) -> float:
    """
    Coerce a raw price value into a float, NaN when unusable.

    Strings are tolerated in German notation ("12,5") and with units or
    currency symbols ("€ 7.3"): commas become periods, then everything but
    digits, sign, decimal point and exponent marker is dropped.
    """
    if raw is None or isinstance(raw, bool):
        return math.nan
    if isinstance(raw, (int, float)):
        return float(raw)
    if isinstance(raw, str):
        cleaned = _NOT_NUMERIC.sub("", raw.replace(",", "."))
        if not cleaned:
            return math.nan
        try:
            return float(cleaned)
        except ValueError:
            return math.nan
    return math.nan


def coerce_position(raw: Any) -> Optional[int]:
    """
    1-based interval position, or None when missing or not a whole number >= 1.

    Positions are 1-based (position 1 is 00:00); records whose position is
    rejected here fall back to their 1-based index in ``build_series``.
    """
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(raw.strip()) if isinstance(raw, str) else float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value) or value < 1 or not value.is_integer():
        return None
    return int(value)


def pick_value(record: Any, candidates: Sequence[str]) -> Any:
    """First non-null value among ``candidates``; None if there is none."""
    if not isinstance(record, Mapping):
        return None
    for name in candidates:
        value = record.get(name)
        if value is not None:
            return value
    return None


def overlay_price_fields(preferred: Optional[str] = None) -> tuple[str, ...]:
    """Overlay lookup order, led by a field already detected on the primary series."""
    if not preferred:
        return OVERLAY_PRICE_FIELDS
    return (preferred,) + tuple(f for f in OVERLAY_PRICE_FIELDS if f != preferred)
