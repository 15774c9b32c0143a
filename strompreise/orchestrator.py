from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Literal, Optional, Sequence

import numpy as np

from . import price_sources
from .date_codes import normalize_date
from .exceptions import (
    ApiError,
    EmptyResultError,
    PriceDataError,
    PrimaryLoadError,
    SchemaError,
)
from .fields import coerce_price, find_key, overlay_price_fields, pick_value
from .overlays import circular_shift, moving_average
from .price_sources import StrompreiseClient
from .registry import ChartSession, Dataset
from .series_builder import CanonicalSeries, build_series

logger = logging.getLogger(__name__)

Fallback = Literal["shift", "moving_average"]
DateSource = Literal["own", "primary", "none"]


@dataclass(frozen=True)
class OverlaySpec:
    key: str
    label: str
    path: str
    date_source: DateSource
    fallback: Fallback
    color: str


OVERLAYS: dict[str, OverlaySpec] = {
    spec.key: spec
    for spec in (
        OverlaySpec("comparison", "Comparison Day", price_sources.COMPARISON_PATH, "own", "shift", "rgba(10, 99, 241, 0.9)"),
        OverlaySpec("avgOnDate", "AVG on Date", price_sources.AVG_ON_DATE_PATH, "own", "moving_average", "rgba(255,165,0,0.9)"),
        OverlaySpec("dayaverage", "Dayaverage", price_sources.DAY_AVERAGE_PATH, "primary", "moving_average", "rgba(255,165,0,0.9)"),
        OverlaySpec("lastyear", "Vorjahr", price_sources.LAST_YEAR_PATH, "primary", "shift", "rgba(100,160,255,0.9)"),
        OverlaySpec(
            "workweekaverage_position",
            "AVG Arbeitswoche (Position)",
            price_sources.WORKWEEK_AVERAGE_POSITION_PATH,
            "none",
            "moving_average",
            "rgba(43, 93, 173, 0.9)",
        ),
        OverlaySpec("workweekavg", "AVG Arbeitswoche", price_sources.WORKWEEK_AVG_PATH, "none", "moving_average", "rgba(255,165,0,0.9)"),
    )
}


def overlay_values(records: Sequence[Any], fields: Sequence[str]) -> np.ndarray:
    """Map overlay records to prices; SchemaError if no record carries a price key."""
    if not any(find_key(rec, fields) for rec in records):
        keys = tuple(records[0].keys()) if isinstance(records[0], dict) else ()
        raise SchemaError(f"Kein Preis-Feld in Overlay-Daten gefunden. Keys: {', '.join(keys)}", keys)
    return np.array([coerce_price(pick_value(rec, fields)) for rec in records], dtype=float)


class Orchestrator:
    """
    Runs the fetch -> parse -> registry pipelines of one ``ChartSession``.

    Overlay pipelines never raise; on any ``PriceDataError`` they derive the
    overlay from the primary series instead. Each overlay carries a request
    generation so that a late response to a superseded request is dropped.
    """

    def __init__(
        self,
        session: ChartSession,
        client: StrompreiseClient,
        *,
        moving_average_window: int = 9,
        fallback_shift: int = 96,
    ):
        self.session = session
        self.client = client
        self.moving_average_window = moving_average_window
        self.fallback_shift = fallback_shift
        self._generations: defaultdict[str, int] = defaultdict(int)
        self._primary_generation = 0

    # ---------------------------------------------------------
    # Primary series
    # ---------------------------------------------------------
    async def load_primary(self, raw_date: Optional[str]) -> Optional[CanonicalSeries]:
        """
        Load the day for ``raw_date`` and install it as the primary series.

        Returns None when a newer primary load superseded this one.

        Raises:
            PrimaryLoadError: network, parse or ``{"error"}`` failure
            SchemaError: no record yields a finite price
        """
        date_code = normalize_date(raw_date)
        self._primary_generation += 1
        generation = self._primary_generation
        logger.info("Lade Strompreise für %s", date_code)
        try:
            records = await self.client.fetch_records(price_sources.PRIMARY_PATH, date_code)
        except EmptyResultError:
            logger.warning("API liefert keine Daten für %s. Verwende Demo-Daten.", date_code)
            records = []
        except ApiError as ex:
            logger.error("API-Fehler für %s: %s", date_code, ex)
            raise PrimaryLoadError(str(ex)) from ex
        except PriceDataError as ex:
            logger.error("Fehler beim Laden der Daten für %s: %s", date_code, ex)
            raise PrimaryLoadError(f"Fehler beim Laden der Daten: {ex}") from ex
        if generation != self._primary_generation:
            logger.info("Verwerfe veraltete Antwort für %s", date_code)
            return None

        series = build_series(records)
        if series.schema.price_field is None:
            logger.warning("Kein offensichtliches Preis-Feld gefunden. Keys: %s", _first_keys(records))
        if series.schema.position_field is None:
            logger.warning("Kein offensichtliches Positions-Feld gefunden. Keys: %s", _first_keys(records))
        if series.all_nan:
            keys = _first_keys(records)
            logger.error("Keine gültigen Preiswerte für %s. Keys: %s", date_code, ", ".join(keys))
            raise SchemaError(
                "Keine gültigen Preiswerte zum Anzeigen. Verfügbare Keys im ersten Objekt: " + ", ".join(keys),
                keys,
            )

        self.session.set_primary(series, date_code)
        return series

    # ---------------------------------------------------------
    # Overlays
    # ---------------------------------------------------------
    def _bump(self, key: str) -> int:
        self._generations[key] += 1
        return self._generations[key]

    def is_current(self, key: str, generation: int, primary: Optional[CanonicalSeries] = None) -> bool:
        if primary is not None and self.session.series is not primary:
            return False
        return self._generations[key] == generation

    def fallback_values(self, spec: OverlaySpec) -> np.ndarray:
        base = self.session.primary_values()
        if spec.fallback == "shift":
            return circular_shift(base, self.fallback_shift)
        return moving_average(base, self.moving_average_window)

    def _overlay_date(self, spec: OverlaySpec, raw_date: Optional[str]) -> Optional[str]:
        if spec.date_source == "none":
            return None
        if spec.date_source == "own" or raw_date is not None:
            return normalize_date(raw_date)
        return self.session.date_code or normalize_date(raw_date)

    async def show_overlay(self, key: str, raw_date: Optional[str] = None) -> Optional[Dataset]:
        """
        Fetch overlay ``key`` and add it to the chart.

        ``raw_date`` is the overlay's own date input; overlays bound to the
        primary date use the session's date when it is omitted. Returns the
        added dataset, or None when the request went stale.
        """
        spec = OVERLAYS[key]
        generation = self._bump(key)
        registry = self.session.registry
        if spec.label in registry:
            registry.remove_dataset_by_label(spec.label)

        await self.session.wait_ready()
        if not self.is_current(key, generation):
            return None
        # a newer primary load makes this response stale as well
        primary = self.session.series
        date_code = self._overlay_date(spec, raw_date)
        logger.info("%s angefordert (date=%s)", spec.label, date_code)

        try:
            records = await self.client.fetch_records(spec.path, date_code)
            values = overlay_values(records, overlay_price_fields(primary.schema.price_field))
        except PriceDataError as ex:
            logger.warning("%s: %s, verwende clientseitige Berechnung", spec.label, ex)
            values = None

        if not self.is_current(key, generation, primary):
            logger.info("%s: veraltete Antwort verworfen", spec.label)
            return None
        if values is None:
            values = self.fallback_values(spec)
        if spec.label in registry:
            registry.remove_dataset_by_label(spec.label)
        return registry.add_dataset(spec.label, values, spec.color)

    def hide_overlay(self, key: str) -> None:
        spec = OVERLAYS[key]
        self._bump(key)
        if spec.label in self.session.registry:
            self.session.registry.remove_dataset_by_label(spec.label)

    def clear_overlays(self) -> None:
        for key in OVERLAYS:
            self._bump(key)
        self.session.registry.clear_extra_datasets()


def _first_keys(records: Sequence[Any]) -> tuple[str, ...]:
    if records and isinstance(records[0], dict):
        return tuple(records[0].keys())
    return ()
