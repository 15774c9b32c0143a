from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Protocol

import numpy as np

from .exceptions import DuplicateDatasetError
from .series_builder import CanonicalSeries

logger = logging.getLogger(__name__)

PRIMARY_LABEL = "Strompreise"
PRIMARY_COLOR = "rgba(75, 192, 192, 1)"


class Renderer(Protocol):
    def update(self) -> None: ...

    def resize(self) -> None: ...

    def destroy(self) -> None: ...


@dataclass(frozen=True, eq=False)
class Dataset:
    label: str
    values: np.ndarray
    color: str

    def as_dict(self) -> dict[str, Any]:
        return {"label": self.label, "data": self.values.tolist(), "color": self.color}


def hue_color(index: int) -> str:
    """Distinct line color for the n-th dataset without configuration."""
    return f"hsl({(index * 47) % 360}, 70%, 55%)"


def align_values(values: Optional[Iterable[Any]], length: int) -> np.ndarray:
    """Pad with trailing NaN or truncate to ``length``; non-finite entries become NaN."""
    out = np.full(length, np.nan, dtype=float)
    if values is None:
        return out
    for i, value in enumerate(values):
        if i >= length:
            break
        try:
            number = float(value)
        except (TypeError, ValueError):
            continue
        if np.isfinite(number):
            out[i] = number
    return out


class DatasetRegistry:
    """
    Primary price line plus a label-keyed, insertion-ordered set of overlays.

    All overlays always have the primary's length. Every mutation triggers
    exactly one ``update()`` on the attached renderer.
    """

    def __init__(self, renderer: Optional[Renderer] = None):
        self.renderer = renderer
        self.labels: list[str] = []
        self.primary: Optional[Dataset] = None
        self._overlays: dict[str, Dataset] = {}

    def __contains__(self, label: str) -> bool:
        return label in self._overlays

    def __len__(self) -> int:
        return len(self._overlays)

    @property
    def length(self) -> int:
        return len(self.labels)

    @property
    def overlays(self) -> list[Dataset]:
        return list(self._overlays.values())

    def get(self, label: str) -> Optional[Dataset]:
        return self._overlays.get(label)

    def datasets(self) -> list[Dataset]:
        head = [self.primary] if self.primary is not None else []
        return head + self.overlays

    def chart_data(self) -> dict[str, Any]:
        return {
            "labels": list(self.labels),
            "datasets": [ds.as_dict() for ds in self.datasets()],
        }

    def _redraw(self) -> None:
        if self.renderer is not None:
            self.renderer.update()

    def set_primary(
        self,
        labels: list[str],
        values: Iterable[Any],
        label: str = PRIMARY_LABEL,
        color: str = PRIMARY_COLOR,
    ) -> Dataset:
        """Install a new primary line; overlays of the previous one are dropped."""
        self.labels = list(labels)
        self.primary = Dataset(label, align_values(values, len(self.labels)), color)
        self._overlays = {}
        self._redraw()
        return self.primary

    def add_dataset(
        self, label: str, values: Optional[Iterable[Any]], color: Optional[str] = None
    ) -> Optional[Dataset]:
        if self.primary is None:
            logger.warning("add_dataset(%r): no primary series loaded yet", label)
            return None
        if not self.length:
            logger.warning("add_dataset(%r): primary series has no labels to align with", label)
            return None
        if label in self._overlays:
            raise DuplicateDatasetError(f"dataset {label!r} already exists, remove it first")
        index = 1 + len(self._overlays)
        dataset = Dataset(label, align_values(values, self.length), color or hue_color(index))
        self._overlays[label] = dataset
        self._redraw()
        return dataset

    def remove_dataset_by_label(self, label: str) -> bool:
        if label not in self._overlays:
            logger.warning("remove_dataset_by_label: label not found: %s", label)
            return False
        del self._overlays[label]
        self._redraw()
        return True

    def clear_extra_datasets(self) -> None:
        self._overlays = {}
        self._redraw()

    def replace_primary_data(self, values: Iterable[Any]) -> None:
        if self.primary is None:
            logger.warning("replace_primary_data: no primary series loaded yet")
            return
        self.primary = Dataset(self.primary.label, align_values(values, self.length), self.primary.color)
        self._redraw()


class ChartSession:
    """
    State of one chart: the primary series, its overlays and the date shown.

    ``wait_ready()`` resolves once a primary series exists; overlay pipelines
    await it instead of polling.
    """

    def __init__(self, renderer: Optional[Renderer] = None):
        self.registry = DatasetRegistry(renderer)
        self.series: Optional[CanonicalSeries] = None
        self.date_code: Optional[str] = None
        self._ready: Optional[asyncio.Future] = None

    @property
    def renderer(self) -> Optional[Renderer]:
        return self.registry.renderer

    @property
    def is_ready(self) -> bool:
        return self.series is not None

    def attach(self, renderer: Renderer) -> None:
        previous = self.registry.renderer
        if previous is not None and previous is not renderer:
            previous.destroy()
        self.registry.renderer = renderer
        renderer.update()

    def chart_data(self) -> dict[str, Any]:
        return self.registry.chart_data()

    def set_primary(self, series: CanonicalSeries, date_code: str) -> None:
        self.series = series
        self.date_code = date_code
        self.registry.set_primary(series.labels, series.prices)
        ready = self._ready
        if ready is not None and not ready.done() and not ready.get_loop().is_closed():
            ready.set_result(self)

    def primary_values(self) -> np.ndarray:
        primary = self.registry.primary
        if primary is None:
            return np.array([], dtype=float)
        return primary.values.copy()

    def _ready_future(self) -> asyncio.Future:
        # each event loop gets its own future; a streamlit rerun runs a fresh loop
        loop = asyncio.get_running_loop()
        if self._ready is None or self._ready.get_loop() is not loop:
            self._ready = loop.create_future()
            if self.is_ready:
                self._ready.set_result(self)
        return self._ready

    async def wait_ready(self) -> "ChartSession":
        return await asyncio.shield(self._ready_future())
