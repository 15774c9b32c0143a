from __future__ import annotations

import asyncio
import copy
import datetime as dt
import logging
import math
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

import numpy as np
import plotly.graph_objects as go
import pytz

from .date_codes import format_date_title
from .series_builder import INTERVALS_PER_HOUR, MINUTES_PER_INTERVAL, position_label

logger = logging.getLogger(__name__)

TZ_BERLIN = pytz.timezone("Europe/Berlin")
Y_AXIS_MIN = -50.0

PRIMARY_TRACE_DEFAULTS: Dict[str, Any] = {
    "mode": "lines+markers",
    "line": {"width": 2, "shape": "spline", "smoothing": 0.12},
    "marker": {"size": 4},
    "fill": "tozeroy",
    "connectgaps": True,
}
OVERLAY_TRACE_DEFAULTS: Dict[str, Any] = {
    "mode": "lines+markers",
    "line": {"width": 2, "shape": "spline", "smoothing": 0.12},
    "marker": {"size": 4},
    "connectgaps": True,
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base or {})
    for k, v in (override or {}).items():
        if k in out and isinstance(out[k], dict) and isinstance(v, dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _fill_color(color: str, alpha: float = 0.18) -> str:
    """Translucent variant of an ``rgba(...)`` color for area fills."""
    if color.startswith("rgba(") and color.endswith(")"):
        r, g, b = [part.strip() for part in color[5:-1].split(",")[:3]]
        return f"rgba({r}, {g}, {b}, {alpha})"
    return color


def compute_y_range(values: Iterable[float]) -> tuple[float, float]:
    """
    Y axis range for the visible datasets.

    The lower bound is fixed so negative prices stay visible; the upper
    bound adds 12 % of the value spread (or 10 % of the maximum for a flat
    line, or 1 when everything is zero).
    """
    arr = np.asarray(list(values), dtype=float)
    arr = arr[np.isfinite(arr)]
    if arr.size == 0:
        return Y_AXIS_MIN, 1.0
    min_val, max_val = float(arr.min()), float(arr.max())
    spread = max_val - min_val
    padding = (abs(max_val) * 0.1 or 1.0) if spread == 0 else spread * 0.12
    return Y_AXIS_MIN, max_val + padding


def now_label(date_code: Optional[str], now: Optional[dt.datetime] = None) -> Optional[str]:
    """Quarter-hour label of the current Berlin time when ``date_code`` is today."""
    now = now.astimezone(TZ_BERLIN) if now is not None else dt.datetime.now(tz=TZ_BERLIN)
    if date_code != now.strftime("%Y%m%d"):
        return None
    position = now.hour * INTERVALS_PER_HOUR + now.minute // MINUTES_PER_INTERVAL + 1
    return position_label(position)


def build_figure(
    chart_data: Mapping[str, Any],
    *,
    title: Optional[str] = None,
    now_marker: Optional[str] = None,
    height: int = 420,
) -> go.Figure:
    """
    Line chart of ``{labels, datasets}``: the first dataset is the primary
    price line (filled), all further datasets are overlays.
    """
    labels = list(chart_data.get("labels") or [])
    datasets = list(chart_data.get("datasets") or [])
    fig = go.Figure()

    all_values: list[float] = []
    for i, ds in enumerate(datasets):
        color = ds.get("color") or "#1f77b4"
        data = [None if v is None or (isinstance(v, float) and math.isnan(v)) else v for v in ds.get("data", [])]
        all_values.extend(v for v in data if v is not None)
        if i == 0:
            params = _deep_merge(PRIMARY_TRACE_DEFAULTS, {"line": {"color": color}, "fillcolor": _fill_color(color)})
        else:
            params = _deep_merge(OVERLAY_TRACE_DEFAULTS, {"line": {"color": color}})
        fig.add_trace(go.Scatter(
            x=labels,
            y=data,
            name=ds.get("label") or f"Series {i + 1}",
            hovertemplate="%{y:.2f} €/MWh",
            **params,
        ))

    shapes = []
    if now_marker is not None and now_marker in labels:
        shapes.append(go.layout.Shape(
            type="line",
            x0=now_marker, x1=now_marker, y0=0, y1=1, yref="paper",
            line=dict(color="purple", width=1.5, dash="dot"),
            name="Jetzt",
        ))

    y_min, y_max = compute_y_range(all_values)
    fig.update_layout(
        height=height,
        title=title,
        margin=dict(l=10, r=10, t=40 if title else 10, b=10),
        xaxis=dict(title="Zeit (15-Minuten-Intervalle)", type="category"),
        yaxis=dict(title="Preis (€/MWh)", range=[y_min, y_max]),
        hovermode="x unified",
        showlegend=len(datasets) > 1,
        legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="right", x=1.0),
        hoverlabel=dict(bgcolor="rgba(255,255,255,0.9)", namelength=-1),
        shapes=shapes,
    )
    return fig


class PlotlyChart:
    """
    Rendering side of a ``ChartSession``: rebuilds a plotly figure from the
    session's ``{labels, datasets}`` whenever the registry signals a change.
    """

    def __init__(self, source: Any, *, height: int = 420):
        self.source = source
        self.height = height
        self.figure: Optional[go.Figure] = None
        self.draw_count = 0
        self.destroyed = False

    def _title(self) -> Optional[str]:
        code = getattr(self.source, "date_code", None)
        formatted = format_date_title(code or "")
        return f"Diagramm für {formatted}" if formatted else None

    def update(self) -> None:
        if self.destroyed:
            logger.debug("update() on destroyed chart ignored")
            return
        code = getattr(self.source, "date_code", None)
        self.figure = build_figure(
            self.source.chart_data(),
            title=self._title(),
            now_marker=now_label(code),
            height=self.height,
        )
        self.draw_count += 1

    def resize(self) -> None:
        if self.figure is None:
            return
        self.figure.update_layout(autosize=True)

    def destroy(self) -> None:
        self.figure = None
        self.destroyed = True


class ResizeDebouncer:
    """
    Collapse a burst of resize events into one ``resize()`` after ``delay`` seconds.

    For hosts that deliver resize events on an event loop. The streamlit page
    receives none and relies on plotly autosize instead.
    """

    def __init__(self, callback: Callable[[], None], delay: float = 0.12):
        self.callback = callback
        self.delay = delay
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        try:
            self.callback()
        except Exception:
            logger.exception("resize failed")
