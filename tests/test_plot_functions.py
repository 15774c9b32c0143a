import asyncio
import datetime as dt

import pytest

from strompreise.plot_functions import (
    TZ_BERLIN,
    Y_AXIS_MIN,
    PlotlyChart,
    ResizeDebouncer,
    build_figure,
    compute_y_range,
    now_label,
)
from strompreise.registry import ChartSession
from strompreise.series_builder import build_series

nan = float("nan")


def test_compute_y_range_pads_spread():
    assert compute_y_range([10.0, 20.0, nan]) == (Y_AXIS_MIN, pytest.approx(21.2))


def test_compute_y_range_flat_and_empty():
    assert compute_y_range([5.0, 5.0]) == (Y_AXIS_MIN, pytest.approx(5.5))
    assert compute_y_range([0.0]) == (Y_AXIS_MIN, 1.0)
    assert compute_y_range([]) == (Y_AXIS_MIN, 1.0)


def test_now_label_only_for_today():
    now = TZ_BERLIN.localize(dt.datetime(2025, 10, 1, 13, 37))
    assert now_label("20251001", now) == "13:30"
    assert now_label("20251002", now) is None
    assert now_label(None, now) is None


def test_build_figure_one_trace_per_dataset():
    data = {
        "labels": ["00:00", "00:15"],
        "datasets": [
            {"label": "Strompreise", "data": [1.0, nan], "color": "rgba(75, 192, 192, 1)"},
            {"label": "Vorjahr", "data": [nan, nan], "color": "rgba(100,160,255,0.9)"},
        ],
    }
    fig = build_figure(data, title="Diagramm für 01.10.2025", now_marker="00:15")
    assert [trace.name for trace in fig.data] == ["Strompreise", "Vorjahr"]
    assert list(fig.data[0].y) == [1.0, None]
    assert fig.data[0].fill == "tozeroy"
    assert fig.data[0].fillcolor == "rgba(75, 192, 192, 0.18)"
    assert fig.data[1].fill is None
    assert fig.layout.yaxis.range == (Y_AXIS_MIN, pytest.approx(1.1))
    assert fig.layout.shapes[0].x0 == "00:15"
    assert fig.layout.showlegend is True


def test_plotly_chart_follows_session():
    session = ChartSession()
    chart = PlotlyChart(session)
    session.attach(chart)
    session.set_primary(build_series([{"position": 1, "preis": "10,0"}]), "20251001")
    session.registry.add_dataset("Vorjahr", [nan])
    assert chart.draw_count == 3
    assert [trace.name for trace in chart.figure.data] == ["Strompreise", "Vorjahr"]
    assert chart.figure.layout.title.text == "Diagramm für 01.10.2025"


def test_destroyed_chart_ignores_updates():
    session = ChartSession()
    chart = PlotlyChart(session)
    session.attach(chart)
    session.attach(PlotlyChart(session))
    assert chart.destroyed and chart.figure is None
    session.registry.set_primary(["00:00"], [1.0])
    assert chart.figure is None


def test_resize_is_idempotent():
    session = ChartSession()
    chart = PlotlyChart(session)
    chart.resize()
    session.attach(chart)
    chart.resize()
    chart.resize()
    assert chart.figure.layout.autosize is True


def test_resize_debouncer_fires_once_after_burst():
    calls = []

    async def scenario():
        debouncer = ResizeDebouncer(lambda: calls.append(1), delay=0.2)
        for _ in range(5):
            debouncer.trigger()
            await asyncio.sleep(0.005)
        assert debouncer.pending
        await asyncio.sleep(0.4)
        assert not debouncer.pending

    asyncio.run(scenario())
    assert calls == [1]


def test_resize_debouncer_cancel():
    calls = []

    async def scenario():
        debouncer = ResizeDebouncer(lambda: calls.append(1), delay=0.01)
        debouncer.trigger()
        debouncer.cancel()
        await asyncio.sleep(0.03)

    asyncio.run(scenario())
    assert calls == []
