# app.py
import asyncio
import datetime as dt
from typing import Optional

import pandas as pd
import streamlit as st

from strompreise.client_log import setup_logging
from strompreise.date_codes import DEFAULT_DATE_CODE, chart_title, normalize_date
from strompreise.exceptions import PriceDataError
from strompreise.orchestrator import OVERLAYS, Orchestrator
from strompreise.plot_functions import PlotlyChart, now_label
from strompreise.price_sources import StrompreiseClient
from strompreise.registry import ChartSession
from strompreise.settings import load_settings

DEFAULT_DATE = dt.date(int(DEFAULT_DATE_CODE[:4]), int(DEFAULT_DATE_CODE[4:6]), int(DEFAULT_DATE_CODE[6:]))
OVERLAY_CHECKBOXES = {
    "dayaverage": "Tagesdurchschnitt",
    "lastyear": "Vorjahr",
    "workweekaverage_position": "AVG Arbeitswoche (Position)",
    "workweekavg": "AVG Arbeitswoche",
    "comparison": "Vergleichstag",
    "avgOnDate": "AVG an Datum",
}
DATED_OVERLAYS = {"comparison": "Datum Vergleichstag", "avgOnDate": "Datum für AVG"}


def _read_secrets() -> dict:
    try:
        return dict(st.secrets)
    except FileNotFoundError:
        return {}


# ---------------------------------------------------------
# Page config
# ---------------------------------------------------------
st.set_page_config(page_title="Strompreis-Analyse", page_icon="⚡", layout="centered")
st.title("⚡ Strompreis-Analyse")
st.caption(
    "Viertelstündliche Day-Ahead Preise eines Tages. Vergleichslinien werden vom Server geladen "
    "und bei Bedarf clientseitig aus dem Tagesverlauf berechnet."
)

settings = load_settings(_read_secrets())

# ---------------------------------------------------------
# Engine (one per browser session)
# ---------------------------------------------------------
if "engine" not in st.session_state:
    client = StrompreiseClient(settings.api_base_url, timeout=settings.request_timeout)
    setup_logging(settings.log_level, client if settings.client_log_enabled else None)
    session = ChartSession()
    session.attach(PlotlyChart(session))
    st.session_state.engine = Orchestrator(
        session,
        client,
        moving_average_window=settings.moving_average_window,
        fallback_shift=settings.fallback_shift,
    )
    st.session_state.applied_overlays = {}
    st.session_state.primary_error = None
orchestrator: Orchestrator = st.session_state.engine
session: ChartSession = orchestrator.session


def _clear_overlays() -> None:
    for key in OVERLAY_CHECKBOXES:
        st.session_state[f"cb_{key}"] = False
    orchestrator.clear_overlays()
    st.session_state.applied_overlays = {}


# ---------------------------------------------------------
# Sidebar
# ---------------------------------------------------------
with st.sidebar:
    st.header("Datum")
    selected_date = st.date_input("Tag", value=DEFAULT_DATE, format="DD.MM.YYYY", key="date")
    st.header("Vergleichslinien")
    wanted: dict[str, Optional[str]] = {}
    for key, caption in OVERLAY_CHECKBOXES.items():
        checked = st.checkbox(caption, key=f"cb_{key}")
        overlay_date = None
        if key in DATED_OVERLAYS:
            picked = st.date_input(
                DATED_OVERLAYS[key],
                value=selected_date - dt.timedelta(days=1),
                format="DD.MM.YYYY",
                key=f"date_{key}",
                disabled=not checked,
            )
            overlay_date = normalize_date(picked.isoformat() if picked else "")
        if checked:
            wanted[key] = overlay_date
    st.button("Zusätzliche Linien entfernen", on_click=_clear_overlays, use_container_width=True)

raw_date = selected_date.isoformat() if selected_date else ""
date_code = normalize_date(raw_date)

# ---------------------------------------------------------
# Load primary series and overlays
# ---------------------------------------------------------
async def _sync() -> None:
    applied: dict = st.session_state.applied_overlays
    if date_code != session.date_code:
        try:
            series = await orchestrator.load_primary(raw_date)
        except PriceDataError as exc:
            st.session_state.primary_error = (date_code, str(exc))
            raise
        st.session_state.primary_error = None
        if series is not None:
            # a new primary drops every overlay; re-request the checked ones
            applied.clear()

    for key in [k for k in applied if k not in wanted]:
        orchestrator.hide_overlay(key)
        applied.pop(key)

    todo = {
        key: overlay_date
        for key, overlay_date in wanted.items()
        if key not in applied or applied[key] != overlay_date or OVERLAYS[key].label not in session.registry
    }
    if not todo:
        return
    results = await asyncio.gather(*(orchestrator.show_overlay(k, d) for k, d in todo.items()))
    for (key, overlay_date), dataset in zip(todo.items(), results):
        if dataset is not None:
            applied[key] = overlay_date


failed = st.session_state.primary_error
if failed and failed[0] == date_code:
    st.error(f"⚠️ {failed[1]}")
    st.stop()
try:
    with st.spinner("Lade Strompreise …"):
        asyncio.run(_sync())
except PriceDataError as exc:
    st.error(f"⚠️ {exc}")
    st.stop()

# ---------------------------------------------------------
# Chart
# ---------------------------------------------------------
chart: PlotlyChart = session.renderer
st.subheader(chart_title(raw_date, session.date_code or date_code))
if session.series is not None and session.series.is_demo:
    st.info("API liefert keine Daten für diesen Tag. Angezeigt werden Demo-Daten.")
if chart.figure is not None:
    st.plotly_chart(chart.figure, use_container_width=True)

# ---------------------------------------------------------
# Statistik
# ---------------------------------------------------------
if session.series is not None:
    st.subheader("Statistik")
    df = session.series.to_frame()
    prices = df["price"].dropna()
    current = now_label(session.date_code)
    current_row = df[df["label"] == current]
    c1, c2 = st.columns(2)
    if not current_row.empty and pd.notna(current_row["price"].iloc[0]):
        c1.metric("aktuell", f"{float(current_row['price'].iloc[0]):.2f} €/MWh")
    else:
        c1.metric("aktuell", "–")
    c2.metric("Durchschnitt", f"{prices.mean():.2f} €/MWh")
    c3, c4 = st.columns(2)
    c3.metric("min", f"{prices.min():.2f} €/MWh")
    c4.metric("max", f"{prices.max():.2f} €/MWh")
    st.caption(f"{len(prices)} von {len(df)} Intervallen mit gültigem Preis")

    with st.expander("Daten"):
        chart_data = session.chart_data()
        table = pd.DataFrame(
            {ds["label"]: ds["data"] for ds in chart_data["datasets"]},
            index=pd.Index(chart_data["labels"], name="Zeit"),
        )
        st.dataframe(table, use_container_width=True)
