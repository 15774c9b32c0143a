"""Price-series normalization and overlay engine for the Strompreise chart."""

from . import (
    client_log,
    date_codes,
    exceptions,
    fields,
    orchestrator,
    overlays,
    plot_functions,
    price_sources,
    registry,
    series_builder,
    settings,
)

__all__ = [
    "client_log",
    "date_codes",
    "exceptions",
    "fields",
    "orchestrator",
    "overlays",
    "plot_functions",
    "price_sources",
    "registry",
    "series_builder",
    "settings",
]
