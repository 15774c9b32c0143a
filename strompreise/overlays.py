from __future__ import annotations

from typing import Iterable

import numpy as np
import pandas as pd


def _as_series(values: Iterable[float]) -> pd.Series:
    arr = np.asarray(list(values), dtype=float)
    arr[~np.isfinite(arr)] = np.nan
    return pd.Series(arr)


def moving_average(values: Iterable[float], window_size: int = 5) -> np.ndarray:
    """
    Centered moving average over ``[i - w//2, i + w//2]``, clipped at the edges.

    NaN entries count neither towards the sum nor the count; a window with no
    finite value yields NaN. The window looks ahead of ``i``, so this is for
    smoothing a known day, not for live data.
    """
    series = _as_series(values)
    if series.empty:
        return series.to_numpy()
    width = 2 * (max(int(window_size), 1) // 2) + 1
    return series.rolling(width, center=True, min_periods=1).mean().to_numpy()


def circular_shift(values: Iterable[float], shift_amount: int) -> np.ndarray:
    """
    ``out[i] = values[i - shift_amount]`` where that index exists, NaN elsewhere.

    Values shifted past either end are dropped, not wrapped around.
    """
    return _as_series(values).shift(int(shift_amount)).to_numpy()
