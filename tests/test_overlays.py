import math

import numpy as np
import pytest

from strompreise.overlays import circular_shift, moving_average

nan = float("nan")


def test_moving_average_window_one_is_identity():
    values = [1.0, nan, 3.0, 4.0]
    out = moving_average(values, 1)
    assert out[0] == 1.0
    assert math.isnan(out[1])
    assert out[2:].tolist() == [3.0, 4.0]


def test_moving_average_symmetric_window_clipped_at_edges():
    out = moving_average([1.0, 2.0, 3.0, 4.0, 5.0], 3)
    assert out.tolist() == pytest.approx([1.5, 2.0, 3.0, 4.0, 4.5])


def test_moving_average_ignores_nan():
    out = moving_average([1.0, nan, 5.0], 3)
    assert out.tolist() == pytest.approx([1.0, 3.0, 5.0])


def test_moving_average_window_without_finite_values():
    out = moving_average([nan, nan, nan, 4.0], 3)
    assert math.isnan(out[0])
    assert out[2] == 4.0


def test_moving_average_even_window_uses_half_width():
    # w=4 -> [i-2, i+2]
    out = moving_average([0.0, 0.0, 10.0, 0.0, 0.0], 4)
    assert out[2] == pytest.approx(2.0)
    assert out[0] == pytest.approx(10.0 / 3)


def test_moving_average_treats_inf_as_missing():
    out = moving_average([float("inf"), 2.0], 1)
    assert math.isnan(out[0])


def test_circular_shift_is_edge_clipped():
    out = circular_shift([1.0, 2.0, 3.0], 1)
    assert math.isnan(out[0])
    assert out[1:].tolist() == [1.0, 2.0]


def test_circular_shift_negative():
    out = circular_shift([1.0, 2.0, 3.0], -1)
    assert out[:2].tolist() == [2.0, 3.0]
    assert math.isnan(out[2])


def test_circular_shift_full_day_is_all_nan():
    out = circular_shift(np.arange(96, dtype=float), 96)
    assert len(out) == 96
    assert np.isnan(out).all()


def test_inputs_are_not_modified():
    values = np.array([1.0, 2.0, 3.0])
    circular_shift(values, 1)
    moving_average(values, 3)
    assert values.tolist() == [1.0, 2.0, 3.0]
