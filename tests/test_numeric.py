import math

import pytest

from pid_control.numeric import (MAX_FLOAT, clamp, finite, is_finite, backward_euler,
                                 low_pass_derivative, discharge_factor)


@pytest.mark.parametrize("value, expected", [(5.0, 5.0), (-20.0, -10.0), (20.0, 10.0)])
def test_clamp(value, expected):
    assert clamp(value, -10.0, 10.0) == expected

@pytest.mark.parametrize("value, expected", [
    (1.5, 1.5),
    (math.inf, MAX_FLOAT),
    (-math.inf, -MAX_FLOAT),
    (math.nan, 0.0),
    (MAX_FLOAT * 2, MAX_FLOAT),
])
def test_finite(value, expected):
    assert finite(value) == expected
    assert isinstance(finite(value), float)

def test_is_finite():
    assert is_finite(1.0, -2.0, 0)
    assert not is_finite(1.0, math.nan)
    assert not is_finite(math.inf)
    assert not is_finite(None)
    assert is_finite(MAX_FLOAT, -MAX_FLOAT)

def test_backward_euler():
    assert backward_euler(2.0, 1.0, 0.5) == 2.0

@pytest.mark.parametrize("tau", [0.05, 1.0, 3.0])
def test_low_pass_derivative_matches_filter_equation(tau):
    e, e_prev, d_prev, dt = 0.7, 0.2, -1.3, 0.01
    expected = ((1 / tau) * (e - e_prev) + d_prev) / (dt / tau + 1)
    assert low_pass_derivative(e, e_prev, d_prev, dt, tau) == pytest.approx(expected)

def test_low_pass_derivative_without_filter_is_backward_difference():
    assert low_pass_derivative(1.0, 0.5, 123.0, 0.1, 0.0) == pytest.approx(5.0)

def test_low_pass_derivative_converges_to_ramp_slope():
    dt, tau, slope = 0.01, 0.1, 2.0
    d, e_prev = 0.0, 0.0
    for k in range(1, 500):
        e = slope * k * dt
        d = low_pass_derivative(e, e_prev, d, dt, tau)
        e_prev = e
    assert d == pytest.approx(slope, rel=1e-6)

def test_low_pass_derivative_degenerate_interval_does_not_raise():
    assert finite(low_pass_derivative(1.0, 0.0, 0.0, 0.0, 0.0)) == MAX_FLOAT
    assert finite(low_pass_derivative(0.0, 0.0, 0.0, 0.0, 0.0)) == 0.0

def test_low_pass_derivative_clamps_overflowing_memory_term():
    # tau * d_prev = 1e400 overflows and is clamped to MAX_FLOAT before the division
    d = low_pass_derivative(0.0, 0.0, 1e200, 0.1, 1e200)
    assert is_finite(d)
    assert d == pytest.approx(MAX_FLOAT / 1e200)
    assert d < 1e200

@pytest.mark.parametrize("dt, tau, expected", [
    (0.01, 10.0, 0.999),
    (10.0, 10.0, 0.0),
    (20.0, 10.0, 0.0),
    (0.0, 10.0, 1.0),
    (-1.0, 10.0, 1.0),
    (1.0, math.inf, 1.0),
    (1.0, 0.0, 0.0),
    (0.0, 0.0, 1.0),
])
def test_discharge_factor(dt, tau, expected):
    assert discharge_factor(dt, tau) == pytest.approx(expected)
