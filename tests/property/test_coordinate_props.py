"""Property-based tests for the unit and coordinate conversions."""

from __future__ import annotations

import numpy as np
import pytest
from hypothesis import given, settings, strategies as st

from pytrac.utils.conversions import CoordinateConverter


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

distance_km = st.floats(min_value=-5000.0, max_value=5000.0,
                        allow_nan=False, allow_infinity=False)
nonpolar_lat = st.floats(min_value=-89.0, max_value=89.0,
                         allow_nan=False, allow_infinity=False)
pressure = st.floats(min_value=0.1, max_value=1100.0,
                     allow_nan=False, allow_infinity=False)
temperature = st.floats(min_value=150.0, max_value=330.0,
                        allow_nan=False, allow_infinity=False)


@given(dx=distance_km, lat=nonpolar_lat)
@settings(max_examples=200)
def test_dx2deg_inverts_deg2dx(dx, lat):
    deg = CoordinateConverter.dx2deg(dx, lat)
    assert CoordinateConverter.deg2dx(deg, lat) == pytest.approx(dx, abs=1e-9)


@given(dx=distance_km, lat=st.sampled_from([90.0, -90.0, 89.9995, -89.9995]))
def test_dx2deg_zero_at_poles(dx, lat):
    assert CoordinateConverter.dx2deg(dx, lat) == 0.0


@given(dz=st.floats(min_value=-1.0, max_value=1.0,
                    allow_nan=False, allow_infinity=False), p=pressure)
@settings(max_examples=200)
def test_dz2dp_opposes_height_change(dz, p):
    dp = CoordinateConverter.dz2dp(dz, p)
    assert np.sign(dp) == -np.sign(dz) or dz == 0.0
    assert CoordinateConverter.dp2dz(dp, p) == pytest.approx(dz, abs=1e-12)


@given(p=pressure, t=temperature)
@settings(max_examples=200)
def test_theta_round_trip(p, t):
    theta = CoordinateConverter.theta(p, t)
    assert CoordinateConverter.theta_to_pressure(theta, t) == pytest.approx(p, rel=1e-9)


@given(p=pressure)
@settings(max_examples=200)
def test_height_round_trip(p):
    z = CoordinateConverter.pressure_to_height(p)
    assert CoordinateConverter.height_to_pressure(z) == pytest.approx(p, rel=1e-12)
