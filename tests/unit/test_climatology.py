"""Unit tests for the climatological look-ups."""

from __future__ import annotations

import numpy as np
import pytest

from pytrac.core.climatology import (
    TROPO_TRANSITION,
    clim_hno3,
    clim_tropo,
    tropopause_weight,
)


class TestTropopauseWeight:
    def test_deep_troposphere_is_one(self):
        assert tropopause_weight(500.0, 200.0) == 1.0

    def test_deep_stratosphere_is_zero(self):
        assert tropopause_weight(50.0, 200.0) == 0.0

    def test_transition_layer_is_linear(self):
        pt = 200.0
        p0 = pt / TROPO_TRANSITION
        p1 = pt * TROPO_TRANSITION
        mid = 0.5 * (p0 + p1)
        assert tropopause_weight(mid, pt) == pytest.approx(0.5)
        w = tropopause_weight(pt, pt)
        assert 0.0 < w < 1.0

    def test_vectorised(self):
        w = tropopause_weight(np.array([800.0, 10.0]), np.array([100.0, 100.0]))
        np.testing.assert_array_equal(w, [1.0, 0.0])


class TestClimTropo:
    def test_tropical_tropopause_is_high(self):
        pt = clim_tropo(0.0, 0.0)
        assert 80.0 < pt < 120.0

    def test_polar_tropopause_is_lower_than_tropical(self):
        t = np.zeros(3)
        pt = clim_tropo(t, np.array([-80.0, 0.0, 80.0]))
        assert pt[0] > pt[1]
        assert pt[2] > pt[1]

    def test_latitude_clamped(self):
        assert clim_tropo(0.0, 95.0) == pytest.approx(clim_tropo(0.0, 90.0))


class TestClimHNO3:
    def test_positive_everywhere(self):
        lat = np.linspace(-90, 90, 7)
        for p in (1000.0, 100.0, 30.0, 1.0):
            assert np.all(clim_hno3(0.0, lat, np.full(7, p)) > 0)

    def test_peak_in_lower_stratosphere(self):
        assert clim_hno3(0.0, 70.0, 35.0) > clim_hno3(0.0, 70.0, 500.0)
        assert clim_hno3(0.0, 70.0, 35.0) > clim_hno3(0.0, 70.0, 1.0)
