"""Property-based tests for the isosurface constraint.

With a temperature field that does not vary in space, a particle displaced
vertically after initialisation is restored exactly to its start pressure
in the isobaric, isopycnic and isentropic modes.
"""

from __future__ import annotations

import numpy as np
import pytest
from hypothesis import given, settings, strategies as st

from pytrac.core.interpolator import Interpolator
from pytrac.core.models import ControlConfig, MetSnapshot, ParticleEnsemble
from pytrac.physics.isosurface import IsosurfaceModule

LON = np.linspace(-180.0, 180.0, 37)
LAT = np.linspace(-90.0, 90.0, 19)
PLEV = np.array([1000.0, 700.0, 500.0, 300.0, 100.0, 10.0])
SHAPE = (len(PLEV), len(LAT), len(LON))


def _make_interp(temperature: float) -> Interpolator:
    met = MetSnapshot(time=0.0, lon=LON, lat=LAT, p=PLEV,
                      u=np.zeros(SHAPE), v=np.zeros(SHAPE), w=np.zeros(SHAPE),
                      t=np.full(SHAPE, temperature), ps=np.full(SHAPE[1:], 1000.0))
    return Interpolator(met, met)


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

mode = st.sampled_from([1, 2, 3])
pressure = st.floats(min_value=20.0, max_value=950.0,
                     allow_nan=False, allow_infinity=False)
factor = st.floats(min_value=0.5, max_value=1.5,
                   allow_nan=False, allow_infinity=False)
temperature = st.floats(min_value=180.0, max_value=310.0,
                        allow_nan=False, allow_infinity=False)


@given(mode=mode, p=pressure, f=factor, temp=temperature)
@settings(max_examples=200)
def test_restore_returns_to_initial_pressure(mode, p, f, temp):
    interp = _make_interp(temp)
    ens = ParticleEnsemble.from_arrays(time=[0.0], lon=[10.0], lat=[20.0], p=[p])
    module = IsosurfaceModule(ControlConfig(isosurf=mode))
    module.initialize(ens, interp)
    ens.p[0] = p * f
    module.restore(ens, interp, np.array([60.0]))
    assert ens.p[0] == pytest.approx(p, rel=1e-10)


@given(mode=mode, p=pressure, temp=temperature)
@settings(max_examples=100)
def test_restore_is_idempotent(mode, p, temp):
    interp = _make_interp(temp)
    ens = ParticleEnsemble.from_arrays(time=[0.0], lon=[10.0], lat=[20.0], p=[p])
    module = IsosurfaceModule(ControlConfig(isosurf=mode))
    module.initialize(ens, interp)
    module.restore(ens, interp, np.array([60.0]))
    once = ens.p.copy()
    module.restore(ens, interp, np.array([60.0]))
    np.testing.assert_allclose(ens.p, once, rtol=1e-12)
