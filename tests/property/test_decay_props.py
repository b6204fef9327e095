"""Property-based tests for exponential mass decay."""

from __future__ import annotations

import numpy as np
from hypothesis import given, settings, strategies as st

from pytrac.core.models import ControlConfig, ParticleEnsemble, QuantityMap
from pytrac.physics.decay import DecayModule

# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

lifetime = st.floats(min_value=60.0, max_value=1e8,
                     allow_nan=False, allow_infinity=False)
step = st.floats(min_value=1.0, max_value=86400.0,
                 allow_nan=False, allow_infinity=False)
mass = st.floats(min_value=0.0, max_value=1e6,
                 allow_nan=False, allow_infinity=False)
pressure = st.floats(min_value=1.0, max_value=1000.0,
                     allow_nan=False, allow_infinity=False)
latitude = st.floats(min_value=-90.0, max_value=90.0,
                     allow_nan=False, allow_infinity=False)


def _make_module(tdec_trop: float, tdec_strat: float) -> DecayModule:
    return DecayModule(ControlConfig(quantities=QuantityMap(["m"]),
                                     tdec_trop=tdec_trop, tdec_strat=tdec_strat))


def _make_ensemble(m: float, p: float, lat: float) -> ParticleEnsemble:
    return ParticleEnsemble.from_arrays(time=[0.0], lon=[0.0], lat=[lat],
                                        p=[p], q=[[m]])


@given(trop=lifetime, strat=lifetime, dt=step, m=mass, p=pressure, lat=latitude)
@settings(max_examples=200)
def test_forward_decay_never_increases_mass(trop, strat, dt, m, p, lat):
    ens = _make_ensemble(m, p, lat)
    _make_module(trop, strat).apply(ens, np.array([dt]))
    assert 0.0 <= ens.q[0, 0] <= m


@given(trop=lifetime, strat=lifetime, p=pressure, lat=latitude)
@settings(max_examples=200)
def test_lifetime_between_regime_values(trop, strat, p, lat):
    tdec = _make_module(trop, strat).lifetime(np.array([0.0]), np.array([lat]),
                                             np.array([p]))
    lo, hi = min(trop, strat), max(trop, strat)
    assert lo * (1 - 1e-12) <= tdec[0] <= hi * (1 + 1e-12)


@given(trop=lifetime, dt1=step, dt2=step, m=st.floats(min_value=1.0, max_value=1e3))
@settings(max_examples=100)
def test_two_steps_equal_one_combined_step(trop, dt1, dt2, m):
    module = _make_module(trop, trop)
    a = _make_ensemble(m, 500.0, 0.0)
    module.apply(a, np.array([dt1]))
    module.apply(a, np.array([dt2]))
    b = _make_ensemble(m, 500.0, 0.0)
    module.apply(b, np.array([dt1 + dt2]))
    np.testing.assert_allclose(a.q[0], b.q[0], rtol=1e-10)
