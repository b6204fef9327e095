"""Unit tests for advection, turbulent and mesoscale diffusion."""

from __future__ import annotations

import numpy as np
import pytest

from pytrac.compute.backend import NumpyBackend, ThreadedBackend
from pytrac.core.interpolator import Interpolator
from pytrac.core.models import ControlConfig, MetSnapshot, ParticleEnsemble
from pytrac.physics.advection import AdvectionModule
from pytrac.physics.mesoscale import MesoscaleModule, WindStatsCache, cell_wind_stddev
from pytrac.physics.turbulence import TurbulenceModule
from pytrac.utils.conversions import RE

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

LON = np.linspace(-180.0, 180.0, 37)
LAT = np.linspace(-90.0, 90.0, 19)
PLEV = np.array([1000.0, 850.0, 700.0, 500.0, 300.0, 200.0, 100.0, 50.0, 10.0])
SHAPE = (len(PLEV), len(LAT), len(LON))

KM_PER_DEG = np.pi * RE / 180.0


def _make_met(time: float = 0.0, u=0.0, v=0.0, w=0.0, t=250.0) -> MetSnapshot:
    def f(x):
        return np.broadcast_to(np.asarray(x, dtype=float), SHAPE).copy()
    return MetSnapshot(time=time, lon=LON, lat=LAT, p=PLEV,
                       u=f(u), v=f(v), w=f(w), t=f(t),
                       ps=np.full(SHAPE[1:], 1000.0))


def _make_ensemble(n: int = 2, lon=0.0, lat=0.0, p=500.0) -> ParticleEnsemble:
    return ParticleEnsemble.from_arrays(
        time=np.zeros(n), lon=np.full(n, lon), lat=np.full(n, lat),
        p=np.full(n, p),
    )


def _snapshot(ens: ParticleEnsemble) -> dict:
    return {k: getattr(ens, k).copy() for k in ("time", "lon", "lat", "p", "up", "vp", "wp")}


# ---------------------------------------------------------------------------
# Advection
# ---------------------------------------------------------------------------

class TestAdvection:
    def test_zero_wind_near_dateline(self):
        met = _make_met()
        ens = _make_ensemble(1, lon=179.9, lat=0.0, p=500.0)
        AdvectionModule().apply(ens, Interpolator(met, met), np.array([3600.0]))
        assert ens.lon[0] == pytest.approx(179.9)
        assert -180.0 <= ens.lon[0] < 180.0
        assert ens.lat[0] == 0.0
        assert ens.p[0] == 500.0
        assert ens.time[0] == 3600.0

    def test_uniform_zonal_wind_at_equator(self):
        met = _make_met(u=10.0)
        ens = _make_ensemble(1)
        AdvectionModule().apply(ens, Interpolator(met, met), np.array([3600.0]))
        assert ens.lon[0] == pytest.approx(36.0 / KM_PER_DEG)
        assert ens.lat[0] == pytest.approx(0.0)

    def test_meridional_wind(self):
        met = _make_met(v=-5.0)
        ens = _make_ensemble(1, lat=10.0)
        AdvectionModule().apply(ens, Interpolator(met, met), np.array([1000.0]))
        assert ens.lat[0] == pytest.approx(10.0 - 5.0 / KM_PER_DEG)

    def test_vertical_velocity_in_pressure(self):
        met = _make_met(w=-0.01)
        ens = _make_ensemble(1)
        AdvectionModule().apply(ens, Interpolator(met, met), np.array([1000.0]))
        assert ens.p[0] == pytest.approx(490.0)

    def test_backward_step(self):
        met = _make_met(u=10.0)
        ens = _make_ensemble(1)
        AdvectionModule().apply(ens, Interpolator(met, met), np.array([-3600.0]))
        assert ens.lon[0] == pytest.approx(-36.0 / KM_PER_DEG)
        assert ens.time[0] == -3600.0

    def test_inactive_particle_untouched(self):
        met = _make_met(u=10.0, v=3.0, w=0.01)
        ens = _make_ensemble(2)
        AdvectionModule().apply(ens, Interpolator(met, met), np.array([0.0, 600.0]))
        assert ens.lon[0] == 0.0 and ens.lat[0] == 0.0 and ens.p[0] == 500.0
        assert ens.time[0] == 0.0
        assert ens.lon[1] > 0.0


# ---------------------------------------------------------------------------
# Turbulent diffusion
# ---------------------------------------------------------------------------

class TestTurbulence:
    def test_zero_coefficients_leave_position_unchanged(self):
        cfg = ControlConfig(turb_dx_trop=0.0, turb_dx_strat=0.0,
                            turb_dz_trop=0.0, turb_dz_strat=0.0)
        ens = _make_ensemble(3)
        before = _snapshot(ens)
        TurbulenceModule(cfg).apply(ens, np.full(3, 180.0), np.ones(9))
        for key, value in before.items():
            np.testing.assert_array_equal(getattr(ens, key), value)

    def test_tropospheric_horizontal_step(self):
        cfg = ControlConfig(turb_dx_trop=50.0, turb_dz_trop=0.0)
        ens = _make_ensemble(1, p=800.0)
        TurbulenceModule(cfg).apply(ens, np.array([100.0]), np.ones(3))
        # sigma = sqrt(2 * 50 * 100) = 100 m
        assert ens.lon[0] == pytest.approx(0.1 / KM_PER_DEG)
        assert ens.lat[0] == pytest.approx(0.1 / KM_PER_DEG)
        assert ens.p[0] == 800.0

    def test_stratospheric_vertical_step(self):
        cfg = ControlConfig(turb_dx_trop=0.0, turb_dz_strat=0.5)
        ens = _make_ensemble(1, p=20.0)
        TurbulenceModule(cfg).apply(ens, np.array([100.0]), np.array([0.0, 0.0, 1.0]))
        # sigma = 10 m upward → pressure decreases
        assert ens.p[0] == pytest.approx(20.0 - 0.01 * 20.0 / 7.0)
        assert ens.lon[0] == 0.0

    def test_diffusivities_blend(self):
        cfg = ControlConfig(turb_dx_trop=50.0, turb_dx_strat=0.0)
        module = TurbulenceModule(cfg)
        dx, _ = module.diffusivities(np.zeros(2), np.zeros(2), np.array([900.0, 10.0]))
        np.testing.assert_allclose(dx, [50.0, 0.0])

    def test_inactive_particle_untouched(self):
        cfg = ControlConfig(turb_dx_trop=50.0, turb_dz_trop=1.0)
        ens = _make_ensemble(2, p=800.0)
        TurbulenceModule(cfg).apply(ens, np.array([0.0, 100.0]), np.ones(6))
        assert ens.lon[0] == 0.0 and ens.lat[0] == 0.0 and ens.p[0] == 800.0
        assert ens.p[1] != 800.0


# ---------------------------------------------------------------------------
# Mesoscale diffusion
# ---------------------------------------------------------------------------

class TestWindStatsCache:
    def test_uniform_wind_has_zero_sigma(self):
        met = _make_met()
        cells = [np.array([2]), np.array([5]), np.array([7])]
        usig, vsig, wsig = cell_wind_stddev(met, met, *cells)
        assert usig[0] == 0.0 and vsig[0] == 0.0 and wsig[0] == 0.0

    def test_two_valued_field(self):
        # 8 corners at 0 in met0 and 8 corners at 2 in met1 → std 1
        met0 = _make_met(u=0.0)
        met1 = _make_met(time=3600.0, u=2.0)
        usig, _, _ = cell_wind_stddev(met0, met1, np.array([0]), np.array([0]),
                                      np.array([0]))
        assert usig[0] == pytest.approx(1.0)

    def test_new_cache_is_stale(self):
        cache = WindStatsCache((2, 3, 4))
        assert np.all(np.isnan(cache.time))
        assert cache.usig.dtype == np.float32
        assert np.all(cache.stale(np.array([0]), np.array([0]), np.array([0]), 0.0))

    def test_lookup_fills_and_tags(self):
        met0 = _make_met(u=0.0)
        met1 = _make_met(time=3600.0, u=2.0)
        cache = WindStatsCache(met0.shape)
        iz, iy, ix = np.array([1, 1]), np.array([2, 2]), np.array([3, 3])
        usig, _, _ = cache.lookup(met0, met1, iz, iy, ix)
        np.testing.assert_allclose(usig, [1.0, 1.0])
        assert cache.time[1, 2, 3] == 0.0
        assert not np.any(cache.stale(iz, iy, ix, 0.0))
        assert np.all(cache.stale(iz, iy, ix, 3600.0))

    def test_shape_change_reallocates(self):
        cache = WindStatsCache((2, 2, 2))
        cache.time[:] = 0.0
        cache.ensure_shape((3, 2, 2))
        assert cache.shape == (3, 2, 2)
        assert np.all(np.isnan(cache.time))


class TestMesoscale:
    def test_ar1_decay_with_zero_variability(self):
        cfg = ControlConfig(turb_mesox=0.16, turb_mesoz=0.16, dt_met=21600.0)
        met = _make_met()
        ens = _make_ensemble(1, lat=0.0)
        ens.up[:] = 1.0
        ens.vp[:] = 2.0
        ens.wp[:] = 0.001
        dt = np.array([5400.0])  # r = 0.5
        MesoscaleModule(cfg).apply(ens, met, met, dt, np.ones(3))
        assert ens.up[0] == pytest.approx(0.5)
        assert ens.vp[0] == pytest.approx(1.0)
        assert ens.wp[0] == pytest.approx(0.0005)
        assert ens.lon[0] == pytest.approx(0.5 * 5.4 / KM_PER_DEG)
        assert ens.lat[0] == pytest.approx(1.0 * 5.4 / KM_PER_DEG)
        assert ens.p[0] == pytest.approx(500.0 + 0.0005 * 5400.0)

    def test_vertical_only(self):
        cfg = ControlConfig(turb_mesox=0.0, turb_mesoz=0.16)
        met = _make_met()
        ens = _make_ensemble(1)
        ens.up[:] = 1.0
        MesoscaleModule(cfg).apply(ens, met, met, np.array([5400.0]), np.ones(3))
        assert ens.up[0] == 1.0
        assert ens.lon[0] == 0.0

    def test_noise_scales_with_sigma(self):
        cfg = ControlConfig(turb_mesox=0.5, turb_mesoz=0.0, dt_met=21600.0)
        met0 = _make_met(u=0.0)
        met1 = _make_met(time=21600.0, u=2.0)
        ens = _make_ensemble(1)
        dt = np.array([5400.0])
        MesoscaleModule(cfg).apply(ens, met0, met1, dt, np.array([1.0, 0.0, 0.0]))
        # usig = 1, r = 0.5 → up = sqrt(0.75) * 0.5
        assert ens.up[0] == pytest.approx(np.sqrt(0.75) * 0.5, rel=1e-6)
        assert ens.vp[0] == 0.0

    def test_inactive_particle_untouched(self):
        cfg = ControlConfig()
        met = _make_met()
        ens = _make_ensemble(2)
        ens.up[:] = 1.0
        MesoscaleModule(cfg).apply(ens, met, met, np.array([0.0, 180.0]), np.ones(6))
        assert ens.up[0] == 1.0 and ens.lon[0] == 0.0
        assert ens.up[1] != 1.0

    def test_cache_shared_across_steps(self):
        cfg = ControlConfig()
        met = _make_met()
        module = MesoscaleModule(cfg)
        ens = _make_ensemble(1)
        module.apply(ens, met, met, np.array([180.0]), np.zeros(3))
        assert module.cache.shape == met.shape
        assert np.count_nonzero(module.cache.time == 0.0) == 1

    def test_threaded_cache_fill_matches_single_kernel(self):
        """Workers filling shared cells concurrently give identical results."""
        cfg = ControlConfig()
        rng = np.random.default_rng(7)
        met0 = _make_met(0.0, u=rng.normal(10.0, 5.0, SHAPE),
                         v=rng.normal(0.0, 5.0, SHAPE), w=rng.normal(0.0, 1e-3, SHAPE))
        met1 = _make_met(21600.0, u=rng.normal(10.0, 5.0, SHAPE),
                         v=rng.normal(0.0, 5.0, SHAPE), w=rng.normal(0.0, 1e-3, SHAPE))
        n = 4000
        # A small region, so that many particles share each grid cell
        lon = rng.uniform(-20.0, 20.0, n)
        lat = rng.uniform(-15.0, 15.0, n)
        p = rng.uniform(300.0, 700.0, n)
        dt = np.full(n, 1800.0)
        dt[::17] = 0.0
        rs = rng.standard_normal(3 * n)

        results = []
        for backend in (NumpyBackend(), ThreadedBackend(8)):
            ens = ParticleEnsemble.from_arrays(time=np.zeros(n), lon=lon, lat=lat, p=p)
            ens.up[:] = 0.5
            ens.vp[:] = -0.5
            ens.wp[:] = 1e-4
            with backend:
                MesoscaleModule(cfg, backend).apply(ens, met0, met1, dt, rs.copy())
            results.append(ens)

        single, threaded = results
        for name in ("lon", "lat", "p", "up", "vp", "wp"):
            np.testing.assert_array_equal(getattr(single, name), getattr(threaded, name))
