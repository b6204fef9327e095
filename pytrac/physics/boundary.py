"""Position normalisation for particle positions.

Wraps longitude, reflects latitude across the poles and keeps pressure
inside the model domain. Applied before and after the motion modules of
every step; applying it twice gives the same result as applying it once.
"""

from __future__ import annotations

import numpy as np

from pytrac.compute.backend import ComputeBackend, NumpyBackend, active_indices
from pytrac.core.interpolator import Interpolator
from pytrac.core.models import ParticleEnsemble

# Pressure (hPa) above which particles are checked against surface pressure
SURFACE_CHECK_P = 300.0


class BoundaryHandler:
    """Applies domain corrections to active particles.

    Parameters
    ----------
    backend : ComputeBackend, optional
        Execution backend; defaults to :class:`NumpyBackend`.
    """

    def __init__(self, backend: ComputeBackend | None = None) -> None:
        self.backend = backend if backend is not None else NumpyBackend()

    def apply(self, ensemble: ParticleEnsemble, interp: Interpolator,
              dt: np.ndarray) -> None:
        """Normalise position of all active particles.

        Processing order:
        1. Longitude/latitude reduced modulo 360°
        2. Pole reflection (lat → [-90, 90] with a 180° longitude shift)
        3. Longitude wrapped into [-180, 180)
        4. Pressure clamped to the lowest model level, and below 300 hPa
           altitude to the local surface pressure
        """
        ens = ensemble
        p_top = interp.met0.p_top

        def kernel(worker: int, start: int, stop: int) -> None:
            idx = active_indices(dt, start, stop)
            if idx.size == 0:
                return
            lon, lat = normalize_lon_lat(ens.lon[idx], ens.lat[idx])
            ens.lon[idx] = lon
            ens.lat[idx] = lat

            p = ens.p[idx]
            p = np.where(p < p_top, p_top, p)
            deep = p > SURFACE_CHECK_P
            if np.any(deep):
                di = idx[deep]
                ps = interp.sample(ens.time[di], p[deep], lon[deep], lat[deep],
                                   ("ps",))["ps"]
                p[deep] = np.minimum(p[deep], ps)
            ens.p[idx] = p

        self.backend.launch(kernel, ens.num_particles)


# -----------------------------------------------------------------------
# Pure helper functions (easy to test independently)
# -----------------------------------------------------------------------

def normalize_lon_lat(lon, lat) -> tuple[np.ndarray, np.ndarray]:
    """Normalise longitude to [-180, 180) and latitude to [-90, 90].

    Values beyond ±360° are first reduced with a C-style ``fmod``.
    Crossing a pole reflects the latitude and shifts longitude by 180°.
    """
    lon = np.array(lon, dtype=np.float64, ndmin=1)
    lat = np.array(lat, dtype=np.float64, ndmin=1)

    big = np.abs(lon) > 360.0
    lon[big] = np.fmod(lon[big], 360.0)
    big = np.abs(lat) > 360.0
    lat[big] = np.fmod(lat[big], 360.0)

    lon, lat = _reflect_poles(lon, lat)
    return _normalize_lon(lon), lat


def _reflect_poles(lon: np.ndarray, lat: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Reflect latitudes outside [-90, 90] across the pole they crossed."""
    while True:
        north = lat > 90.0
        south = lat < -90.0
        if not (np.any(north) or np.any(south)):
            return lon, lat
        lat = np.where(north, 180.0 - lat, lat)
        lat = np.where(south, -180.0 - lat, lat)
        lon = np.where(north | south, lon + 180.0, lon)


def _normalize_lon(lon: np.ndarray) -> np.ndarray:
    """Wrap longitude into [-180, 180)."""
    while np.any(lon < -180.0):
        lon = np.where(lon < -180.0, lon + 360.0, lon)
    while np.any(lon >= 180.0):
        lon = np.where(lon >= 180.0, lon - 360.0, lon)
    return lon
