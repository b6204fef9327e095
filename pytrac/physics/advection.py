"""Advection of particles by the resolved wind (midpoint method).

The wind is sampled at the particle position, the particle is moved half
a step to a midpoint, the wind is resampled there and the full-step
displacement from the midpoint wind is applied to the original position.
"""

from __future__ import annotations

import numpy as np

from pytrac.compute.backend import ComputeBackend, NumpyBackend, active_indices
from pytrac.core.interpolator import Interpolator
from pytrac.core.models import ParticleEnsemble
from pytrac.utils.conversions import CoordinateConverter

_WIND = ("u", "v", "w")


class AdvectionModule:
    """Explicit midpoint integrator in (lon, lat, p).

    Parameters
    ----------
    backend : ComputeBackend, optional
        Execution backend; defaults to :class:`NumpyBackend`.
    """

    def __init__(self, backend: ComputeBackend | None = None) -> None:
        self.backend = backend if backend is not None else NumpyBackend()

    def apply(self, ensemble: ParticleEnsemble, interp: Interpolator,
              dt: np.ndarray) -> None:
        """Advance all active particles by their own time step *dt*.

        Particle time is advanced by ``dt`` as well. Particles with
        ``dt == 0`` are not touched.
        """
        ens = ensemble

        def kernel(worker: int, start: int, stop: int) -> None:
            idx = active_indices(dt, start, stop)
            if idx.size == 0:
                return
            lon, lat, p = ens.lon[idx], ens.lat[idx], ens.p[idx]
            t, step = ens.time[idx], dt[idx]

            wind = interp.sample(t, p, lon, lat, _WIND)
            half = 0.5 * step
            xm_lon = lon + CoordinateConverter.dx2deg(half * wind["u"] / 1000.0, lat)
            xm_lat = lat + CoordinateConverter.dy2deg(half * wind["v"] / 1000.0)
            xm_p = p + half * wind["w"]

            wind = interp.sample(t + half, xm_p, xm_lon, xm_lat, _WIND)
            ens.lon[idx] = lon + CoordinateConverter.dx2deg(
                step * wind["u"] / 1000.0, xm_lat)
            ens.lat[idx] = lat + CoordinateConverter.dy2deg(step * wind["v"] / 1000.0)
            ens.p[idx] = p + step * wind["w"]
            ens.time[idx] = t + step

        self.backend.launch(kernel, ens.num_particles)
