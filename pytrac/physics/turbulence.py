"""Turbulent diffusion module for pytrac.

Isotropic stochastic diffusion whose horizontal and vertical diffusivities
are blended between tropospheric and stratospheric values by the parcel's
position relative to the climatological tropopause.
"""

from __future__ import annotations

import numpy as np

from pytrac.compute.backend import ComputeBackend, NumpyBackend, active_indices
from pytrac.core.climatology import clim_tropo, tropopause_weight
from pytrac.core.models import ControlConfig, ParticleEnsemble
from pytrac.utils.conversions import CoordinateConverter


class TurbulenceModule:
    """Random-walk diffusion with tropopause-blended diffusivities.

    Parameters
    ----------
    config : ControlConfig
        Run configuration (``turb_dx_*``, ``turb_dz_*``).
    backend : ComputeBackend, optional
        Execution backend; defaults to :class:`NumpyBackend`.
    """

    def __init__(self, config: ControlConfig,
                 backend: ComputeBackend | None = None) -> None:
        self.config = config
        self.backend = backend if backend is not None else NumpyBackend()

    # ------------------------------------------------------------------
    # Diffusivities
    # ------------------------------------------------------------------

    def diffusivities(self, t: np.ndarray, lat: np.ndarray,
                      p: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Blended horizontal and vertical diffusivities (m²/s).

        Returns
        -------
        tuple of np.ndarray
            ``(dx, dz)``; tropospheric values below the tropopause
            transition layer, stratospheric values above it.
        """
        cfg = self.config
        w = tropopause_weight(p, clim_tropo(t, lat))
        dx = w * cfg.turb_dx_trop + (1.0 - w) * cfg.turb_dx_strat
        dz = w * cfg.turb_dz_trop + (1.0 - w) * cfg.turb_dz_strat
        return dx, dz

    @staticmethod
    def sigma(diffusivity: np.ndarray, dt: np.ndarray) -> np.ndarray:
        """Standard deviation (m) of a random-walk step: ``sqrt(2 D |dt|)``."""
        return np.sqrt(2.0 * np.maximum(diffusivity, 0.0) * np.abs(dt))

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    def apply(self, ensemble: ParticleEnsemble, dt: np.ndarray,
              rs: np.ndarray) -> None:
        """Displace active particles by one random-walk step.

        Parameters
        ----------
        ensemble : ParticleEnsemble
            Particles, modified in place.
        dt : np.ndarray
            Per-particle time step (s); 0 marks inactive particles.
        rs : np.ndarray
            ``3 * N`` standard-normal samples, three per particle.
        """
        ens = ensemble
        rs = np.asarray(rs).reshape(-1, 3)

        def kernel(worker: int, start: int, stop: int) -> None:
            idx = active_indices(dt, start, stop)
            if idx.size == 0:
                return
            lat, p = ens.lat[idx], ens.p[idx]
            dx, dz = self.diffusivities(ens.time[idx], lat, p)

            horiz = dx > 0
            if np.any(horiz):
                hi = idx[horiz]
                sig = self.sigma(dx[horiz], dt[hi])
                ens.lon[hi] += CoordinateConverter.dx2deg(
                    rs[hi, 0] * sig / 1000.0, lat[horiz])
                ens.lat[hi] += CoordinateConverter.dy2deg(rs[hi, 1] * sig / 1000.0)

            vert = dz > 0
            if np.any(vert):
                vi = idx[vert]
                sig = self.sigma(dz[vert], dt[vi])
                ens.p[vi] += CoordinateConverter.dz2dp(
                    rs[vi, 2] * sig / 1000.0, p[vert])

        self.backend.launch(kernel, ens.num_particles)
