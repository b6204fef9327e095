"""Sedimentation module for pytrac.

Gravitational settling of spherical particles with the Cunningham
slip-flow correction. The settling velocity depends on the local air
density, dynamic viscosity and mean free path, and on the particle's own
radius and density quantities.

References:
    - Kasten (1968), J. Appl. Meteorol. 7, 944-947
    - Jacobson (2005), Fundamentals of Atmospheric Modeling, Ch. 20
"""

from __future__ import annotations

import numpy as np

from pytrac.compute.backend import ComputeBackend, NumpyBackend, active_indices
from pytrac.core.interpolator import Interpolator
from pytrac.core.models import ConfigError, ControlConfig, ParticleEnsemble
from pytrac.utils.conversions import G0, KB, RA, CoordinateConverter

# Cunningham slip-correction constants
CUNNINGHAM_A = 1.249
CUNNINGHAM_B = 0.42
CUNNINGHAM_C = 0.87

# Average mass of an air molecule (kg)
AIR_MOLECULE_MASS = 4.8096e-26


def settling_velocity(p: np.ndarray, t: np.ndarray, r_um: np.ndarray,
                      rho_p: np.ndarray) -> np.ndarray:
    """Terminal settling velocity (m/s) of spherical particles.

    Parameters
    ----------
    p : array_like
        Pressure (hPa).
    t : array_like
        Temperature (K).
    r_um : array_like
        Particle radius (microns).
    rho_p : array_like
        Particle density (kg/m³).

    Returns
    -------
    np.ndarray
        Settling velocity (m/s), positive downward for ``rho_p > rho``.
    """
    p = np.asarray(p, dtype=np.float64)
    t = np.asarray(t, dtype=np.float64)
    r = np.asarray(r_um, dtype=np.float64) * 1e-6

    # Air density from the ideal gas law (kg/m³)
    rho = 100.0 * p / (RA * t)
    # Dynamic viscosity (Sutherland-type fit, Pa·s)
    eta = 1.8325e-5 * (416.16 / (t + 120.0)) * (t / 296.16) ** 1.5
    # Mean thermal velocity of air molecules (m/s)
    v = np.sqrt(8.0 * KB * t / (np.pi * AIR_MOLECULE_MASS))
    # Mean free path and Knudsen number
    lam = 2.0 * eta / (rho * v)
    knudsen = lam / r
    slip = 1.0 + knudsen * (CUNNINGHAM_A
                            + CUNNINGHAM_B * np.exp(-CUNNINGHAM_C / knudsen))

    return 2.0 * r * r * (np.asarray(rho_p) - rho) * G0 / (9.0 * eta) * slip


class SedimentationModule:
    """Moves particles down by their settling velocity.

    Parameters
    ----------
    config : ControlConfig
        Run configuration; quantities ``r`` and ``rho`` must be enabled.
    backend : ComputeBackend, optional
        Execution backend; defaults to :class:`NumpyBackend`.

    Raises
    ------
    ConfigError
        If the radius or density quantity is not enabled.
    """

    def __init__(self, config: ControlConfig,
                 backend: ComputeBackend | None = None) -> None:
        if not config.sedimentation_on:
            raise ConfigError("Sedimentation needs quantities 'r' and 'rho'")
        self.config = config
        self.backend = backend if backend is not None else NumpyBackend()
        self.slot_r = config.quantities.slot("r")
        self.slot_rho = config.quantities.slot("rho")

    def apply(self, ensemble: ParticleEnsemble, interp: Interpolator,
              dt: np.ndarray) -> None:
        """Apply one step of settling to the active particles."""
        ens = ensemble

        def kernel(worker: int, start: int, stop: int) -> None:
            idx = active_indices(dt, start, stop)
            if idx.size == 0:
                return
            p = ens.p[idx]
            temp = interp.sample(ens.time[idx], p, ens.lon[idx], ens.lat[idx],
                                 ("t",))["t"]
            v_p = settling_velocity(p, temp, ens.q[self.slot_r, idx],
                                    ens.q[self.slot_rho, idx])
            # A falling parcel moves to higher pressure in forward time
            ens.p[idx] = p + CoordinateConverter.dz2dp(-v_p * dt[idx] / 1000.0, p)

        self.backend.launch(kernel, ens.num_particles)
