"""Exponential decay of particle mass."""

from __future__ import annotations

import numpy as np

from pytrac.compute.backend import ComputeBackend, NumpyBackend, active_indices
from pytrac.core.climatology import clim_tropo, tropopause_weight
from pytrac.core.models import ConfigError, ControlConfig, ParticleEnsemble


class DecayModule:
    """``m *= exp(-dt / tdec)`` with a tropopause-blended lifetime.

    Parameters
    ----------
    config : ControlConfig
        Run configuration (``tdec_trop``, ``tdec_strat``, quantity ``m``).
    backend : ComputeBackend, optional
        Execution backend; defaults to :class:`NumpyBackend`.
    """

    def __init__(self, config: ControlConfig,
                 backend: ComputeBackend | None = None) -> None:
        if not config.decay_on:
            raise ConfigError(
                "Decay needs TDEC_TROP > 0, TDEC_STRAT > 0 and quantity 'm'"
            )
        self.config = config
        self.backend = backend if backend is not None else NumpyBackend()
        self.slot_m = config.quantities.slot("m")

    def lifetime(self, t: np.ndarray, lat: np.ndarray, p: np.ndarray) -> np.ndarray:
        """Blended e-folding lifetime (s)."""
        w = tropopause_weight(p, clim_tropo(t, lat))
        return w * self.config.tdec_trop + (1.0 - w) * self.config.tdec_strat

    def apply(self, ensemble: ParticleEnsemble, dt: np.ndarray) -> None:
        ens = ensemble

        def kernel(worker: int, start: int, stop: int) -> None:
            idx = active_indices(dt, start, stop)
            if idx.size == 0:
                return
            tdec = self.lifetime(ens.time[idx], ens.lat[idx], ens.p[idx])
            ens.q[self.slot_m, idx] *= np.exp(-dt[idx] / tdec)

        self.backend.launch(kernel, ens.num_particles)
