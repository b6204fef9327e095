"""Main simulation driver for pytrac.

Assembles the physics modules, the execution backend and the random
supply, and runs the fixed-step loop for forward and backward runs:

    position → advection → turbulent diffusion → mesoscale diffusion
    → sedimentation → isosurface → position → meteo sampling → decay
    → output

Each step only touches particles whose own time lies inside the run
window and has not yet reached the step time.
"""

from __future__ import annotations

import logging
import math
from typing import Callable, Optional

import numpy as np

from pytrac.compute.backend import ComputeBackend, get_backend
from pytrac.compute.rng import RandomSupply, get_rng
from pytrac.core.interpolator import Interpolator
from pytrac.core.models import (
    ControlConfig,
    MetSnapshot,
    ParticleEnsemble,
    TimeWindowError,
)
from pytrac.data.met_provider import MetProvider
from pytrac.physics.advection import AdvectionModule
from pytrac.physics.boundary import BoundaryHandler
from pytrac.physics.decay import DecayModule
from pytrac.physics.isosurface import IsosurfaceModule
from pytrac.physics.mesoscale import MesoscaleModule
from pytrac.physics.meteo import MeteoSampler
from pytrac.physics.sedimentation import SedimentationModule
from pytrac.physics.turbulence import TurbulenceModule

logger = logging.getLogger(__name__)

OutputCallback = Callable[[float, ParticleEnsemble, MetSnapshot, MetSnapshot], None]

# Metres per degree of latitude and the wind speed (m/s) used for the CFL check
_M_PER_DEG = 111132.0
_CFL_WIND = 150.0


class ParticleEngine:
    """Lagrangian particle integration engine.

    Parameters
    ----------
    config : ControlConfig
        Run configuration.
    provider : MetProvider
        Source of the meteorological snapshot pair for each step.
    backend : ComputeBackend or None
        Execution backend. If *None*, a thread pool is used when
        ``config.num_threads`` is greater than one and ``config.use_gpu``
        is off, otherwise the single-kernel NumPy backend.
    rng : RandomSupply or None
        Normal sample supply for the stochastic modules. If *None*, one
        matching *backend* is created from ``config.rng_seed`` and
        ``config.use_gpu``.
    output : callable or None
        ``output(t, ensemble, met0, met1)``, called at the end of every step.
    """

    def __init__(
        self,
        config: ControlConfig,
        provider: MetProvider,
        backend: Optional[ComputeBackend] = None,
        rng: Optional[RandomSupply] = None,
        output: Optional[OutputCallback] = None,
    ) -> None:
        self.config = config
        self.provider = provider

        # --- Performance layer ---
        if backend is None:
            if (not config.use_gpu and config.num_threads is not None
                    and config.num_threads > 1):
                backend = get_backend("threads", config.num_threads)
            else:
                backend = get_backend("numpy")
        self.backend: ComputeBackend = backend
        self.rng: RandomSupply = rng or get_rng(backend, config.rng_seed,
                                                config.use_gpu)
        self.output = output

        # --- Assemble components ---
        self.position = BoundaryHandler(backend)
        self.advection = AdvectionModule(backend)
        self.turbulence: Optional[TurbulenceModule] = None
        if config.turbulence_on:
            self.turbulence = TurbulenceModule(config, backend)
        self.mesoscale: Optional[MesoscaleModule] = None
        if config.mesoscale_on:
            self.mesoscale = MesoscaleModule(config, backend)
        self.sedimentation: Optional[SedimentationModule] = None
        if config.sedimentation_on:
            self.sedimentation = SedimentationModule(config, backend)
        self.isosurface: Optional[IsosurfaceModule] = None
        if config.isosurface_on:
            self.isosurface = IsosurfaceModule(config, backend)
        self.meteo = MeteoSampler(config, backend)
        self.decay: Optional[DecayModule] = None
        if config.decay_on:
            self.decay = DecayModule(config, backend)

        self.t_start: Optional[float] = None
        self.t_stop: Optional[float] = None

    # ------------------------------------------------------------------
    # Time window
    # ------------------------------------------------------------------

    def resolve_time_window(self, ensemble: ParticleEnsemble) -> tuple[float, float]:
        """Determine ``(t_start, t_stop)`` for a run.

        Missing bounds are taken from the particle times (earliest first
        for forward runs, latest first for backward runs). The start is
        rounded to a multiple of ``dt_mod`` away from the stop time.

        Raises
        ------
        TimeWindowError
            If the window is empty or points against the run direction.
        """
        cfg = self.config
        d = cfg.direction
        if ensemble.num_particles > 0:
            first = np.min(ensemble.time) if d == 1 else np.max(ensemble.time)
            last = np.max(ensemble.time) if d == 1 else np.min(ensemble.time)
        else:
            first = last = np.nan

        t_start = float(first) if cfg.t_start is None else float(cfg.t_start)
        t_stop = float(last) if cfg.t_stop is None else float(cfg.t_stop)

        if not d * (t_stop - t_start) > 0:
            raise TimeWindowError(
                f"Nothing to do: t_start={t_start}, t_stop={t_stop}, direction={d}"
            )

        if d == 1:
            t_start = math.floor(t_start / cfg.dt_mod) * cfg.dt_mod
        else:
            t_start = math.ceil(t_start / cfg.dt_mod) * cfg.dt_mod

        self.t_start, self.t_stop = t_start, t_stop
        logger.info(f"Time window: {t_start} → {t_stop} (direction {d})")
        return t_start, t_stop

    def compute_timesteps(self, ensemble: ParticleEnsemble, t: float) -> np.ndarray:
        """Per-particle time step towards step time *t*.

        ``dt = t - time`` for particles inside the window that have not
        reached *t* yet, 0 (inactive) for all others.
        """
        if self.t_start is None or self.t_stop is None:
            self.resolve_time_window(ensemble)
        d = self.config.direction
        time = ensemble.time
        active = ((d * (time - self.t_start) >= 0)
                  & (d * (time - self.t_stop) <= 0)
                  & (d * (time - t) < 0))
        return np.where(active, t - time, 0.0)

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    def run(self, ensemble: ParticleEnsemble) -> ParticleEnsemble:
        """Integrate *ensemble* over the run window in place.

        Returns
        -------
        ParticleEnsemble
            The same ensemble, advanced to ``t_stop``.
        """
        cfg = self.config
        t_start, t_stop = self.resolve_time_window(ensemble)

        met0, met1 = self.provider.get_met(t_start)
        self._check_cfl(met0)
        interp = Interpolator(met0, met1)

        if self.isosurface is not None:
            self.isosurface.initialize(ensemble, interp)

        t = t_start
        n_steps = 0
        while cfg.direction * (t - t_stop) < cfg.dt_mod:
            # Final step lands exactly on t_stop
            if cfg.direction * (t - t_stop) > 0:
                t = t_stop

            dt = self.compute_timesteps(ensemble, t)

            if t != t_start:
                met0, met1 = self.provider.get_met(t)
                interp = Interpolator(met0, met1)

            self._step(ensemble, interp, t, dt)

            if self.output is not None:
                self.output(t, ensemble, met0, met1)

            n_steps += 1
            t += cfg.direction * cfg.dt_mod

        logger.info(
            f"Run complete: {n_steps} steps, {ensemble.num_particles} particles, "
            f"backend={self.backend.name}, workers={self.backend.num_workers}"
        )
        logger.info(
            f"Memory: particles {self._ensemble_mbytes(ensemble):.3g} MByte, "
            f"meteo {2 * self._met_mbytes(met0):.3g} MByte"
        )
        return ensemble

    def _step(self, ensemble: ParticleEnsemble, interp: Interpolator,
              t: float, dt: np.ndarray) -> None:
        """Apply all enabled modules for step time *t*."""
        n = ensemble.num_particles
        logger.debug(f"Step t={t}: {int(np.count_nonzero(dt))} active of {n}")

        self.position.apply(ensemble, interp, dt)
        self.advection.apply(ensemble, interp, dt)

        if self.turbulence is not None:
            self.turbulence.apply(ensemble, dt, self.rng.normal(3 * n))

        if self.mesoscale is not None:
            self.mesoscale.apply(ensemble, interp.met0, interp.met1, dt,
                                 self.rng.normal(3 * n))

        if self.sedimentation is not None:
            self.sedimentation.apply(ensemble, interp, dt)

        if self.isosurface is not None:
            self.isosurface.restore(ensemble, interp, dt)

        self.position.apply(ensemble, interp, dt)

        if self.meteo.due(t):
            self.meteo.apply(ensemble, interp, dt)

        if self.decay is not None:
            self.decay.apply(ensemble, dt)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def _check_cfl(self, met0: MetSnapshot) -> None:
        if len(met0.lon) < 2:
            return
        limit = abs(met0.lon[1] - met0.lon[0]) * _M_PER_DEG / _CFL_WIND
        if self.config.dt_mod > limit:
            logger.warning(
                f"Violation of CFL criterion: DT_MOD={self.config.dt_mod} s "
                f"exceeds {limit:.1f} s for the grid spacing"
            )

    @staticmethod
    def _ensemble_mbytes(ensemble: ParticleEnsemble) -> float:
        arrays = (ensemble.time, ensemble.lon, ensemble.lat, ensemble.p,
                  ensemble.q, ensemble.up, ensemble.vp, ensemble.wp,
                  ensemble.iso_var)
        return sum(a.nbytes for a in arrays) / 1024.0 / 1024.0

    @staticmethod
    def _met_mbytes(met: MetSnapshot) -> float:
        total = 0
        for name in ("u", "v", "w", "t", "ps", "pt", "z", "pv", "h2o", "o3"):
            arr = getattr(met, name)
            if arr is not None:
                total += np.asarray(arr).nbytes
        return total / 1024.0 / 1024.0

    def close(self) -> None:
        """Release the random supply and the backend."""
        self.rng.close()
        self.backend.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        self.close()
