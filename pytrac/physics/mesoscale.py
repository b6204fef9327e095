"""Mesoscale diffusion: sub-grid wind fluctuations as an AR(1) process.

The amplitude of the fluctuations follows the local variability of the
resolved wind, measured as the standard deviation of the 16 wind samples
at the corners of the particle's grid cell in both snapshots. Those
standard deviations are cached per grid cell and tagged with the time of
the earlier snapshot.
"""

from __future__ import annotations

import logging

import numpy as np

from pytrac.compute.backend import ComputeBackend, NumpyBackend, active_indices
from pytrac.core.interpolator import locate_irr, locate_reg
from pytrac.core.models import ControlConfig, MetSnapshot, ParticleEnsemble
from pytrac.utils.conversions import CoordinateConverter

logger = logging.getLogger(__name__)

# Corner offsets (dz, dy, dx) of a grid cell, in accumulation order
_CORNERS = tuple((dz, dy, dx) for dz in (0, 1) for dy in (0, 1) for dx in (0, 1))


# ---------------------------------------------------------------------------
# Cell statistics
# ---------------------------------------------------------------------------

def cell_wind_stddev(met0: MetSnapshot, met1: MetSnapshot, iz: np.ndarray,
                     iy: np.ndarray, ix: np.ndarray) -> tuple[np.ndarray, ...]:
    """Standard deviation of u, v, w over the 16 corner samples of cells.

    The 8 corners of each cell ``(iz, iy, ix)`` are taken from both
    snapshots. Sums are accumulated in a fixed order, so the result is a
    pure function of the grid data and the cell index.

    Returns
    -------
    tuple of np.ndarray
        ``(usig, vsig, wsig)``, one value per cell.
    """
    out = []
    for name in ("u", "v", "w"):
        total = np.zeros(np.shape(iz))
        total_sq = np.zeros(np.shape(iz))
        for met in (met0, met1):
            var = getattr(met, name)
            for dz, dy, dx in _CORNERS:
                x = var[iz + dz, iy + dy, ix + dx]
                total = total + x
                total_sq = total_sq + x * x
        mean = total / 16.0
        out.append(np.sqrt(np.maximum(total_sq / 16.0 - mean * mean, 0.0)))
    return tuple(out)


class WindStatsCache:
    """Per-cell cache of wind standard deviations.

    Arrays are indexed ``[iz, iy, ix]``. An entry is valid iff its
    ``time`` equals the time of the current earlier snapshot; ``NaN``
    marks an entry that was never filled.
    """

    def __init__(self, shape: tuple[int, int, int] = (0, 0, 0)) -> None:
        self._allocate(shape)

    def _allocate(self, shape: tuple[int, int, int]) -> None:
        self.shape = tuple(shape)
        self.usig = np.zeros(self.shape, dtype=np.float32)
        self.vsig = np.zeros(self.shape, dtype=np.float32)
        self.wsig = np.zeros(self.shape, dtype=np.float32)
        self.time = np.full(self.shape, np.nan, dtype=np.float64)

    def ensure_shape(self, shape: tuple[int, int, int]) -> None:
        """Reallocate (and so invalidate) the cache if the grid changed."""
        if tuple(shape) != self.shape:
            logger.debug(f"Allocating wind statistics cache for grid {shape}")
            self._allocate(shape)

    def stale(self, iz, iy, ix, t: float) -> np.ndarray:
        """Mask of cells whose entry was not computed for time *t*."""
        return self.time[iz, iy, ix] != t

    def fill(self, met0: MetSnapshot, met1: MetSnapshot, iz, iy, ix) -> None:
        """Recompute the entries of the given cells from *met0*/*met1*.

        The three sigmas are written before the timestamp, so an entry
        never looks valid while holding old values.
        """
        cells = np.unique(np.stack([iz, iy, ix]), axis=1)
        cz, cy, cx = cells
        usig, vsig, wsig = cell_wind_stddev(met0, met1, cz, cy, cx)
        self.usig[cz, cy, cx] = usig
        self.vsig[cz, cy, cx] = vsig
        self.wsig[cz, cy, cx] = wsig
        self.time[cz, cy, cx] = met0.time

    def lookup(self, met0: MetSnapshot, met1: MetSnapshot, iz, iy, ix):
        """Return ``(usig, vsig, wsig)`` for the cells, filling stale ones."""
        stale = self.stale(iz, iy, ix, met0.time)
        if np.any(stale):
            self.fill(met0, met1, iz[stale], iy[stale], ix[stale])
        return (self.usig[iz, iy, ix].astype(np.float64),
                self.vsig[iz, iy, ix].astype(np.float64),
                self.wsig[iz, iy, ix].astype(np.float64))


# ---------------------------------------------------------------------------
# Module
# ---------------------------------------------------------------------------

class MesoscaleModule:
    """Mean-reverting sub-grid wind fluctuations.

    ``fluct_new = r * fluct_old + sqrt(1 - r²) * N(0,1) * coef * sigma``
    with ``r = 1 - 2 |dt| / dt_met``.

    Parameters
    ----------
    config : ControlConfig
        Run configuration (``turb_mesox``, ``turb_mesoz``, ``dt_met``).
    backend : ComputeBackend, optional
        Execution backend; defaults to :class:`NumpyBackend`.
    cache : WindStatsCache, optional
        Shared cell statistics; a fresh cache is created if omitted.
    """

    def __init__(self, config: ControlConfig,
                 backend: ComputeBackend | None = None,
                 cache: WindStatsCache | None = None) -> None:
        self.config = config
        self.backend = backend if backend is not None else NumpyBackend()
        self.cache = cache if cache is not None else WindStatsCache()

    @staticmethod
    def locate_cells(met0: MetSnapshot, p: np.ndarray, lon: np.ndarray,
                     lat: np.ndarray) -> tuple[np.ndarray, ...]:
        """Grid cell ``(iz, iy, ix)`` enclosing each position."""
        if met0.lon[-1] > 180:
            lon = np.where(lon < 0, lon + 360.0, lon)
        return (locate_irr(met0.p, p), locate_reg(met0.lat, lat),
                locate_reg(met0.lon, lon))

    def apply(self, ensemble: ParticleEnsemble, met0: MetSnapshot,
              met1: MetSnapshot, dt: np.ndarray, rs: np.ndarray) -> None:
        """Update fluctuation memory and displace active particles.

        Parameters
        ----------
        ensemble : ParticleEnsemble
            Particles, modified in place (position and ``up``/``vp``/``wp``).
        met0, met1 : MetSnapshot
            Current snapshot pair.
        dt : np.ndarray
            Per-particle time step (s); 0 marks inactive particles.
        rs : np.ndarray
            ``3 * N`` standard-normal samples, three per particle.
        """
        cfg = self.config
        ens = ensemble
        rs = np.asarray(rs).reshape(-1, 3)
        self.cache.ensure_shape(met0.shape)

        def kernel(worker: int, start: int, stop: int) -> None:
            idx = active_indices(dt, start, stop)
            if idx.size == 0:
                return
            lat = ens.lat[idx]
            iz, iy, ix = self.locate_cells(met0, ens.p[idx], ens.lon[idx], lat)
            usig, vsig, wsig = self.cache.lookup(met0, met1, iz, iy, ix)

            step = dt[idx]
            r = 1.0 - 2.0 * np.abs(step) / cfg.dt_met
            r2 = np.sqrt(np.maximum(1.0 - r * r, 0.0))

            if cfg.turb_mesox > 0:
                up = r * ens.up[idx] + r2 * rs[idx, 0] * cfg.turb_mesox * usig
                vp = r * ens.vp[idx] + r2 * rs[idx, 1] * cfg.turb_mesox * vsig
                ens.up[idx] = up
                ens.vp[idx] = vp
                ens.lon[idx] += CoordinateConverter.dx2deg(up * step / 1000.0, lat)
                ens.lat[idx] = lat + CoordinateConverter.dy2deg(vp * step / 1000.0)

            if cfg.turb_mesoz > 0:
                wp = r * ens.wp[idx] + r2 * rs[idx, 2] * cfg.turb_mesoz * wsig
                ens.wp[idx] = wp
                ens.p[idx] += wp * step

        self.backend.launch(kernel, ens.num_particles)
