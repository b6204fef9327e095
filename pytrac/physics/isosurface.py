"""Isosurface constraint: keep particles on a surface of constant value.

Modes (``ISOSURF``):

1. Isobaric: pressure is conserved.
2. Isopycnic: density, as ``p / T``, is conserved.
3. Isentropic: potential temperature is conserved.
4. Balloon: pressure follows an external time/pressure table.

:meth:`IsosurfaceModule.initialize` records the conserved value once before
the step loop and :meth:`IsosurfaceModule.restore` recomputes the pressure
from it after every step.
"""

from __future__ import annotations

import logging

import numpy as np

from pytrac.compute.backend import ComputeBackend, NumpyBackend, active_indices
from pytrac.core.interpolator import Interpolator
from pytrac.core.models import (
    BalloonDataError,
    ConfigError,
    ControlConfig,
    ParticleEnsemble,
)
from pytrac.utils.conversions import CoordinateConverter

logger = logging.getLogger(__name__)

ISOBARIC = 1
ISOPYCNIC = 2
ISENTROPIC = 3
BALLOON = 4


def read_balloon_table(path: str, capacity: int) -> tuple[np.ndarray, np.ndarray]:
    """Read a two-column ``time pressure`` table.

    Lines that do not start with two numbers are skipped.

    Parameters
    ----------
    path : str
        Table file path.
    capacity : int
        Maximum number of rows.

    Returns
    -------
    tuple of np.ndarray
        ``(times, pressures)`` in file order.

    Raises
    ------
    BalloonDataError
        If the file cannot be opened, holds no rows, or holds more than
        *capacity* rows.
    """
    times: list[float] = []
    pressures: list[float] = []
    try:
        with open(path, "r", encoding="utf-8") as fh:
            for line in fh:
                parts = line.split()
                if len(parts) < 2:
                    continue
                try:
                    t, p = float(parts[0]), float(parts[1])
                except ValueError:
                    continue
                if len(times) >= capacity:
                    raise BalloonDataError(
                        f"Too many balloon data points in {path} (capacity {capacity})"
                    )
                times.append(t)
                pressures.append(p)
    except OSError as exc:
        raise BalloonDataError(f"Cannot open balloon table {path}: {exc}") from exc

    if not times:
        raise BalloonDataError(f"Balloon table {path} contains no data")
    logger.info(f"Read {len(times)} balloon data points from {path}")
    return np.array(times), np.array(pressures)


class IsosurfaceModule:
    """Initialises and restores the isosurface-conserved value.

    Parameters
    ----------
    config : ControlConfig
        Run configuration (``isosurf``, ``balloon``).
    backend : ComputeBackend, optional
        Execution backend; defaults to :class:`NumpyBackend`.
    """

    def __init__(self, config: ControlConfig,
                 backend: ComputeBackend | None = None) -> None:
        if not config.isosurface_on:
            raise ConfigError(f"Isosurface mode {config.isosurf} is not active")
        self.config = config
        self.mode = config.isosurf
        self.backend = backend if backend is not None else NumpyBackend()

    def initialize(self, ensemble: ParticleEnsemble,
                   interp: Interpolator) -> None:
        """Record the conserved value for every particle.

        For the balloon mode the table is loaded into ``ensemble.iso_ts``
        and ``ensemble.iso_ps`` instead.
        """
        ens = ensemble
        if self.mode == BALLOON:
            ens.iso_ts, ens.iso_ps = read_balloon_table(
                self.config.balloon, ens.capacity
            )
            return

        if self.mode == ISOBARIC:
            ens.iso_var[:] = ens.p
        else:
            temp = interp.sample(ens.time, ens.p, ens.lon, ens.lat, ("t",))["t"]
            if self.mode == ISOPYCNIC:
                ens.iso_var[:] = ens.p / temp
            else:
                ens.iso_var[:] = CoordinateConverter.theta(ens.p, temp)
        logger.info(
            f"Initialised isosurface mode {self.mode} for {ens.num_particles} particles"
        )

    def restore(self, ensemble: ParticleEnsemble, interp: Interpolator,
                dt: np.ndarray) -> None:
        """Reset the pressure of active particles onto their isosurface."""
        ens = ensemble
        if self.mode == BALLOON and ens.iso_n == 0:
            raise BalloonDataError("Balloon table not loaded; call initialize() first")

        def kernel(worker: int, start: int, stop: int) -> None:
            idx = active_indices(dt, start, stop)
            if idx.size == 0:
                return
            if self.mode == ISOBARIC:
                ens.p[idx] = ens.iso_var[idx]
            elif self.mode == BALLOON:
                # np.interp holds the end values outside the table
                ens.p[idx] = np.interp(ens.time[idx], ens.iso_ts, ens.iso_ps)
            else:
                temp = interp.sample(ens.time[idx], ens.p[idx], ens.lon[idx],
                                     ens.lat[idx], ("t",))["t"]
                if self.mode == ISOPYCNIC:
                    ens.p[idx] = ens.iso_var[idx] * temp
                else:
                    ens.p[idx] = CoordinateConverter.theta_to_pressure(
                        ens.iso_var[idx], temp)

        self.backend.launch(kernel, ens.num_particles)
