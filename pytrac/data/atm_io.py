"""Particle table input and output.

ASCII tables with one particle per row and ``#`` header lines::

    # $1 = time [s]
    # $2 = longitude [deg]
    # $3 = latitude [deg]
    # $4 = altitude [km]
    # $5 = pressure [hPa]
    # $6 = m [kg]
    ...
    3600.0 10.0 45.0 5.5 461.3 1.0

Times are seconds since 2000-01-01T00:00Z.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from pathlib import Path

import numpy as np

from pytrac.core.models import (
    AtmFormatError,
    ControlConfig,
    MetSnapshot,
    ParticleEnsemble,
)
from pytrac.utils.conversions import CoordinateConverter

logger = logging.getLogger(__name__)

EPOCH = datetime(2000, 1, 1)

# time, lon, lat, z, p
_N_FIXED = 5


def read_atm(path: str | Path, config: ControlConfig,
             capacity: int = 10_000_000) -> ParticleEnsemble:
    """Read a particle table written by :class:`AtmWriter`.

    Parameters
    ----------
    path : str or Path
        Table file.
    config : ControlConfig
        Supplies the number of quantity columns.
    capacity : int
        Maximum number of particles.

    Raises
    ------
    AtmFormatError
        If the file cannot be read, holds no particles, or has rows with
        the wrong number of columns.
    """
    ncol = _N_FIXED + len(config.quantities)
    rows: list[list[float]] = []
    try:
        with open(path, "r", encoding="utf-8") as fh:
            for number, line in enumerate(fh, start=1):
                line = line.split("#", 1)[0].strip()
                if not line:
                    continue
                parts = line.split()
                if len(parts) != ncol:
                    raise AtmFormatError(
                        f"{path}:{number}: expected {ncol} columns, got {len(parts)}"
                    )
                try:
                    rows.append([float(x) for x in parts])
                except ValueError as exc:
                    raise AtmFormatError(f"{path}:{number}: {exc}") from exc
    except OSError as exc:
        raise AtmFormatError(f"Cannot open particle table {path}: {exc}") from exc

    if not rows:
        raise AtmFormatError(f"Particle table {path} is empty")

    data = np.array(rows)
    ens = ParticleEnsemble.from_arrays(
        time=data[:, 0], lon=data[:, 1], lat=data[:, 2], p=data[:, 4],
        q=data[:, _N_FIXED:].T if ncol > _N_FIXED else None,
        capacity=capacity,
    )
    logger.info(f"Read {ens.num_particles} particles from {path}")
    return ens


def write_atm(path: str | Path, config: ControlConfig,
              ensemble: ParticleEnsemble) -> None:
    """Write *ensemble* as a particle table to *path*."""
    qm = config.quantities
    header = [
        "# $1 = time [s]",
        "# $2 = longitude [deg]",
        "# $3 = latitude [deg]",
        "# $4 = altitude [km]",
        "# $5 = pressure [hPa]",
    ]
    for i, (name, unit) in enumerate(zip(qm.names, qm.units)):
        header.append(f"# ${_N_FIXED + 1 + i} = {name} [{unit}]")

    z = CoordinateConverter.pressure_to_height(ensemble.p)
    table = np.column_stack(
        [ensemble.time, ensemble.lon, ensemble.lat, z, ensemble.p]
        + [ensemble.q[i] for i in range(len(qm))]
    )
    np.savetxt(path, table, fmt="%.10g", header="\n".join(header),
               comments="", encoding="utf-8")


class AtmWriter:
    """Output callback writing particle tables at fixed intervals.

    Files are named ``<basename>_YYYY_MM_DD_HH_MM.tab`` inside *directory*
    and written whenever the step time is a multiple of ``atm_dt_out``.

    Parameters
    ----------
    config : ControlConfig
        Supplies ``atm_basename`` and ``atm_dt_out``.
    directory : str or Path
        Output directory, created on first write.
    """

    def __init__(self, config: ControlConfig, directory: str | Path = ".") -> None:
        self.config = config
        self.directory = Path(directory)
        self.written: list[Path] = []

    def filename(self, t: float) -> Path:
        stamp = EPOCH + timedelta(seconds=float(t))
        return self.directory / (
            f"{self.config.atm_basename}_{stamp:%Y_%m_%d_%H_%M}.tab"
        )

    def __call__(self, t: float, ensemble: ParticleEnsemble,
                 met0: MetSnapshot, met1: MetSnapshot) -> None:
        cfg = self.config
        if cfg.atm_basename is None or cfg.atm_dt_out <= 0:
            return
        if np.fmod(t, cfg.atm_dt_out) != 0:
            return
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.filename(t)
        write_atm(path, cfg, ensemble)
        self.written.append(path)
        logger.info(f"Wrote particle table {path}")
