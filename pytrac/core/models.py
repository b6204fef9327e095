"""Core data models and custom exceptions for pytrac.

Defines dataclasses for the run configuration, quantity slots, the particle
ensemble, meteorological snapshots, and all custom exception types used
throughout the package.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

import numpy as np


# ---------------------------------------------------------------------------
# Custom Exceptions
# ---------------------------------------------------------------------------

class PyTracError(Exception):
    """Base exception for all pytrac errors."""


class ConfigError(PyTracError):
    """Raised when the run configuration is inconsistent."""


class ConfigParseError(ConfigError):
    """Raised when a control file has format errors.

    Attributes:
        line_number: The line number where the error was detected.
        expected: Description of the expected format.
    """

    def __init__(self, message: str, line_number: int | None = None,
                 expected: str | None = None):
        self.line_number = line_number
        self.expected = expected
        parts = [message]
        if line_number is not None:
            parts.append(f"line {line_number}")
        if expected is not None:
            parts.append(f"expected: {expected}")
        super().__init__(" | ".join(parts))


class TimeWindowError(PyTracError):
    """Raised when the simulation time window is empty or inverted."""


class RNGError(PyTracError):
    """Raised when the random-number supply is used outside its lifecycle."""


class RNGConfigurationError(RNGError):
    """Raised when more generator streams are requested than supported."""


class BalloonDataError(PyTracError):
    """Raised when the balloon pressure table is missing, empty or too long."""


class MetDataError(PyTracError):
    """Raised when meteorological data does not cover a request."""


class AtmFormatError(PyTracError):
    """Raised when a particle table cannot be read."""


class GPUNotAvailableError(PyTracError):
    """Raised when GPU hardware or drivers are not available."""


# ---------------------------------------------------------------------------
# Quantity slots
# ---------------------------------------------------------------------------

#: Quantity identifiers with a meaning inside the integration core.
KNOWN_QUANTITIES = (
    "m", "r", "rho", "ps", "pt", "z", "p", "t", "u", "v", "w",
    "h2o", "o3", "theta", "vh", "vz", "pv", "tice", "tnat", "tsts",
)


class QuantityMap:
    """Mapping from quantity identifier to its storage slot in ``q``.

    A quantity is enabled iff it has a slot. Slots follow the order of
    *names*, so ``QuantityMap(["m", "t"])`` stores mass in row 0 and
    temperature in row 1 of the particle quantity array.

    Parameters
    ----------
    names : iterable of str
        Quantity identifiers in storage order. Identifiers outside
        :data:`KNOWN_QUANTITIES` are carried along untouched.
    units : iterable of str, optional
        Unit labels, used only for output headers.
    """

    def __init__(self, names: Iterable[str] = (),
                 units: Iterable[str] | None = None) -> None:
        self.names: list[str] = [n.strip() for n in names]
        self._slots: dict[str, int] = {}
        for i, name in enumerate(self.names):
            if name in self._slots:
                raise ConfigError(f"Quantity '{name}' defined twice")
            self._slots[name] = i
        units = list(units) if units is not None else []
        self.units: list[str] = units + ["-"] * (len(self.names) - len(units))

    def slot(self, name: str) -> Optional[int]:
        """Return the storage slot of *name*, or None when disabled."""
        return self._slots.get(name)

    def enabled(self, name: str) -> bool:
        return name in self._slots

    def __len__(self) -> int:
        return len(self.names)

    def __iter__(self):
        return iter(self.names)

    def __repr__(self) -> str:
        return f"QuantityMap({self.names!r})"


# ---------------------------------------------------------------------------
# Data Models
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ControlConfig:
    """Run configuration (immutable for the duration of a run).

    Defaults follow the control-parameter defaults of the reference model.
    Time values are seconds since 2000-01-01T00:00Z, pressures are hPa.
    """
    direction: int = 1                  # +1 forward, -1 backward
    t_start: Optional[float] = None     # None → derived from particle times
    t_stop: Optional[float] = None      # None → derived from particle times
    dt_mod: float = 180.0               # model time step (s)
    dt_met: float = 21600.0             # meteorological snapshot spacing (s)
    # Turbulent diffusivities (m²/s)
    turb_dx_trop: float = 50.0
    turb_dx_strat: float = 0.0
    turb_dz_trop: float = 0.0
    turb_dz_strat: float = 0.1
    # Mesoscale fluctuation scaling
    turb_mesox: float = 0.16
    turb_mesoz: float = 0.16
    # Decay lifetimes (s), 0 disables decay
    tdec_trop: float = 0.0
    tdec_strat: float = 0.0
    # 0=off, 1=pressure, 2=density, 3=potential temperature, 4=balloon
    isosurf: int = 0
    balloon: Optional[str] = None
    # Meteo sampling period (s)
    met_dt_out: float = 0.1
    # Fixed volume mixing ratios for PSC temperatures (<= 0: use met data)
    psc_h2o: float = 4e-6
    psc_hno3: float = 9e-9
    quantities: QuantityMap = field(default_factory=QuantityMap)
    rng_seed: int = 0
    num_threads: Optional[int] = None   # None or 1 → single-kernel backend
    use_gpu: bool = False               # CuPy random numbers
    # Particle table output
    atm_basename: Optional[str] = None
    atm_dt_out: float = 86400.0

    def __post_init__(self) -> None:
        if self.direction not in (-1, 1):
            raise ConfigError(f"DIRECTION must be -1 or 1, got {self.direction}")
        if self.dt_mod <= 0:
            raise ConfigError(f"DT_MOD must be positive, got {self.dt_mod}")
        if self.dt_met <= 0:
            raise ConfigError(f"DT_MET must be positive, got {self.dt_met}")
        if self.isosurf not in (0, 1, 2, 3, 4):
            raise ConfigError(f"ISOSURF must be in 0..4, got {self.isosurf}")
        if self.isosurf == 4 and not self.balloon:
            raise ConfigError("ISOSURF=4 requires a BALLOON table")

    @property
    def turbulence_on(self) -> bool:
        return (self.turb_dx_trop > 0 or self.turb_dz_trop > 0
                or self.turb_dx_strat > 0 or self.turb_dz_strat > 0)

    @property
    def mesoscale_on(self) -> bool:
        return self.turb_mesox > 0 or self.turb_mesoz > 0

    @property
    def sedimentation_on(self) -> bool:
        return self.quantities.enabled("r") and self.quantities.enabled("rho")

    @property
    def decay_on(self) -> bool:
        return (self.tdec_trop > 0 and self.tdec_strat > 0
                and self.quantities.enabled("m"))

    @property
    def isosurface_on(self) -> bool:
        return 1 <= self.isosurf <= 4


@dataclass
class MetSnapshot:
    """A single meteorological snapshot on a lon × lat × pressure grid.

    All 3-D fields share the dimension order ``(p, lat, lon)``, surface
    fields are ``(lat, lon)``.

    Attributes
    ----------
    time : float
        Valid time (seconds since 2000-01-01T00:00Z).
    lon, lat : np.ndarray
        Regular 1-D longitude/latitude grids (degrees).
    p : np.ndarray
        1-D pressure levels (hPa), possibly irregular, monotonic.
    u, v : np.ndarray
        Horizontal wind components (m/s).
    w : np.ndarray
        Vertical velocity (hPa/s).
    t : np.ndarray
        Temperature (K).
    ps : np.ndarray
        Surface pressure (hPa).
    pt : np.ndarray, optional
        Tropopause pressure (hPa).
    z : np.ndarray, optional
        Geopotential height (km).
    pv : np.ndarray, optional
        Potential vorticity (PVU).
    h2o, o3 : np.ndarray, optional
        Water vapour and ozone volume mixing ratios.
    """
    time: float
    lon: np.ndarray
    lat: np.ndarray
    p: np.ndarray
    u: np.ndarray
    v: np.ndarray
    w: np.ndarray
    t: np.ndarray
    ps: np.ndarray
    pt: Optional[np.ndarray] = None
    z: Optional[np.ndarray] = None
    pv: Optional[np.ndarray] = None
    h2o: Optional[np.ndarray] = None
    o3: Optional[np.ndarray] = None

    @property
    def shape(self) -> tuple[int, int, int]:
        """Grid shape ``(np, ny, nx)``."""
        return len(self.p), len(self.lat), len(self.lon)

    @property
    def p_top(self) -> float:
        """Lowest pressure level of the grid (hPa)."""
        return float(np.min(self.p))


@dataclass
class ParticleEnsemble:
    """Vectorised state of all air parcels in the simulation.

    The particle count is fixed for a run. Quantities live in ``q`` with
    shape ``(nq, N)``; their meaning is given by a :class:`QuantityMap`.
    """
    time: np.ndarray       # (N,) time (s)
    lon: np.ndarray        # (N,) longitude (degrees)
    lat: np.ndarray        # (N,) latitude (degrees)
    p: np.ndarray          # (N,) pressure (hPa)
    q: np.ndarray          # (nq, N) quantity values
    up: np.ndarray         # (N,) mesoscale zonal wind fluctuation (m/s)
    vp: np.ndarray         # (N,) mesoscale meridional wind fluctuation (m/s)
    wp: np.ndarray         # (N,) mesoscale vertical fluctuation (hPa/s)
    iso_var: np.ndarray    # (N,) isosurface conserved value
    iso_ts: np.ndarray = field(default_factory=lambda: np.array([]))
    iso_ps: np.ndarray = field(default_factory=lambda: np.array([]))
    capacity: int = 10_000_000

    @classmethod
    def allocate(cls, n: int, nq: int = 0,
                 capacity: int = 10_000_000) -> "ParticleEnsemble":
        """Allocate an ensemble of *n* particles with zeroed state."""
        if n > capacity:
            raise ConfigError(f"Too many particles: {n} > capacity {capacity}")
        return cls(
            time=np.zeros(n), lon=np.zeros(n), lat=np.zeros(n), p=np.zeros(n),
            q=np.zeros((nq, n)),
            up=np.zeros(n), vp=np.zeros(n), wp=np.zeros(n),
            iso_var=np.zeros(n),
            capacity=capacity,
        )

    @classmethod
    def from_arrays(cls, time, lon, lat, p, q=None,
                    capacity: int = 10_000_000) -> "ParticleEnsemble":
        """Build an ensemble from populated position arrays."""
        time = np.array(time, dtype=np.float64, ndmin=1)
        n = len(time)
        ens = cls.allocate(n, 0 if q is None else len(q), capacity=capacity)
        ens.time[:] = time
        ens.lon[:] = lon
        ens.lat[:] = lat
        ens.p[:] = p
        if q is not None:
            ens.q = np.array(q, dtype=np.float64, ndmin=2).reshape(-1, n).copy()
        return ens

    @property
    def num_particles(self) -> int:
        """Number of particles."""
        return len(self.time)

    @property
    def iso_n(self) -> int:
        """Number of balloon table entries."""
        return len(self.iso_ts)
