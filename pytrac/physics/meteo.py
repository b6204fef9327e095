"""Meteorological sampling along trajectories.

Writes interpolated meteorological fields and derived diagnostics into
the particle quantity slots that are enabled. Particle positions are
never changed.

Derived quantities:

* ``vh``: horizontal wind speed (m/s)
* ``vz``: vertical velocity in log-pressure height (m/s)
* ``theta``: potential temperature (K)
* ``tice``: frost point (Marti & Mauersberger, 1993)
* ``tnat``: NAT existence temperature (Hanson & Mauersberger, 1988)
* ``tsts``: mean of the ``tice`` and ``tnat`` slots
"""

from __future__ import annotations

import logging

import numpy as np

from pytrac.compute.backend import ComputeBackend, NumpyBackend, active_indices
from pytrac.core.climatology import clim_hno3
from pytrac.core.interpolator import Interpolator
from pytrac.core.models import ControlConfig, ParticleEnsemble
from pytrac.utils.conversions import H0, CoordinateConverter

logger = logging.getLogger(__name__)

# Quantities copied straight from an interpolated field
_DIRECT = ("ps", "pt", "z", "t", "u", "v", "w", "h2o", "o3", "pv")

# Fields each quantity needs from the interpolator
_FIELD_DEPS = {
    "ps": ("ps",), "pt": ("pt",), "z": ("z",), "t": ("t",),
    "u": ("u",), "v": ("v",), "w": ("w",), "h2o": ("h2o",), "o3": ("o3",),
    "pv": ("pv",), "vh": ("u", "v"), "vz": ("w",), "theta": ("t",),
}

# hPa per Torr
_HPA_PER_TORR = 1.333224


def ice_temperature(p: np.ndarray, h2o: np.ndarray) -> np.ndarray:
    """Frost point temperature (K) for water vapour vmr *h2o* at *p* (hPa)."""
    return -2663.5 / (np.log10(h2o * p * 100.0) - 12.537)


def nat_temperature(p: np.ndarray, h2o: np.ndarray, hno3: np.ndarray,
                    previous: np.ndarray | None = None) -> np.ndarray:
    """NAT existence temperature (K).

    Solves the Hanson & Mauersberger equilibrium quadratic for T and keeps
    its positive root. Where neither root is positive the *previous* value
    is kept (NaN when not given).

    Parameters
    ----------
    p : array_like
        Pressure (hPa).
    h2o, hno3 : array_like
        Volume mixing ratios of water vapour and nitric acid.
    previous : array_like, optional
        Values to keep where the quadratic has no positive root.
    """
    p_h2o = np.log10(h2o * p / _HPA_PER_TORR)
    p_hno3 = np.log10(hno3 * p / _HPA_PER_TORR)
    a = 0.009179 - 0.00088 * p_h2o
    b = (38.9855 - p_hno3 - 2.7836 * p_h2o) / a
    c = -11397.0 / a
    with np.errstate(invalid="ignore"):
        root = np.sqrt(b * b - 4.0 * c)
    x1 = (-b + root) / 2.0
    x2 = (-b - root) / 2.0
    out = (np.full(np.shape(x1), np.nan) if previous is None
           else np.array(previous, dtype=np.float64))
    out = np.where(x1 > 0, x1, out)
    return np.where(x2 > 0, x2, out)


class MeteoSampler:
    """Samples meteorological data into enabled quantity slots.

    Parameters
    ----------
    config : ControlConfig
        Run configuration (quantities, ``psc_h2o``, ``psc_hno3``).
    backend : ComputeBackend, optional
        Execution backend; defaults to :class:`NumpyBackend`.
    """

    def __init__(self, config: ControlConfig,
                 backend: ComputeBackend | None = None) -> None:
        self.config = config
        self.backend = backend if backend is not None else NumpyBackend()
        qm = config.quantities
        self.slots = {name: qm.slot(name) for name in qm if qm.enabled(name)}
        self.fields = self._required_fields()

        if "tsts" in self.slots and not ("tice" in self.slots and "tnat" in self.slots):
            logger.warning(
                "Quantity 'tsts' is enabled without both 'tice' and 'tnat'; "
                "its values will be NaN"
            )

    def _required_fields(self) -> tuple[str, ...]:
        needed: list[str] = []
        for name in self.slots:
            deps = _FIELD_DEPS.get(name, ())
            if name in ("tice", "tnat"):
                deps = ("h2o",) if self.config.psc_h2o <= 0 else ()
            for dep in deps:
                if dep not in needed:
                    needed.append(dep)
        return tuple(needed)

    def due(self, t: float) -> bool:
        """Whether sampling is due at step time *t*."""
        cfg = self.config
        return cfg.met_dt_out > 0 and (
            cfg.met_dt_out < cfg.dt_mod or np.fmod(t, cfg.met_dt_out) == 0
        )

    def apply(self, ensemble: ParticleEnsemble, interp: Interpolator,
              dt: np.ndarray) -> None:
        """Fill the enabled quantity slots of the active particles."""
        ens = ensemble
        cfg = self.config
        slots = self.slots

        def kernel(worker: int, start: int, stop: int) -> None:
            idx = active_indices(dt, start, stop)
            if idx.size == 0:
                return
            p = ens.p[idx]
            met = interp.sample(ens.time[idx], p, ens.lon[idx], ens.lat[idx],
                                self.fields)

            for name in _DIRECT:
                if name in slots:
                    ens.q[slots[name], idx] = met[name]
            if "p" in slots:
                ens.q[slots["p"], idx] = p
            if "vh" in slots:
                ens.q[slots["vh"], idx] = np.sqrt(met["u"] ** 2 + met["v"] ** 2)
            if "vz" in slots:
                ens.q[slots["vz"], idx] = -1e3 * H0 / p * met["w"]
            if "theta" in slots:
                ens.q[slots["theta"], idx] = CoordinateConverter.theta(p, met["t"])

            h2o = cfg.psc_h2o if cfg.psc_h2o > 0 else met.get("h2o")
            if "tice" in slots:
                ens.q[slots["tice"], idx] = ice_temperature(p, h2o)
            if "tnat" in slots:
                if cfg.psc_hno3 > 0:
                    hno3 = cfg.psc_hno3
                else:
                    hno3 = clim_hno3(ens.time[idx], ens.lat[idx], p) * 1e-9
                ens.q[slots["tnat"], idx] = nat_temperature(
                    p, h2o, hno3, previous=ens.q[slots["tnat"], idx])
            if "tsts" in slots:
                if "tice" in slots and "tnat" in slots:
                    ens.q[slots["tsts"], idx] = 0.5 * (
                        ens.q[slots["tice"], idx] + ens.q[slots["tnat"], idx])
                else:
                    ens.q[slots["tsts"], idx] = np.nan

        self.backend.launch(kernel, ens.num_particles)
