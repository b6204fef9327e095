"""Meteorological field interpolation (space, then time).

Implements the interpolation contract consumed by every physics module:
bilinear interpolation in longitude/latitude, linear interpolation in
pressure on an irregular level set, followed by linear interpolation in time
between the two bracketing snapshots. All operations are vectorised over
particles; only the requested fields are interpolated.
"""

from __future__ import annotations

from typing import Iterable

import numpy as np

from pytrac.core.models import MetDataError, MetSnapshot

#: Fields defined on the full 3-D grid.
FIELDS_3D = ("z", "t", "u", "v", "w", "pv", "h2o", "o3")
#: Fields defined on the horizontal grid only.
FIELDS_2D = ("ps", "pt")


# ---------------------------------------------------------------------------
# Grid location
# ---------------------------------------------------------------------------

def locate_reg(grid: np.ndarray, x: np.ndarray) -> np.ndarray:
    """Locate *x* on a regular grid.

    Returns the index ``i`` of the cell ``[grid[i], grid[i + 1]]``, clamped
    to ``[0, len(grid) - 2]``.
    """
    x = np.asarray(x, dtype=np.float64)
    i = ((x - grid[0]) / (grid[1] - grid[0])).astype(np.intp)
    return np.clip(i, 0, len(grid) - 2)


def locate_irr(grid: np.ndarray, x: np.ndarray) -> np.ndarray:
    """Locate *x* on an irregular, monotonic (ascending or descending) grid.

    Returns the index ``i`` of the bracketing interval, clamped to
    ``[0, len(grid) - 2]``.
    """
    x = np.asarray(x, dtype=np.float64)
    n = len(grid)
    if grid[0] <= grid[-1]:
        i = np.searchsorted(grid, x, side="right").astype(np.intp) - 1
    else:
        i = n - 1 - np.searchsorted(grid[::-1], x, side="left").astype(np.intp)
    return np.clip(i, 0, n - 2)


# ---------------------------------------------------------------------------
# Interpolator
# ---------------------------------------------------------------------------

class Interpolator:
    """Interpolates fields of a snapshot pair at particle positions.

    Parameters
    ----------
    met0, met1 : MetSnapshot
        Earlier and later snapshot; both must share one grid.
    """

    def __init__(self, met0: MetSnapshot, met1: MetSnapshot) -> None:
        self.met0 = met0
        self.met1 = met1

    # ------------------------------------------------------------------
    # Spatial interpolation
    # ------------------------------------------------------------------

    @staticmethod
    def _horizontal_weights(met: MetSnapshot, lon: np.ndarray,
                            lat: np.ndarray):
        lon = np.asarray(lon, dtype=np.float64)
        lat = np.asarray(lat, dtype=np.float64)
        # 0..360 grids: bring negative longitudes onto the grid
        if met.lon[-1] > 180:
            lon = np.where(lon < 0, lon + 360.0, lon)

        ix = locate_reg(met.lon, lon)
        iy = locate_reg(met.lat, lat)

        wx = (met.lon[ix + 1] - lon) / (met.lon[ix + 1] - met.lon[ix])
        wy = (met.lat[iy + 1] - lat) / (met.lat[iy + 1] - met.lat[iy])
        return ix, iy, np.clip(wx, 0.0, 1.0), np.clip(wy, 0.0, 1.0)

    @staticmethod
    def bilinear(var_2d: np.ndarray, ix, iy, wx, wy) -> np.ndarray:
        """Bilinear interpolation of a ``(lat, lon)`` field."""
        a0 = wx * var_2d[iy, ix] + (1 - wx) * var_2d[iy, ix + 1]
        a1 = wx * var_2d[iy + 1, ix] + (1 - wx) * var_2d[iy + 1, ix + 1]
        return wy * a0 + (1 - wy) * a1

    @staticmethod
    def trilinear(var_3d: np.ndarray, ip, ix, iy, wp, wx, wy) -> np.ndarray:
        """Interpolate a ``(p, lat, lon)`` field, horizontal first."""
        def level(k):
            a0 = wx * var_3d[k, iy, ix] + (1 - wx) * var_3d[k, iy, ix + 1]
            a1 = wx * var_3d[k, iy + 1, ix] + (1 - wx) * var_3d[k, iy + 1, ix + 1]
            return wy * a0 + (1 - wy) * a1

        return wp * level(ip) + (1 - wp) * level(ip + 1)

    def space(self, met: MetSnapshot, p: np.ndarray, lon: np.ndarray,
              lat: np.ndarray, fields: Iterable[str]) -> dict[str, np.ndarray]:
        """Interpolate *fields* of a single snapshot at ``(p, lon, lat)``."""
        fields = tuple(fields)
        p = np.asarray(p, dtype=np.float64)
        ix, iy, wx, wy = self._horizontal_weights(met, lon, lat)

        ip = wp = None
        if any(name in FIELDS_3D for name in fields):
            ip = locate_irr(met.p, p)
            wp = (met.p[ip + 1] - p) / (met.p[ip + 1] - met.p[ip])
            wp = np.clip(wp, 0.0, 1.0)

        out: dict[str, np.ndarray] = {}
        for name in fields:
            var = getattr(met, name, None) if name in FIELDS_3D + FIELDS_2D else None
            if var is None:
                raise MetDataError(
                    f"Field '{name}' not available in snapshot at t={met.time}"
                )
            if name in FIELDS_2D:
                out[name] = self.bilinear(var, ix, iy, wx, wy)
            else:
                out[name] = self.trilinear(var, ip, ix, iy, wp, wx, wy)
        return out

    # ------------------------------------------------------------------
    # Space-time interpolation
    # ------------------------------------------------------------------

    def sample(self, t: np.ndarray, p: np.ndarray, lon: np.ndarray,
               lat: np.ndarray, fields: Iterable[str]) -> dict[str, np.ndarray]:
        """Interpolate *fields* at the 4-D points ``(t, p, lon, lat)``.

        Parameters
        ----------
        t : array_like
            Time (s); may lie slightly outside ``[met0.time, met1.time]``,
            in which case the values are extrapolated linearly.
        p : array_like
            Pressure (hPa).
        lon, lat : array_like
            Position (degrees).
        fields : iterable of str
            Names from ``ps, pt, z, t, u, v, w, pv, h2o, o3``. Fields not
            listed are never computed.

        Returns
        -------
        dict[str, np.ndarray]
            Interpolated values keyed by field name.

        Raises
        ------
        MetDataError
            If a requested field is absent from the snapshots.
        """
        fields = tuple(fields)
        if not fields:
            return {}
        v0 = self.space(self.met0, p, lon, lat, fields)
        v1 = self.space(self.met1, p, lon, lat, fields)

        span = self.met1.time - self.met0.time
        if span == 0:
            return v0
        wt = (self.met1.time - np.asarray(t, dtype=np.float64)) / span
        return {name: wt * v0[name] + (1 - wt) * v1[name] for name in fields}
