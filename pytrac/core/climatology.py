"""Climatological look-ups used by the physics modules.

Provides a zonal-mean tropopause pressure, a zonal-mean HNO3 profile for
PSC formation temperatures, and the tropopause-relative weighting that
blends tropospheric and stratospheric parameters.

Times are seconds since 2000-01-01T00:00Z.
"""

from __future__ import annotations

import numpy as np

SECONDS_PER_DAY = 86400.0
DAYS_PER_YEAR = 365.25

# Half-width of the tropopause transition layer as a pressure ratio
TROPO_TRANSITION = 0.866877899

# Zonal-mean tropopause pressure (hPa) at the nodes of _TROPO_LAT
_TROPO_LAT = np.array([-90.0, -75.0, -60.0, -45.0, -30.0, -20.0, -10.0,
                       0.0, 10.0, 20.0, 30.0, 45.0, 60.0, 75.0, 90.0])
_TROPO_P = np.array([300.0, 290.0, 265.0, 230.0, 170.0, 115.0, 100.0,
                     97.0, 100.0, 115.0, 170.0, 230.0, 265.0, 290.0, 300.0])
# Seasonal amplitude (hPa); largest over the poles, vanishing at the equator
_TROPO_AMP = np.array([30.0, 28.0, 22.0, 15.0, 10.0, 5.0, 2.0,
                       0.0, 2.0, 5.0, 10.0, 15.0, 22.0, 28.0, 30.0])

# Zonal-mean HNO3 peak mixing ratio (ppbv) and its pressure level (hPa)
_HNO3_LAT = np.array([-90.0, -60.0, -30.0, 0.0, 30.0, 60.0, 90.0])
_HNO3_PEAK = np.array([11.0, 10.0, 6.0, 3.5, 6.0, 10.0, 11.0])
_HNO3_PEAK_P = np.array([40.0, 35.0, 25.0, 20.0, 25.0, 35.0, 40.0])
# Width of the profile in ln(p)
_HNO3_WIDTH = 0.8
# Tropospheric background (ppbv)
_HNO3_BACKGROUND = 0.1


def day_of_year(t: np.ndarray) -> np.ndarray:
    """Fractional day of year (0 ≤ doy < 365.25) for time *t*."""
    return np.mod(np.asarray(t, dtype=np.float64) / SECONDS_PER_DAY, DAYS_PER_YEAR)


def clim_tropo(t: np.ndarray, lat: np.ndarray) -> np.ndarray:
    """Climatological tropopause pressure (hPa).

    The tropopause is lowest (highest pressure) in late winter of each
    hemisphere, so the seasonal term peaks around day 45 in the north and
    half a year later in the south.

    Parameters
    ----------
    t : array_like
        Time (s since 2000-01-01).
    lat : array_like
        Latitude (degrees).

    Returns
    -------
    np.ndarray
        Tropopause pressure (hPa).
    """
    lat = np.clip(np.asarray(lat, dtype=np.float64), -90.0, 90.0)
    phase = 2.0 * np.pi * (day_of_year(t) - 45.0) / DAYS_PER_YEAR
    season = np.where(lat >= 0, np.cos(phase), -np.cos(phase))
    return (np.interp(lat, _TROPO_LAT, _TROPO_P)
            + np.interp(lat, _TROPO_LAT, _TROPO_AMP) * season)


def clim_hno3(t: np.ndarray, lat: np.ndarray, p: np.ndarray) -> np.ndarray:
    """Climatological HNO3 volume mixing ratio (ppbv).

    Gaussian profile in log-pressure around a latitude-dependent peak, with
    a small tropospheric background. *t* is accepted for interface
    symmetry with :func:`clim_tropo`; the profile is annual-mean.
    """
    lat = np.clip(np.asarray(lat, dtype=np.float64), -90.0, 90.0)
    p = np.asarray(p, dtype=np.float64)
    peak = np.interp(lat, _HNO3_LAT, _HNO3_PEAK)
    p_peak = np.interp(lat, _HNO3_LAT, _HNO3_PEAK_P)
    x = np.log(p / p_peak) / _HNO3_WIDTH
    return _HNO3_BACKGROUND + peak * np.exp(-0.5 * x * x)


def tropopause_weight(p: np.ndarray, pt: np.ndarray) -> np.ndarray:
    """Tropospheric weight of a parcel at pressure *p* below tropopause *pt*.

    Returns 1 deep in the troposphere (``p > pt / 0.8669``), 0 deep in the
    stratosphere (``p < pt * 0.8669``) and varies linearly in between.
    """
    p = np.asarray(p, dtype=np.float64)
    pt = np.asarray(pt, dtype=np.float64)
    p1 = pt * TROPO_TRANSITION
    p0 = pt / TROPO_TRANSITION
    w = 1.0 + (0.0 - 1.0) / (p1 - p0) * (p - p0)
    return np.where(p > p0, 1.0, np.where(p < p1, 0.0, w))
