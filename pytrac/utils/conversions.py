"""Unit and coordinate conversions on the sphere and in pressure.

Horizontal displacements are given in km and converted to degrees on a
spherical Earth; vertical displacements are converted between km and hPa
with a constant scale height.
"""

from __future__ import annotations

import numpy as np

# Mean Earth radius (km)
RE = 6367.421
# Scale height (km)
H0 = 7.0
# Reference surface pressure (hPa)
P0 = 1013.25
# Specific gas constant of dry air (J/(kg·K))
RA = 287.058
# Boltzmann constant (J/K)
KB = 1.3806504e-23
# Standard gravity (m/s²)
G0 = 9.80665
# Poisson exponent R/cp used for potential temperature
KAPPA = 0.286


class CoordinateConverter:
    """Static methods for displacement and vertical coordinate conversions.

    All methods accept scalars or NumPy arrays and broadcast.
    """

    @staticmethod
    def dx2deg(dx: np.ndarray, lat: np.ndarray) -> np.ndarray:
        """Convert a zonal distance (km) to degrees of longitude.

        Returns 0 within 0.001° of a pole, where meridians converge.
        """
        lat = np.asarray(lat, dtype=float)
        polar = (lat < -89.999) | (lat > 89.999)
        cos_lat = np.where(polar, 1.0, np.cos(np.deg2rad(lat)))
        return np.where(polar, 0.0, dx * 180.0 / (np.pi * RE * cos_lat))

    @staticmethod
    def dy2deg(dy: np.ndarray) -> np.ndarray:
        """Convert a meridional distance (km) to degrees of latitude."""
        return dy * 180.0 / (np.pi * RE)

    @staticmethod
    def deg2dx(dlon: np.ndarray, lat: np.ndarray) -> np.ndarray:
        """Convert degrees of longitude at *lat* to km."""
        return dlon * np.pi * RE / 180.0 * np.cos(np.deg2rad(lat))

    @staticmethod
    def dz2dp(dz: np.ndarray, p: np.ndarray) -> np.ndarray:
        """Convert a vertical displacement (km, upward) to a pressure change (hPa)."""
        return -dz * p / H0

    @staticmethod
    def dp2dz(dp: np.ndarray, p: np.ndarray) -> np.ndarray:
        """Convert a pressure change (hPa) to a vertical displacement (km)."""
        return -dp * H0 / p

    @staticmethod
    def pressure_to_height(p: np.ndarray) -> np.ndarray:
        """Log-pressure altitude (km): ``z = H0 * ln(P0 / p)``."""
        return H0 * np.log(P0 / np.asarray(p, dtype=float))

    @staticmethod
    def height_to_pressure(z: np.ndarray) -> np.ndarray:
        """Inverse of :meth:`pressure_to_height`: ``p = P0 * exp(-z / H0)``."""
        return P0 * np.exp(-np.asarray(z, dtype=float) / H0)

    @staticmethod
    def theta(p: np.ndarray, t: np.ndarray) -> np.ndarray:
        """Potential temperature (K) from pressure (hPa) and temperature (K)."""
        return t * (1000.0 / p) ** KAPPA

    @staticmethod
    def theta_to_pressure(theta: np.ndarray, t: np.ndarray) -> np.ndarray:
        """Pressure (hPa) on which temperature *t* has potential temperature *theta*."""
        return 1000.0 * (theta / t) ** (-1.0 / KAPPA)
