"""Core particle engine, data models, interpolation and climatologies."""

from pytrac.core.models import (
    AtmFormatError,
    BalloonDataError,
    ConfigError,
    ConfigParseError,
    ControlConfig,
    GPUNotAvailableError,
    MetDataError,
    MetSnapshot,
    ParticleEnsemble,
    PyTracError,
    QuantityMap,
    RNGConfigurationError,
    RNGError,
    TimeWindowError,
)
from pytrac.core.interpolator import Interpolator, locate_irr, locate_reg
from pytrac.core.climatology import clim_hno3, clim_tropo, tropopause_weight
from pytrac.core.engine import ParticleEngine

__all__ = [
    # Engine
    'ParticleEngine',
    # Interpolator
    'Interpolator',
    'locate_irr',
    'locate_reg',
    # Climatology
    'clim_hno3',
    'clim_tropo',
    'tropopause_weight',
    # Models
    'ControlConfig',
    'MetSnapshot',
    'ParticleEnsemble',
    'QuantityMap',
    # Exceptions
    'AtmFormatError',
    'BalloonDataError',
    'ConfigError',
    'ConfigParseError',
    'GPUNotAvailableError',
    'MetDataError',
    'PyTracError',
    'RNGConfigurationError',
    'RNGError',
    'TimeWindowError',
]
