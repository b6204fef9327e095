"""pytrac - Lagrangian particle dispersion in Python.

Advances an ensemble of air parcels through time-varying meteorological
fields with advection, turbulent and mesoscale diffusion, sedimentation,
decay and isosurface constraints.

Package Structure:
    core/       - Engine, data models, interpolation and climatologies
    physics/    - Per-step physics modules
    data/       - Control files, snapshot providers, particle tables
    utils/      - Unit and coordinate conversions
    compute/    - Execution backends and random-number supply
"""

__version__ = "0.1.0"

# Core
from pytrac.core.engine import ParticleEngine
from pytrac.core.interpolator import Interpolator
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

# Data I/O
from pytrac.data.atm_io import AtmWriter, read_atm, write_atm
from pytrac.data.config_parser import load_control, parse_control
from pytrac.data.met_provider import MetProvider, SnapshotSequence

# Physics
from pytrac.physics.advection import AdvectionModule
from pytrac.physics.boundary import BoundaryHandler
from pytrac.physics.decay import DecayModule
from pytrac.physics.isosurface import IsosurfaceModule
from pytrac.physics.mesoscale import MesoscaleModule, WindStatsCache
from pytrac.physics.meteo import MeteoSampler
from pytrac.physics.sedimentation import SedimentationModule
from pytrac.physics.turbulence import TurbulenceModule

# Utils
from pytrac.utils.conversions import CoordinateConverter

# Compute
from pytrac.compute.backend import ComputeBackend, NumpyBackend, ThreadedBackend, get_backend
from pytrac.compute.rng import DeviceRandomSupply, HostRandomSupply, RandomSupply, get_rng

__all__ = [
    # Core - Engine
    'ParticleEngine',
    # Core - Interpolator
    'Interpolator',
    # Core - Models
    'ControlConfig',
    'MetSnapshot',
    'ParticleEnsemble',
    'QuantityMap',
    # Core - Exceptions
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
    # Data I/O
    'AtmWriter',
    'MetProvider',
    'SnapshotSequence',
    'load_control',
    'parse_control',
    'read_atm',
    'write_atm',
    # Physics
    'AdvectionModule',
    'BoundaryHandler',
    'DecayModule',
    'IsosurfaceModule',
    'MesoscaleModule',
    'MeteoSampler',
    'SedimentationModule',
    'TurbulenceModule',
    'WindStatsCache',
    # Utils
    'CoordinateConverter',
    # Compute
    'ComputeBackend',
    'DeviceRandomSupply',
    'HostRandomSupply',
    'NumpyBackend',
    'RandomSupply',
    'ThreadedBackend',
    'get_backend',
    'get_rng',
]
