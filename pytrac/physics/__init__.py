"""Physics modules for the per-step particle update."""

from pytrac.physics.advection import AdvectionModule
from pytrac.physics.turbulence import TurbulenceModule
from pytrac.physics.mesoscale import MesoscaleModule, WindStatsCache
from pytrac.physics.sedimentation import SedimentationModule
from pytrac.physics.decay import DecayModule
from pytrac.physics.isosurface import IsosurfaceModule
from pytrac.physics.boundary import BoundaryHandler
from pytrac.physics.meteo import MeteoSampler

__all__ = [
    'AdvectionModule',
    'TurbulenceModule',
    'MesoscaleModule',
    'WindStatsCache',
    'SedimentationModule',
    'DecayModule',
    'IsosurfaceModule',
    'BoundaryHandler',
    'MeteoSampler',
]
