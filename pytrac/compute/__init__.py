"""Execution backends and random-number supply."""

from pytrac.compute.backend import ComputeBackend, NumpyBackend, ThreadedBackend, get_backend
from pytrac.compute.rng import (
    MAX_STREAMS,
    DeviceRandomSupply,
    HostRandomSupply,
    RandomSupply,
    get_rng,
)

__all__ = [
    'ComputeBackend',
    'DeviceRandomSupply',
    'HostRandomSupply',
    'MAX_STREAMS',
    'NumpyBackend',
    'RandomSupply',
    'ThreadedBackend',
    'get_backend',
    'get_rng',
]
