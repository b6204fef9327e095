"""Data input/output modules."""

from pytrac.data.config_parser import load_control, parse_control
from pytrac.data.met_provider import MetProvider, SnapshotSequence
from pytrac.data.atm_io import AtmWriter, read_atm, write_atm

__all__ = [
    # Control files
    'load_control',
    'parse_control',
    # Met providers
    'MetProvider',
    'SnapshotSequence',
    # Particle tables
    'AtmWriter',
    'read_atm',
    'write_atm',
]
