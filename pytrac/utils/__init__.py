"""Utility modules."""

from pytrac.utils.conversions import CoordinateConverter

__all__ = [
    'CoordinateConverter',
]
