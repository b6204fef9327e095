"""Meteorological snapshot providers.

The engine asks a provider for the snapshot pair bracketing each step
time. How snapshots are produced or stored is up to the provider; this
module ships the abstract interface and an in-memory sequence.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Iterable

import numpy as np

from pytrac.core.models import MetDataError, MetSnapshot

logger = logging.getLogger(__name__)


class MetProvider(ABC):
    """Supplies the pair of snapshots ``(met0, met1)`` valid at a time."""

    @abstractmethod
    def get_met(self, t: float) -> tuple[MetSnapshot, MetSnapshot]:
        """Return snapshots with ``met0.time <= t <= met1.time``.

        Raises
        ------
        MetDataError
            If no snapshot pair covers *t*.
        """
        ...


class SnapshotSequence(MetProvider):
    """In-memory provider over a time-ordered list of snapshots.

    Parameters
    ----------
    snapshots : iterable of MetSnapshot
        At least two snapshots sharing one grid; sorted by time here.

    Raises
    ------
    MetDataError
        If fewer than two snapshots are given or the grids differ.
    """

    def __init__(self, snapshots: Iterable[MetSnapshot]) -> None:
        self.snapshots = sorted(snapshots, key=lambda m: m.time)
        if len(self.snapshots) < 2:
            raise MetDataError("At least two meteorological snapshots are required")
        shape = self.snapshots[0].shape
        for met in self.snapshots[1:]:
            if met.shape != shape:
                raise MetDataError(
                    f"Snapshot at t={met.time} has grid {met.shape}, expected {shape}"
                )
        self.times = np.array([m.time for m in self.snapshots])
        self._index: int | None = None

    @property
    def current(self) -> tuple[MetSnapshot, MetSnapshot] | None:
        if self._index is None:
            return None
        return self.snapshots[self._index], self.snapshots[self._index + 1]

    def get_met(self, t: float) -> tuple[MetSnapshot, MetSnapshot]:
        if self._index is not None:
            met0, met1 = self.current
            if met0.time <= t <= met1.time:
                return met0, met1

        if t < self.times[0] or t > self.times[-1]:
            raise MetDataError(
                f"No meteorological data for t={t} "
                f"(available {self.times[0]} .. {self.times[-1]})"
            )
        i = int(np.searchsorted(self.times, t, side="right")) - 1
        self._index = min(max(i, 0), len(self.snapshots) - 2)
        met0, met1 = self.current
        logger.info(f"Meteorological snapshots {met0.time} .. {met1.time} for t={t}")
        return met0, met1
