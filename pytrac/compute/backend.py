"""Execution backends for per-particle kernels.

Every physics kernel has the signature ``kernel(worker, start, stop)`` and
processes the contiguous particle range ``[start, stop)``. A backend decides
how ``[0, n)`` is split:

* :class:`NumpyBackend` runs one kernel over the whole array (data-parallel
  accelerator style, one "device" worker).
* :class:`ThreadedBackend` splits the range into contiguous chunks, one per
  worker thread, on a :class:`~concurrent.futures.ThreadPoolExecutor`.

Kernels must not depend on the number of workers.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

import numpy as np

logger = logging.getLogger(__name__)

Kernel = Callable[[int, int, int], None]


def active_indices(dt: np.ndarray, start: int, stop: int) -> np.ndarray:
    """Indices in ``[start, stop)`` of particles with a non-zero time step."""
    return np.arange(start, stop)[dt[start:stop] != 0]


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------

class ComputeBackend(ABC):
    """Abstract execution strategy for particle kernels."""

    #: Short identifier used in logs and by :func:`get_backend`.
    name: str = "abstract"

    @property
    @abstractmethod
    def num_workers(self) -> int:
        """Number of workers a launch is split across."""
        ...

    def chunks(self, n: int) -> list[tuple[int, int]]:
        """Contiguous ``(start, stop)`` ranges covering ``[0, n)``.

        The split depends on *n* and :attr:`num_workers` only, so worker
        ``i`` always receives the same range for the same problem size.
        """
        bounds = np.linspace(0, n, self.num_workers + 1).astype(np.intp)
        return [(int(bounds[i]), int(bounds[i + 1]))
                for i in range(self.num_workers)]

    @abstractmethod
    def launch(self, kernel: Kernel, n: int) -> None:
        """Run *kernel* over ``[0, n)``.

        Parameters
        ----------
        kernel : callable
            ``kernel(worker, start, stop)``.
        n : int
            Number of particles.
        """
        ...

    def close(self) -> None:
        """Release worker resources."""

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        self.close()


# ---------------------------------------------------------------------------
# NumPy (single kernel) backend
# ---------------------------------------------------------------------------

class NumpyBackend(ComputeBackend):
    """Runs every kernel once over the whole particle array."""

    name = "numpy"

    @property
    def num_workers(self) -> int:
        return 1

    def launch(self, kernel: Kernel, n: int) -> None:
        if n > 0:
            kernel(0, 0, n)


# ---------------------------------------------------------------------------
# Thread pool backend
# ---------------------------------------------------------------------------

class ThreadedBackend(ComputeBackend):
    """Splits each launch into contiguous chunks over worker threads.

    Parameters
    ----------
    num_threads : int or None
        Number of worker threads. Defaults to ``os.cpu_count()``.
    """

    name = "threads"

    def __init__(self, num_threads: int | None = None) -> None:
        self._num_threads = max(1, num_threads or os.cpu_count() or 1)
        self._executor = ThreadPoolExecutor(
            max_workers=self._num_threads, thread_name_prefix="pytrac"
        )

    @property
    def num_workers(self) -> int:
        return self._num_threads

    def launch(self, kernel: Kernel, n: int) -> None:
        if n <= 0:
            return
        futures = [
            self._executor.submit(kernel, worker, start, stop)
            for worker, (start, stop) in enumerate(self.chunks(n))
            if stop > start
        ]
        # result() re-raises the first worker exception in this thread
        for fut in futures:
            fut.result()

    def close(self) -> None:
        self._executor.shutdown(wait=True)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def get_backend(kind: str = "numpy",
                num_threads: int | None = None) -> ComputeBackend:
    """Return the execution backend named *kind*.

    Parameters
    ----------
    kind : str
        ``"numpy"`` for single whole-array kernels, ``"threads"`` for the
        host thread pool.
    num_threads : int or None
        Worker count for ``"threads"``.
    """
    if kind == "numpy":
        backend: ComputeBackend = NumpyBackend()
    elif kind == "threads":
        backend = ThreadedBackend(num_threads)
    else:
        raise ValueError(f"Unknown backend '{kind}' (expected 'numpy' or 'threads')")
    logger.info(f"Using {backend.name} backend with {backend.num_workers} worker(s)")
    return backend
