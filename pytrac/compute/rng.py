"""Random-number supply for the stochastic physics modules.

A supply hands out flat arrays of independent standard-normal samples,
consumed three per particle. Two variants exist:

* :class:`HostRandomSupply` keeps one generator stream per host worker,
  seeded deterministically at construction. Worker ``i``'s chunk of every
  draw comes from stream ``i``.
* :class:`DeviceRandomSupply` uses a single generator for the whole array,
  optionally on the GPU through CuPy.

Draws are reproducible for a fixed seed and backend/worker configuration
only; the two variants give different sequences.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import numpy as np

from pytrac.compute.backend import ComputeBackend, NumpyBackend
from pytrac.core.models import (
    GPUNotAvailableError,
    RNGConfigurationError,
    RNGError,
)

logger = logging.getLogger(__name__)

#: Upper bound on independent host streams.
MAX_STREAMS = 512


class RandomSupply(ABC):
    """Abstract standard-normal sample supply."""

    def __init__(self) -> None:
        self._closed = False

    def _check_open(self) -> None:
        if self._closed:
            raise RNGError("Random supply used after close()")

    @abstractmethod
    def normal(self, n: int) -> np.ndarray:
        """Return *n* independent N(0, 1) samples as a float64 host array."""
        ...

    def close(self) -> None:
        """Release generator state; later draws raise :class:`RNGError`."""
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class HostRandomSupply(RandomSupply):
    """One PCG64 stream per worker thread.

    Parameters
    ----------
    num_streams : int
        Number of streams, normally the backend worker count.
    seed : int
        Base seed; stream ``i`` is seeded with ``seed + i``.
    backend : ComputeBackend, optional
        Backend whose chunking decides which stream fills which range.
        Defaults to a :class:`NumpyBackend`.

    Raises
    ------
    RNGConfigurationError
        If *num_streams* is < 1 or exceeds :data:`MAX_STREAMS`.
    """

    def __init__(self, num_streams: int, seed: int = 0,
                 backend: ComputeBackend | None = None) -> None:
        super().__init__()
        if num_streams < 1:
            raise RNGConfigurationError(
                f"Need at least one random stream, got {num_streams}"
            )
        if num_streams > MAX_STREAMS:
            raise RNGConfigurationError(
                f"Too many random streams: {num_streams} > {MAX_STREAMS}"
            )
        self.backend = backend if backend is not None else NumpyBackend()
        if self.backend.num_workers != num_streams:
            raise RNGConfigurationError(
                f"Stream count {num_streams} does not match "
                f"{self.backend.num_workers} backend worker(s)"
            )
        self.seed = seed
        self._streams = [np.random.Generator(np.random.PCG64(seed + i))
                         for i in range(num_streams)]
        logger.debug(f"Seeded {num_streams} host random stream(s) from {seed}")

    @property
    def num_streams(self) -> int:
        return len(self._streams)

    def normal(self, n: int) -> np.ndarray:
        self._check_open()
        out = np.empty(n, dtype=np.float64)

        def kernel(worker: int, start: int, stop: int) -> None:
            out[start:stop] = self._streams[worker].standard_normal(stop - start)

        self.backend.launch(kernel, n)
        return out

    def close(self) -> None:
        super().close()
        self._streams = []


class DeviceRandomSupply(RandomSupply):
    """Single generator for the whole array.

    Parameters
    ----------
    seed : int
        Generator seed.
    use_gpu : bool
        Draw on the GPU with CuPy and copy the samples back to the host.

    Raises
    ------
    GPUNotAvailableError
        If *use_gpu* is set and CuPy cannot be imported.
    """

    def __init__(self, seed: int = 0, use_gpu: bool = False) -> None:
        super().__init__()
        self.seed = seed
        self.use_gpu = use_gpu
        if use_gpu:
            try:
                import cupy as cp  # type: ignore[import-untyped]
            except ImportError as exc:
                raise GPUNotAvailableError(
                    "CuPy is required for GPU random numbers. "
                    "Install with: pip install cupy-cuda12x"
                ) from exc
            self.cp = cp
            self._gen = cp.random.RandomState(seed)
        else:
            self.cp = None
            self._gen = np.random.Generator(np.random.PCG64(seed))

    def normal(self, n: int) -> np.ndarray:
        self._check_open()
        if self.cp is not None:
            return self.cp.asnumpy(self._gen.standard_normal(n, dtype=self.cp.float64))
        return self._gen.standard_normal(n)

    def close(self) -> None:
        super().close()
        self._gen = None


def get_rng(backend: ComputeBackend, seed: int = 0,
            use_gpu: bool = False) -> RandomSupply:
    """Return the random supply matching *backend*.

    A thread pool gets one host stream per worker; the single-kernel
    backend gets one device-style generator, drawn with CuPy when
    *use_gpu* is set.

    Raises
    ------
    RNGConfigurationError
        If *use_gpu* is combined with a multi-worker backend.
    """
    if backend.num_workers > 1:
        if use_gpu:
            raise RNGConfigurationError(
                f"GPU random numbers need a single-worker backend, "
                f"got {backend.num_workers} workers"
            )
        return HostRandomSupply(backend.num_workers, seed, backend)
    return DeviceRandomSupply(seed, use_gpu=use_gpu)
