"""Property-based tests for the random sample supplies."""

from __future__ import annotations

import numpy as np
from hypothesis import given, settings, strategies as st

from pytrac.compute.backend import NumpyBackend, ThreadedBackend
from pytrac.compute.rng import DeviceRandomSupply, HostRandomSupply, get_rng

seeds = st.integers(min_value=0, max_value=2**31)
threads = st.integers(min_value=1, max_value=6)
sizes = st.integers(min_value=0, max_value=500)


@given(seed=seeds, num_threads=threads, n=sizes)
@settings(max_examples=40, deadline=None)
def test_host_supply_reproducible_for_seed_and_threads(seed, num_threads, n):
    with ThreadedBackend(num_threads) as backend:
        a = HostRandomSupply(num_threads, seed, backend)
        b = HostRandomSupply(num_threads, seed, backend)
        np.testing.assert_array_equal(a.normal(n), b.normal(n))
        np.testing.assert_array_equal(a.normal(n), b.normal(n))


@given(seed=seeds, n=sizes)
@settings(max_examples=50)
def test_device_supply_reproducible(seed, n):
    a = DeviceRandomSupply(seed)
    b = DeviceRandomSupply(seed)
    out = a.normal(n)
    assert out.shape == (n,)
    np.testing.assert_array_equal(out, b.normal(n))


@given(seed=seeds, n=sizes)
@settings(max_examples=50)
def test_single_worker_supply_is_finite(seed, n):
    supply = get_rng(NumpyBackend(), seed)
    out = supply.normal(n)
    assert out.dtype == np.float64
    assert np.all(np.isfinite(out))


@given(seed=seeds)
@settings(max_examples=20, deadline=None)
def test_streams_differ_between_workers(seed):
    with ThreadedBackend(2) as backend:
        out = HostRandomSupply(2, seed, backend).normal(200)
    assert not np.array_equal(out[:100], out[100:])
