"""Shared test utilities and fixtures for pytest."""

import numpy as np
import pytest

from tilegemm import Dispatcher, ExecutionGroup


def make_random_array(shape: tuple[int, ...], seed: int, dtype: np.dtype = np.int8) -> np.ndarray:
    """Generate a deterministic random array for testing.

    Integer dtypes cover their full range. Float dtypes get small integers in
    [-4, 4], which 16-bit float types hold exactly, so float32 accumulation is
    exact regardless of summation order.

    Args:
        shape: Shape of the array to generate.
        seed: Random seed for reproducibility.
        dtype: Data type for the array.

    Returns:
        Random array of the requested dtype.
    """
    rng = np.random.default_rng(seed)
    dtype = np.dtype(dtype)
    if np.issubdtype(dtype, np.integer):
        info = np.iinfo(dtype)
        return rng.integers(info.min, info.max, size=shape, endpoint=True).astype(dtype)
    return rng.integers(-4, 4, size=shape, endpoint=True).astype(np.float32).astype(dtype)


def numpy_matmul(a: np.ndarray, b: np.ndarray, accumulator: np.dtype) -> np.ndarray:
    """Vectorized product of logical [M, K] and [K, N] arrays in the accumulator type."""
    return np.matmul(a.astype(accumulator), b.astype(accumulator))


@pytest.fixture
def group() -> ExecutionGroup:
    """An execution group for a single 8-wide output tile."""
    return ExecutionGroup(tile_row=0, tile_col=0, size=8)


@pytest.fixture
def serial_dispatcher() -> Dispatcher:
    """Dispatcher that runs groups one after another in the test thread."""
    return Dispatcher(workers=1)
