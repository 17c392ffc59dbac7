# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Naive reference multiply, result comparison and static write-region checks."""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from tilegemm.config import GemmShape, TileConfig
from tilegemm.dtypes import accumulator_dtype
from tilegemm.errors import ShapeMismatchError
from tilegemm.layout import Layout, OperandAccess, Role, element_offsets


def reference_matmul(a_t: np.ndarray, b_t: np.ndarray, accumulator: Optional[np.dtype] = None) -> np.ndarray:
    """
    Triple-loop oracle: D[m][n] = sum_k A[k][m] * B[n][k].

    A is indexed [k][m] and B is indexed [n][k], matching a column-major A and
    a B stored one row per output column.

    Args:
        a_t: A storage of shape [K, M].
        b_t: B storage of shape [N, K].
        accumulator: Wide dtype to accumulate in. Defaults to the
            accumulator of a_t's element type.

    Returns:
        D of shape [M, N] in the accumulator dtype.
    """
    k_a, m = a_t.shape
    n, k_b = b_t.shape
    if k_a != k_b:
        raise ShapeMismatchError(f"Contraction dimension mismatch: A[k][m] has K={k_a}, B[n][k] has K={k_b}")
    wide = np.dtype(accumulator) if accumulator is not None else accumulator_dtype(a_t.dtype)
    a_w = a_t.astype(wide)
    b_w = b_t.astype(wide)
    d = np.zeros((m, n), dtype=wide)
    for i in range(m):
        for j in range(n):
            total = wide.type(0)
            for kk in range(k_a):
                total = total + a_w[kk, i] * b_w[j, kk]
            d[i, j] = total
    return d


@dataclass(frozen=True)
class Comparison:
    """Outcome of an elementwise comparison.

    Attributes:
        passed: True when every element matched.
        mismatches: Number of differing elements.
        first_mismatch: Index of the first differing element, if any.
        max_abs_error: Largest absolute difference.
    """

    passed: bool
    mismatches: int
    first_mismatch: Optional[tuple[int, ...]]
    max_abs_error: float

    def __str__(self) -> str:
        return "passed" if self.passed else "failed"


def compare(actual: np.ndarray, expected: np.ndarray, atol: float = 0.0, rtol: float = 0.0) -> Comparison:
    """
    Compare two results elementwise.

    Integer results must match exactly. Float results also match exactly unless
    atol or rtol is given, in which case np.isclose semantics apply.
    """
    if actual.shape != expected.shape:
        raise ShapeMismatchError(f"Cannot compare shapes {actual.shape} and {expected.shape}")
    exact = np.issubdtype(expected.dtype, np.integer) or (atol == 0.0 and rtol == 0.0)
    if exact:
        matches = actual == expected
    else:
        matches = np.isclose(actual, expected, atol=atol, rtol=rtol)
    diff = np.abs(actual.astype(np.float64) - expected.astype(np.float64))
    bad = np.argwhere(~matches)
    first = tuple(int(i) for i in bad[0]) if len(bad) else None
    return Comparison(
        passed=bool(matches.all()),
        mismatches=int(len(bad)),
        first_mismatch=first,
        max_abs_error=float(diff.max()) if diff.size else 0.0,
    )


def tile_write_regions(
    shape: GemmShape, config: TileConfig, layout: Layout = Layout.ROW_MAJOR
) -> dict[tuple[int, int], np.ndarray]:
    """Flat element offsets of C written by each output tile's store."""
    access = OperandAccess(Role.ACCUMULATOR, layout, shape, config)
    local = element_offsets(config.tile_rows, config.tile_cols, access.leading_dimension, layout)
    tiles_m, tiles_n = config.grid(shape)
    return {
        (row, col): (access.offset(row, col, 0) + local).ravel()
        for row in range(tiles_m)
        for col in range(tiles_n)
    }


def write_counts(regions: dict[tuple[int, int], np.ndarray], size: int) -> np.ndarray:
    """Number of stores touching each element of a buffer of size elements."""
    counts = np.zeros(size, dtype=np.int64)
    for offsets in regions.values():
        np.add.at(counts, offsets, 1)
    return counts


def check_disjoint(regions: dict[tuple[int, int], np.ndarray]) -> bool:
    """True when no two tiles write the same element."""
    seen: set[int] = set()
    for offsets in regions.values():
        tile_offsets = set(offsets.tolist())
        if seen & tile_offsets:
            return False
        seen |= tile_offsets
    return True


def check_coverage(regions: dict[tuple[int, int], np.ndarray], size: int) -> bool:
    """True when every element is written exactly once."""
    counts = write_counts(regions, size)
    return bool((counts == 1).all())
