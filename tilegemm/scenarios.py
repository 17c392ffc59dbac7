# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Validation runs: build inputs, multiply through the tiled engine, compare to the oracle."""

import logging
from dataclasses import dataclass, field
from typing import Optional

import numpy as np
from ml_dtypes import bfloat16

from tilegemm.config import TileConfig
from tilegemm.dispatch import Dispatcher
from tilegemm.driver import MultiplyReport, blocked_matmul
from tilegemm.dtypes import LOAD_GRANULARITY_BYTES, element_type
from tilegemm.engine import EmulatedTileEngine
from tilegemm.layout import Layout
from tilegemm.memory import Matrix
from tilegemm.reference import Comparison, compare, reference_matmul

logger = logging.getLogger(__name__)

DPAS_REPEAT_COUNTS = (8, 4, 1)
DPAS_SYSTOLIC_DEPTH = 8
DPAS_EXECUTION_SIZE = 8


@dataclass
class ScenarioResult:
    """Outcome of one validation run.

    Attributes:
        name: Scenario label.
        comparison: Elementwise comparison of C against the reference D.
        report: Multiply report.
        matrices: Logical inputs and outputs, kept for debug printing.
    """

    name: str
    comparison: Comparison
    report: MultiplyReport
    matrices: dict[str, np.ndarray] = field(default_factory=dict, repr=False)

    @property
    def passed(self) -> bool:
        return self.comparison.passed


def colmajor_inputs(m: int, n: int, k: int, dtype: np.dtype = np.int8) -> tuple[np.ndarray, np.ndarray]:
    """
    Inputs of the column-major A / column-major B scenario.

    Returns:
        a_t: A storage [K, M] with a_t[i][j] = 2 * i + j.
        b_t: B storage [N, K] with b_t[i][j] = i + 2 * j.
    """
    i, j = np.meshgrid(np.arange(k), np.arange(m), indexing="ij")
    a_t = (2 * i + j).astype(dtype)
    i, j = np.meshgrid(np.arange(n), np.arange(k), indexing="ij")
    b_t = (i + 2 * j).astype(dtype)
    return a_t, b_t


def run_colmajor(
    m: int = 8,
    n: int = 8,
    k: int = 32,
    dtype: np.dtype = np.int8,
    config: Optional[TileConfig] = None,
    dispatcher: Optional[Dispatcher] = None,
) -> ScenarioResult:
    """
    Multiply a column-major A by a column-major B and check against the oracle.

    A's storage is [K][M] read with stride M and B's storage is [N][K] read with
    stride K; C is row-major with stride N.
    """
    etype = element_type(dtype)
    a_t, b_t = colmajor_inputs(m, n, k, etype.dtype)
    c_storage = np.zeros((m, n), dtype=etype.accumulator)
    a_mat = Matrix(a_t, m, k, Layout.COL_MAJOR)
    b_mat = Matrix(b_t, k, n, Layout.COL_MAJOR)
    c_mat = Matrix(c_storage, m, n, Layout.ROW_MAJOR)
    report = blocked_matmul(c_mat, a_mat, b_mat, config=config, dispatcher=dispatcher)
    d = reference_matmul(a_t, b_t, etype.accumulator)
    comparison = compare(c_storage, d)
    logger.info("%s colmajor M=%d N=%d K=%d: %s", etype.name, m, n, k, comparison)
    return ScenarioResult(
        name=f"{etype.name}_colmajorA_colmajorB",
        comparison=comparison,
        report=report,
        matrices={"A": a_t, "B": b_t, "C": c_storage, "D": d},
    )


def dpas_inputs(m: int, n: int, k: int, dtype: np.dtype) -> tuple[np.ndarray, np.ndarray]:
    """
    Small integer-valued inputs, exactly representable in 16-bit float types so
    that float32 accumulation is exact in any summation order.

    Returns:
        a: [M, K] row-major.
        b: [K, N] row-major.
    """
    i, j = np.meshgrid(np.arange(m), np.arange(k), indexing="ij")
    a = ((i + j) % 5 - 2).astype(np.float32).astype(dtype)
    i, j = np.meshgrid(np.arange(k), np.arange(n), indexing="ij")
    b = ((2 * i + j) % 7 - 3).astype(np.float32).astype(dtype)
    return a, b


def normal_inputs(m: int, n: int, k: int, dtype: np.dtype, seed: int) -> tuple[np.ndarray, np.ndarray]:
    """Standard-normal [M, K] and [K, N] inputs rounded to dtype."""
    rng = np.random.default_rng(seed)
    a = rng.standard_normal((m, k), dtype=np.float32).astype(dtype)
    b = rng.standard_normal((k, n), dtype=np.float32).astype(dtype)
    return a, b


def dpas_config(
    dtype: np.dtype, repeat_count: int, systolic_depth: int, execution_size: int, deduce_args: bool
) -> TileConfig:
    """Tile sizes of a DPAS call, either deduced from the element type or spelled out."""
    if deduce_args:
        return TileConfig.deduce(dtype, repeat_count, systolic_depth, execution_size)
    ops_per_channel = LOAD_GRANULARITY_BYTES // np.dtype(dtype).itemsize
    return TileConfig(tile_rows=repeat_count, tile_cols=execution_size, tile_depth=systolic_depth * ops_per_channel)


def run_dpas(
    repeat_count: int,
    systolic_depth: int = DPAS_SYSTOLIC_DEPTH,
    execution_size: int = DPAS_EXECUTION_SIZE,
    dtype: np.dtype = bfloat16,
    deduce_args: bool = True,
    grid: tuple[int, int] = (1, 1),
    k_tiles: int = 1,
    seed: Optional[int] = None,
    atol: float = 0.0,
    rtol: float = 0.0,
    dispatcher: Optional[Dispatcher] = None,
) -> ScenarioResult:
    """
    Multiply narrow float inputs into a float32 accumulator on an engine that
    only reads VNNI-packed B tiles.

    Args:
        repeat_count: Tile rows.
        systolic_depth: Reduction depth in 32-bit channels.
        execution_size: Tile columns.
        dtype: bfloat16 or float16 inputs.
        deduce_args: Derive tile sizes with TileConfig.deduce.
        grid: Output tiles along (M, N).
        k_tiles: Reduction tiles along K.
        seed: If given, draw standard-normal inputs instead of the small
            integer ones. Their float32 sums depend on summation order, so
            pass a tolerance as well.
        atol: Absolute tolerance of the comparison.
        rtol: Relative tolerance of the comparison.
        dispatcher: Group launcher.
    """
    config = dpas_config(dtype, repeat_count, systolic_depth, execution_size, deduce_args)
    etype = element_type(dtype)
    m, n, k = config.tile_rows * grid[0], config.tile_cols * grid[1], config.tile_depth * k_tiles
    if seed is None:
        a, b = dpas_inputs(m, n, k, etype.dtype)
    else:
        a, b = normal_inputs(m, n, k, etype.dtype, seed)
    c_storage = np.zeros((m, n), dtype=etype.accumulator)
    report = blocked_matmul(
        Matrix(c_storage, m, n),
        Matrix(a, m, k, Layout.ROW_MAJOR),
        Matrix(b, k, n, Layout.ROW_MAJOR),
        config=config,
        engine=EmulatedTileEngine(packed_addressing=False),
        dispatcher=dispatcher,
    )
    d = reference_matmul(np.ascontiguousarray(a.T), np.ascontiguousarray(b.T), etype.accumulator)
    comparison = compare(c_storage, d, atol=atol, rtol=rtol)
    name = f"dpas_{systolic_depth}x{repeat_count}_{etype.name}"
    logger.info("%s (deduce_args=%s): %s", name, deduce_args, comparison)
    return ScenarioResult(
        name=name, comparison=comparison, report=report, matrices={"A": a, "B": b, "C": c_storage, "D": d}
    )


def run_dpas_suite(
    dtype: np.dtype = bfloat16,
    deduce_args: bool = True,
    repeat_counts: tuple[int, ...] = DPAS_REPEAT_COUNTS,
    dispatcher: Optional[Dispatcher] = None,
) -> list[ScenarioResult]:
    """Run run_dpas for each repeat count at the default systolic depth."""
    return [
        run_dpas(repeat_count, dtype=dtype, deduce_args=deduce_args, dispatcher=dispatcher)
        for repeat_count in repeat_counts
    ]
