# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Blocked multiply driver: one execution group per output tile.

For C[M, N] = A[M, K] x B[K, N] tiled by (TM, TN, TK), every output tile
(tile_row, tile_col) runs

    fill(acc, 0)
    for k in range(K / TK):
        load(A tile), load(B tile), acc = multiply_accumulate(A tile, B tile, acc)
    store(acc)

Each group writes one disjoint region of C exactly once, so groups need no
synchronization and may run in any order.
"""

import logging
from dataclasses import dataclass, field
from time import perf_counter
from typing import Optional

import numpy as np

from tilegemm.config import GemmShape, TileConfig
from tilegemm.dispatch import Dispatcher, ExecutionGroup
from tilegemm.dtypes import ElementType, element_type
from tilegemm.engine import EmulatedTileEngine, TileEngine
from tilegemm.errors import ShapeMismatchError, TileMismatchError, UnsupportedTypeError
from tilegemm.layout import Layout, OperandAccess, Role, check_packing, check_role_layout, pack_vnni
from tilegemm.memory import Matrix

logger = logging.getLogger(__name__)


@dataclass
class MultiplyReport:
    """Summary of one blocked multiply.

    Attributes:
        shape: Problem size.
        config: Tile sizes used.
        element_type: Narrow input type name.
        k_steps: Multiply-accumulates per output tile.
        b_packed_copy: Whether B was materialized into a packed copy.
        assignments: Worker name per output tile.
        elapsed_s: Wall time of the dispatch.
    """

    shape: GemmShape
    config: TileConfig
    element_type: str
    k_steps: int
    b_packed_copy: bool
    assignments: dict[tuple[int, int], str] = field(default_factory=dict)
    elapsed_s: float = 0.0

    @property
    def grid(self) -> tuple[int, int]:
        return self.config.grid(self.shape)

    @property
    def num_tiles(self) -> int:
        tiles_m, tiles_n = self.grid
        return tiles_m * tiles_n


def problem_shape(c: Matrix, a: Matrix, b: Matrix) -> GemmShape:
    """
    Derive (M, N, K) from the three operands.

    Raises:
        ShapeMismatchError: If the operand shapes do not form a product.
    """
    m, k = a.shape
    k_b, n = b.shape
    if k != k_b:
        raise ShapeMismatchError(f"Contraction dimension mismatch: A has K={k}, B has K={k_b}")
    if c.shape != (m, n):
        raise ShapeMismatchError(f"Output shape {c.shape} does not match A x B = ({m}, {n})")
    return GemmShape(m=m, n=n, k=k)


def check_types(c: Matrix, a: Matrix, b: Matrix) -> ElementType:
    """
    Raises:
        UnsupportedTypeError: If A and B differ, are not a supported narrow type,
            or C is not their accumulator type.
    """
    etype = element_type(a.dtype)
    if b.dtype != a.dtype:
        raise UnsupportedTypeError(f"A and B must share an element type, got {a.dtype} and {b.dtype}")
    if c.dtype != etype.accumulator:
        raise UnsupportedTypeError(
            f"C must use accumulator type {etype.accumulator} for {etype.name} inputs, got {c.dtype}"
        )
    return etype


def prepare_b(b: Matrix, etype: ElementType, engine: TileEngine) -> tuple[Matrix, bool]:
    """
    Bring B into a layout the engine can load.

    An engine with packed addressing reads B in place. Otherwise B is copied
    once into the VNNI-packed layout.

    Returns:
        The operand to load from and whether a packed copy was made.
    """
    if b.layout is Layout.PACKED:
        if b.pack_factor != etype.pack_factor:
            raise ShapeMismatchError(f"B is packed by {b.pack_factor}, {etype.name} needs {etype.pack_factor}")
        return b, False
    if engine.supports_packed_addressing:
        return b, False
    packed = pack_vnni(b.to_array(), etype.pack_factor)
    logger.debug("Materialized packed B copy of shape %s", packed.shape)
    return Matrix(packed, b.rows, b.cols, Layout.PACKED, etype.pack_factor), True


def blocked_matmul(
    c: Matrix,
    a: Matrix,
    b: Matrix,
    config: Optional[TileConfig] = None,
    engine: Optional[TileEngine] = None,
    dispatcher: Optional[Dispatcher] = None,
) -> MultiplyReport:
    """
    Compute C = A x B tile by tile.

    Every check runs before the first group is dispatched, so a rejected call
    leaves C untouched.

    Args:
        c: Output [M, N] in the accumulator type; ROW_MAJOR or COL_MAJOR.
        a: Input [M, K]; ROW_MAJOR or COL_MAJOR.
        b: Input [K, N]; ROW_MAJOR, COL_MAJOR or PACKED.
        config: Tile sizes. Defaults to TileConfig().
        engine: Tile engine. Defaults to EmulatedTileEngine().
        dispatcher: Group launcher. Defaults to Dispatcher().

    Returns:
        MultiplyReport describing the run.

    Raises:
        ShapeMismatchError: On inconsistent shapes or sizes not divisible by the tiles.
        UnsupportedTypeError: On unsupported or inconsistent element types.
        ValueError: If an operand uses a layout its role cannot be read with.
    """
    config = config if config is not None else TileConfig()
    engine = engine if engine is not None else EmulatedTileEngine()
    dispatcher = dispatcher if dispatcher is not None else Dispatcher()

    shape = problem_shape(c, a, b)
    config.validate(shape)
    etype = check_types(c, a, b)
    check_role_layout(Role.A, a.layout)
    check_role_layout(Role.B, b.layout)
    check_role_layout(Role.ACCUMULATOR, c.layout)
    check_packing(shape.k, config.tile_depth, etype.pack_factor)
    b_src, b_copied = prepare_b(b, etype, engine)

    a_access = OperandAccess(Role.A, a.layout, shape, config)
    b_access = OperandAccess(Role.B, b_src.layout, shape, config, b_src.pack_factor)
    c_access = OperandAccess(Role.ACCUMULATOR, c.layout, shape, config)
    a_ptr, b_ptr, c_ptr = a.pointer(), b_src.pointer(), c.pointer()
    k_steps = config.k_steps(shape)
    logger.info("Blocked multiply %s x %s -> %s\n%s", a, b, c, config.describe(shape))

    def kernel(group: ExecutionGroup) -> None:
        row, col = group.group_id
        acc = engine.tile(group, Role.ACCUMULATOR, *c_access.tile_shape, etype.accumulator)
        tile_a = engine.tile(group, Role.A, *a_access.tile_shape, etype.dtype)
        tile_b = engine.tile(group, Role.B, *b_access.tile_shape, etype.dtype)
        engine.fill(group, acc, 0)
        for k in range(k_steps):
            engine.load(group, tile_a, a_ptr + a_access.offset(row, col, k), a_access.leading_dimension, a.layout)
            engine.load(group, tile_b, b_ptr + b_access.offset(row, col, k), b_access.leading_dimension, b_src.layout)
            acc = engine.multiply_accumulate(group, tile_a, tile_b, acc)
        if acc.k_steps != k_steps:
            raise TileMismatchError(f"Accumulator of group {group.group_id} holds {acc.k_steps}/{k_steps} steps")
        engine.store(group, acc, c_ptr + c_access.offset(row, col, 0), c_access.leading_dimension, c.layout)
        logger.debug("Group %s stored its tile after %d steps", group.group_id, acc.k_steps)

    tiles_m, tiles_n = config.grid(shape)
    groups = [ExecutionGroup(row, col, config.tile_cols) for row in range(tiles_m) for col in range(tiles_n)]
    start = perf_counter()
    results = dispatcher.launch(groups, kernel, desc=f"{etype.name} tiles")
    elapsed = perf_counter() - start
    logger.info("Computed %d tiles (%d x %d) in %.4f s", len(groups), tiles_m, tiles_n, elapsed)

    return MultiplyReport(
        shape=shape,
        config=config,
        element_type=etype.name,
        k_steps=k_steps,
        b_packed_copy=b_copied,
        assignments={result.group.group_id: result.worker for result in results},
        elapsed_s=elapsed,
    )


def multiply_arrays(
    a: np.ndarray,
    b: np.ndarray,
    config: Optional[TileConfig] = None,
    a_layout: Layout = Layout.COL_MAJOR,
    b_layout: Layout = Layout.COL_MAJOR,
    engine: Optional[TileEngine] = None,
    dispatcher: Optional[Dispatcher] = None,
) -> tuple[np.ndarray, MultiplyReport]:
    """
    Multiply logical [M, K] and [K, N] arrays through the tiled engine.

    The inputs are copied into storage of the requested layouts; the result
    is returned as a logical row-major [M, N] array.
    """
    etype = element_type(a.dtype)
    a_mat = Matrix.from_array(a, a_layout)
    b_mat = Matrix.from_array(b, b_layout, etype.pack_factor)
    c_mat = Matrix(np.zeros((a.shape[0], b.shape[1]), dtype=etype.accumulator), a.shape[0], b.shape[1])
    report = blocked_matmul(c_mat, a_mat, b_mat, config=config, engine=engine, dispatcher=dispatcher)
    return c_mat.to_array(), report
