# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Tile registers and the four tile primitives: fill, load, multiply_accumulate, store."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import numpy as np

from tilegemm.dispatch import ExecutionGroup
from tilegemm.dtypes import accumulator_dtype, element_type
from tilegemm.errors import TileMismatchError
from tilegemm.layout import Layout, Role, check_role_layout, element_offsets
from tilegemm.memory import Pointer

logger = logging.getLogger(__name__)


class Tile:
    """Accelerator-resident submatrix owned by one execution group.

    Tiles are opaque: their contents are only reachable through a TileEngine.
    A tile never aliases host memory.

    Attributes:
        group: Owning execution group.
        role: Operand slot (A, B or ACCUMULATOR).
        rows: Tile rows.
        cols: Tile columns.
        dtype: Element type.
        k_steps: Multiply-accumulates folded into an accumulator since its
            last fill or load.
    """

    __slots__ = ("group", "role", "rows", "cols", "dtype", "k_steps", "_values")

    def __init__(self, group: ExecutionGroup, role: Role, rows: int, cols: int, dtype: np.dtype) -> None:
        self.group = group
        self.role = role
        self.rows = rows
        self.cols = cols
        self.dtype = np.dtype(dtype)
        self.k_steps = 0
        self._values: np.ndarray | None = None

    @property
    def shape(self) -> tuple[int, int]:
        return (self.rows, self.cols)

    @property
    def initialized(self) -> bool:
        return self._values is not None

    def __repr__(self) -> str:
        return (
            f"Tile({self.role.value}, {self.rows}x{self.cols}, dtype={self.dtype}, "
            f"group={self.group.group_id}, k_steps={self.k_steps})"
        )


class TileEngine(ABC):
    """Capability interface of a matrix-acceleration unit.

    Every primitive is issued by a whole execution group and acts on tiles owned
    by that group. Concrete engines implement the four primitives; tile
    allocation and argument checks are shared here.

    Attributes:
        supports_packed_addressing: Whether B tiles can be loaded straight
            from a row- or column-major buffer. Engines without it only
            accept PACKED B loads, so callers must pack B beforehand.
    """

    supports_packed_addressing: bool = True

    def tile(self, group: ExecutionGroup, role: Role, rows: int, cols: int, dtype: np.dtype) -> Tile:
        """Allocate an uninitialized tile for group."""
        return Tile(group, role, rows, cols, dtype)

    @abstractmethod
    def fill(self, group: ExecutionGroup, tile: Tile, value: int | float) -> None:
        """Set every element of an accumulator tile to value.

        Args:
            group: Issuing execution group.
            tile: Accumulator tile owned by group.
            value: Fill value, cast to the tile's element type.
        """
        ...

    @abstractmethod
    def load(
        self, group: ExecutionGroup, tile: Tile, source: Pointer, leading_dimension: int, layout: Layout
    ) -> None:
        """Copy a tile-shaped region of linear memory into tile.

        Args:
            group: Issuing execution group.
            tile: Destination tile owned by group.
            source: Pointer to the region's first element.
            leading_dimension: Stride in elements of the source buffer.
            layout: Interpretation of the source buffer.

        Raises:
            OutOfBoundsError: If the region leaves the buffer.
        """
        ...

    @abstractmethod
    def multiply_accumulate(self, group: ExecutionGroup, a: Tile, b: Tile, acc: Tile) -> Tile:
        """Compute acc + a @ b with narrow a, b and a wide accumulator.

        Args:
            group: Issuing execution group.
            a: [TM, TK] tile.
            b: [TK, TN] tile.
            acc: [TM, TN] accumulator tile.

        Returns:
            A new accumulator tile; a, b and acc are left untouched.
        """
        ...

    @abstractmethod
    def store(
        self, group: ExecutionGroup, tile: Tile, dest: Pointer, leading_dimension: int, layout: Layout
    ) -> None:
        """Copy an accumulator tile to linear memory.

        Args:
            group: Issuing execution group.
            tile: Accumulator tile owned by group.
            dest: Pointer to the destination region's first element.
            leading_dimension: Stride in elements of the destination buffer.
            layout: Interpretation of the destination buffer.

        Raises:
            OutOfBoundsError: If the region leaves the buffer.
        """
        ...

    def _check_owner(self, group: ExecutionGroup, *tiles: Tile) -> None:
        for tile in tiles:
            if tile.group != group:
                raise TileMismatchError(f"{tile!r} is not owned by group {group.group_id}")

    def _check_initialized(self, *tiles: Tile) -> None:
        for tile in tiles:
            if not tile.initialized:
                raise TileMismatchError(f"{tile!r} is used before it was filled or loaded")

    def _check_mma_operands(self, a: Tile, b: Tile, acc: Tile) -> None:
        roles = (a.role, b.role, acc.role)
        if roles != (Role.A, Role.B, Role.ACCUMULATOR):
            raise TileMismatchError(f"multiply_accumulate expects (A, B, ACCUMULATOR) tiles, got {roles}")
        if a.cols != b.rows or a.rows != acc.rows or b.cols != acc.cols:
            raise TileMismatchError(f"Tile shapes do not chain: {a.shape} x {b.shape} -> {acc.shape}")
        if a.dtype != b.dtype:
            raise TileMismatchError(f"A and B element types differ: {a.dtype} vs {b.dtype}")
        expected = accumulator_dtype(a.dtype)
        if acc.dtype != expected:
            raise TileMismatchError(f"Accumulator for {a.dtype} inputs must be {expected}, got {acc.dtype}")


class EmulatedTileEngine(TileEngine):
    """Numpy emulation of a matrix-acceleration unit.

    Tile registers are private numpy arrays. Integer inputs accumulate exactly
    in int32. 16-bit float inputs are widened to float32, where their products
    are exact, and accumulate in float32.

    Args:
        packed_addressing: If False, B tiles must be loaded from a PACKED
            buffer, like units that only read VNNI-packed B operands.
    """

    def __init__(self, packed_addressing: bool = True) -> None:
        self.supports_packed_addressing = packed_addressing

    def __repr__(self) -> str:
        return f"EmulatedTileEngine(packed_addressing={self.supports_packed_addressing})"

    def fill(self, group: ExecutionGroup, tile: Tile, value: int | float) -> None:
        self._check_owner(group, tile)
        if tile.role is not Role.ACCUMULATOR:
            raise TileMismatchError(f"fill only applies to accumulator tiles, got {tile!r}")
        tile._values = np.full(tile.shape, value, dtype=tile.dtype)
        tile.k_steps = 0

    def load(
        self, group: ExecutionGroup, tile: Tile, source: Pointer, leading_dimension: int, layout: Layout
    ) -> None:
        self._check_owner(group, tile)
        check_role_layout(tile.role, layout)
        if tile.role is Role.B and layout is not Layout.PACKED and not self.supports_packed_addressing:
            raise TileMismatchError(f"{self!r} only loads B tiles from a PACKED buffer, got {layout.value}")
        if source.dtype != tile.dtype:
            raise TileMismatchError(f"Cannot load {source.dtype} memory into {tile!r}")
        pack = element_type(tile.dtype).pack_factor if layout is Layout.PACKED else 1
        offsets = element_offsets(tile.rows, tile.cols, leading_dimension, layout, pack)
        tile._values = source.read(offsets)
        tile.k_steps = 0
        logger.debug(
            "group %s load %s from %r ld=%d %s",
            group.group_id,
            tile.role.value,
            source,
            leading_dimension,
            layout.value,
        )

    def multiply_accumulate(self, group: ExecutionGroup, a: Tile, b: Tile, acc: Tile) -> Tile:
        self._check_owner(group, a, b, acc)
        self._check_mma_operands(a, b, acc)
        self._check_initialized(a, b, acc)
        wide = acc.dtype
        product = np.matmul(a._values.astype(wide), b._values.astype(wide))
        result = self.tile(group, Role.ACCUMULATOR, acc.rows, acc.cols, wide)
        result._values = (acc._values + product).astype(wide, copy=False)
        result.k_steps = acc.k_steps + 1
        return result

    def store(
        self, group: ExecutionGroup, tile: Tile, dest: Pointer, leading_dimension: int, layout: Layout
    ) -> None:
        self._check_owner(group, tile)
        if tile.role is not Role.ACCUMULATOR:
            raise TileMismatchError(f"Only accumulator tiles can be stored, got {tile!r}")
        self._check_initialized(tile)
        check_role_layout(tile.role, layout)
        if dest.dtype != tile.dtype:
            raise TileMismatchError(f"Cannot store {tile!r} into {dest.dtype} memory")
        offsets = element_offsets(tile.rows, tile.cols, leading_dimension, layout)
        dest.write(offsets, tile._values)
        logger.debug("group %s store %r ld=%d %s", group.group_id, dest, leading_dimension, layout.value)
