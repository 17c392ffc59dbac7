# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Operand layouts, VNNI packing and per-role tile addressing.

All functions here are pure: they compute element offsets and strides into
linear memory, or build a packed copy of an operand. Nothing here reads or
writes a caller's buffer.

Addressing conventions for the three operand roles of C[M, N] = A x B:

    A column-major, stride M:  (k * TK) * M + tile_row * TM
    B column-major, stride K:  (tile_col * TN) * K + k * TK
    C row-major,    stride N:  (tile_row * TM) * N + tile_col * TN
"""

from dataclasses import dataclass
from enum import Enum

import numpy as np

from tilegemm.config import GemmShape, TileConfig
from tilegemm.errors import ShapeMismatchError


class Layout(Enum):
    """How a linear buffer is interpreted as a 2D operand."""

    ROW_MAJOR = "row_major"
    COL_MAJOR = "col_major"
    PACKED = "packed"


class Role(Enum):
    """Operand slot of a tile in a multiply-accumulate."""

    A = "a"
    B = "b"
    ACCUMULATOR = "accumulator"


_ROLE_LAYOUTS = {
    Role.A: (Layout.ROW_MAJOR, Layout.COL_MAJOR),
    Role.B: (Layout.ROW_MAJOR, Layout.COL_MAJOR, Layout.PACKED),
    Role.ACCUMULATOR: (Layout.ROW_MAJOR, Layout.COL_MAJOR),
}


def check_role_layout(role: Role, layout: Layout) -> None:
    """
    Raises:
        ValueError: If the role cannot be addressed with the layout. Only B
            has a packed form.
    """
    if layout not in _ROLE_LAYOUTS[role]:
        allowed = ", ".join(item.value for item in _ROLE_LAYOUTS[role])
        raise ValueError(f"Layout {layout.value} is not valid for operand {role.value}. Allowed: {allowed}.")


def check_packing(k: int, tile_depth: int, pack_factor: int) -> None:
    """
    Assert once per multiply that the pack factor evenly divides K and TK.

    Raises:
        ShapeMismatchError: If K or TK is not a multiple of pack_factor.
    """
    if pack_factor <= 0:
        raise ValueError(f"pack_factor must be positive, got {pack_factor}")
    if k % pack_factor != 0:
        raise ShapeMismatchError(f"K={k} is not divisible by pack factor {pack_factor}")
    if tile_depth % pack_factor != 0:
        raise ShapeMismatchError(f"tile_depth={tile_depth} is not divisible by pack factor {pack_factor}")


def pack_vnni(b: np.ndarray, pack_factor: int) -> np.ndarray:
    """
    Interleave groups of pack_factor rows of a [K, N] operand into columns.

    packed[k // pf, n * pf + k % pf] = b[k, n]

    Args:
        b: Logical operand of shape [K, N].
        pack_factor: Number of K elements grouped into one 32-bit slot.

    Returns:
        New C-contiguous array of shape [K / pf, N * pf].
    """
    if b.ndim != 2:
        raise ValueError(f"Expect a 2D [K, N] operand. Received shape {b.shape}.")
    k, n = b.shape
    if k % pack_factor != 0:
        raise ShapeMismatchError(f"K={k} is not divisible by pack factor {pack_factor}")
    grouped = b.reshape(k // pack_factor, pack_factor, n)
    return np.ascontiguousarray(grouped.transpose(0, 2, 1).reshape(k // pack_factor, n * pack_factor))


def unpack_vnni(packed: np.ndarray, pack_factor: int) -> np.ndarray:
    """Inverse of pack_vnni: [K / pf, N * pf] back to [K, N]."""
    if packed.ndim != 2:
        raise ValueError(f"Expect a 2D packed operand. Received shape {packed.shape}.")
    rows, cols = packed.shape
    if cols % pack_factor != 0:
        raise ShapeMismatchError(f"Packed width {cols} is not divisible by pack factor {pack_factor}")
    n = cols // pack_factor
    grouped = packed.reshape(rows, n, pack_factor)
    return np.ascontiguousarray(grouped.transpose(0, 2, 1).reshape(rows * pack_factor, n))


def element_offsets(rows: int, cols: int, leading_dimension: int, layout: Layout, pack_factor: int = 1) -> np.ndarray:
    """
    Offsets, relative to a tile's base pointer, of every element of a logical
    [rows, cols] tile.

    Args:
        rows: Logical tile rows.
        cols: Logical tile columns.
        leading_dimension: Stride in elements between consecutive rows
            (row-major, packed) or columns (column-major) of the buffer.
        layout: Buffer interpretation.
        pack_factor: Interleave factor, only used by PACKED.

    Returns:
        int64 array of shape [rows, cols].
    """
    i = np.arange(rows, dtype=np.int64)[:, None]
    j = np.arange(cols, dtype=np.int64)[None, :]
    if layout is Layout.ROW_MAJOR:
        offsets = i * leading_dimension + j
    elif layout is Layout.COL_MAJOR:
        offsets = j * leading_dimension + i
    elif layout is Layout.PACKED:
        offsets = (i // pack_factor) * leading_dimension + j * pack_factor + (i % pack_factor)
    else:
        raise ValueError(f"Unknown layout {layout!r}")
    return offsets


def storage_shape(rows: int, cols: int, layout: Layout, pack_factor: int = 1) -> tuple[int, int]:
    """Shape of the 2D buffer holding a logical [rows, cols] operand."""
    if layout is Layout.ROW_MAJOR:
        shape = (rows, cols)
    elif layout is Layout.COL_MAJOR:
        shape = (cols, rows)
    else:
        shape = (rows // pack_factor, cols * pack_factor)
    return shape


def addr_a(layout: Layout, shape: GemmShape, config: TileConfig, tile_row: int, k: int) -> int:
    """Offset of the A tile for output tile row tile_row at reduction step k."""
    if layout is Layout.COL_MAJOR:
        offset = (k * config.tile_depth) * shape.m + tile_row * config.tile_rows
    else:
        offset = (tile_row * config.tile_rows) * shape.k + k * config.tile_depth
    return offset


def offset_b(
    layout: Layout, shape: GemmShape, config: TileConfig, tile_col: int, k: int, pack_factor: int = 1
) -> int:
    """Offset of the B tile for output tile column tile_col at reduction step k."""
    if layout is Layout.COL_MAJOR:
        offset = (tile_col * config.tile_cols) * shape.k + k * config.tile_depth
    elif layout is Layout.ROW_MAJOR:
        offset = (k * config.tile_depth) * shape.n + tile_col * config.tile_cols
    else:
        row = k * config.tile_depth // pack_factor
        offset = row * (shape.n * pack_factor) + tile_col * config.tile_cols * pack_factor
    return offset


def addr_c(layout: Layout, shape: GemmShape, config: TileConfig, tile_row: int, tile_col: int) -> int:
    """Offset of output tile (tile_row, tile_col)."""
    if layout is Layout.ROW_MAJOR:
        offset = (tile_row * config.tile_rows) * shape.n + tile_col * config.tile_cols
    else:
        offset = (tile_col * config.tile_cols) * shape.m + tile_row * config.tile_rows
    return offset


@dataclass(frozen=True)
class OperandAccess:
    """Addressing of one operand role for a given problem size and tiling.

    Attributes:
        role: Operand slot.
        layout: How the operand's buffer is read.
        shape: Problem size.
        config: Tile sizes.
        pack_factor: Interleave factor of a PACKED B operand.
    """

    role: Role
    layout: Layout
    shape: GemmShape
    config: TileConfig
    pack_factor: int = 1

    def __post_init__(self) -> None:
        check_role_layout(self.role, self.layout)

    @property
    def tile_shape(self) -> tuple[int, int]:
        """Logical [rows, cols] of one tile of this operand."""
        config = self.config
        if self.role is Role.A:
            tile_shape = (config.tile_rows, config.tile_depth)
        elif self.role is Role.B:
            tile_shape = (config.tile_depth, config.tile_cols)
        else:
            tile_shape = (config.tile_rows, config.tile_cols)
        return tile_shape

    @property
    def leading_dimension(self) -> int:
        """Stride in elements of this operand's buffer."""
        m, n, k = self.shape
        if self.layout is Layout.PACKED:
            return n * self.pack_factor
        logical_cols = {Role.A: k, Role.B: n, Role.ACCUMULATOR: n}[self.role]
        logical_rows = {Role.A: m, Role.B: k, Role.ACCUMULATOR: m}[self.role]
        return logical_cols if self.layout is Layout.ROW_MAJOR else logical_rows

    def offset(self, tile_row: int, tile_col: int, k: int) -> int:
        """Element offset of the tile this role contributes to output tile
        (tile_row, tile_col) at reduction step k. Indices a role does not
        depend on are ignored."""
        if self.role is Role.A:
            offset = addr_a(self.layout, self.shape, self.config, tile_row, k)
        elif self.role is Role.B:
            offset = offset_b(self.layout, self.shape, self.config, tile_col, k, self.pack_factor)
        else:
            offset = addr_c(self.layout, self.shape, self.config, tile_row, tile_col)
        return offset
