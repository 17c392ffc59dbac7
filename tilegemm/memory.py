# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Non-owning views over caller-allocated linear memory."""

import numpy as np

from tilegemm.errors import OutOfBoundsError, ShapeMismatchError
from tilegemm.layout import Layout, pack_vnni, storage_shape, unpack_vnni


class Pointer:
    """Base buffer plus element offset.

    Supports pointer arithmetic (``ptr + n``) and gathers/scatters of element
    offsets relative to itself. Every access is bounds-checked against the
    whole buffer.

    Attributes:
        buffer: Flat view of the caller's memory.
        offset: Element offset into buffer.
    """

    def __init__(self, buffer: np.ndarray, offset: int = 0) -> None:
        if buffer.ndim != 1:
            raise ValueError(f"Pointer needs a flat buffer. Received shape {buffer.shape}.")
        self.buffer = buffer
        self.offset = int(offset)

    def __add__(self, delta: int) -> "Pointer":
        return Pointer(self.buffer, self.offset + int(delta))

    def __repr__(self) -> str:
        return f"Pointer(offset={self.offset}, size={self.buffer.size}, dtype={self.buffer.dtype})"

    @property
    def dtype(self) -> np.dtype:
        return self.buffer.dtype

    def _absolute(self, offsets: np.ndarray) -> np.ndarray:
        absolute = offsets + self.offset
        if absolute.size and (absolute.min() < 0 or absolute.max() >= self.buffer.size):
            raise OutOfBoundsError(
                f"Access [{int(absolute.min())}, {int(absolute.max())}] outside buffer of {self.buffer.size} elements "
                f"(base offset {self.offset})"
            )
        return absolute

    def read(self, offsets: np.ndarray) -> np.ndarray:
        """Copy out the elements at offsets; the result has offsets' shape."""
        return self.buffer[self._absolute(offsets)]

    def write(self, offsets: np.ndarray, values: np.ndarray) -> None:
        """Copy values into the elements at offsets."""
        self.buffer[self._absolute(offsets)] = values


class Matrix:
    """
    A logical [rows, cols] matrix stored contiguously in caller-owned memory.

    The layout says how an operand role reads the storage; the storage itself is
    just a flat buffer. A [K, M] array read column-major is the [M, K] operand
    A, and an [N, K] array read column-major is the [K, N] operand B.

    Writes through the view land in the caller's array.

    Attributes:
        rows: Logical rows.
        cols: Logical columns.
        layout: Buffer interpretation.
        pack_factor: Interleave factor for PACKED storage.
    """

    def __init__(self, data: np.ndarray, rows: int, cols: int, layout: Layout = Layout.ROW_MAJOR, pack_factor: int = 1):
        if not data.flags.c_contiguous:
            raise ValueError("Matrix storage must be C-contiguous so that it can be viewed as linear memory")
        if layout is Layout.PACKED and (rows % pack_factor != 0):
            raise ShapeMismatchError(f"Packed matrix rows={rows} not divisible by pack factor {pack_factor}")
        if data.size != rows * cols:
            raise ShapeMismatchError(
                f"Storage of {data.size} elements cannot hold a {rows}x{cols} matrix (shape {data.shape})"
            )
        self._flat = data.reshape(-1)
        self.rows = rows
        self.cols = cols
        self.layout = layout
        self.pack_factor = pack_factor

    @classmethod
    def from_array(cls, logical: np.ndarray, layout: Layout = Layout.ROW_MAJOR, pack_factor: int = 1) -> "Matrix":
        """Copy a logical [rows, cols] array into new storage of the given layout."""
        rows, cols = logical.shape
        if layout is Layout.ROW_MAJOR:
            storage = np.ascontiguousarray(logical)
        elif layout is Layout.COL_MAJOR:
            storage = np.ascontiguousarray(logical.T)
        else:
            storage = pack_vnni(logical, pack_factor)
        return cls(storage.copy(), rows, cols, layout, pack_factor)

    @property
    def dtype(self) -> np.dtype:
        return self._flat.dtype

    @property
    def shape(self) -> tuple[int, int]:
        return self.rows, self.cols

    def pointer(self) -> Pointer:
        """Pointer to the first element of the storage."""
        return Pointer(self._flat)

    def storage(self) -> np.ndarray:
        """The storage as a 2D view in its physical shape."""
        return self._flat.reshape(storage_shape(self.rows, self.cols, self.layout, self.pack_factor))

    def to_array(self) -> np.ndarray:
        """Return a copy of the logical [rows, cols] contents."""
        storage = self.storage()
        if self.layout is Layout.ROW_MAJOR:
            logical = storage.copy()
        elif self.layout is Layout.COL_MAJOR:
            logical = np.ascontiguousarray(storage.T)
        else:
            logical = unpack_vnni(storage, self.pack_factor)
        return logical

    def __repr__(self) -> str:
        return f"Matrix({self.rows}x{self.cols}, dtype={self.dtype}, layout={self.layout.value})"
