# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Exception types raised by the tiled multiply engine."""


class TileGemmError(Exception):
    """Base class for tilegemm errors."""


class ShapeMismatchError(TileGemmError, ValueError):
    """A dimension is not divisible by its tile size or operand shapes disagree.

    Always raised before any execution group is dispatched.
    """


class UnsupportedTypeError(TileGemmError, TypeError):
    """An element type outside the narrow-input / wide-accumulator table."""


class OutOfBoundsError(TileGemmError, IndexError):
    """A load or store addressed memory outside its buffer."""


class TileMismatchError(TileGemmError, ValueError):
    """Tiles of incompatible shape, role or element type were combined."""
