"""tilegemm - tiled mixed-precision matrix multiply on matrix-acceleration tiles.

Pipeline: operands in linear memory -> layout/packing -> one execution group per
output tile (fill, load, multiply_accumulate, store) -> verification.

Modules:
    config: TileConfig and problem shapes
    dtypes: Narrow input types, accumulator types and pack factors
    memory: Pointer and Matrix views over caller-owned buffers
    layout: Layouts, VNNI packing and per-role tile addressing
    engine: TileEngine capability and its numpy emulation
    dispatch: Execution groups and their bulk-synchronous launch
    driver: The blocked multiply
    reference: Triple-loop oracle and comparison
    scenarios: Validation runs
"""

from tilegemm.config import GemmShape, TileConfig
from tilegemm.dispatch import Dispatcher, ExecutionGroup
from tilegemm.driver import MultiplyReport, blocked_matmul, multiply_arrays
from tilegemm.engine import EmulatedTileEngine, Tile, TileEngine
from tilegemm.errors import (
    OutOfBoundsError,
    ShapeMismatchError,
    TileGemmError,
    TileMismatchError,
    UnsupportedTypeError,
)
from tilegemm.layout import Layout, Role, pack_vnni, unpack_vnni
from tilegemm.memory import Matrix, Pointer
from tilegemm.reference import compare, reference_matmul

__all__ = [
    "GemmShape",
    "TileConfig",
    "Dispatcher",
    "ExecutionGroup",
    "MultiplyReport",
    "blocked_matmul",
    "multiply_arrays",
    "EmulatedTileEngine",
    "Tile",
    "TileEngine",
    "OutOfBoundsError",
    "ShapeMismatchError",
    "TileGemmError",
    "TileMismatchError",
    "UnsupportedTypeError",
    "Layout",
    "Role",
    "pack_vnni",
    "unpack_vnni",
    "Matrix",
    "Pointer",
    "compare",
    "reference_matmul",
]
