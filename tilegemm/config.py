# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from dataclasses import dataclass
from itertools import product
from typing import Dict, List, NamedTuple

import numpy as np
import tabulate

from tilegemm.dtypes import element_type
from tilegemm.errors import ShapeMismatchError

DEFAULT_TILE_ROWS = 8
DEFAULT_SUBGROUP_SIZE = 8
DEFAULT_TILE_DEPTH = 32


class GemmShape(NamedTuple):
    """Problem size of C[M, N] = A[M, K] x B[K, N]."""

    m: int
    n: int
    k: int


@dataclass(frozen=True)
class TileConfig:
    """
    Hardware tile sizes for one multiply call.

    tile_cols is tied to the execution group width: every group has one lane per
    output column of its tile.

    Attributes:
        tile_rows: TM, rows of an A tile and of the accumulator.
        tile_cols: TN, columns of a B tile and of the accumulator.
        tile_depth: TK, reduction extent of one multiply-accumulate.
    """

    tile_rows: int = DEFAULT_TILE_ROWS
    tile_cols: int = DEFAULT_SUBGROUP_SIZE
    tile_depth: int = DEFAULT_TILE_DEPTH

    def __post_init__(self) -> None:
        for field_name in ("tile_rows", "tile_cols", "tile_depth"):
            value = getattr(self, field_name)
            if not isinstance(value, (int, np.integer)) or value <= 0:
                raise ValueError(f"{field_name} must be a positive integer, got {value!r}")

    @classmethod
    def deduce(
        cls, dtype: np.dtype | type | str, repeat_count: int, systolic_depth: int = 8, execution_size: int = 8
    ) -> "TileConfig":
        """
        Derive tile sizes from DPAS-style arguments and the input element type.

        The systolic depth counts 32-bit channels, so the reduction extent of one
        tile is systolic_depth x pack_factor elements.

        Args:
            dtype: Narrow input element type.
            repeat_count: Rows of A processed per multiply-accumulate.
            systolic_depth: Depth of the systolic array in 32-bit channels.
            execution_size: Columns of B processed per multiply-accumulate.

        Returns:
            TileConfig with tile_rows=repeat_count, tile_cols=execution_size and
            tile_depth=systolic_depth * pack_factor.
        """
        ops_per_channel = element_type(dtype).pack_factor
        return cls(tile_rows=repeat_count, tile_cols=execution_size, tile_depth=systolic_depth * ops_per_channel)

    def grid(self, shape: GemmShape) -> tuple[int, int]:
        """Number of output tiles along M and N."""
        return shape.m // self.tile_rows, shape.n // self.tile_cols

    def k_steps(self, shape: GemmShape) -> int:
        """Number of multiply-accumulates per output tile."""
        return shape.k // self.tile_depth

    def validate(self, shape: GemmShape) -> None:
        """
        Reject problem sizes that do not divide evenly into tiles.

        Raises:
            ShapeMismatchError: If M % TM, N % TN or K % TK is non-zero, or any
                dimension is not positive.
        """
        checks = (
            ("M", shape.m, "tile_rows", self.tile_rows),
            ("N", shape.n, "tile_cols", self.tile_cols),
            ("K", shape.k, "tile_depth", self.tile_depth),
        )
        for dim_name, dim_size, tile_name, tile_size in checks:
            if dim_size <= 0:
                raise ShapeMismatchError(f"Dimension {dim_name} must be positive, got {dim_size}")
            if dim_size % tile_size != 0:
                raise ShapeMismatchError(
                    f"Dimension {dim_name}={dim_size} is not divisible by {tile_name}={tile_size} "
                    f"(remainder {dim_size % tile_size})"
                )

    def describe(self, shape: GemmShape) -> str:
        """Render the tiling of a problem size as a table."""
        tiles_m, tiles_n = self.grid(shape)
        table_data = [
            ["Matrix dimensions", shape.m, shape.n, shape.k],
            ["Hardware tile size", self.tile_rows, self.tile_cols, self.tile_depth],
            ["Total tiles", tiles_m, tiles_n, self.k_steps(shape)],
        ]
        table = tabulate.tabulate(
            table_data,
            headers=["Parameter", "M (rows)", "N (cols)", "K (contraction)"],
            tablefmt="simple_outline",
            numalign="right",
        )
        return f"{self!r}\n{table}"


def generate_configs(**kwargs) -> List[Dict]:
    """
    Generate all combinations of configuration options.

    Args:
        **kwargs: Field names and their option lists,
                  e.g. tile_rows=[8, 4, 1], tile_cols=[8].

    Returns:
        List[Dict]: One dictionary per element of the Cartesian product.
    """
    names = list(kwargs.keys())
    return [dict(zip(names, combo)) for combo in product(*kwargs.values())]


def generate_tile_configs(shape: GemmShape, **options) -> List[TileConfig]:
    """
    Build every TileConfig from the option lists that evenly tiles shape.

    Args:
        shape: Problem size the configs must divide.
        **options: Option lists keyed by TileConfig field name. Missing fields
            use the defaults.

    Returns:
        Valid configs in Cartesian-product order.
    """
    configs = []
    for kwargs in generate_configs(**options):
        config = TileConfig(**kwargs)
        try:
            config.validate(shape)
        except ShapeMismatchError:
            continue
        configs.append(config)
    return configs
