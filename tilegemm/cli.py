# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Command-line validation runs.

    python -m tilegemm int8            # prints "passed" or "failed"
    python -m tilegemm int8 -m 12 --sweep
    python -m tilegemm bf16            # prints "Test Passed" or "Test FAILED"
    python -m tilegemm all --debug
"""

import argparse
import logging
import sys
from typing import Optional, Sequence

import numpy as np

from tilegemm.config import GemmShape, TileConfig, generate_tile_configs
from tilegemm.dispatch import Dispatcher
from tilegemm.dtypes import element_type, supported_types
from tilegemm.errors import ShapeMismatchError, TileGemmError
from tilegemm.scenarios import ScenarioResult, run_colmajor, run_dpas_suite
from tilegemm.utils.logging import setup_logging
from tilegemm.visualize import plot_tile_assignment

logger = logging.getLogger(__name__)

EXIT_PASSED = 0
EXIT_FAILED = 1
EXIT_REJECTED = 2

SWEEP_OPTIONS = {"tile_rows": [8, 4, 2, 1], "tile_cols": [8, 4], "tile_depth": [32, 16, 8]}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tilegemm", description="Validate the tiled matrix multiply engine")
    parser.add_argument(
        "scenario",
        choices=["int8", "bf16", "all"],
        help="int8: column-major A x column-major B with int32 accumulation; "
        "bf16: DPAS-style sweep over repeat counts 8, 4, 1 with float32 accumulation; all: both",
    )
    parser.add_argument("-m", type=int, default=8, help="M of the int8 scenario")
    parser.add_argument("-n", type=int, default=8, help="N of the int8 scenario")
    parser.add_argument("-k", type=int, default=32, help="K of the int8 scenario")
    parser.add_argument("--tile", type=int, nargs=3, metavar=("TM", "TN", "TK"), help="Tile sizes of the int8 scenario")
    parser.add_argument("--sweep", action="store_true", help="Run the int8 scenario over every tile size that fits")
    float_types = [t.name for t in supported_types() if not t.is_integer]
    parser.add_argument("--dtype", choices=float_types, default="bf16", help="Input type of the DPAS sweep")
    parser.add_argument(
        "--no-deduce",
        dest="deduce_args",
        action="store_false",
        help="Spell out DPAS tile sizes instead of deducing them",
    )
    parser.add_argument("--workers", type=int, default=4, help="Concurrent execution groups")
    parser.add_argument("--shuffle", action="store_true", help="Launch groups in a random order")
    parser.add_argument("--seed", type=int, default=None, help="Seed for --shuffle")
    parser.add_argument("--progress", action="store_true", help="Show a progress bar over tiles")
    parser.add_argument("--debug", action="store_true", help="Print input, result and reference matrices")
    parser.add_argument("--log-file", type=str, default=None, help="Write logs here instead of stderr")
    parser.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--plot", type=str, default=None, help="Save the int8 tile-to-worker grid to this image")
    return parser


def print_matrices(result: ScenarioResult) -> None:
    """Debug dump of a scenario's matrices to stdout."""
    print(f"== {result.name}")
    for name, matrix in result.matrices.items():
        print(f"{name} {matrix.shape} {matrix.dtype}:")
        printable = matrix if np.issubdtype(matrix.dtype, np.integer) else matrix.astype(np.float32)
        print(np.array2string(printable, max_line_width=160))
    if not result.passed:
        print(
            f"{result.comparison.mismatches} mismatches, first at {result.comparison.first_mismatch}, "
            f"max abs error {result.comparison.max_abs_error}"
        )


def int8_configs(args: argparse.Namespace) -> list[TileConfig]:
    """Tile sizes to run the int8 scenario with."""
    if not args.sweep:
        return [TileConfig(*args.tile) if args.tile else TileConfig()]
    shape = GemmShape(m=args.m, n=args.n, k=args.k)
    configs = generate_tile_configs(shape, **SWEEP_OPTIONS)
    if not configs:
        raise ShapeMismatchError(f"No candidate tile sizes divide {shape}")
    logger.info("Sweeping %d tile configurations for %s", len(configs), shape)
    return configs


def run_int8(args: argparse.Namespace, dispatcher: Dispatcher) -> bool:
    passed = True
    for config in int8_configs(args):
        result = run_colmajor(m=args.m, n=args.n, k=args.k, config=config, dispatcher=dispatcher)
        if args.debug:
            print_matrices(result)
        passed &= result.passed
    if args.plot:
        plot_tile_assignment(result.report, args.plot)
    print("passed" if passed else "failed")
    return passed


def run_bf16(args: argparse.Namespace, dispatcher: Dispatcher) -> bool:
    results = run_dpas_suite(dtype=element_type(args.dtype).dtype, deduce_args=args.deduce_args, dispatcher=dispatcher)
    passed = True
    for result in results:
        if args.debug:
            print_matrices(result)
        passed &= result.passed
    print("Test Passed" if passed else "Test FAILED")
    return passed


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the selected scenarios and return the process exit status."""
    args = build_parser().parse_args(argv)
    handler = setup_logging(
        args.log_file, getattr(logging, args.log_level), msg_width=100, show_metadata=args.log_file is not None
    )

    passed = True
    try:
        dispatcher = Dispatcher(workers=args.workers, shuffle=args.shuffle, seed=args.seed, progress=args.progress)
        if args.scenario in ("int8", "all"):
            passed &= run_int8(args, dispatcher)
        if args.scenario in ("bf16", "all"):
            passed &= run_bf16(args, dispatcher)
    except (TileGemmError, ValueError) as e:
        logger.error("Rejected: %s (%s)", e, type(e).__name__)
        print(f"error: {e}", file=sys.stderr)
        print("failed")
        return EXIT_REJECTED
    finally:
        logging.root.removeHandler(handler)
        handler.close()
    return EXIT_PASSED if passed else EXIT_FAILED
