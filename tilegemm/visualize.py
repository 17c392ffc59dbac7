# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import os

import matplotlib.pyplot as plt
import numpy as np

from tilegemm.driver import MultiplyReport


def worker_grid(report: MultiplyReport) -> tuple[np.ndarray, list[str]]:
    """
    Map every output tile to the index of the worker that computed it.

    Returns:
        grid: int array of shape (tiles_m, tiles_n).
        workers: Worker names, indexed by the values in grid.
    """
    workers = sorted(set(report.assignments.values()))
    index = {worker: i for i, worker in enumerate(workers)}
    tiles_m, tiles_n = report.grid
    grid = np.full((tiles_m, tiles_n), -1, dtype=np.int64)
    for (row, col), worker in report.assignments.items():
        grid[row, col] = index[worker]
    return grid, workers


def plot_tile_assignment(report: MultiplyReport, path: str) -> str:
    """
    Save a picture of the output tile grid, coloured by worker.

    Parameters:
    -----------
    report : MultiplyReport
        Report returned by blocked_matmul.
    path : str
        Output image file. Parent directories are created.

    Returns:
    --------
    str
        The path written.
    """
    grid, workers = worker_grid(report)
    tiles_m, tiles_n = grid.shape
    shape, config = report.shape, report.config

    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)

    fig, ax = plt.subplots(figsize=(max(4, tiles_n * 0.8 + 2), max(3, tiles_m * 0.8 + 1)))
    cmap = plt.get_cmap("tab20", max(len(workers), 1))
    image = ax.imshow(grid, cmap=cmap, vmin=-0.5, vmax=len(workers) - 0.5, aspect="equal")
    if tiles_m * tiles_n <= 256:
        for row in range(tiles_m):
            for col in range(tiles_n):
                ax.text(col, row, f"{row},{col}", ha="center", va="center", fontsize=7)
    ax.set_title(
        f"{report.element_type} C[{shape.m}x{shape.n}] K={shape.k}, "
        f"tile {config.tile_rows}x{config.tile_cols}x{config.tile_depth}"
    )
    ax.set_xlabel("tile column (N)")
    ax.set_ylabel("tile row (M)")
    colorbar = fig.colorbar(image, ax=ax, ticks=range(len(workers)))
    colorbar.ax.set_yticklabels(workers)
    fig.tight_layout()
    fig.savefig(path)
    plt.close(fig)
    return path
