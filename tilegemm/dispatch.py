# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Bulk-synchronous launch of independent execution groups.

One execution group computes one output tile. Groups never communicate and
share no writable memory, so they are launched together on a thread pool and
the caller blocks until every group has finished.
"""

import logging
import random
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import List, Optional

from tqdm import tqdm

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutionGroup:
    """A team of lanes that jointly computes one output tile.

    Attributes:
        tile_row: Output tile index along M.
        tile_col: Output tile index along N.
        size: Number of lanes; equals the tile's column count.
    """

    tile_row: int
    tile_col: int
    size: int

    @property
    def group_id(self) -> tuple[int, int]:
        return (self.tile_row, self.tile_col)


@dataclass(frozen=True)
class GroupResult:
    """Which worker ran a group, returned by Dispatcher.launch in group order."""

    group: ExecutionGroup
    worker: str


def order_groups(groups: List[ExecutionGroup], shuffle: bool, seed: Optional[int] = None) -> List[ExecutionGroup]:
    """
    Return the submission order of groups.

    Results never depend on this order; shuffling exists to exercise that.
    """
    ordered = list(groups)
    if shuffle:
        random.Random(seed).shuffle(ordered)
    return ordered


class Dispatcher:
    """
    Launches one task per execution group and waits for all of them.

    With workers == 1 groups run serially in the calling thread. Otherwise they
    run on a ThreadPoolExecutor so that every group writes straight into the
    shared output buffer.

    On the pool, a failing group does not stop the others: all groups run to
    completion and the failure with the lowest tile index is re-raised. The
    serial path stops at the first failure.

    Attributes:
        workers: Maximum number of concurrently running groups.
        shuffle: Submit groups in a random order.
        seed: Seed for the shuffled order.
        progress: Show a tqdm progress bar over completed groups.
    """

    def __init__(self, workers: int = 4, shuffle: bool = False, seed: Optional[int] = None, progress: bool = False):
        if workers <= 0:
            raise ValueError(f"workers must be positive, got {workers}")
        self.workers = workers
        self.shuffle = shuffle
        self.seed = seed
        self.progress = progress

    def __repr__(self) -> str:
        return f"Dispatcher(workers={self.workers}, shuffle={self.shuffle}, seed={self.seed})"

    def launch(
        self, groups: List[ExecutionGroup], kernel: Callable[[ExecutionGroup], None], desc: str = "Tiles"
    ) -> List[GroupResult]:
        """
        Run kernel once per group and block until all groups complete.

        Args:
            groups: Groups to launch, one per output tile.
            kernel: Per-group body. Must only write the group's own output region.
            desc: Progress bar label.

        Returns:
            One GroupResult per group, in the order of groups.
        """
        ordered = order_groups(groups, self.shuffle, self.seed)
        logger.debug("Launching %d groups on %d workers", len(ordered), self.workers)
        if self.workers == 1:
            workers_by_group = self._run_serial(ordered, kernel, desc)
        else:
            workers_by_group = self._run_parallel(ordered, kernel, desc)
        return [GroupResult(group=group, worker=workers_by_group[group.group_id]) for group in groups]

    def _run_serial(
        self, ordered: List[ExecutionGroup], kernel: Callable[[ExecutionGroup], None], desc: str
    ) -> dict[tuple[int, int], str]:
        worker = threading.current_thread().name
        done: dict[tuple[int, int], str] = {}
        for group in tqdm(ordered, total=len(ordered), desc=desc, disable=not self.progress):
            kernel(group)
            done[group.group_id] = worker
        return done

    def _run_parallel(
        self, ordered: List[ExecutionGroup], kernel: Callable[[ExecutionGroup], None], desc: str
    ) -> dict[tuple[int, int], str]:
        def run(group: ExecutionGroup) -> str:
            kernel(group)
            return threading.current_thread().name

        done: dict[tuple[int, int], str] = {}
        errors: dict[tuple[int, int], BaseException] = {}
        futures_to_group: dict[Future, ExecutionGroup] = {}
        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="group") as pool:
            for group in ordered:
                futures_to_group[pool.submit(run, group)] = group
            for future in tqdm(
                as_completed(futures_to_group), total=len(futures_to_group), desc=desc, disable=not self.progress
            ):
                group = futures_to_group[future]
                error = future.exception()
                if error is not None:
                    logger.error("Group %s failed: %s (%s)", group.group_id, error, type(error).__name__)
                    errors[group.group_id] = error
                else:
                    done[group.group_id] = future.result()
        if errors:
            first = min(errors)
            raise errors[first]
        return done
