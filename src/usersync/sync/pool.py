"""Bounded pool for processing independent partitions.

This module provides:
- PartitionPool: Runs partition work sequentially or on a thread pool
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait

from usersync.core.types import ResultEvent
from usersync.sync.types import Partition

logger = logging.getLogger(__name__)

PartitionWork = Callable[[Partition], list[ResultEvent]]


class PartitionPool:
    """Runs one unit of work per partition.

    Each partition writes to its own event buffer; buffers are merged in
    submission order once all work is done, so events of a partition keep
    their order and the merged list does not depend on scheduling.

    Usage:
        pool = PartitionPool(max_workers=4, fail_fast=True)
        events = pool.run(partitions, synchronize_partition)
    """

    def __init__(self, max_workers: int = 1, fail_fast: bool = True) -> None:
        """Initialize the pool.

        Args:
            max_workers: Maximum concurrent partitions; 1 or less runs
                partitions sequentially on the calling thread.
            fail_fast: Re-raise the first partition failure and cancel
                outstanding partitions. Otherwise a failure is recorded as
                an error event and siblings keep running.
        """
        self._max_workers = max(1, max_workers)
        self._fail_fast = fail_fast

    @property
    def max_workers(self) -> int:
        return self._max_workers

    def run(self, partitions: Sequence[Partition], work: PartitionWork) -> list[ResultEvent]:
        """Process all partitions and merge their events.

        Raises:
            Exception: The first partition failure when ``fail_fast`` is set.
        """
        if not partitions:
            return []
        if self._max_workers == 1 or len(partitions) == 1:
            buffers = [self._run_one(p, work) for p in partitions]
        else:
            buffers = self._run_concurrently(partitions, work)
        return [event for buffer in buffers for event in buffer]

    def _run_one(self, partition: Partition, work: PartitionWork) -> list[ResultEvent]:
        try:
            return work(partition)
        except Exception as e:
            if self._fail_fast:
                raise
            logger.error(f"Partition {partition.key} failed: {e}")
            return [ResultEvent.error(partition.key, str(e))]

    def _run_concurrently(
        self, partitions: Sequence[Partition], work: PartitionWork
    ) -> list[list[ResultEvent]]:
        workers = min(self._max_workers, len(partitions))
        logger.debug(f"Processing {len(partitions)} partitions with {workers} workers")

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="PartitionPool") as executor:
            futures: list[Future[list[ResultEvent]]] = [
                executor.submit(self._run_one, p, work) for p in partitions
            ]
            done, pending = wait(futures, return_when=FIRST_EXCEPTION)
            failed = next((f for f in futures if f in done and f.exception() is not None), None)
            if failed is not None:
                for future in pending:
                    future.cancel()
                raise failed.exception()  # type: ignore[misc]
            return [f.result() for f in futures]
