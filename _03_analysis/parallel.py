"""Worker pool for level-synchronous discovery and propagation.

Every level runs in two phases:

1. A pure phase: expansion or predecessor generation for a list of codes,
   split into chunks and mapped over a thread or process pool.
2. A sharded phase: store mutations grouped by shard, one task per shard on
   a thread pool, so two workers never touch the same shard.

Both calls return only after every task has finished; that return is the
barrier between phases and between levels.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor
from dataclasses import dataclass
from multiprocessing import cpu_count
from typing import Any, TypeVar

from _02_store.board_set import DEFAULT_PARTITION_BITS, shard_of

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class ParallelConfig:
    """Configuration for parallel level processing."""

    num_workers: int | None = 1  # None = cpu_count
    partition_bits: int = DEFAULT_PARTITION_BITS  # 2^4 = 16 shards
    chunk_size: int = 512  # Codes per pure-phase task
    use_processes: bool = False  # Pure phase in worker processes


def partition(codes: Iterable[int], partition_bits: int) -> dict[int, list[int]]:
    """Group codes by shard."""
    buckets: dict[int, list[int]] = defaultdict(list)
    for code in codes:
        buckets[shard_of(code, partition_bits)].append(code)
    return dict(buckets)


class LevelExecutor:
    """Runs the two phases of a level; inline when one worker is configured."""

    def __init__(self, config: ParallelConfig | None = None):
        self.config = config or ParallelConfig()
        self.num_workers = self.config.num_workers or cpu_count()
        self._pure_pool: Executor | None = None
        self._shard_pool: ThreadPoolExecutor | None = None

    @property
    def is_parallel(self) -> bool:
        return self.num_workers > 1

    def __enter__(self) -> LevelExecutor:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        if self._pure_pool is not None:
            self._pure_pool.shutdown(wait=True)
            self._pure_pool = None
        if self._shard_pool is not None:
            self._shard_pool.shutdown(wait=True)
            self._shard_pool = None

    def _get_pure_pool(self) -> Executor:
        if self._pure_pool is None:
            if self.config.use_processes:
                self._pure_pool = ProcessPoolExecutor(max_workers=self.num_workers)
            else:
                self._pure_pool = ThreadPoolExecutor(max_workers=self.num_workers)
            logger.debug(
                "Started %s pool with %d workers",
                "process" if self.config.use_processes else "thread",
                self.num_workers,
            )
        return self._pure_pool

    def _get_shard_pool(self) -> ThreadPoolExecutor:
        if self._shard_pool is None:
            self._shard_pool = ThreadPoolExecutor(max_workers=self.num_workers)
        return self._shard_pool

    def map_chunks(
        self,
        fn: Callable[..., list[R]],
        items: Sequence[T],
        *args: Any,
    ) -> list[R]:
        """Call ``fn(chunk, *args)`` over chunks of ``items`` and concatenate.

        ``fn`` must be a module-level function when processes are used.
        """
        size = self.config.chunk_size
        if not self.is_parallel or len(items) <= size:
            return fn(list(items), *args)
        pool = self._get_pure_pool()
        futures = [
            pool.submit(fn, list(items[start : start + size]), *args)
            for start in range(0, len(items), size)
        ]
        results: list[R] = []
        for future in futures:
            results.extend(future.result())
        return results

    def run_sharded(
        self,
        fn: Callable[[int, list[T]], list[R]],
        buckets: dict[int, list[T]],
    ) -> list[R]:
        """Call ``fn(shard, items)`` once per shard and concatenate the results."""
        if not self.is_parallel or len(buckets) <= 1:
            results: list[R] = []
            for shard in sorted(buckets):
                results.extend(fn(shard, buckets[shard]))
            return results
        pool = self._get_shard_pool()
        futures = [pool.submit(fn, shard, buckets[shard]) for shard in sorted(buckets)]
        results = []
        for future in futures:
            results.extend(future.result())
        return results

    def map_threads(self, fn: Callable[[T], R], items: Sequence[T]) -> list[R]:
        """Map a read-only function that needs shared in-memory state."""
        if not self.is_parallel or len(items) <= self.config.chunk_size:
            return [fn(item) for item in items]
        return list(self._get_shard_pool().map(fn, items, chunksize=self.config.chunk_size))


__all__ = ["LevelExecutor", "ParallelConfig", "partition"]
