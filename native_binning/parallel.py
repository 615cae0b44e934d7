"""
Parallel Binning
================

Data-parallel binning without shared counters:

1. split the DataSet into disjoint contiguous views (no copies)
2. each worker bins its view into a private, zeroed accumulator
3. once every worker has finished, merge the accumulators into the caller's
   histogram, sequentially and in partition order

Step 3 is the only synchronisation point, so the hot path needs neither locks
nor atomics. Native calls release the GIL through ctypes, so the workers run
truly in parallel on the native backend.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, Optional, Tuple

from .dataset import DataSet
from .engine import BinningEngine
from .errors import InvalidArgument
from .histogram import Histogram


def partition(length: int, parts: int) -> List[Tuple[int, int]]:
    """
    Split ``[0, length)`` into at most ``parts`` contiguous ranges whose
    sizes differ by at most one. Empty input yields no ranges.
    """
    if length < 0:
        raise InvalidArgument(f"length must be non-negative, got {length}")
    if parts < 1:
        raise InvalidArgument(f"parts must be >= 1, got {parts}")
    parts = min(parts, length)
    if parts == 0:
        return []

    base, extra = divmod(length, parts)
    ranges = []
    start = 0
    for index in range(parts):
        stop = start + base + (1 if index < extra else 0)
        ranges.append((start, stop))
        start = stop
    return ranges


def reduce_into(engine: BinningEngine, target: Histogram,
                accumulators: Iterable[Histogram]) -> None:
    """Merge every accumulator into ``target`` in order."""
    for accumulator in accumulators:
        engine.merge(target, accumulator)


class ParallelBinner:
    """
    Bins large DataSets across a thread pool using per-worker accumulators.

    Args:
        engine: initialized engine used by every worker and the reduction
        num_workers: worker threads; defaults to ``engine.config.workers``
        min_chunk_size: inputs shorter than twice this are binned directly
    """

    def __init__(self, engine: BinningEngine, num_workers: Optional[int] = None,
                 min_chunk_size: Optional[int] = None):
        self.engine = engine
        self.num_workers = num_workers if num_workers is not None else engine.config.workers
        self.min_chunk_size = (min_chunk_size if min_chunk_size is not None
                               else engine.config.min_chunk_size)
        if self.num_workers < 1:
            raise InvalidArgument(f"num_workers must be >= 1, got {self.num_workers}")
        if self.min_chunk_size < 1:
            raise InvalidArgument(f"min_chunk_size must be >= 1, got {self.min_chunk_size}")

    def plan(self, length: int) -> List[Tuple[int, int]]:
        """Ranges each worker will bin for an input of ``length`` samples."""
        parts = min(self.num_workers, max(1, length // self.min_chunk_size))
        return partition(length, parts)

    def bin(self, dataset: DataSet, histogram: Histogram) -> None:
        """
        Bin ``dataset`` into ``histogram``.

        Produces the same counts as ``engine.bin``. If any worker fails the
        error is raised after the pool shuts down and ``histogram`` is left
        untouched.
        """
        if not isinstance(dataset, DataSet):
            dataset = DataSet(dataset)
        ranges = self.plan(len(dataset))
        if len(ranges) <= 1:
            self.engine.bin(dataset, histogram)
            return

        accumulators = self.bin_chunks(dataset, histogram, ranges)
        reduce_into(self.engine, histogram, accumulators)

    def bin_chunks(self, dataset: DataSet, template: Histogram,
                   ranges: List[Tuple[int, int]]) -> List[Histogram]:
        """Bin each range into its own zeroed copy of ``template``, in parallel."""
        accumulators = [template.empty_like() for _ in ranges]
        with ThreadPoolExecutor(max_workers=len(ranges),
                                thread_name_prefix="native-binning") as pool:
            futures = [
                pool.submit(self.engine.bin, dataset.view(start, stop), accumulator)
                for (start, stop), accumulator in zip(ranges, accumulators)
            ]
        # Pool exit waits for every worker; surface the first failure in order.
        for future in futures:
            future.result()
        return accumulators
