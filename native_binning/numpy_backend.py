"""
NumPy Backend
=============

Vectorised rendition of the classification rule, used when the native
library is unavailable or explicitly disabled. Counts are bit-for-bit the
same as the native backend: identical float64 arithmetic, NaN routed to
overflow, clamping done in the float domain before the integer cast, and
saturating ``uint32`` accumulation.
"""

from typing import Tuple

import numpy as np

from .backend import BinningBackend
from .dataset import DataSet
from .errors import IncompatibleHistograms
from .histogram import Histogram, bucket_width
from .layout import UINT32_MAX, Bin


def classify_array(left: float, right: float, num_bins: int,
                   values: np.ndarray) -> Tuple[int, int, np.ndarray]:
    """
    Classify ``values`` in one pass.

    Returns:
        (underflow count, overflow count, main-bin indices as intp)
    """
    underflow = values < left
    overflow = (values > right) | np.isnan(values)
    main = values[~(underflow | overflow)]

    position = np.floor((main - left) / bucket_width(left, right, num_bins))
    np.clip(position, 0, num_bins - 1, out=position)
    return int(np.count_nonzero(underflow)), int(np.count_nonzero(overflow)), position.astype(np.intp)


def _saturating_add(counts: np.ndarray, delta: np.ndarray) -> None:
    total = counts.astype(np.uint64) + delta.astype(np.uint64)
    np.minimum(total, UINT32_MAX, out=total)
    counts[...] = total


def _bump(bin: Bin, amount: int) -> None:
    bin.count = min(bin.count + amount, UINT32_MAX)


class NumpyBackend(BinningBackend):
    name = "numpy"

    def bin(self, dataset: DataSet, histogram: Histogram) -> None:
        values = dataset.as_array()
        if values.size == 0:
            return
        n_under, n_over, indices = classify_array(
            histogram.left, histogram.right, histogram.num_bins, values
        )
        if indices.size:
            _saturating_add(histogram._counts, np.bincount(indices, minlength=histogram.num_bins))
        if n_under:
            _bump(histogram.underflow, n_under)
        if n_over:
            _bump(histogram.overflow, n_over)

    def count_sample(self, histogram: Histogram, value: float) -> None:
        self.increment(histogram.get_bin_for(value))

    def increment(self, bin: Bin) -> None:
        _bump(bin, 1)

    def increment_all(self, bins, count: int) -> None:
        for index in range(count):
            _bump(bins[index], 1)

    def sum_samples(self, dataset: DataSet) -> float:
        return dataset.sum()

    def merge(self, target: Histogram, source: Histogram) -> None:
        if not target.same_shape(source):
            raise IncompatibleHistograms(
                f"Cannot merge {source.num_bins} bins over [{source.left}, {source.right}] "
                f"into {target.num_bins} bins over [{target.left}, {target.right}]"
            )
        _saturating_add(target._counts, source._counts)
        _bump(target.underflow, source.underflow.count)
        _bump(target.overflow, source.overflow.count)
