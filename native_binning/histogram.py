"""
Histogram
=========

Fixed-range, equal-width histogram with underflow/overflow sentinels.

Classification rule (shared by every backend):

    width = (right - left) / num_bins
    value <  left              -> underflow
    value >  right, or NaN     -> overflow
    otherwise                  -> floor((value - left) / width), clamped to [0, num_bins - 1]

The clamp keeps ``value == right`` (and values within rounding distance of
it) in the last main bin instead of indexing past the end.
"""

import ctypes
import math
import operator
from enum import Enum, auto
from typing import List, Optional, Tuple

import numpy as np

from .errors import InvalidArgument
from .layout import INT32_MAX, Bin, HistogramStruct


class BinKind(Enum):
    UNDERFLOW = auto()
    MAIN = auto()
    OVERFLOW = auto()


def bucket_width(left: float, right: float, num_bins: int) -> float:
    return (right - left) / num_bins


def classify_value(left: float, right: float, num_bins: int,
                   value: float) -> Tuple[BinKind, Optional[int]]:
    """Classify one value; the index is ``None`` for sentinels."""
    if value < left:
        return BinKind.UNDERFLOW, None
    if value > right or value != value:
        return BinKind.OVERFLOW, None
    position = math.floor((value - left) / bucket_width(left, right, num_bins))
    return BinKind.MAIN, min(max(position, 0), num_bins - 1)


def _validate(left: float, right: float, num_bins) -> Tuple[float, float, int]:
    if isinstance(num_bins, bool):
        raise InvalidArgument(f"num_bins must be an integer, got {num_bins!r}")
    try:
        num_bins = operator.index(num_bins)
    except TypeError:
        raise InvalidArgument(f"num_bins must be an integer, got {num_bins!r}") from None
    if num_bins < 1:
        raise InvalidArgument(f"num_bins must be >= 1, got {num_bins}")
    if num_bins > INT32_MAX:
        raise InvalidArgument(f"num_bins must fit in int32, got {num_bins}")

    left, right = float(left), float(right)
    if not (math.isfinite(left) and math.isfinite(right)):
        raise InvalidArgument(f"Histogram bounds must be finite, got [{left}, {right}]")
    if not right > left:
        raise InvalidArgument(f"right must be greater than left, got [{left}, {right}]")
    width = bucket_width(left, right, num_bins)
    if not (math.isfinite(width) and width > 0.0):
        raise InvalidArgument(f"Bucket width {width} for [{left}, {right}] / {num_bins} is unusable")
    return left, right, num_bins


class Histogram:
    """
    Histogram over ``[left, right]`` with ``num_bins`` main bins.

    Main-bin counters live in a NumPy ``uint32`` buffer owned by this object;
    ``struct`` points the native layout at that buffer and embeds the two
    sentinel bins by value. Bounds and bin count never change.

    Raises:
        InvalidArgument: if ``num_bins < 1`` or ``right <= left``.
    """

    def __init__(self, left: float, right: float, num_bins: int):
        left, right, num_bins = _validate(left, right, num_bins)

        self._counts = np.zeros(num_bins, dtype=np.uint32)
        self._bin_array = (Bin * num_bins).from_buffer(self._counts)
        self._struct = HistogramStruct(
            left=left,
            right=right,
            num_bins=num_bins,
            bins=ctypes.cast(self._bin_array, ctypes.POINTER(Bin)),
            underflow=Bin(0),
            overflow=Bin(0),
        )

    # ------------------------------------------------------------------ #
    # Shape
    # ------------------------------------------------------------------ #
    @property
    def left(self) -> float:
        return self._struct.left

    @property
    def right(self) -> float:
        return self._struct.right

    @property
    def num_bins(self) -> int:
        return self._struct.num_bins

    @property
    def width(self) -> float:
        return bucket_width(self.left, self.right, self.num_bins)

    def edges(self) -> np.ndarray:
        """Bin edges, ``num_bins + 1`` values from ``left`` to ``right``."""
        return np.linspace(self.left, self.right, self.num_bins + 1)

    def same_shape(self, other: 'Histogram') -> bool:
        return (self.left == other.left and self.right == other.right
                and self.num_bins == other.num_bins)

    def empty_like(self) -> 'Histogram':
        """A zeroed histogram with the same bounds and bin count."""
        return Histogram(self.left, self.right, self.num_bins)

    # ------------------------------------------------------------------ #
    # Bins
    # ------------------------------------------------------------------ #
    @property
    def struct(self) -> HistogramStruct:
        return self._struct

    @property
    def underflow(self) -> Bin:
        return self._struct.underflow

    @property
    def overflow(self) -> Bin:
        return self._struct.overflow

    @property
    def bins(self) -> List[Bin]:
        """Main bins, each sharing memory with this histogram."""
        return list(self._bin_array)

    @property
    def counts(self) -> np.ndarray:
        """Copy of the main-bin counts."""
        return self._counts.copy()

    def total(self) -> int:
        """Underflow + main bins + overflow."""
        return int(self._counts.sum(dtype=np.uint64)) + self.underflow.count + self.overflow.count

    def reset(self) -> None:
        self._counts.fill(0)
        self._struct.underflow.count = 0
        self._struct.overflow.count = 0

    # ------------------------------------------------------------------ #
    # Classification
    # ------------------------------------------------------------------ #
    def classify(self, value: float) -> Tuple[BinKind, Optional[int]]:
        return classify_value(self.left, self.right, self.num_bins, value)

    def get_bin_for(self, value: float) -> Bin:
        """The bin ``value`` belongs to, as a view into this histogram."""
        kind, index = self.classify(value)
        if kind is BinKind.UNDERFLOW:
            return self.underflow
        if kind is BinKind.OVERFLOW:
            return self.overflow
        return self._bin_array[index]

    def __repr__(self):
        return (f"Histogram([{self.left}, {self.right}], {self.num_bins} bins): "
                f"{self.underflow.count} {self._counts.tolist()} {self.overflow.count}")
