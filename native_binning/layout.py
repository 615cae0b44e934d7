"""
Cross-Boundary Data Contract
============================

ctypes mirrors of the structs the native binning library operates on.

Field order and sizes here are ABI: they must match the declarations in
``native.NATIVE_SOURCE`` exactly. A mismatch does not crash, it silently
miscounts, so the native library reports its own ``sizeof``/``offsetof``
values at load time and they are compared against ``describe_layout()``.

Ownership: every buffer referenced by these structs is allocated on the
Python side (NumPy or ctypes) and kept alive by the owning ``DataSet`` or
``Histogram``. The native side never allocates or frees them.
"""

import ctypes
from functools import total_ordering
from typing import Tuple

# Bump whenever a struct below changes shape.
ABI_VERSION = 1

UINT32_MAX = 2**32 - 1
INT32_MAX = 2**31 - 1

LAYOUT_FIELDS = (
    "sizeof(Bin)",
    "sizeof(DataSet)",
    "offsetof(DataSet, samples)",
    "offsetof(DataSet, num_samples)",
    "sizeof(Histogram)",
    "offsetof(Histogram, left)",
    "offsetof(Histogram, right)",
    "offsetof(Histogram, num_bins)",
    "offsetof(Histogram, bins)",
    "offsetof(Histogram, underflow)",
    "offsetof(Histogram, overflow)",
)


@total_ordering
class Bin(ctypes.Structure):
    """A single counter cell: ``struct Bin { uint32_t count; }``."""

    _fields_ = [("count", ctypes.c_uint32)]

    @classmethod
    def array(cls, size: int) -> ctypes.Array:
        """Allocate ``size`` contiguous zeroed bins."""
        if size < 0:
            raise ValueError(f"Bin array size must be non-negative, got {size}")
        return (cls * size)()

    def __eq__(self, other):
        if not isinstance(other, Bin):
            return NotImplemented
        return self.count == other.count

    def __lt__(self, other):
        if not isinstance(other, Bin):
            return NotImplemented
        return self.count < other.count

    # Mutable cell; equality is by value.
    __hash__ = None

    def __repr__(self):
        return f"Bin(count={self.count})"


class DataSetStruct(ctypes.Structure):
    """``struct DataSet { const double* samples; int64_t num_samples; }``"""

    _fields_ = [
        ("samples", ctypes.POINTER(ctypes.c_double)),
        ("num_samples", ctypes.c_int64),
    ]


class HistogramStruct(ctypes.Structure):
    """
    ``struct Histogram``: bounds, bin count, pointer to the main-bin array,
    then the two sentinels embedded by value.
    """

    _fields_ = [
        ("left", ctypes.c_double),
        ("right", ctypes.c_double),
        ("num_bins", ctypes.c_int32),
        ("bins", ctypes.POINTER(Bin)),
        ("underflow", Bin),
        ("overflow", Bin),
    ]


def describe_layout() -> Tuple[int, ...]:
    """Layout of the ctypes structs, in ``LAYOUT_FIELDS`` order."""
    return (
        ctypes.sizeof(Bin),
        ctypes.sizeof(DataSetStruct),
        DataSetStruct.samples.offset,
        DataSetStruct.num_samples.offset,
        ctypes.sizeof(HistogramStruct),
        HistogramStruct.left.offset,
        HistogramStruct.right.offset,
        HistogramStruct.num_bins.offset,
        HistogramStruct.bins.offset,
        HistogramStruct.underflow.offset,
        HistogramStruct.overflow.offset,
    )


def layout_mismatches(native_layout) -> Tuple[str, ...]:
    """Human-readable differences between a native probe and ``describe_layout()``."""
    expected = describe_layout()
    if len(native_layout) != len(expected):
        return (f"expected {len(expected)} layout entries, native reported {len(native_layout)}",)
    return tuple(
        f"{name}: python={py} native={nat}"
        for name, py, nat in zip(LAYOUT_FIELDS, expected, native_layout)
        if py != nat
    )
