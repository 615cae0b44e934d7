"""Read-only sample view handed to the binning engine."""

import ctypes
from typing import Iterator

import numpy as np
import polars as pl

from .errors import InvalidArgument
from .layout import DataSetStruct


class DataSet:
    """
    Borrowed ``(pointer, length)`` view over float64 samples.

    A C-contiguous float64 array is referenced in place; anything else is
    converted once into a buffer owned by this DataSet. The caller must not
    mutate or free a borrowed array while binning calls run over it.
    """

    __slots__ = ('_samples', '_struct', '_borrowed')

    def __init__(self, samples):
        if isinstance(samples, DataSet):
            samples = samples._samples

        array = np.asarray(samples, dtype=np.float64)
        if array.ndim != 1:
            raise InvalidArgument(f"DataSet samples must be one-dimensional, got shape {array.shape}")
        if not array.flags['C_CONTIGUOUS']:
            array = np.ascontiguousarray(array)

        self._borrowed = isinstance(samples, np.ndarray) and np.may_share_memory(array, samples)

        # Read-only view: the caller's own flags are left alone.
        view = array.view()
        view.flags.writeable = False
        self._samples = view
        self._struct = DataSetStruct(
            view.ctypes.data_as(ctypes.POINTER(ctypes.c_double)),
            view.shape[0],
        )

    @classmethod
    def from_polars(cls, series) -> 'DataSet':
        """Build a DataSet from a numeric polars Series (nulls rejected)."""
        if series.null_count() > 0:
            raise InvalidArgument(
                f"Series {series.name!r} contains {series.null_count()} nulls; fill or drop them first"
            )
        if not series.dtype.is_numeric():
            raise InvalidArgument(f"Series {series.name!r} is not numeric (dtype {series.dtype})")
        return cls(series.cast(pl.Float64).to_numpy())

    @property
    def struct(self) -> DataSetStruct:
        return self._struct

    @property
    def is_borrowed(self) -> bool:
        """True when the samples are the caller's buffer rather than a copy."""
        return self._borrowed

    def as_array(self) -> np.ndarray:
        return self._samples

    def view(self, start: int, stop: int) -> 'DataSet':
        """Zero-copy DataSet over ``samples[start:stop]``."""
        length = len(self)
        if not 0 <= start <= stop <= length:
            raise InvalidArgument(f"Invalid range [{start}, {stop}) for DataSet of length {length}")
        sub = DataSet.__new__(DataSet)
        sub._samples = self._samples[start:stop]
        sub._borrowed = True
        sub._struct = DataSetStruct(
            sub._samples.ctypes.data_as(ctypes.POINTER(ctypes.c_double)),
            stop - start,
        )
        return sub

    def sum(self) -> float:
        """Left-to-right IEEE sum starting from 0.0."""
        if len(self) == 0:
            return 0.0
        # accumulate is strictly sequential, unlike np.sum's pairwise reduction
        seeded = np.concatenate(([0.0], self._samples))
        return float(np.add.accumulate(seeded)[-1])

    def __len__(self) -> int:
        return self._samples.shape[0]

    def __iter__(self) -> Iterator[float]:
        return iter(self._samples.tolist())

    def __repr__(self):
        kind = "borrowed" if self._borrowed else "owned"
        return f"DataSet(n={len(self)}, {kind})"
