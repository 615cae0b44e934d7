"""
Native Backend
==============

The binning core as a small C++ translation unit with a flat ``extern "C"``
ABI, compiled on demand and driven through ctypes over caller-owned buffers.

Contract with the Python side (see ``layout.py``):
- struct layouts are declared identically on both sides and verified at load
- every entry point returns an ``int32_t`` status and never throws
- the native code never allocates or frees memory it is handed
"""

import ctypes
from pathlib import Path
from typing import Optional, Tuple

from .backend import BinningBackend
from .compiler import NativeCompiler
from .config import EngineConfig
from .dataset import DataSet
from .errors import NativeLibraryError, raise_for_status
from .histogram import Histogram
from .layout import (ABI_VERSION, LAYOUT_FIELDS, Bin, DataSetStruct, HistogramStruct,
                     layout_mismatches)

NATIVE_SOURCE = r'''
#include <cmath>
#include <cstddef>
#include <cstdint>

extern "C" {

struct Bin {
    uint32_t count;
};

struct DataSet {
    const double* samples;
    int64_t num_samples;
};

struct Histogram {
    double left;
    double right;
    int32_t num_bins;
    Bin* bins;
    Bin underflow;
    Bin overflow;
};

enum Status : int32_t {
    STATUS_OK = 0,
    STATUS_NULL_ARGUMENT = 1,
    STATUS_INVALID_HISTOGRAM = 2,
    STATUS_INVALID_LENGTH = 3,
    STATUS_SHAPE_MISMATCH = 4,
    STATUS_BUFFER_TOO_SMALL = 5,
};

} // extern "C"

namespace {

constexpr int32_t ABI_VERSION = @ABI_VERSION@;

// Saturating add: counters stick at UINT32_MAX instead of wrapping.
inline void bump(Bin* bin, uint32_t amount) {
    const uint32_t room = UINT32_MAX - bin->count;
    bin->count += amount < room ? amount : room;
}

int32_t check_histogram(const Histogram* hist) {
    if (hist == nullptr) return STATUS_NULL_ARGUMENT;
    if (hist->num_bins < 1 || !(hist->right > hist->left)) return STATUS_INVALID_HISTOGRAM;
    if (hist->bins == nullptr) return STATUS_NULL_ARGUMENT;
    return STATUS_OK;
}

int32_t check_dataset(const DataSet* dataset) {
    if (dataset == nullptr) return STATUS_NULL_ARGUMENT;
    if (dataset->num_samples < 0) return STATUS_INVALID_LENGTH;
    if (dataset->samples == nullptr && dataset->num_samples > 0) return STATUS_NULL_ARGUMENT;
    return STATUS_OK;
}

inline double width_of(const Histogram* hist) {
    return (hist->right - hist->left) / static_cast<double>(hist->num_bins);
}

inline Bin* bin_for(Histogram* hist, double width, double value) {
    if (value < hist->left) return &hist->underflow;
    if (value > hist->right || value != value) return &hist->overflow;

    // Clamp in the float domain before the cast: value == right computes num_bins.
    const double position = std::floor((value - hist->left) / width);
    const int32_t last = hist->num_bins - 1;
    int32_t index;
    if (!(position > 0.0)) {
        index = 0;
    } else if (position >= static_cast<double>(last)) {
        index = last;
    } else {
        index = static_cast<int32_t>(position);
    }
    return &hist->bins[index];
}

} // namespace

extern "C" {

int32_t binning_abi_version(void) {
    return ABI_VERSION;
}

int32_t binning_layout(int64_t* out, int32_t capacity) {
    const int64_t layout[] = {
        static_cast<int64_t>(sizeof(Bin)),
        static_cast<int64_t>(sizeof(DataSet)),
        static_cast<int64_t>(offsetof(DataSet, samples)),
        static_cast<int64_t>(offsetof(DataSet, num_samples)),
        static_cast<int64_t>(sizeof(Histogram)),
        static_cast<int64_t>(offsetof(Histogram, left)),
        static_cast<int64_t>(offsetof(Histogram, right)),
        static_cast<int64_t>(offsetof(Histogram, num_bins)),
        static_cast<int64_t>(offsetof(Histogram, bins)),
        static_cast<int64_t>(offsetof(Histogram, underflow)),
        static_cast<int64_t>(offsetof(Histogram, overflow)),
    };
    const int32_t entries = static_cast<int32_t>(sizeof(layout) / sizeof(layout[0]));
    if (out == nullptr) return STATUS_NULL_ARGUMENT;
    if (capacity < entries) return STATUS_BUFFER_TOO_SMALL;
    for (int32_t i = 0; i < entries; ++i) {
        out[i] = layout[i];
    }
    return STATUS_OK;
}

int32_t bin(const DataSet* dataset, Histogram* hist) {
    int32_t status = check_dataset(dataset);
    if (status != STATUS_OK) return status;
    status = check_histogram(hist);
    if (status != STATUS_OK) return status;

    const double width = width_of(hist);
    const double* samples = dataset->samples;
    for (int64_t i = 0; i < dataset->num_samples; ++i) {
        bump(bin_for(hist, width, samples[i]), 1);
    }
    return STATUS_OK;
}

int32_t count_sample(Histogram* hist, double value) {
    const int32_t status = check_histogram(hist);
    if (status != STATUS_OK) return status;
    bump(bin_for(hist, width_of(hist), value), 1);
    return STATUS_OK;
}

int32_t increment(Bin* bin) {
    if (bin == nullptr) return STATUS_NULL_ARGUMENT;
    bump(bin, 1);
    return STATUS_OK;
}

int32_t increment_all(Bin* bins, int32_t count) {
    if (count < 0) return STATUS_INVALID_LENGTH;
    if (bins == nullptr && count > 0) return STATUS_NULL_ARGUMENT;
    for (int32_t i = 0; i < count; ++i) {
        bump(&bins[i], 1);
    }
    return STATUS_OK;
}

int32_t sum_samples(const DataSet* dataset, double* out) {
    const int32_t status = check_dataset(dataset);
    if (status != STATUS_OK) return status;
    if (out == nullptr) return STATUS_NULL_ARGUMENT;

    double total = 0.0;
    for (int64_t i = 0; i < dataset->num_samples; ++i) {
        total += dataset->samples[i];
    }
    *out = total;
    return STATUS_OK;
}

int32_t merge_into(Histogram* target, const Histogram* source) {
    int32_t status = check_histogram(target);
    if (status != STATUS_OK) return status;
    status = check_histogram(source);
    if (status != STATUS_OK) return status;
    if (target->left != source->left || target->right != source->right
            || target->num_bins != source->num_bins) {
        return STATUS_SHAPE_MISMATCH;
    }

    for (int32_t i = 0; i < target->num_bins; ++i) {
        bump(&target->bins[i], source->bins[i].count);
    }
    bump(&target->underflow, source->underflow.count);
    bump(&target->overflow, source->overflow.count);
    return STATUS_OK;
}

} // extern "C"
'''.replace('@ABI_VERSION@', str(ABI_VERSION))


def _declare_signatures(lib: ctypes.CDLL) -> None:
    """Declare argtypes/restype for every native export."""
    dataset_p = ctypes.POINTER(DataSetStruct)
    histogram_p = ctypes.POINTER(HistogramStruct)
    bin_p = ctypes.POINTER(Bin)

    signatures = {
        'binning_abi_version': [],
        'binning_layout': [ctypes.POINTER(ctypes.c_int64), ctypes.c_int32],
        'bin': [dataset_p, histogram_p],
        'count_sample': [histogram_p, ctypes.c_double],
        'increment': [bin_p],
        'increment_all': [bin_p, ctypes.c_int32],
        'sum_samples': [dataset_p, ctypes.POINTER(ctypes.c_double)],
        'merge_into': [histogram_p, histogram_p],
    }
    for name, argtypes in signatures.items():
        try:
            function = getattr(lib, name)
        except AttributeError:
            raise NativeLibraryError(f"Native library is missing export {name!r}") from None
        function.argtypes = argtypes
        function.restype = ctypes.c_int32


class NativeBackend(BinningBackend):
    """Binning backend backed by the compiled native library."""

    name = "native"

    def __init__(self, lib: ctypes.CDLL, library_path: Optional[Path] = None):
        self._lib = lib
        self.library_path = library_path

    @classmethod
    def load(cls, config: EngineConfig) -> 'NativeBackend':
        """
        Load (building if needed) and verify the native library.

        Raises:
            NativeLibraryError: build, load, ABI or layout failure.
        """
        path = config.library_path
        if path is None:
            if config.verbose:
                print(f"🔧 Building native binning library (cache: {config.cache_dir})...")
            path = NativeCompiler(config.compilation).compile(NATIVE_SOURCE, config.cache_dir)
        elif not path.exists():
            raise NativeLibraryError(f"Native library not found: {path}")

        try:
            lib = ctypes.CDLL(str(path))
        except OSError as e:
            raise NativeLibraryError(f"Failed to load {path}: {e}") from e

        _declare_signatures(lib)
        backend = cls(lib, path)
        backend.verify()

        if config.verbose:
            print(f"✅ Native binning library loaded: {path}")
        return backend

    def verify(self) -> None:
        version = self._lib.binning_abi_version()
        if version != ABI_VERSION:
            raise NativeLibraryError(
                f"Native ABI version {version} does not match Python ABI version {ABI_VERSION}"
            )
        mismatches = layout_mismatches(self.native_layout())
        if mismatches:
            raise NativeLibraryError("Struct layout mismatch: " + "; ".join(mismatches))

    def native_layout(self) -> Tuple[int, ...]:
        """``sizeof``/``offsetof`` values as compiled, in ``LAYOUT_FIELDS`` order."""
        out = (ctypes.c_int64 * len(LAYOUT_FIELDS))()
        raise_for_status(self._lib.binning_layout(out, len(out)), "binning_layout")
        return tuple(out)

    # ------------------------------------------------------------------ #
    # Operations
    # ------------------------------------------------------------------ #
    def bin(self, dataset: DataSet, histogram: Histogram) -> None:
        status = self._lib.bin(ctypes.byref(dataset.struct), ctypes.byref(histogram.struct))
        raise_for_status(status, "bin")

    def count_sample(self, histogram: Histogram, value: float) -> None:
        status = self._lib.count_sample(ctypes.byref(histogram.struct), value)
        raise_for_status(status, "count_sample")

    def increment(self, bin: Bin) -> None:
        raise_for_status(self._lib.increment(ctypes.byref(bin)), "increment")

    def increment_all(self, bins, count: int) -> None:
        raise_for_status(self._lib.increment_all(bins, count), "increment_all")

    def sum_samples(self, dataset: DataSet) -> float:
        total = ctypes.c_double()
        status = self._lib.sum_samples(ctypes.byref(dataset.struct), ctypes.byref(total))
        raise_for_status(status, "sum_samples")
        return total.value

    def merge(self, target: Histogram, source: Histogram) -> None:
        status = self._lib.merge_into(ctypes.byref(target.struct), ctypes.byref(source.struct))
        raise_for_status(status, "merge_into")

    def close(self) -> None:
        # ctypes has no portable dlclose; dropping the handle is the teardown.
        self._lib = None

    def __repr__(self):
        return f"NativeBackend(library_path={str(self.library_path)!r})"
