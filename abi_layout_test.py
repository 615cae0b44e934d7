"""
Layout conformance for the ctypes <-> native struct contract.

A layout mismatch miscounts silently instead of crashing, so both sides are
pinned here: the ctypes declarations against the expected LP64 layout, and
the compiled library's own sizeof/offsetof probe against the ctypes side.
"""

import ctypes

import numpy as np
import pytest

from native_binning import ABI_VERSION, Bin, DataSet, Histogram, describe_layout
from native_binning.layout import (LAYOUT_FIELDS, DataSetStruct, HistogramStruct,
                                   layout_mismatches)
from native_binning.native import NATIVE_SOURCE

lp64 = pytest.mark.skipif(ctypes.sizeof(ctypes.c_void_p) != 8, reason="LP64 layout only")


class TestCtypesLayout:

    def test_field_order(self):
        assert [name for name, _ in Bin._fields_] == ["count"]
        assert [name for name, _ in DataSetStruct._fields_] == ["samples", "num_samples"]
        assert [name for name, _ in HistogramStruct._fields_] == [
            "left", "right", "num_bins", "bins", "underflow", "overflow",
        ]

    def test_field_types(self):
        fields = dict(HistogramStruct._fields_)
        assert fields["left"] is ctypes.c_double
        assert fields["right"] is ctypes.c_double
        assert fields["num_bins"] is ctypes.c_int32
        assert fields["underflow"] is Bin
        assert fields["overflow"] is Bin
        assert dict(Bin._fields_)["count"] is ctypes.c_uint32

    @lp64
    def test_lp64_layout(self):
        assert describe_layout() == (
            4,                      # sizeof(Bin)
            16, 0, 8,               # DataSet
            40, 0, 8, 16, 24, 32, 36,  # Histogram
        )

    def test_layout_description_covers_every_field(self):
        assert len(describe_layout()) == len(LAYOUT_FIELDS)

    def test_mismatch_reporting(self):
        tampered = list(describe_layout())
        tampered[LAYOUT_FIELDS.index("offsetof(Histogram, overflow)")] += 4
        problems = layout_mismatches(tampered)
        assert len(problems) == 1
        assert problems[0].startswith("offsetof(Histogram, overflow)")
        assert layout_mismatches(describe_layout()) == ()
        assert layout_mismatches((4,)) != ()

    def test_native_source_carries_abi_version(self):
        assert f"ABI_VERSION = {ABI_VERSION};" in NATIVE_SOURCE
        assert "@ABI_VERSION@" not in NATIVE_SOURCE


class TestZeroCopy:
    """Structs point at caller-owned buffers instead of copies."""

    def test_histogram_points_at_count_buffer(self):
        hist = Histogram(0.0, 1.0, 8)
        assert ctypes.addressof(hist.struct.bins.contents) == hist._counts.ctypes.data

    def test_bins_are_views(self):
        hist = Histogram(0.0, 1.0, 3)
        hist.bins[1].count = 7
        assert hist.counts.tolist() == [0, 7, 0]

    def test_sentinels_are_embedded(self):
        hist = Histogram(0.0, 1.0, 3)
        hist.overflow.count = 2
        assert hist.struct.overflow.count == 2
        assert ctypes.addressof(hist.overflow) == (
            ctypes.addressof(hist.struct) + HistogramStruct.overflow.offset
        )

    def test_dataset_borrows_float64_arrays(self):
        samples = np.linspace(0.0, 1.0, 16)
        data = DataSet(samples)
        assert data.is_borrowed
        assert ctypes.cast(data.struct.samples, ctypes.c_void_p).value == samples.ctypes.data
        assert data.struct.num_samples == 16

    def test_dataset_view_offsets_pointer(self):
        samples = np.arange(10, dtype=np.float64)
        view = DataSet(samples).view(3, 7)
        address = ctypes.cast(view.struct.samples, ctypes.c_void_p).value
        assert address == samples.ctypes.data + 3 * samples.itemsize
        assert view.struct.num_samples == 4


class TestNativeLayout:
    """Requires the compiled library."""

    def test_native_probe_matches_ctypes(self, native_engine):
        assert native_engine.backend.native_layout() == describe_layout()

    def test_native_abi_version(self, native_engine):
        assert native_engine.backend._lib.binning_abi_version() == ABI_VERSION

    def test_native_writes_visible_from_python(self, native_engine):
        hist = Histogram(0.0, 4.0, 4)
        native_engine.bin(DataSet([0.5, 3.5, 3.9, -2.0, 10.0, 10.0]), hist)
        assert hist.counts.tolist() == [1, 0, 0, 2]
        assert hist.struct.underflow.count == 1
        assert hist.struct.overflow.count == 2
