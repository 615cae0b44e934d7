"""Data model tests: DataSet views and Histogram bookkeeping."""

import numpy as np
import polars as pl
import pytest

from native_binning import Bin, DataSet, Histogram, InvalidArgument


# ============================================================================
# DataSet
# ============================================================================

class TestDataSet:

    def test_list_input_is_owned(self):
        data = DataSet([1.0, 2.0, 3.0])
        assert len(data) == 3
        assert not data.is_borrowed
        assert list(data) == [1.0, 2.0, 3.0]

    def test_non_contiguous_input_is_copied(self):
        samples = np.arange(10, dtype=np.float64)[::2]
        data = DataSet(samples)
        assert not data.is_borrowed
        assert data.as_array().tolist() == [0.0, 2.0, 4.0, 6.0, 8.0]

    def test_other_dtypes_are_converted(self):
        data = DataSet(np.array([1, 2, 3], dtype=np.int32))
        assert data.as_array().dtype == np.float64
        assert not data.is_borrowed

    def test_read_only_view(self):
        samples = np.zeros(4)
        data = DataSet(samples)
        with pytest.raises(ValueError):
            data.as_array()[0] = 1.0
        # the caller's array keeps its own flags
        samples[0] = 2.0
        assert data.as_array()[0] == 2.0

    def test_empty(self):
        data = DataSet([])
        assert len(data) == 0
        assert list(data) == []
        assert data.sum() == 0.0

    @pytest.mark.parametrize("samples", [
        np.zeros((2, 3)),
        np.float64(1.0),
    ])
    def test_rejects_non_1d(self, samples):
        with pytest.raises(InvalidArgument):
            DataSet(samples)

    def test_view(self):
        data = DataSet(np.arange(10, dtype=np.float64))
        view = data.view(2, 5)
        assert list(view) == [2.0, 3.0, 4.0]
        assert view.is_borrowed
        assert len(data.view(4, 4)) == 0

    @pytest.mark.parametrize("start,stop", [(-1, 3), (3, 2), (0, 11)])
    def test_invalid_view(self, start, stop):
        with pytest.raises(InvalidArgument):
            DataSet(np.arange(10, dtype=np.float64)).view(start, stop)

    def test_wrapping_a_dataset_shares_samples(self):
        samples = np.arange(3, dtype=np.float64)
        wrapped = DataSet(DataSet(samples))
        assert wrapped.is_borrowed
        assert list(wrapped) == [0.0, 1.0, 2.0]

    def test_sum_is_sequential(self):
        assert DataSet([-1.0, 2.0, 3.0, 4.0]).sum() == 8.0
        assert DataSet([1e16, 1.0, -1e16]).sum() == 0.0


class TestDataSetFromPolars:

    def test_float_series(self):
        data = DataSet.from_polars(pl.Series("x", [0.5, 1.5, 2.5]))
        assert list(data) == [0.5, 1.5, 2.5]

    def test_integer_series_is_cast(self):
        data = DataSet.from_polars(pl.Series("n", [1, 2, 3]))
        assert data.as_array().dtype == np.float64
        assert data.sum() == 6.0

    def test_nulls_rejected(self):
        with pytest.raises(InvalidArgument, match="nulls"):
            DataSet.from_polars(pl.Series("x", [1.0, None, 3.0]))

    def test_non_numeric_rejected(self):
        with pytest.raises(InvalidArgument, match="not numeric"):
            DataSet.from_polars(pl.Series("s", ["a", "b"]))

    def test_binning_a_column(self, engine):
        frame = pl.DataFrame({"M_bc": [5.25, 5.27, 5.28, 5.29, 5.31]})
        hist = Histogram(5.26, 5.30, 4)
        engine.bin(DataSet.from_polars(frame["M_bc"]), hist)
        assert hist.underflow.count == 1
        assert hist.overflow.count == 1
        assert int(hist.counts.sum()) == 3


# ============================================================================
# Histogram
# ============================================================================

class TestHistogram:

    def test_edges_and_width(self):
        hist = Histogram(-1.0, 1.0, 4)
        assert hist.width == 0.5
        np.testing.assert_allclose(hist.edges(), [-1.0, -0.5, 0.0, 0.5, 1.0])

    def test_bins_are_bin_views(self):
        hist = Histogram(0.0, 1.0, 3)
        assert all(isinstance(b, Bin) for b in hist.bins)
        assert hist.bins == [Bin(0), Bin(0), Bin(0)]

    def test_counts_is_a_copy(self):
        hist = Histogram(0.0, 1.0, 2)
        counts = hist.counts
        counts[0] = 9
        assert hist.counts.tolist() == [0, 0]

    def test_total_and_reset(self):
        hist = Histogram(0.0, 1.0, 2)
        hist.bins[0].count = 3
        hist.underflow.count = 1
        hist.overflow.count = 2
        assert hist.total() == 6
        hist.reset()
        assert hist.total() == 0

    def test_empty_like(self):
        hist = Histogram(0.0, 2.0, 5)
        hist.bins[2].count = 4
        copy = hist.empty_like()
        assert copy.same_shape(hist)
        assert copy.total() == 0
        assert not np.shares_memory(copy._counts, hist._counts)

    def test_same_shape(self):
        hist = Histogram(0.0, 2.0, 5)
        assert hist.same_shape(Histogram(0.0, 2.0, 5))
        assert not hist.same_shape(Histogram(0.0, 2.0, 4))
        assert not hist.same_shape(Histogram(0.0, 3.0, 5))

    def test_repr(self):
        hist = Histogram(0.0, 2.0, 2)
        hist.underflow.count = 1
        hist.bins[1].count = 3
        assert repr(hist) == "Histogram([0.0, 2.0], 2 bins): 1 [0, 3] 0"


class TestBinValue:

    def test_equality_by_count(self):
        assert Bin(2) == Bin(2)
        assert Bin(2) != Bin(3)
        assert Bin(1) < Bin(2)
        assert Bin(3) >= Bin(3)

    def test_unhashable(self):
        with pytest.raises(TypeError):
            hash(Bin(1))

    def test_array(self):
        bins = Bin.array(3)
        assert len(bins) == 3
        assert [b.count for b in bins] == [0, 0, 0]
        with pytest.raises(ValueError):
            Bin.array(-1)

    def test_repr(self):
        assert repr(Bin(4)) == "Bin(count=4)"
