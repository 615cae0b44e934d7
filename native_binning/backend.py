"""Interface every binning backend implements."""

from abc import ABC, abstractmethod

from .dataset import DataSet
from .histogram import Histogram
from .layout import Bin


class BinningBackend(ABC):
    """
    Backends mutate histogram/bin memory in place and never allocate
    caller-visible buffers. Arguments have already been type-checked by
    ``BinningEngine``.
    """

    name: str = "abstract"

    @abstractmethod
    def bin(self, dataset: DataSet, histogram: Histogram) -> None:
        """Classify and count every sample of ``dataset``."""

    @abstractmethod
    def count_sample(self, histogram: Histogram, value: float) -> None:
        """Classify and count a single value."""

    @abstractmethod
    def increment(self, bin: Bin) -> None:
        """Add one to ``bin`` (saturating)."""

    @abstractmethod
    def increment_all(self, bins, count: int) -> None:
        """Increment the first ``count`` bins of a contiguous ``Bin`` array."""

    @abstractmethod
    def sum_samples(self, dataset: DataSet) -> float:
        """Left-to-right sum of the samples."""

    @abstractmethod
    def merge(self, target: Histogram, source: Histogram) -> None:
        """Add ``source`` counts into ``target`` bin by bin."""

    def close(self) -> None:
        """Release backend resources."""

    def __repr__(self):
        return f"{type(self).__name__}()"
