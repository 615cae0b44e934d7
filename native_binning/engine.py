"""
Binning Engine
==============

Facade over a binning backend with an explicit lifecycle. There is no
module-level engine: construct one, ``init()`` it (or use it as a context
manager), and pass it to whatever needs to bin.

    with BinningEngine(EngineConfig(backend="auto")) as engine:
        hist = Histogram(0.0, 10.0, 10)
        engine.bin(DataSet(samples), hist)
"""

import ctypes
import threading
import warnings
from typing import Iterable, Optional, Union

from .backend import BinningBackend
from .config import EngineConfig
from .dataset import DataSet
from .errors import EngineNotReady, InvalidArgument, NativeLibraryError
from .histogram import Histogram
from .layout import INT32_MAX, Bin
from .native import NativeBackend
from .numpy_backend import NumpyBackend


class BinningEngine:
    """
    Histogram binning operations over a native or NumPy backend.

    Backend selection follows ``config.backend``: ``"native"`` requires the
    compiled library, ``"numpy"`` never touches it, and ``"auto"`` tries the
    native library first and falls back to NumPy with a ``RuntimeWarning``.
    """

    def __init__(self, config: Optional[EngineConfig] = None,
                 backend: Optional[BinningBackend] = None):
        self.config = config or EngineConfig()
        self._backend: Optional[BinningBackend] = backend
        self._lock = threading.Lock()

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #
    def init(self) -> 'BinningEngine':
        """Select and load the backend. Safe to call more than once."""
        with self._lock:
            if self._backend is None:
                self._backend = self._select_backend()
        return self

    def close(self) -> None:
        with self._lock:
            if self._backend is not None:
                self._backend.close()
                self._backend = None

    def __enter__(self) -> 'BinningEngine':
        return self.init()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @property
    def is_initialized(self) -> bool:
        return self._backend is not None

    @property
    def backend(self) -> BinningBackend:
        backend = self._backend
        if backend is None:
            raise EngineNotReady("BinningEngine is not initialized; call init() first")
        return backend

    @property
    def backend_name(self) -> str:
        return self.backend.name

    def _select_backend(self) -> BinningBackend:
        choice = self.config.backend
        if choice == "numpy":
            return NumpyBackend()
        try:
            return NativeBackend.load(self.config)
        except NativeLibraryError as e:
            if choice == "native":
                raise
            warnings.warn(f"Native binning unavailable ({e}); using NumPy backend", RuntimeWarning)
            return NumpyBackend()

    # ------------------------------------------------------------------ #
    # Operations
    # ------------------------------------------------------------------ #
    def bin(self, dataset: Union[DataSet, Iterable[float]], histogram: Histogram) -> None:
        """Count every sample of ``dataset`` into ``histogram``."""
        backend = self.backend
        _require_histogram(histogram)
        if not isinstance(dataset, DataSet):
            dataset = DataSet(dataset)
        if len(dataset) == 0:
            return
        backend.bin(dataset, histogram)

    def count_sample(self, histogram: Histogram, value: float) -> None:
        """Count a single value into ``histogram``."""
        backend = self.backend
        _require_histogram(histogram)
        backend.count_sample(histogram, float(value))

    def increment(self, bin: Bin) -> None:
        backend = self.backend
        if not isinstance(bin, Bin):
            raise InvalidArgument(f"Expected a Bin, got {type(bin).__name__}")
        backend.increment(bin)

    def increment_all(self, bins) -> None:
        """
        Increment every bin in ``bins``.

        A contiguous ``Bin.array(...)`` goes to the backend in one call;
        any other iterable of bins is incremented one at a time.
        """
        backend = self.backend
        if isinstance(bins, ctypes.Array) and issubclass(bins._type_, Bin):
            if len(bins) > INT32_MAX:
                raise InvalidArgument(f"Cannot increment {len(bins)} bins in one call (int32 count)")
            backend.increment_all(bins, len(bins))
            return
        for bin in bins:
            self.increment(bin)

    def sum_samples(self, dataset: Union[DataSet, Iterable[float]]) -> float:
        """Left-to-right sum of the samples, IEEE semantics throughout."""
        backend = self.backend
        if not isinstance(dataset, DataSet):
            dataset = DataSet(dataset)
        return backend.sum_samples(dataset)

    def merge(self, target: Histogram, source: Histogram) -> None:
        """Add ``source`` counts into ``target``; shapes must match."""
        backend = self.backend
        _require_histogram(target)
        _require_histogram(source)
        backend.merge(target, source)

    def __repr__(self):
        state = self._backend.name if self._backend is not None else "uninitialized"
        return f"BinningEngine(backend={state})"


def _require_histogram(histogram) -> None:
    if not isinstance(histogram, Histogram):
        raise InvalidArgument(f"Expected a Histogram, got {type(histogram).__name__}")


def open_engine(config: Optional[EngineConfig] = None) -> BinningEngine:
    """Create and initialize an engine from ``config`` or the environment."""
    return BinningEngine(config or EngineConfig.from_env()).init()
