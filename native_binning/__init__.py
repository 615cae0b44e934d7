"""
native_binning: equal-width histogram binning over caller-owned buffers.

Exports:
- BinningEngine / open_engine: operations with an explicit init/close lifecycle
- Histogram, DataSet, Bin: the data model and its ctypes layout
- ParallelBinner: per-worker accumulators merged after the parallel phase
"""

from .config import CompilationConfig, EngineConfig
from .dataset import DataSet
from .engine import BinningEngine, open_engine
from .errors import (BinningError, CompilationError, EngineNotReady, IncompatibleHistograms,
                     InvalidArgument, NativeLibraryError, Status)
from .histogram import BinKind, Histogram
from .layout import ABI_VERSION, Bin, describe_layout
from .parallel import ParallelBinner, partition, reduce_into

__all__ = [
    "ABI_VERSION",
    "Bin",
    "BinKind",
    "BinningEngine",
    "BinningError",
    "CompilationConfig",
    "CompilationError",
    "DataSet",
    "EngineConfig",
    "EngineNotReady",
    "Histogram",
    "IncompatibleHistograms",
    "InvalidArgument",
    "NativeLibraryError",
    "ParallelBinner",
    "Status",
    "describe_layout",
    "open_engine",
    "partition",
    "reduce_into",
]

__version__ = '1.0.0'
