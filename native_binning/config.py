"""
Engine Configuration
====================

Dataclass configuration for the binning engine and native compilation, with
environment-variable overrides:

    NATIVE_BINNING_BACKEND     auto | native | numpy
    NATIVE_BINNING_LIBRARY     path to a prebuilt native library
    NATIVE_BINNING_CACHE_DIR   where compiled libraries are cached
    NATIVE_BINNING_WORKERS     worker threads for parallel binning
    NATIVE_BINNING_VERBOSE     print status lines (1/true/yes)
    NATIVE_BINNING_CXX         C++ compiler command
"""

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Mapping, Optional, Tuple

import psutil

from .errors import InvalidArgument

BACKEND_CHOICES = ("auto", "native", "numpy")

# Keep threads available for the caller's own work.
MAX_DEFAULT_WORKERS = 8

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


def default_cache_dir() -> Path:
    return Path.home() / ".cache" / "native_binning"


def default_num_workers() -> int:
    """Physical core count, capped at ``MAX_DEFAULT_WORKERS``."""
    cores = psutil.cpu_count(logical=False) or os.cpu_count() or 1
    return max(1, min(cores, MAX_DEFAULT_WORKERS))


@dataclass
class CompilationConfig:
    """Configuration for compiling the native library."""
    optimization_level: str = "O2"
    compiler: Optional[str] = None          # None: pick the best detected
    candidates: Tuple[str, ...] = ("g++", "clang++")
    enable_native_arch: bool = False        # -march=native makes the cache host-specific
    debug_symbols: bool = False
    timeout_seconds: float = 60.0

    def __post_init__(self):
        if self.optimization_level not in ("O0", "O1", "O2", "O3", "Os"):
            raise InvalidArgument(f"Unsupported optimization level: {self.optimization_level!r}")
        if self.timeout_seconds <= 0:
            raise InvalidArgument(f"Compilation timeout must be positive, got {self.timeout_seconds}")


@dataclass
class EngineConfig:
    """Configuration for ``BinningEngine`` and ``ParallelBinner``."""
    backend: str = "auto"
    library_path: Optional[Path] = None
    cache_dir: Path = field(default_factory=default_cache_dir)
    num_workers: Optional[int] = None       # None: default_num_workers()
    min_chunk_size: int = 65_536
    verbose: bool = False
    compilation: CompilationConfig = field(default_factory=CompilationConfig)

    def __post_init__(self):
        if self.backend not in BACKEND_CHOICES:
            raise InvalidArgument(
                f"Unknown backend {self.backend!r}; expected one of {', '.join(BACKEND_CHOICES)}"
            )
        if self.num_workers is not None and self.num_workers < 1:
            raise InvalidArgument(f"num_workers must be >= 1, got {self.num_workers}")
        if self.min_chunk_size < 1:
            raise InvalidArgument(f"min_chunk_size must be >= 1, got {self.min_chunk_size}")
        self.cache_dir = Path(self.cache_dir)
        if self.library_path is not None:
            self.library_path = Path(self.library_path)

    @property
    def workers(self) -> int:
        return self.num_workers if self.num_workers is not None else default_num_workers()

    def with_backend(self, backend: str) -> 'EngineConfig':
        return replace(self, backend=backend)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> 'EngineConfig':
        """Build a config from ``NATIVE_BINNING_*`` variables; keyword overrides win."""
        env = os.environ if environ is None else environ
        kwargs = {}

        if 'NATIVE_BINNING_BACKEND' in env:
            kwargs['backend'] = env['NATIVE_BINNING_BACKEND'].strip().lower()
        if env.get('NATIVE_BINNING_LIBRARY'):
            kwargs['library_path'] = Path(env['NATIVE_BINNING_LIBRARY']).expanduser()
        if env.get('NATIVE_BINNING_CACHE_DIR'):
            kwargs['cache_dir'] = Path(env['NATIVE_BINNING_CACHE_DIR']).expanduser()
        if env.get('NATIVE_BINNING_WORKERS'):
            kwargs['num_workers'] = _parse_int('NATIVE_BINNING_WORKERS', env['NATIVE_BINNING_WORKERS'])
        if 'NATIVE_BINNING_VERBOSE' in env:
            kwargs['verbose'] = _parse_bool('NATIVE_BINNING_VERBOSE', env['NATIVE_BINNING_VERBOSE'])
        if env.get('NATIVE_BINNING_CXX'):
            kwargs['compilation'] = CompilationConfig(compiler=env['NATIVE_BINNING_CXX'].strip())

        kwargs.update(overrides)
        return cls(**kwargs)


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw.strip())
    except ValueError:
        raise InvalidArgument(f"{name} must be an integer, got {raw!r}") from None


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise InvalidArgument(f"{name} must be a boolean flag, got {raw!r}")
