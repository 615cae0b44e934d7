"""
Native Compilation
==================

Discovers a C++ compiler and builds the binning library into a content-addressed
cache, so repeated engine start-ups reuse the same shared object.

Features:
- Compiler detection (g++, clang++, or an explicit command)
- Cache key over source, flags and compiler identity
- Atomic publish of the built library (safe across concurrent processes)
"""

import hashlib
import os
import platform
import re
import subprocess
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .config import CompilationConfig
from .errors import CompilationError

LIBRARY_STEM = "native_binning"


@dataclass(frozen=True)
class CompilerInfo:
    command: str
    version: Tuple[int, int]
    banner: str
    priority: int


def library_suffix() -> str:
    return ".dll" if platform.system() == "Windows" else ".so"


class NativeCompiler:
    """Compiles the native binning source with the best available compiler."""

    _PRIORITIES = {'g++': 90, 'clang++': 85}

    def __init__(self, config: Optional[CompilationConfig] = None):
        self.config = config or CompilationConfig()
        self._compilers: Optional[Dict[str, CompilerInfo]] = None
        self._lock = threading.Lock()

    # ------------------------------------------------------------------ #
    # Detection
    # ------------------------------------------------------------------ #
    @property
    def available_compilers(self) -> Dict[str, CompilerInfo]:
        with self._lock:
            if self._compilers is None:
                self._compilers = self._detect_compilers()
            return self._compilers

    def _detect_compilers(self) -> Dict[str, CompilerInfo]:
        candidates = [self.config.compiler] if self.config.compiler else list(self.config.candidates)
        compilers = {}
        for command in candidates:
            info = self._probe(command)
            if info is not None:
                compilers[command] = info
        return compilers

    def _probe(self, command: str) -> Optional[CompilerInfo]:
        try:
            result = subprocess.run([command, '--version'],
                                    capture_output=True, text=True, timeout=5)
        except (subprocess.TimeoutExpired, FileNotFoundError, PermissionError):
            return None
        if result.returncode != 0:
            return None
        banner = result.stdout.split('\n')[0].strip()
        return CompilerInfo(
            command=command,
            version=self._extract_version(banner),
            banner=banner,
            priority=self._PRIORITIES.get(Path(command).name, 50),
        )

    @staticmethod
    def _extract_version(version_string: str) -> Tuple[int, int]:
        """Extract major.minor version from a ``--version`` banner."""
        match = re.search(r'(\d+)\.(\d+)', version_string)
        if match:
            return (int(match.group(1)), int(match.group(2)))
        return (0, 0)

    def get_best_compiler(self) -> Optional[CompilerInfo]:
        compilers = self.available_compilers
        if not compilers:
            return None
        return max(compilers.values(), key=lambda info: (info.priority, info.version))

    # ------------------------------------------------------------------ #
    # Compilation
    # ------------------------------------------------------------------ #
    def build_flags(self) -> List[str]:
        flags = [
            f"-{self.config.optimization_level}",
            "-fPIC",
            "-shared",
            "-std=c++17",
            "-Wall",
            "-Wextra",
            # IEEE comparisons and NaN must survive optimisation
            "-fno-fast-math",
        ]
        if self.config.enable_native_arch:
            flags.append("-march=native")
        if self.config.debug_symbols:
            flags.append("-g")
        return flags

    def cache_key(self, source: str, compiler: CompilerInfo) -> str:
        digest = hashlib.sha256()
        for part in (source, " ".join(self.build_flags()), compiler.command, compiler.banner):
            digest.update(part.encode('utf-8'))
            digest.update(b'\0')
        return digest.hexdigest()[:16]

    def compile(self, source: str, cache_dir: Path) -> Path:
        """
        Return the path of a shared library built from ``source``.

        Reuses a cached build when one with the same key exists.

        Raises:
            CompilationError: no compiler found, or the compiler failed.
        """
        compiler = self.get_best_compiler()
        if compiler is None:
            wanted = self.config.compiler or ", ".join(self.config.candidates)
            raise CompilationError(f"No suitable C++ compiler found (tried: {wanted})")

        cache_dir = Path(cache_dir)
        cache_dir.mkdir(parents=True, exist_ok=True)
        output_path = cache_dir / f"lib{LIBRARY_STEM}-{self.cache_key(source, compiler)}{library_suffix()}"
        if output_path.exists():
            return output_path

        with tempfile.TemporaryDirectory(dir=cache_dir, prefix=".build-") as build_dir:
            source_path = Path(build_dir) / f"{LIBRARY_STEM}.cpp"
            staged_path = Path(build_dir) / output_path.name
            source_path.write_text(source)

            cmd = [compiler.command, *self.build_flags(), "-o", str(staged_path), str(source_path)]
            try:
                result = subprocess.run(cmd, capture_output=True, text=True,
                                        timeout=self.config.timeout_seconds)
            except subprocess.TimeoutExpired:
                raise CompilationError(
                    f"{compiler.command} timed out after {self.config.timeout_seconds}s"
                ) from None
            except OSError as e:
                raise CompilationError(f"Could not run {compiler.command}: {e}") from e

            if result.returncode != 0:
                raise CompilationError(
                    f"{compiler.command} exited with status {result.returncode}",
                    stderr=result.stderr,
                )
            # Publish atomically; a concurrent build of the same key wins harmlessly.
            os.replace(staged_path, output_path)

        return output_path
