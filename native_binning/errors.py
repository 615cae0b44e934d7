"""Exception taxonomy and native status codes."""

from enum import IntEnum
from typing import Optional


class Status(IntEnum):
    """Status codes returned by every native entry point."""
    OK = 0
    NULL_ARGUMENT = 1
    INVALID_HISTOGRAM = 2
    INVALID_LENGTH = 3
    SHAPE_MISMATCH = 4
    BUFFER_TOO_SMALL = 5


class BinningError(Exception):
    """Base class for all binning errors."""


class InvalidArgument(BinningError, ValueError):
    """Rejected argument: bad histogram bounds, bin count or sample buffer."""


class IncompatibleHistograms(InvalidArgument):
    """Histograms with different bounds or bin counts cannot be merged."""


class NativeLibraryError(BinningError, RuntimeError):
    """The native library could not be built, loaded or verified."""


class CompilationError(NativeLibraryError):
    """No usable compiler, or compilation failed."""

    def __init__(self, message: str, stderr: Optional[str] = None):
        super().__init__(message)
        self.stderr = stderr


class EngineNotReady(BinningError, RuntimeError):
    """Operation attempted on an engine that is not initialized."""


_STATUS_EXCEPTIONS = {
    Status.NULL_ARGUMENT: InvalidArgument,
    Status.INVALID_HISTOGRAM: InvalidArgument,
    Status.INVALID_LENGTH: InvalidArgument,
    Status.SHAPE_MISMATCH: IncompatibleHistograms,
    Status.BUFFER_TOO_SMALL: NativeLibraryError,
}


def raise_for_status(code: int, operation: str) -> None:
    """Translate a native status code into an exception."""
    if code == Status.OK:
        return
    try:
        status = Status(code)
    except ValueError:
        raise NativeLibraryError(f"{operation}: unknown native status {code}") from None
    raise _STATUS_EXCEPTIONS[status](f"{operation}: {status.name.lower().replace('_', ' ')}")
