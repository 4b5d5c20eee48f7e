"""Custom exceptions for gisquick-sync.

Every failure that aborts a scan derives from SnapshotError. The scanner
attaches whatever it had gathered before the failure to ``partial`` so the
caller can report it; a partial snapshot is never authoritative.
"""

from pathlib import Path
from typing import TYPE_CHECKING, Optional, Union

if TYPE_CHECKING:
    from .core import DirectorySnapshot


PathLike = Union[str, Path]


class SnapshotError(RuntimeError):
    """Base class for all snapshot errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.partial: Optional["DirectorySnapshot"] = None


class ScanIOError(SnapshotError):
    """A file or directory could not be listed, stat'ed or read."""

    def __init__(self, path: Optional[PathLike], cause: BaseException):
        self.path = str(path) if path is not None else None
        self.cause = cause
        where = self.path or "<stream>"
        super().__init__(f"Cannot read {where}: {cause}")


class ToolExecutionError(SnapshotError):
    """External checksum tool could not run or produced no usable digest."""

    def __init__(
        self,
        command: str,
        path: PathLike,
        reason: str,
        cause: Optional[BaseException] = None,
    ):
        self.command = command
        self.path = str(path)
        self.reason = reason
        self.cause = cause
        super().__init__(
            f"Checksum tool '{command}' failed for {self.path}: {reason}"
        )


class IgnoreFileError(SnapshotError):
    """Ignore file exists but cannot be read or parsed."""

    def __init__(self, path: PathLike, reason: str, line: Optional[int] = None):
        self.path = str(path)
        self.reason = reason
        self.line = line
        location = f"{self.path}:{line}" if line is not None else self.path
        super().__init__(f"Invalid ignore file {location}: {reason}")


class ConfigError(SnapshotError):
    """Scan configuration is malformed."""

    def __init__(self, path: Optional[PathLike], reason: str):
        self.path = str(path) if path is not None else None
        self.reason = reason
        if self.path:
            super().__init__(f"Invalid configuration in {self.path}: {reason}")
        else:
            super().__init__(f"Invalid configuration: {reason}")
