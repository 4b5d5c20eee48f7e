"""Directory snapshots for Gisquick project synchronization."""

from .checksum import ChecksumRule, ChecksumSelector, ChecksumStrategy
from .config import ScanConfig, load_scan_config
from .core import DirectorySnapshot, FileInfo
from .digest_cache import ChecksumCache
from .errors import (
    ConfigError,
    IgnoreFileError,
    ScanIOError,
    SnapshotError,
    ToolExecutionError,
)
from .ignore import IgnoreSpec
from .snapshot import DirectoryScanner, scan_directory

__version__ = "0.1.0"

__all__ = [
    "ChecksumCache",
    "ChecksumRule",
    "ChecksumSelector",
    "ChecksumStrategy",
    "ConfigError",
    "DirectoryScanner",
    "DirectorySnapshot",
    "FileInfo",
    "IgnoreFileError",
    "IgnoreSpec",
    "ScanConfig",
    "ScanIOError",
    "SnapshotError",
    "ToolExecutionError",
    "load_scan_config",
    "scan_directory",
]
