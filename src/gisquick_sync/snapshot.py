"""Directory snapshot with checksum computation.

A scan runs in four stages, each usable on its own:

    walk_files        enumerate regular files under the root (sorted)
    IgnoreSpec        drop excluded paths
    is_temporary_file split off GeoPackage lock/journal sidecars
    DirectoryScanner  checksum the rest through the cache and selector

Checksumming is the expensive part; unchanged files are served from the
scanner's ChecksumCache, so rescanning the same project is cheap.
"""

import errno
import logging
import os
import re
import stat
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from .checksum import ChecksumSelector
from .config import ScanConfig, load_scan_config
from .constants import TEMPORARY_FILE_SUFFIXES
from .core import DirectorySnapshot, FileInfo
from .digest_cache import ChecksumCache
from .errors import ScanIOError, SnapshotError
from .ignore import IgnoreSpec


logger = logging.getLogger(__name__)

TEMPORARY_FILE_RE = re.compile(
    r".*\.(%s)$" % "|".join(re.escape(s) for s in TEMPORARY_FILE_SUFFIXES),
    re.IGNORECASE,
)


@dataclass(frozen=True)
class WalkEntry:
    """A regular file found by the walk, with the stat info taken at that time."""

    path: Path  # absolute
    relpath: str  # POSIX, relative to the scan root
    size: int
    mtime: int

    def to_file_info(self, checksum: str = "") -> FileInfo:
        return FileInfo(path=self.relpath, checksum=checksum, size=self.size, mtime=self.mtime)


Walker = Callable[[Path, Callable[[str], bool]], Iterable[WalkEntry]]


def _always(_: str) -> bool:
    return True


def _join(rel_dir: str, name: str) -> str:
    return f"{rel_dir}/{name}" if rel_dir else name


def walk_files(
    root: Path,
    should_traverse: Callable[[str], bool] = _always,
) -> Iterator[WalkEntry]:
    """Yield regular files under root in sorted, depth-first order.

    Entries that disappear between listing and stat are skipped with a
    warning. Symlinks to files are followed; symlinked directories are not
    descended. Sockets, FIFOs and devices are skipped.

    Args:
        root: Absolute directory to walk
        should_traverse: Called with a directory's relative path; False prunes it

    Raises:
        ScanIOError: On any filesystem error other than a vanished entry
    """
    root_str = os.fspath(root)

    def onerror(err: OSError) -> None:
        if isinstance(err, FileNotFoundError):
            logger.warning("Directory does not exist, skipping: %s", err.filename)
            return
        raise ScanIOError(err.filename, err) from err

    for dirpath, dirnames, filenames in os.walk(root_str, onerror=onerror):
        rel_dir = "" if dirpath == root_str else Path(dirpath).relative_to(root).as_posix()
        dirnames[:] = sorted(d for d in dirnames if should_traverse(_join(rel_dir, d)))

        for name in sorted(filenames):
            abs_path = Path(dirpath) / name
            try:
                st = os.stat(abs_path)
            except FileNotFoundError:
                logger.warning("File does not exist, skipping: %s", abs_path)
                continue
            except OSError as e:
                raise ScanIOError(abs_path, e) from e

            if not stat.S_ISREG(st.st_mode):
                logger.debug("Not a regular file, skipping: %s", abs_path)
                continue

            yield WalkEntry(
                path=abs_path,
                relpath=_join(rel_dir, name),
                size=st.st_size,
                mtime=st.st_mtime_ns // 1_000_000_000,
            )


def is_temporary_file(relpath: str) -> bool:
    """Check if a path is a GeoPackage lock/journal sidecar (-wal, -shm)."""
    return TEMPORARY_FILE_RE.match(relpath) is not None


class DirectoryScanner:
    """Builds DirectorySnapshots, reusing checksums across scans.

    One scanner owns one ChecksumCache. Reuse the scanner to rescan a project
    cheaply; use separate scanners (or pass separate caches) for unrelated
    roots scanned concurrently.
    """

    def __init__(
        self,
        selector: Optional[ChecksumSelector] = None,
        cache: Optional[ChecksumCache] = None,
        workers: int = 1,
        walker: Walker = walk_files,
    ):
        """Initialize scanner.

        Args:
            selector: Checksum strategy selector (content hash only if None)
            cache: Checksum cache; a fresh one is created if None
            workers: Number of threads hashing cache misses
            walker: File enumerator, replaceable for tests
        """
        if workers < 1:
            raise ValueError(f"workers must be at least 1, got {workers}")
        self.selector = selector if selector is not None else ChecksumSelector()
        self.cache = cache if cache is not None else ChecksumCache()
        self.workers = workers
        self.walker = walker

    @classmethod
    def from_config(cls, config: ScanConfig, cache: Optional[ChecksumCache] = None) -> "DirectoryScanner":
        return cls(
            selector=ChecksumSelector.from_config(config),
            cache=cache,
            workers=config.workers,
        )

    def scan(self, root: Union[str, Path], checksum: bool = True) -> DirectorySnapshot:
        """Scan a directory.

        Args:
            root: Project root directory
            checksum: Compute checksums for regular files (sizes and mtimes
                are always collected)

        Returns:
            Snapshot with regular files and temporary files, in walk order

        Raises:
            ScanIOError: Root missing or not a directory, or a file error
            IgnoreFileError: Malformed or unreadable ignore file
            ToolExecutionError: External checksum tool failed
        """
        root = Path(root)
        try:
            root = root.resolve(strict=True)
        except OSError as e:
            raise ScanIOError(root, e) from e
        if not root.is_dir():
            raise ScanIOError(
                root, NotADirectoryError(errno.ENOTDIR, os.strerror(errno.ENOTDIR), str(root))
            )

        # Fails before anything is listed
        ignore = IgnoreSpec.load(root)

        snapshot = DirectorySnapshot(root=str(root))
        regular: List[WalkEntry] = []
        try:
            for entry in self.walker(root, ignore.should_traverse):
                if ignore.is_ignored(entry.relpath):
                    continue
                if is_temporary_file(entry.relpath):
                    snapshot.temporary_files.append(entry.to_file_info())
                else:
                    regular.append(entry)
        except SnapshotError as e:
            # Files walked so far are reported without checksums
            snapshot.files.extend(entry.to_file_info() for entry in regular)
            e.partial = snapshot
            raise

        try:
            if checksum:
                self._checksum_entries(regular, snapshot.files)
            else:
                snapshot.files.extend(entry.to_file_info() for entry in regular)
        except SnapshotError as e:
            e.partial = snapshot
            raise

        logger.debug(
            "Scanned %s: %d files, %d temporary files",
            root, len(snapshot.files), len(snapshot.temporary_files),
        )
        return snapshot

    def list_dir(
        self, root: Union[str, Path], checksum: bool = True
    ) -> Tuple[List[FileInfo], List[FileInfo]]:
        """Scan and return ``(files, temporary_files)``."""
        snapshot = self.scan(root, checksum)
        return snapshot.files, snapshot.temporary_files

    def _compute(self, entry: WalkEntry) -> str:
        checksum = self.selector.checksum(entry.path)
        self.cache.store(str(entry.path), checksum, entry.size, entry.mtime)
        return checksum

    def _checksum_entries(self, entries: List[WalkEntry], out: List[FileInfo]) -> None:
        """Append FileInfos with checksums to ``out`` in walk order."""
        cached = [self.cache.lookup(str(e.path), e.size, e.mtime) for e in entries]
        misses = sum(1 for c in cached if c is None)
        logger.debug("Checksum cache: %d hits, %d misses", len(entries) - misses, misses)

        if self.workers > 1 and misses > 1:
            self._checksum_parallel(entries, cached, out)
            return

        for entry, checksum in zip(entries, cached):
            if checksum is None:
                checksum = self._compute(entry)
            out.append(entry.to_file_info(checksum))

    def _checksum_parallel(
        self,
        entries: List[WalkEntry],
        cached: List[Optional[str]],
        out: List[FileInfo],
    ) -> None:
        """Hash cache misses on a thread pool; the first failure cancels the rest."""
        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            futures: Dict[int, Future] = {
                i: executor.submit(self._compute, entry)
                for i, entry in enumerate(entries)
                if cached[i] is None
            }
            try:
                for i, entry in enumerate(entries):
                    checksum = cached[i]
                    if checksum is None:
                        checksum = futures[i].result()
                    out.append(entry.to_file_info(checksum))
            except BaseException:
                for future in futures.values():
                    future.cancel()
                raise


def scan_directory(
    root: Union[str, Path],
    checksum: bool = True,
    config: Optional[ScanConfig] = None,
    cache: Optional[ChecksumCache] = None,
) -> DirectorySnapshot:
    """Scan a directory with configuration loaded from the project.

    Args:
        root: Project root directory
        checksum: Compute checksums for regular files
        config: Scan configuration (loaded from ``.gisquick/config.yaml``
            and the environment if None)
        cache: Checksum cache to reuse between calls
    """
    if config is None:
        config = load_scan_config(Path(root))
    return DirectoryScanner.from_config(config, cache=cache).scan(root, checksum)
