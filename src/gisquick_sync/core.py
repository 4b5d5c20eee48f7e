"""Core data models for gisquick-sync.

A DirectorySnapshot is the local half of a synchronization: the upstream
client compares it with the server's listing to decide what to transfer.
Field names on the wire follow the server API (``hash`` rather than
``checksum``), so models are dumped with ``by_alias=True``.
"""

from typing import Dict, List, Set

from pydantic import BaseModel, ConfigDict, Field


# ============= File Information =============

class FileInfo(BaseModel):
    """Information about a single file.

    ``checksum`` is empty for temporary files and for scans run without
    checksums; otherwise it is a SHA-1 hex digest or a tagged
    ``"<tool>:<digest>"`` string.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    path: str  # root-relative, POSIX separators
    checksum: str = Field(default="", alias="hash")
    size: int = Field(ge=0)
    mtime: int  # whole seconds since epoch


# ============= Snapshot =============

class DirectorySnapshot(BaseModel):
    """Inventory of a project directory.

    Regular files and temporary (lock/journal) files are kept apart; a path
    appears in at most one of the two lists.
    """

    root: str
    files: List[FileInfo] = Field(default_factory=list)
    temporary_files: List[FileInfo] = Field(default_factory=list)

    def paths(self) -> Set[str]:
        """All relative paths in the snapshot."""
        return {f.path for f in self.files} | {f.path for f in self.temporary_files}

    def by_path(self) -> Dict[str, FileInfo]:
        """Regular files keyed by relative path."""
        return {f.path: f for f in self.files}

    @property
    def total_size(self) -> int:
        return sum(f.size for f in self.files) + sum(f.size for f in self.temporary_files)

    def to_wire(self) -> dict:
        """Dump in the shape the server API expects."""
        return self.model_dump(by_alias=True)
