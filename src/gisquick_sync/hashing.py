"""Content hashing for file snapshots.

Digests are plain SHA-1 hex strings, the format the Gisquick server stores
for project files. Content is streamed in chunks, never read whole.
"""

from pathlib import Path
from typing import BinaryIO, Union
import hashlib

from .constants import HASH_CHUNK_SIZE
from .errors import ScanIOError


CONTENT_HASH_ALGORITHM = "sha1"


def hash_stream(stream: BinaryIO) -> str:
    """Compute the content digest of a binary stream.

    Reads the stream to EOF.

    Args:
        stream: Readable binary file-like object

    Returns:
        Hex digest (40 chars for SHA-1)

    Raises:
        ScanIOError: If the stream cannot be read to completion
    """
    h = hashlib.new(CONTENT_HASH_ALGORITHM)
    try:
        for chunk in iter(lambda: stream.read(HASH_CHUNK_SIZE), b""):
            h.update(chunk)
    except OSError as e:
        raise ScanIOError(getattr(stream, "name", None), e) from e
    return h.hexdigest()


def compute_file_digest(path: Union[str, Path]) -> str:
    """Compute the content digest of a file.

    Args:
        path: Path to file to hash

    Returns:
        Hex digest

    Raises:
        ScanIOError: If the file is missing, unreadable or a read fails
    """
    try:
        with open(path, "rb") as f:
            return hash_stream(f)
    except OSError as e:
        raise ScanIOError(path, e) from e


__all__ = [
    "CONTENT_HASH_ALGORITHM",
    "compute_file_digest",
    "hash_stream",
]
