"""Utility functions for gisquick-sync."""

from datetime import datetime, timezone


def humanize_size(size: float) -> str:
    """Convert bytes to human-readable format."""
    for unit in ["B", "KB", "MB", "GB"]:
        if size < 1024.:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"


def format_mtime(mtime: int) -> str:
    """Format an epoch mtime for display.

    Examples:
        0 -> "1970-01-01 00:00:00"
    """
    return datetime.fromtimestamp(mtime, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def short_checksum(checksum: str, length: int = 12) -> str:
    """Shorten a checksum for display, keeping any tool tag.

    Examples:
        "dbhash:0123456789abcdef..." -> "dbhash:0123456789ab"
        "" -> "-"
    """
    if not checksum:
        return "-"
    tag, sep, digest = checksum.rpartition(":")
    return f"{tag}{sep}{digest[:length]}"
