"""Checksum strategy selection.

Structured containers such as GeoPackage can hold identical data in files
whose raw bytes differ (page layout, internal metadata). For those formats an
external tool that hashes the logical content is preferred; everything else
gets the plain content digest.

A tool-produced checksum is tagged with the tool name (``dbhash:<digest>``)
so it is never confused with a content digest.
"""

import logging
import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Dict, Iterable, Optional, Tuple, Union

from .constants import DBHASH_TAG, DEFAULT_TOOL_TIMEOUT, GEOPACKAGE_EXTENSION
from .errors import ToolExecutionError
from .hashing import compute_file_digest

if TYPE_CHECKING:
    from .config import ScanConfig


logger = logging.getLogger(__name__)


class ChecksumStrategy(str, Enum):
    """How a file's checksum is produced."""

    CONTENT = "content"
    EXTERNAL_TOOL = "external_tool"


@dataclass(frozen=True)
class ChecksumRule:
    """Checksum strategy bound to a set of file extensions.

    Extensions are stored lower-cased with a leading dot. An EXTERNAL_TOOL
    rule without a command is inert: matching files use the content hash.
    """

    extensions: Tuple[str, ...]
    strategy: ChecksumStrategy = ChecksumStrategy.CONTENT
    tag: Optional[str] = None
    command: Optional[str] = None

    def __post_init__(self):
        normalized = tuple(_normalize_extension(ext) for ext in self.extensions)
        object.__setattr__(self, "extensions", normalized)
        if self.strategy == ChecksumStrategy.EXTERNAL_TOOL and not self.tag:
            raise ValueError("External tool rules need a tag")

    @property
    def is_configured(self) -> bool:
        return self.strategy == ChecksumStrategy.CONTENT or bool(self.command)

    @classmethod
    def dbhash(cls, command: Optional[str]) -> "ChecksumRule":
        """GeoPackage rule using SQLite's ``dbhash`` utility."""
        return cls(
            extensions=(GEOPACKAGE_EXTENSION,),
            strategy=ChecksumStrategy.EXTERNAL_TOOL,
            tag=DBHASH_TAG,
            command=command,
        )


def _normalize_extension(ext: str) -> str:
    ext = ext.strip().lower()
    if not ext.startswith("."):
        ext = "." + ext
    return ext


def _extension(path: Union[str, Path]) -> str:
    """Lower-cased extension; a bare dot-name such as ``.gpkg`` is its own extension."""
    p = Path(path)
    if not p.suffix and p.name.startswith("."):
        return p.name.lower()
    return p.suffix.lower()


def run_checksum_tool(
    command: str,
    path: Union[str, Path],
    timeout: Optional[float] = DEFAULT_TOOL_TIMEOUT,
) -> str:
    """Run ``<command> <path>`` and return the first token of its output.

    Tools such as ``dbhash`` and ``sha1sum`` print ``<digest>  <filename>``.

    Raises:
        ToolExecutionError: If the tool cannot be started, times out, exits
            non-zero or prints nothing usable
    """
    logger.debug("Running checksum tool: %s %s", command, path)
    try:
        result = subprocess.run(
            [command, str(path)],
            capture_output=True,
            check=False,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise ToolExecutionError(command, path, f"timed out after {timeout}s", e) from e
    except OSError as e:
        raise ToolExecutionError(command, path, f"cannot execute: {e}", e) from e

    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        reason = f"exit status {result.returncode}"
        if stderr:
            reason += f": {stderr}"
        raise ToolExecutionError(command, path, reason)

    try:
        output = result.stdout.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ToolExecutionError(command, path, "output is not valid UTF-8", e) from e

    tokens = output.split()
    if not tokens:
        raise ToolExecutionError(command, path, "no digest in output")
    return tokens[0]


class ChecksumSelector:
    """Picks and runs the checksum strategy for each file."""

    def __init__(
        self,
        rules: Iterable[ChecksumRule] = (),
        timeout: Optional[float] = DEFAULT_TOOL_TIMEOUT,
        hasher: Callable[[Path], str] = compute_file_digest,
    ):
        """Initialize selector.

        Args:
            rules: Extension rules; a later rule overrides an earlier one for
                the same extension
            timeout: Seconds an external tool may run (None for no limit)
            hasher: Content hash function used when no tool applies
        """
        self.timeout = timeout
        self.hasher = hasher
        self._rules: Dict[str, ChecksumRule] = {}
        for rule in rules:
            for ext in rule.extensions:
                self._rules[ext] = rule

    @classmethod
    def from_config(cls, config: "ScanConfig") -> "ChecksumSelector":
        rules = [ChecksumRule.dbhash(config.dbhash_cmd)]
        for tool in config.checksum_tools:
            rules.append(ChecksumRule(
                extensions=tuple(tool.extensions),
                strategy=ChecksumStrategy.EXTERNAL_TOOL,
                tag=tool.tag,
                command=tool.command,
            ))
        return cls(rules, timeout=config.tool_timeout)

    @property
    def rules(self) -> Dict[str, ChecksumRule]:
        return dict(self._rules)

    def rule_for(self, path: Union[str, Path]) -> Optional[ChecksumRule]:
        """Return the external tool rule for a path, or None for content hashing."""
        rule = self._rules.get(_extension(path))
        if rule is None or rule.strategy != ChecksumStrategy.EXTERNAL_TOOL:
            return None
        if not rule.is_configured:
            return None
        return rule

    def checksum(self, path: Union[str, Path]) -> str:
        """Compute the checksum of a file.

        Returns:
            ``"<tag>:<digest>"`` when an external tool applies, otherwise the
            plain content digest

        Raises:
            ToolExecutionError: If the selected tool fails; there is no
                fallback to the content hash
            ScanIOError: If content hashing cannot read the file
        """
        rule = self.rule_for(path)
        if rule is None:
            return self.hasher(Path(path))
        digest = run_checksum_tool(rule.command, path, timeout=self.timeout)
        return f"{rule.tag}:{digest}"
