"""Scan configuration helpers.

Settings come from ``.gisquick/config.yaml`` in the project root (either top
level or under a ``scan:`` key), then environment variables override them::

    scan:
      dbhash_cmd: /usr/bin/dbhash
      tool_timeout: 120
      workers: 4
      checksum_tools:
        - tag: shp
          command: shphash
          extensions: [.shp]
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import yaml

from .constants import CONFIG_FILE, DEFAULT_TOOL_TIMEOUT, GISQUICK_DIR
from .errors import ConfigError


ENV_DBHASH = "GISQUICK_DBHASH"
ENV_TOOL_TIMEOUT = "GISQUICK_TOOL_TIMEOUT"
ENV_WORKERS = "GISQUICK_SCAN_WORKERS"


@dataclass
class ToolConfig:
    """An extra external checksum tool."""

    tag: str
    command: str
    extensions: List[str] = field(default_factory=list)


@dataclass
class ScanConfig:
    """Configuration controlling how a directory is scanned."""

    dbhash_cmd: Optional[str] = None
    tool_timeout: Optional[float] = DEFAULT_TOOL_TIMEOUT
    workers: int = 1
    checksum_tools: List[ToolConfig] = field(default_factory=list)


def _as_timeout(value, source) -> Optional[float]:
    if value is None:
        return None
    try:
        timeout = float(value)
    except (TypeError, ValueError):
        raise ConfigError(source, f"tool_timeout must be a number, got {value!r}")
    if timeout <= 0:
        return None
    return timeout


def _as_workers(value, source) -> int:
    try:
        workers = int(value)
    except (TypeError, ValueError):
        raise ConfigError(source, f"workers must be an integer, got {value!r}")
    if workers < 1:
        raise ConfigError(source, f"workers must be at least 1, got {workers}")
    return workers


def _parse_tools(raw, source) -> List[ToolConfig]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigError(source, "checksum_tools must be a list")
    tools = []
    for item in raw:
        if not isinstance(item, dict) or not item.get("tag") or not item.get("command"):
            raise ConfigError(source, f"checksum tool needs 'tag' and 'command': {item!r}")
        extensions = item.get("extensions") or []
        if isinstance(extensions, str):
            extensions = [extensions]
        if not extensions:
            raise ConfigError(source, f"checksum tool '{item['tag']}' has no extensions")
        tools.append(ToolConfig(
            tag=str(item["tag"]),
            command=str(item["command"]),
            extensions=[str(ext) for ext in extensions],
        ))
    return tools


def config_from_mapping(data: dict, source=None) -> ScanConfig:
    """Build a ScanConfig from parsed YAML data."""
    if not isinstance(data, dict):
        raise ConfigError(source, "expected a mapping at top level")
    scan = data.get("scan", data)
    if not isinstance(scan, dict):
        raise ConfigError(source, "'scan' must be a mapping")

    config = ScanConfig()
    if scan.get("dbhash_cmd"):
        config.dbhash_cmd = str(scan["dbhash_cmd"])
    if "tool_timeout" in scan:
        config.tool_timeout = _as_timeout(scan["tool_timeout"], source)
    if "workers" in scan:
        config.workers = _as_workers(scan["workers"], source)
    config.checksum_tools = _parse_tools(scan.get("checksum_tools"), source)
    return config


def apply_env_overrides(config: ScanConfig) -> ScanConfig:
    """Apply GISQUICK_* environment variables on top of a config."""
    if os.environ.get(ENV_DBHASH):
        config.dbhash_cmd = os.environ[ENV_DBHASH]
    if os.environ.get(ENV_TOOL_TIMEOUT):
        config.tool_timeout = _as_timeout(os.environ[ENV_TOOL_TIMEOUT], ENV_TOOL_TIMEOUT)
    if os.environ.get(ENV_WORKERS):
        config.workers = _as_workers(os.environ[ENV_WORKERS], ENV_WORKERS)
    return config


def load_scan_config(root: Path) -> ScanConfig:
    """Load scan configuration for a project root.

    Raises:
        ConfigError: If the config file exists but is malformed
    """
    cfg_path = Path(root) / GISQUICK_DIR / CONFIG_FILE
    if not cfg_path.exists():
        return apply_env_overrides(ScanConfig())

    try:
        data = yaml.safe_load(cfg_path.read_text()) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(cfg_path, str(e)) from e

    return apply_env_overrides(config_from_mapping(data, cfg_path))
