"""Shared test fixtures and utilities."""

import stat
from pathlib import Path

import pytest


@pytest.fixture
def write_file(tmp_path):
    """Factory fixture to write files relative to tmp_path."""
    def _write(path: str, content="test content"):
        file_path = tmp_path / path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            file_path.write_bytes(content)
        else:
            file_path.write_text(content)
        return file_path
    return _write


@pytest.fixture
def project(tmp_path):
    """Project root directory, kept apart from tool scripts in tmp_path."""
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def write_project_file(project):
    """Factory fixture to write files relative to the project root."""
    def _write(path: str, content="test content"):
        file_path = project / path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            file_path.write_bytes(content)
        else:
            file_path.write_text(content)
        return file_path
    return _write


@pytest.fixture
def make_tool(tmp_path):
    """Factory fixture creating an executable shell script that acts as a checksum tool.

    The script body receives the file path as $1.
    """
    tools_dir = tmp_path / "tools"
    tools_dir.mkdir(exist_ok=True)

    def _make(name: str, body: str) -> Path:
        script = tools_dir / name
        script.write_text(f"#!/bin/sh\n{body}\n")
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return script
    return _make


@pytest.fixture
def fake_dbhash(make_tool):
    """Checksum tool printing ``<digest>  <file>`` like SQLite's dbhash.

    The digest depends only on file size, so it differs from the content hash.
    """
    return make_tool("dbhash", 'echo "feedface$(wc -c < "$1" | tr -d " ")  $1"')
