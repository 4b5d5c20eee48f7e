"""Tests for checksum strategy selection."""

import sys
from unittest.mock import Mock

import pytest

from gisquick_sync.checksum import (
    ChecksumRule,
    ChecksumSelector,
    ChecksumStrategy,
    run_checksum_tool,
)
from gisquick_sync.config import ScanConfig, ToolConfig
from gisquick_sync.errors import ToolExecutionError
from gisquick_sync.hashing import compute_file_digest


pytestmark = pytest.mark.skipif(
    sys.platform == "win32", reason="Checksum tool scripts need a POSIX shell"
)


class TestChecksumRule:
    """Test rule construction."""

    def test_extensions_normalized(self):
        rule = ChecksumRule(("SHP", ".DBF"), ChecksumStrategy.EXTERNAL_TOOL, tag="shp", command="x")
        assert rule.extensions == (".shp", ".dbf")

    def test_external_rule_needs_tag(self):
        with pytest.raises(ValueError):
            ChecksumRule((".gpkg",), ChecksumStrategy.EXTERNAL_TOOL, command="dbhash")

    def test_dbhash_rule(self):
        rule = ChecksumRule.dbhash("/usr/bin/dbhash")
        assert rule.extensions == (".gpkg",)
        assert rule.strategy == ChecksumStrategy.EXTERNAL_TOOL
        assert rule.tag == "dbhash"
        assert rule.is_configured

    def test_dbhash_rule_without_command_is_inert(self):
        assert not ChecksumRule.dbhash(None).is_configured


class TestRunChecksumTool:
    """Test external tool invocation."""

    def test_first_token_of_output(self, make_tool, tmp_path):
        tool = make_tool("digest", 'echo "abc123  $1"')
        target = tmp_path / "x.gpkg"
        target.write_bytes(b"sqlite")

        assert run_checksum_tool(str(tool), target) == "abc123"

    def test_tool_receives_path(self, make_tool, tmp_path):
        tool = make_tool("echo-path", 'echo "$1"')
        target = tmp_path / "data.gpkg"
        target.write_bytes(b"")

        assert run_checksum_tool(str(tool), target) == str(target)

    def test_missing_binary(self, tmp_path):
        with pytest.raises(ToolExecutionError) as exc_info:
            run_checksum_tool(str(tmp_path / "no-such-tool"), tmp_path / "a.gpkg")

        err = exc_info.value
        assert isinstance(err.cause, FileNotFoundError)
        assert "cannot execute" in err.reason

    def test_nonzero_exit(self, make_tool, tmp_path):
        tool = make_tool("fail", 'echo "database is locked" >&2; exit 3')

        with pytest.raises(ToolExecutionError) as exc_info:
            run_checksum_tool(str(tool), tmp_path / "a.gpkg")

        assert "exit status 3" in exc_info.value.reason
        assert "database is locked" in exc_info.value.reason

    def test_empty_output(self, make_tool, tmp_path):
        tool = make_tool("silent", "exit 0")

        with pytest.raises(ToolExecutionError, match="no digest"):
            run_checksum_tool(str(tool), tmp_path / "a.gpkg")

    def test_undecodable_output(self, make_tool, tmp_path):
        tool = make_tool("binary", r"printf '\377\376\375'")

        with pytest.raises(ToolExecutionError, match="UTF-8"):
            run_checksum_tool(str(tool), tmp_path / "a.gpkg")

    def test_timeout(self, make_tool, tmp_path):
        tool = make_tool("slow", "exec sleep 5")

        with pytest.raises(ToolExecutionError, match="timed out"):
            run_checksum_tool(str(tool), tmp_path / "a.gpkg", timeout=0.2)


class TestChecksumSelector:
    """Test per-extension strategy selection."""

    def test_content_hash_by_default(self, tmp_path):
        target = tmp_path / "points.geojson"
        target.write_text('{"type": "FeatureCollection", "features": []}')

        assert ChecksumSelector().checksum(target) == compute_file_digest(target)

    def test_gpkg_with_tool_is_tagged(self, fake_dbhash, tmp_path):
        target = tmp_path / "data.gpkg"
        target.write_bytes(b"12345")
        selector = ChecksumSelector([ChecksumRule.dbhash(str(fake_dbhash))])

        assert selector.checksum(target) == "dbhash:feedface5"

    def test_extension_match_is_case_insensitive(self, fake_dbhash, tmp_path):
        target = tmp_path / "DATA.GPKG"
        target.write_bytes(b"123")
        selector = ChecksumSelector([ChecksumRule.dbhash(str(fake_dbhash))])

        assert selector.checksum(target) == "dbhash:feedface3"

    def test_bare_extension_name_uses_tool(self, fake_dbhash, tmp_path):
        target = tmp_path / ".gpkg"
        target.write_bytes(b"abc")
        selector = ChecksumSelector([ChecksumRule.dbhash(str(fake_dbhash))])

        assert selector.rule_for(target) is not None
        assert selector.checksum(target) == "dbhash:feedface3"
        assert selector.rule_for(tmp_path / ".gitignore") is None

    def test_gpkg_without_tool_uses_content_hash(self, tmp_path):
        target = tmp_path / "data.gpkg"
        target.write_bytes(b"12345")
        selector = ChecksumSelector([ChecksumRule.dbhash(None)])

        assert selector.rule_for(target) is None
        assert selector.checksum(target) == compute_file_digest(target)

    def test_other_extensions_ignore_tool(self, fake_dbhash, tmp_path):
        target = tmp_path / "project.qgs"
        target.write_text("<qgis/>")
        selector = ChecksumSelector([ChecksumRule.dbhash(str(fake_dbhash))])

        assert selector.checksum(target) == compute_file_digest(target)

    def test_results_are_deterministic(self, fake_dbhash, tmp_path):
        a = tmp_path / "a.gpkg"
        b = tmp_path / "b.gpkg"
        a.write_bytes(b"same content")
        b.write_bytes(b"same content")
        tagged = ChecksumSelector([ChecksumRule.dbhash(str(fake_dbhash))])
        plain = ChecksumSelector()

        assert tagged.checksum(a) == tagged.checksum(b)
        assert plain.checksum(a) == plain.checksum(b)

    def test_tool_failure_does_not_fall_back(self, tmp_path):
        target = tmp_path / "data.gpkg"
        target.write_bytes(b"sqlite")
        hasher = Mock(return_value="0" * 40)
        selector = ChecksumSelector(
            [ChecksumRule.dbhash(str(tmp_path / "missing-dbhash"))], hasher=hasher
        )

        with pytest.raises(ToolExecutionError):
            selector.checksum(target)
        hasher.assert_not_called()

    def test_custom_hasher(self, tmp_path):
        target = tmp_path / "a.txt"
        target.write_text("x")
        hasher = Mock(return_value="cafe")

        assert ChecksumSelector(hasher=hasher).checksum(target) == "cafe"
        hasher.assert_called_once_with(target)

    def test_later_rule_wins(self, make_tool, tmp_path):
        first = make_tool("first", 'echo "one $1"')
        second = make_tool("second", 'echo "two $1"')
        target = tmp_path / "a.gpkg"
        target.write_bytes(b"")
        selector = ChecksumSelector([
            ChecksumRule.dbhash(str(first)),
            ChecksumRule((".gpkg",), ChecksumStrategy.EXTERNAL_TOOL, tag="other", command=str(second)),
        ])

        assert selector.checksum(target) == "other:two"

    def test_from_config(self, fake_dbhash, make_tool, tmp_path):
        shphash = make_tool("shphash", 'echo "5151 $1"')
        config = ScanConfig(
            dbhash_cmd=str(fake_dbhash),
            tool_timeout=30,
            checksum_tools=[ToolConfig(tag="shp", command=str(shphash), extensions=["shp"])],
        )
        selector = ChecksumSelector.from_config(config)

        shp = tmp_path / "roads.shp"
        shp.write_bytes(b"\x00\x00\x27\x0a")
        assert selector.timeout == 30
        assert selector.checksum(shp) == "shp:5151"
        assert selector.rule_for(tmp_path / "x.gpkg").tag == "dbhash"

    def test_from_default_config_has_no_tools(self, tmp_path):
        selector = ChecksumSelector.from_config(ScanConfig())
        assert selector.rule_for(tmp_path / "x.gpkg") is None
