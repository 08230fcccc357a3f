"""Tests for the run and report CLI commands."""

from __future__ import annotations

import json

import pytest
from builders import app_package, field_read, getter_read, pb_package, write_snapshot
from typer.testing import CliRunner

from pbusage.cli.main import app
from pbusage.runner.emitter import read_entries
from pbusage.stats.models import RewriteLevel, UseType

runner = CliRunner()


# -----------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------


@pytest.fixture
def snapshots(tmp_path):
    """NONE and GREEN snapshots of the same function."""
    none = write_snapshot(tmp_path / "none", pb_package(), app_package(field_read()))
    green = write_snapshot(tmp_path / "green", pb_package(), app_package(getter_read()))
    return none, green


@pytest.fixture
def entries_file(tmp_path, snapshots):
    """Entry file produced by a real run."""
    none, green = snapshots
    out = tmp_path / "entries.jsonl"
    result = runner.invoke(
        app,
        [
            "run",
            "--none", str(none),
            "--green", str(green),
            "-o", str(out),
            "--base-dir", str(tmp_path / "home"),
        ],
    )
    assert result.exit_code == 0, result.output
    return out


# -----------------------------------------------------------------------
# run
# -----------------------------------------------------------------------


class TestRunCommand:
    def test_writes_entries(self, entries_file, tmp_path):
        entries = list(read_entries(entries_file))
        ok = [e for e in entries if e.ok]
        assert [(e.level, e.use.type) for e in ok] == [
            (RewriteLevel.NONE, UseType.DIRECT_FIELD_ACCESS),
            (RewriteLevel.GREEN, UseType.METHOD_CALL),
        ]
        assert list((tmp_path / "home" / "logs").glob("pbusage-*.jsonl"))

    def test_prints_summary(self, tmp_path, snapshots):
        none, _ = snapshots
        out = tmp_path / "run.jsonl"
        result = runner.invoke(
            app, ["run", "--none", str(none), "-o", str(out), "--base-dir", str(tmp_path)]
        )
        assert result.exit_code == 0
        assert "Usage Report" in result.output
        assert "DIRECT_FIELD_ACCESS" in result.output
        assert "entries written" in result.output

    def test_overwrites_unless_appending(self, tmp_path, snapshots):
        none, _ = snapshots
        out = tmp_path / "run.jsonl"
        args = ["run", "--none", str(none), "-o", str(out), "--base-dir", str(tmp_path)]
        runner.invoke(app, args)
        runner.invoke(app, args)
        assert len(list(read_entries(out))) == 2
        runner.invoke(app, [*args, "--append"])
        assert len(list(read_entries(out))) == 4

    def test_include_generated(self, tmp_path, snapshots):
        none, _ = snapshots
        out = tmp_path / "run.jsonl"
        args = ["run", "--none", str(none), "-o", str(out), "--base-dir", str(tmp_path)]
        runner.invoke(app, [*args, "--include-generated"])
        assert all(e.ok for e in read_entries(out))

    def test_no_snapshots(self, tmp_path):
        result = runner.invoke(app, ["run", "--base-dir", str(tmp_path)])
        assert result.exit_code == 2
        assert "No snapshots given" in result.output

    def test_every_snapshot_missing(self, tmp_path):
        result = runner.invoke(
            app,
            [
                "run",
                "--red", str(tmp_path / "missing"),
                "-o", str(tmp_path / "out.jsonl"),
                "--base-dir", str(tmp_path),
            ],
        )
        assert result.exit_code == 1
        assert "Snapshot RED failed" in result.output

    def test_partial_failure_still_succeeds(self, tmp_path, snapshots):
        none, _ = snapshots
        result = runner.invoke(
            app,
            [
                "run",
                "--none", str(none),
                "--red", str(tmp_path / "missing"),
                "-o", str(tmp_path / "out.jsonl"),
                "--base-dir", str(tmp_path),
            ],
        )
        assert result.exit_code == 0


# -----------------------------------------------------------------------
# report
# -----------------------------------------------------------------------


class TestReportCommand:
    def test_renders_tables(self, entries_file):
        result = runner.invoke(app, ["report", str(entries_file)])
        assert result.exit_code == 0
        assert "Uses per rewrite level" in result.output
        assert "METHOD_CALL" in result.output
        assert "FAIL / SKIP locations" in result.output

    def test_json_output(self, entries_file):
        result = runner.invoke(app, ["report", str(entries_file), "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["total"] == 4
        assert data["uses"] == {
            "NONE": {"DIRECT_FIELD_ACCESS": 1},
            "GREEN": {"METHOD_CALL": 1},
        }
        assert [s["status"] for s in data["statuses"]] == ["SKIP", "SKIP"]
        assert data["changes"] == []

    def test_changes(self, entries_file):
        result = runner.invoke(app, ["report", str(entries_file), "--json", "--changes"])
        changes = json.loads(result.output)["changes"]
        assert changes == [
            {
                "file": "app/main.go",
                "line": 3,
                "column": 7,
                "before": "NONE",
                "before_uses": ["DIRECT_FIELD_ACCESS"],
                "after": "GREEN",
                "after_uses": ["METHOD_CALL"],
            }
        ]

    def test_changes_table(self, entries_file):
        result = runner.invoke(app, ["report", str(entries_file), "--changes"])
        assert "Changed call sites" in result.output

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["report", str(tmp_path / "none.jsonl")])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_malformed_file(self, tmp_path):
        path = tmp_path / "bad.jsonl"
        path.write_text('{"level": 1}\n')
        result = runner.invoke(app, ["report", str(path)])
        assert result.exit_code == 1
        assert "Malformed" in result.output
