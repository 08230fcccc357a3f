"""Tests for entry construction, sinks and the emitter."""

import pytest
from builders import APP, context, field_read, file_unit, find, func_decl, pb_package

from pbusage.analysis.classifier import UseClassifier
from pbusage.runner.emitter import (
    EntryEmitter,
    JsonlSink,
    read_entries,
    status_entry,
    usage_entry,
)
from pbusage.stats.models import RewriteLevel, StatusType, UseType


def _field_entry():
    unit = file_unit(func_decl(f"{APP}.F", field_read((3, 7))))
    cursor = find(unit.root, "SelectorExpr")
    result = UseClassifier(context(pb_package())).classify(cursor)
    return usage_entry(RewriteLevel.YELLOW, APP, unit, cursor, result)


class TestEntries:
    def test_usage_entry(self):
        entry = _field_entry()
        assert entry.ok
        assert entry.level == RewriteLevel.YELLOW
        assert entry.location.file == "app/main.go"
        assert (entry.location.start.line, entry.location.start.column) == (3, 7)
        assert entry.location.end.column == 8
        assert entry.expr.type == "*ast.SelectorExpr"
        assert entry.expr.parent_type == "*ast.AssignStmt"
        assert entry.source.file == "pbusage/analysis/rules.py:field_access"

    def test_status_entry_with_package_only(self):
        entry = status_entry(RewriteLevel.NONE, StatusType.FAIL, "boom", APP)
        assert entry.location.package == APP
        assert entry.location.file == ""
        assert entry.location.start is None

    def test_status_entry_with_node(self):
        unit = file_unit(func_decl(f"{APP}.F", field_read((9, 2))))
        node = find(unit.root, "SelectorExpr").node
        entry = status_entry(RewriteLevel.NONE, StatusType.SKIP, "odd", APP, unit, node)
        assert entry.location.start.line == 9
        assert not entry.ok

    def test_status_entry_default_error(self):
        entry = status_entry(RewriteLevel.NONE, StatusType.SKIP, "", APP)
        assert entry.status.error == "skip"


class TestSinks:
    def test_jsonl_round_trip(self, tmp_path):
        path = tmp_path / "out" / "entries.jsonl"
        emitter = EntryEmitter(JsonlSink(path))
        written = [_field_entry(), status_entry(RewriteLevel.RED, StatusType.FAIL, "boom", APP)]
        for entry in written:
            emitter.emit(entry)

        assert emitter.count == 2
        assert list(read_entries(path)) == written
        lines = path.read_text().splitlines()
        assert '"use"' in lines[0]
        assert '"use"' not in lines[1]

    def test_appends(self, tmp_path):
        path = tmp_path / "entries.jsonl"
        JsonlSink(path).write(_field_entry())
        JsonlSink(path).write(_field_entry())
        assert len(list(read_entries(path))) == 2

    def test_memory_sink(self, emitter, sink):
        emitter.emit(_field_entry())
        assert [e.use.type for e in sink.entries] == [UseType.DIRECT_FIELD_ACCESS]

    def test_sink_errors_propagate(self):
        class FullSink:
            def write(self, entry):
                raise OSError("disk full")

        emitter = EntryEmitter(FullSink())
        with pytest.raises(OSError, match="disk full"):
            emitter.emit(_field_entry())
        assert emitter.count == 0
