"""Tests for RunLogger and flush_logs."""

import json
import logging

import pytest

from pbusage.logging.logger import flush_logs


def _events(tmp_config):
    log_files = list(tmp_config.log_dir.glob("pbusage-*.jsonl"))
    assert len(log_files) == 1
    return [json.loads(line) for line in log_files[0].read_text().splitlines()]


class TestRunLogger:
    def test_log_writes_valid_jsonl(self, run_logger, tmp_config):
        run_logger.log("snapshot.start", {"path": "/tmp/none"}, level="NONE")
        (entry,) = _events(tmp_config)
        assert entry["event_type"] == "snapshot.start"
        assert entry["data"]["path"] == "/tmp/none"
        assert entry["level"] == "NONE"
        assert entry["duration_ms"] is None
        assert "timestamp" in entry

    def test_timed_captures_status(self, run_logger, tmp_config):
        with run_logger.timed("snapshot.run", level="RED") as context:
            context["entries"] = 3
        (entry,) = _events(tmp_config)
        assert entry["data"] == {"status": "success", "entries": 3}
        assert entry["level"] == "RED"
        assert entry["duration_ms"] >= 0

    def test_timed_captures_error_status(self, run_logger, tmp_config):
        with pytest.raises(ValueError, match="bad dump"), run_logger.timed("snapshot.run"):
            raise ValueError("bad dump")
        (entry,) = _events(tmp_config)
        assert entry["data"]["status"] == "error"
        assert entry["data"]["error"] == "bad dump"


class TestFlushLogs:
    def test_flushes_root_handlers(self):
        class CountingHandler(logging.Handler):
            flushed = 0

            def emit(self, record):
                pass

            def flush(self):
                self.flushed += 1

        handler = CountingHandler()
        root = logging.getLogger()
        root.addHandler(handler)
        try:
            flush_logs()
        finally:
            root.removeHandler(handler)
        assert handler.flushed == 1
