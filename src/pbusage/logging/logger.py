"""JSONL run-event logger and the diagnostics flush hook."""

import json
import logging
import time
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path


def flush_logs() -> None:
    """Flush every handler of the root logger.

    Called at the end of a run so buffered diagnostics reach disk before
    the process exits.
    """
    for handler in logging.getLogger().handlers:
        handler.flush()


class RunLogger:
    """Append-only JSONL log of run events (one file per day)."""

    def __init__(self, log_dir: Path) -> None:
        self.log_dir = log_dir
        self.log_dir.mkdir(parents=True, exist_ok=True)

    @property
    def _log_file(self) -> Path:
        """Current log file (one per day)."""
        today = datetime.now(UTC).strftime("%Y-%m-%d")
        return self.log_dir / f"pbusage-{today}.jsonl"

    def log(
        self,
        event_type: str,
        data: dict,
        *,
        level: str | None = None,
        duration_ms: int | None = None,
    ) -> None:
        """Write one event. Write failures propagate."""
        entry = {
            "event_type": event_type,
            "data": data,
            "level": level,
            "duration_ms": duration_ms,
            "timestamp": datetime.now(UTC).isoformat(),
        }
        with self._log_file.open("a") as f:
            f.write(json.dumps(entry) + "\n")

    @contextmanager
    def timed(self, event_type: str, **kwargs):
        """Context manager that auto-captures duration and status."""
        context = {"status": "started"}
        start = time.monotonic()
        try:
            yield context
            context["status"] = "success"
        except Exception as e:
            context["status"] = "error"
            context["error"] = str(e)
            raise
        finally:
            duration_ms = int((time.monotonic() - start) * 1000)
            self.log(event_type, context, duration_ms=duration_ms, **kwargs)
