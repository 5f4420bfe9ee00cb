"""Progress event stream.

Emits versioned newline-delimited JSON records on stderr (and optionally to a
per-run events file). The stream is advisory and UI-only; the result envelope
and run-state file are the authoritative outcome of a run.

Record shape:
    {"version": 1, "event": "phase|item|summary|artifact|error",
     "timestamp": "2026-01-02T03:04:05.678Z", ...event fields}
"""

import json
import logging
import sys
from datetime import UTC
from datetime import datetime
from pathlib import Path
from typing import Any
from typing import TextIO

logger = logging.getLogger(__name__)

EVENT_SCHEMA_VERSION = 1
EVENT_TYPES = ("phase", "item", "summary", "artifact", "error")


def utc_timestamp(moment: datetime | None = None) -> str:
    """UTC timestamp with millisecond precision and a Z suffix."""
    moment = moment or datetime.now(UTC)
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class EventEmitter:
    """Append-only NDJSON event channel.

    Disabled emitters accept every call and write nothing, so operations never
    branch on whether streaming is on.
    """

    def __init__(
        self,
        enabled: bool = False,
        stream: TextIO | None = None,
        file_path: Path | None = None,
    ) -> None:
        self.enabled = enabled
        self.stream = stream
        self.file_path = file_path
        self.records: list[dict[str, Any]] = []

    def emit(self, event: str, **fields: Any) -> dict[str, Any] | None:
        """Emit one record.

        Args:
            event: One of EVENT_TYPES
            **fields: Event specific fields; None values are dropped

        Returns:
            The emitted record, or None when the emitter is disabled
        """
        if event not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {event}")
        if not self.enabled:
            return None

        record: dict[str, Any] = {
            "version": EVENT_SCHEMA_VERSION,
            "event": event,
            "timestamp": utc_timestamp(),
        }
        record.update({key: value for key, value in fields.items() if value is not None})
        self.records.append(record)

        line = json.dumps(record, ensure_ascii=False, default=str)
        stream = self.stream if self.stream is not None else sys.stderr
        stream.write(line + "\n")
        stream.flush()

        if self.file_path is not None:
            try:
                with self.file_path.open("a", encoding="utf-8") as f:
                    f.write(line + "\n")
            except OSError as e:
                logger.warning(f"Failed to append event to {self.file_path}: {e}")

        return record

    def phase(self, name: str, state: str) -> dict[str, Any] | None:
        return self.emit("phase", phase=name, state=state)

    def item(
        self,
        item_id: str,
        status: str,
        driver: str | None = None,
        reason: str | None = None,
        message: str | None = None,
        **extra: Any,
    ) -> dict[str, Any] | None:
        return self.emit("item", id=item_id, driver=driver, status=status, reason=reason, message=message, **extra)

    def summary(self, phase: str, **totals: Any) -> dict[str, Any] | None:
        return self.emit("summary", phase=phase, **totals)

    def artifact(self, kind: str, path: str | Path) -> dict[str, Any] | None:
        return self.emit("artifact", kind=kind, path=str(path))

    def error(self, scope: str, message: str) -> dict[str, Any] | None:
        return self.emit("error", scope=scope, message=message)
