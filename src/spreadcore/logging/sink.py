"""NDJSON event log kept beside a project's documents.

One JSON object per line in ``logs/events.ndjson``, keys sorted.  Appends
hold an exclusive ``flock`` and reads a shared one, each for a single
system call's worth of work.  Where ``fcntl`` is missing the lock is a
no-op.
"""

from __future__ import annotations

import json
import os
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Any, Iterator

from spreadcore.logging.events import SpreadcoreEvent

try:
    import fcntl
except ImportError:  # Windows
    fcntl = None

EVENTS_FILENAME = "events.ndjson"

DEFAULT_TAIL_BYTES = 2 * 1024 * 1024
MAX_READ_LIMIT = 2000


@contextmanager
def _flock(f: IO[bytes], exclusive: bool) -> Iterator[None]:
    if fcntl is None:
        yield
        return
    fcntl.flock(f.fileno(), fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH)
    try:
        yield
    finally:
        fcntl.flock(f.fileno(), fcntl.LOCK_UN)


class EventSink:
    """Append-only writer and filtered reader for a project's event log.

    Usage::

        sink = EventSink(Path("project"))
        sink.write(event)
        sink.read_events(cell="A1", limit=10)   # newest first
    """

    def __init__(self, project_dir: Path, *, fsync: bool = False, tail_bytes: int | None = None) -> None:
        self.logs_dir = Path(project_dir) / "logs"
        self._fsync = fsync
        self._tail_bytes = DEFAULT_TAIL_BYTES if tail_bytes is None else tail_bytes
        self.logs_dir.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self.logs_dir / EVENTS_FILENAME

    def write(self, event: SpreadcoreEvent) -> None:
        """Append *event* as one line."""
        record = event.model_dump(mode="json")
        data = (json.dumps(record, sort_keys=True, default=str) + "\n").encode("utf-8")
        with open(self.path, "ab") as f, _flock(f, exclusive=True):
            f.write(data)
            f.flush()
            if self._fsync:
                os.fsync(f.fileno())

    def read_events(
        self,
        *,
        level: str | None = None,
        event_type: str | None = None,
        cell: str | None = None,
        limit: int = 200,
    ) -> list[dict[str, Any]]:
        """Return matching events, most recent first.

        Only the last ``tail_bytes`` of the log are examined.  *limit* is
        capped at 2000.
        """
        limit = min(limit, MAX_READ_LIMIT)
        out: list[dict[str, Any]] = []
        for event in reversed(self._tail_records()):
            if level and event.get("level") != level:
                continue
            if event_type and event.get("event_type") != event_type:
                continue
            if cell and event.get("context", {}).get("cell") != cell:
                continue
            out.append(event)
            if len(out) >= limit:
                break
        return out

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _tail_records(self) -> list[dict[str, Any]]:
        """Decode the complete lines in the log's tail; bad lines are skipped."""
        if not self.path.exists():
            return []
        records: list[dict[str, Any]] = []
        for line in self._read_tail().splitlines():
            if not line.strip():
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError:
                continue
        return records

    def _read_tail(self) -> str:
        with open(self.path, "rb") as f, _flock(f, exclusive=False):
            size = os.fstat(f.fileno()).st_size
            truncated = size > self._tail_bytes
            if truncated:
                f.seek(size - self._tail_bytes)
            data = f.read()
        if truncated:
            # The first line is probably cut short.
            data = data[data.find(b"\n") + 1:]
        return data.decode("utf-8", errors="replace")
