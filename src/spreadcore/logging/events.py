"""Event records for spreadsheet edits and document I/O.

Events are pydantic models serialised one per line by ``EventSink``.
Timestamps are UTC ISO-8601 with a ``Z`` suffix.  ``emit()`` and its
wrappers never raise into the caller.
"""

from __future__ import annotations

import sys
import time
import traceback
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class EventLevel(str, Enum):
    info = "info"
    warning = "warning"
    error = "error"


class EventType(str, Enum):
    # Cell edits
    cell_updated = "cell_updated"
    cell_rejected = "cell_rejected"
    cell_checked = "cell_checked"

    # Document lifecycle
    document_created = "document_created"
    document_saved = "document_saved"
    document_loaded = "document_loaded"
    document_load_failed = "document_load_failed"


# ---------------------------------------------------------------------------
# Error codes
# ---------------------------------------------------------------------------

INVALID_NAME = "invalid_name"
FORMULA_FORMAT = "formula_format"
CIRCULAR_DEPENDENCY = "circular_dependency"
READ_WRITE = "read_write"


def error_code_for(exc: BaseException) -> str | None:
    """Map an engine exception to its event error code."""
    from spreadcore.errors import (
        CircularDependencyError,
        InvalidNameError,
        SpreadsheetReadWriteError,
    )
    from spreadcore.formulas import FormulaFormatError

    if isinstance(exc, InvalidNameError):
        return INVALID_NAME
    if isinstance(exc, FormulaFormatError):
        return FORMULA_FORMAT
    if isinstance(exc, CircularDependencyError):
        return CIRCULAR_DEPENDENCY
    if isinstance(exc, SpreadsheetReadWriteError):
        return READ_WRITE
    return None


# ---------------------------------------------------------------------------
# Context truncation
# ---------------------------------------------------------------------------

_MAX_VALUE_LEN = 256
_TRUNCATION_MARK = "...[truncated]"


def truncate_context(context: dict[str, Any]) -> dict[str, Any]:
    """Copy *context*, cutting every string longer than 256 characters.

    Cell contents are free text of any length.  Nested dicts and lists
    are walked.
    """
    return {k: _clip(v) for k, v in context.items()}


def _clip(v: Any) -> Any:
    if isinstance(v, dict):
        return truncate_context(v)
    if isinstance(v, (list, tuple)):
        return [_clip(item) for item in v]
    if isinstance(v, str) and len(v) > _MAX_VALUE_LEN:
        return v[:_MAX_VALUE_LEN] + _TRUNCATION_MARK
    return v


# ---------------------------------------------------------------------------
# Attribution invariants
# ---------------------------------------------------------------------------

_CELL_EVENT_REQUIRED = {"document", "cell"}
_DOCUMENT_EVENT_REQUIRED = {"document"}

_EVENT_REQUIRED_KEYS: dict[str, set[str]] = {
    EventType.cell_updated.value: _CELL_EVENT_REQUIRED,
    EventType.cell_rejected.value: _CELL_EVENT_REQUIRED,
    EventType.cell_checked.value: _CELL_EVENT_REQUIRED,
    EventType.document_created.value: _DOCUMENT_EVENT_REQUIRED,
    EventType.document_saved.value: _DOCUMENT_EVENT_REQUIRED,
    EventType.document_loaded.value: _DOCUMENT_EVENT_REQUIRED,
    EventType.document_load_failed.value: _DOCUMENT_EVENT_REQUIRED,
}


def _validate_attribution(event: SpreadcoreEvent) -> SpreadcoreEvent:
    """Check required context keys; downgrade to warning if missing."""
    required = _EVENT_REQUIRED_KEYS.get(event.event_type.value, set())
    missing = required - set(event.context.keys())
    if not missing:
        return event
    ctx = dict(event.context)
    ctx["_missing_attribution"] = sorted(missing)
    return event.model_copy(update={"level": EventLevel.warning, "context": ctx})


# ---------------------------------------------------------------------------
# Event model
# ---------------------------------------------------------------------------


def _utc_now() -> str:
    """Return current UTC timestamp in ISO-8601 with Z suffix."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class SpreadcoreEvent(BaseModel):
    """A single structured log event."""

    schema_version: int = 1
    ts: str = Field(default_factory=_utc_now)
    level: EventLevel
    event_type: EventType
    context: dict[str, Any] = Field(default_factory=dict)
    message: str = ""
    error_code: str | None = None


def make_cell_event(
    event_type: EventType,
    level: EventLevel,
    message: str,
    *,
    document: str,
    cell: str,
    contents: str | None = None,
    recalculated: list[str] | None = None,
    error_code: str | None = None,
) -> SpreadcoreEvent:
    """Build an event with guaranteed document and cell attribution."""
    ctx: dict[str, Any] = {"document": document, "cell": cell}
    if contents is not None:
        ctx["contents"] = contents
    if recalculated is not None:
        ctx["recalculated"] = recalculated
    return SpreadcoreEvent(
        level=level,
        event_type=event_type,
        message=message,
        context=ctx,
        error_code=error_code,
    )


# ---------------------------------------------------------------------------
# Project sink
# ---------------------------------------------------------------------------

_sink: Any = None  # EventSink | None


def set_project_dir(project_dir: Any) -> None:
    """Point ``emit()`` at the event log of *project_dir*.

    Honours ``logging_enabled``, ``logging_fsync`` and
    ``logging_tail_bytes`` from the project's ``spreadcore.yaml``.  An
    unreadable config falls back to logging with default settings.
    """
    global _sink
    from pathlib import Path

    from spreadcore.logging.sink import EventSink
    from spreadcore.project import DEFAULT_CONFIG, load_project_config

    project_dir = Path(project_dir)
    try:
        cfg = load_project_config(project_dir)
    except Exception:
        _stderr_warning(f"could not read logging config: {traceback.format_exc()}")
        cfg = DEFAULT_CONFIG

    if not cfg.get("logging_enabled", True):
        _sink = None
        return
    tail_bytes = cfg.get("logging_tail_bytes")
    _sink = EventSink(
        project_dir,
        fsync=bool(cfg.get("logging_fsync", False)),
        tail_bytes=None if tail_bytes is None else int(tail_bytes),
    )


def get_sink() -> Any:
    """The sink configured by ``set_project_dir``, or None."""
    return _sink


def reset_sink() -> None:
    """Detach the sink; later events are discarded."""
    global _sink
    _sink = None


# ---------------------------------------------------------------------------
# stderr fallback
# ---------------------------------------------------------------------------

_WARN_INTERVAL_SECS = 60.0
_last_warning_at: float | None = None


def _stderr_warning(msg: str) -> None:
    """Print *msg* to stderr at most once a minute."""
    global _last_warning_at
    now = time.monotonic()
    if _last_warning_at is not None and now - _last_warning_at < _WARN_INTERVAL_SECS:
        return
    _last_warning_at = now
    try:
        print(f"[spreadcore] {msg}", file=sys.stderr)
    except OSError:
        pass


# ---------------------------------------------------------------------------
# emit
# ---------------------------------------------------------------------------


def emit(event: SpreadcoreEvent) -> None:
    """Append *event* to the project log, if one is configured.

    Context values are truncated and attribution checked first.  This
    function never raises; a failure becomes a stderr warning.
    """
    sink = _sink
    if sink is None:
        return
    try:
        checked = _validate_attribution(
            event.model_copy(update={"context": truncate_context(event.context)})
        )
        sink.write(checked)
    except Exception:
        _stderr_warning(f"logging failed: {traceback.format_exc()}")


def _emit_at(
    level: EventLevel,
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None,
    error_code: str | None = None,
) -> None:
    emit(
        SpreadcoreEvent(
            level=level,
            event_type=event_type,
            message=message,
            context=dict(context or {}),
            error_code=error_code,
        )
    )


def emit_info(event_type: EventType, message: str, context: dict[str, Any] | None = None) -> None:
    _emit_at(EventLevel.info, event_type, message, context)


def emit_error(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    error_code: str | None = None,
) -> None:
    _emit_at(EventLevel.error, event_type, message, context, error_code)
