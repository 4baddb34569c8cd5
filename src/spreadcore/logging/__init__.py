"""Structured event logging for spreadcore.

Provides a unified event schema, filesystem NDJSON sink, and safe
emit helpers that never raise uncaught exceptions.
"""

from spreadcore.logging.events import (
    EventLevel,
    EventType,
    SpreadcoreEvent,
    emit,
    emit_error,
    emit_info,
    error_code_for,
    get_sink,
    make_cell_event,
    reset_sink,
    set_project_dir,
    truncate_context,
)
from spreadcore.logging.sink import EventSink

__all__ = [
    "EventLevel",
    "EventSink",
    "EventType",
    "SpreadcoreEvent",
    "emit",
    "emit_error",
    "emit_info",
    "error_code_for",
    "get_sink",
    "make_cell_event",
    "reset_sink",
    "set_project_dir",
    "truncate_context",
]
