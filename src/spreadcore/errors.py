"""Error types raised by the spreadsheet engine."""

from __future__ import annotations


class SpreadsheetError(Exception):
    """Base class for all errors raised by spreadcore."""


class InvalidNameError(SpreadsheetError, ValueError):
    """A cell name is missing, malformed, or rejected by the validity predicate.

    Attributes:
        name: The offending name as supplied by the caller.
    """

    def __init__(self, name: object) -> None:
        self.name = name
        super().__init__(f"Invalid cell name: {name!r}")


class CircularDependencyError(SpreadsheetError):
    """Raised when an assignment would make a cell depend on itself.

    Attributes:
        cycle_path: Cell names along the cycle, first and last entries equal.
    """

    def __init__(self, cycle_path: list[str]) -> None:
        self.cycle_path = cycle_path
        super().__init__(f"Circular cell reference: {' -> '.join(cycle_path)}")


class SpreadsheetReadWriteError(SpreadsheetError):
    """Saving or loading a spreadsheet document failed.

    The underlying cause, when there is one, is chained as ``__cause__``
    and its message is included in this error's message.
    """
