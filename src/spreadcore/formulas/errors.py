"""Error types for formula parsing and evaluation."""

from __future__ import annotations

from dataclasses import dataclass

from spreadcore.errors import SpreadsheetError


class FormulaFormatError(SpreadsheetError):
    """Syntax error in a formula expression.

    Attributes:
        reason: Human-readable description.
        position: Index of the offending token, when known.
    """

    def __init__(self, reason: str, position: int | None = None) -> None:
        self.reason = reason
        self.position = position
        full = f"Formula format error: {reason}"
        if position is not None:
            full += f" (at token {position})"
        super().__init__(full)


class FormulaEvalError(Exception):
    """Internal fault raised while evaluating a token sequence."""


class FormulaRefError(FormulaEvalError):
    """A variable could not be resolved to a number.

    Attributes:
        ref_name: The unresolved variable.
    """

    def __init__(self, ref_name: str) -> None:
        self.ref_name = ref_name
        super().__init__(f"Could not find the value of variable: {ref_name}")


@dataclass(frozen=True)
class FormulaError:
    """The value of a formula cell whose evaluation failed.

    This is a value, never raised: it is stored as the cell's value so the
    document stays valid and displayable.
    """

    reason: str

    def __str__(self) -> str:
        return self.reason
