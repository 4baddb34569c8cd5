"""Cell model: one named slot holding text, a number, or a formula."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from spreadcore.formulas import Formula, FormulaError

Contents = Union[str, float, Formula]
Value = Union[str, float, FormulaError]


@dataclass
class Cell:
    """A non-empty cell.

    For text and number contents the value is the contents itself; for a
    formula it is the cached result of the last evaluation.
    """

    name: str
    contents: Contents
    value: Value = field(default="")

    @classmethod
    def text(cls, name: str, text: str) -> Cell:
        return cls(name, text, text)

    @classmethod
    def number(cls, name: str, number: float) -> Cell:
        return cls(name, number, number)

    @classmethod
    def formula(cls, name: str, formula: Formula, value: float | FormulaError) -> Cell:
        return cls(name, formula, value)

    @property
    def is_formula(self) -> bool:
        return isinstance(self.contents, Formula)

    def serialized_contents(self) -> str:
        """Contents as written to a document: ``=`` + formula, number text, or raw text."""
        if isinstance(self.contents, Formula):
            return f"={self.contents}"
        if isinstance(self.contents, float):
            return format_number(self.contents)
        return self.contents


def format_number(number: float) -> str:
    """Shortest round-tripping text for *number*, without a trailing ``.0``."""
    text = repr(float(number))
    if text.endswith(".0"):
        text = text[:-2]
    return text
