"""Spreadsheet: named cells, dependency tracking and recalculation.

A spreadsheet has a cell for every valid name.  A cell's *contents* is
text, a number or a ``Formula``; its *value* is the text, the number, or
the result of evaluating the formula (a number or a ``FormulaError``).
Cells whose contents is empty text are absent: they read back as ``""``
and are not enumerated.

Every edit rebuilds the edited cell's dependency edges, rejects changes
that would introduce a circular reference (leaving the spreadsheet exactly
as it was), and re-evaluates the edited cell and every formula that
depends on it, directly or indirectly, in dependency order.

The class is single-writer: callers serialize mutations per instance.
"""

from __future__ import annotations

import logging
import math
import re
from pathlib import Path
from typing import NamedTuple

from spreadcore import persistence
from spreadcore.cells import Cell, Contents, Value
from spreadcore.dependency_graph import DependencyGraph
from spreadcore.errors import (
    CircularDependencyError,
    SpreadsheetError,
    SpreadsheetReadWriteError,
)
from spreadcore.formulas import Formula, FormulaFormatError
from spreadcore.names import (
    NameNormalizer,
    NameValidator,
    accept_all,
    check_name,
    is_cell_name,
    normalize_upper,
)

logger = logging.getLogger(__name__)

DEFAULT_VERSION = "default"

FORMULA_MARKER = "="

_NUMBER_RE = re.compile(r"\s*[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?\s*")


def parse_number(text: str) -> float | None:
    """Return *text* as a float if it is a plain, finite numeric literal, else ``None``.

    Literals that overflow to infinity (``1e400``) stay text.
    """
    if _NUMBER_RE.fullmatch(text) is None:
        return None
    number = float(text)
    return number if math.isfinite(number) else None


def is_formula_text(text: str) -> bool:
    """True if *text* starts with ``=`` once leading whitespace is ignored."""
    return text.lstrip().startswith(FORMULA_MARKER)


class DryRunResult(NamedTuple):
    """Outcome of ``Spreadsheet.try_set_contents``."""

    ok: bool
    error: SpreadsheetError | None = None


class Spreadsheet:
    """An editable collection of named cells.

    Usage::

        sheet = Spreadsheet()
        sheet.set_contents("A1", "3")
        sheet.set_contents("B1", "=A1*2")
        sheet.set_contents("A1", "5")     # {"A1", "B1"}
        sheet.get_value("B1")             # 10.0

    Parameters
    ----------
    is_valid : callable, optional
        Extra predicate a normalized name must satisfy.  Names must always
        be one or more letters followed by one or more digits.
    normalize : callable, optional
        Applied to every name, including variables inside formulas.
        Defaults to upper-casing.
    version : str
        Version tag written into saved documents.
    """

    def __init__(
        self,
        is_valid: NameValidator | None = None,
        normalize: NameNormalizer | None = None,
        version: str = DEFAULT_VERSION,
    ) -> None:
        self.is_valid: NameValidator = is_valid or accept_all
        self.normalize: NameNormalizer = normalize or normalize_upper
        self.version = version
        # Non-empty cells only; dict order is insertion history.
        self._cells: dict[str, Cell] = {}
        self._graph = DependencyGraph()
        self._changed = False

    # ------------------------------------------------------------------
    # Construction from a saved document
    # ------------------------------------------------------------------

    @classmethod
    def from_file(
        cls,
        path: str | Path,
        is_valid: NameValidator | None = None,
        normalize: NameNormalizer | None = None,
        version: str = DEFAULT_VERSION,
    ) -> Spreadsheet:
        """Load a saved document, requiring its version to equal *version*.

        Raises:
            SpreadsheetReadWriteError: If the file cannot be read, is
                malformed, contains an invalid record, or has another version.
        """
        sheet = cls(is_valid, normalize, version)
        found = sheet.load(path)
        if found != version:
            raise SpreadsheetReadWriteError(
                f"Version mismatch: document has {found!r}, expected {version!r}"
            )
        return sheet

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def changed(self) -> bool:
        """True if modified since creation, the last load, or the last save."""
        return self._changed

    def non_empty_names(self) -> list[str]:
        """Names of all non-empty cells, oldest first."""
        return list(self._cells)

    def get_contents(self, name: str) -> Contents:
        """Contents of the named cell: ``str``, ``float`` or ``Formula``.

        Raises:
            InvalidNameError: If *name* is not a valid cell name.
        """
        cell = self._cells.get(self._check_name(name))
        return "" if cell is None else cell.contents

    def get_value(self, name: str) -> Value:
        """Value of the named cell: ``str``, ``float`` or ``FormulaError``.

        Raises:
            InvalidNameError: If *name* is not a valid cell name.
        """
        cell = self._cells.get(self._check_name(name))
        return "" if cell is None else cell.value

    def lookup(self, name: str) -> float:
        """Numeric value of a cell, used to resolve formula variables.

        Raises:
            KeyError: If the cell is empty or its value is not a number.
        """
        cell = self._cells.get(self._check_name(name))
        if cell is None or not isinstance(cell.value, float):
            raise KeyError(name)
        return cell.value

    def direct_dependents(self, name: str) -> list[str]:
        """Cells whose formulas mention the named cell."""
        return list(self._graph.dependents(self._check_name(name)))

    def cells_to_recalculate(self, name: str) -> list[str]:
        """The named cell and all its transitive dependents, in evaluation order.

        Raises:
            CircularDependencyError: If a cycle is reachable from the cell.
        """
        return self._graph.recalculation_order(self._check_name(name))

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def set_contents(self, name: str, content: str) -> set[str]:
        """Set a cell from raw input text.

        *content* is a number if it parses as one, a formula if it starts
        with ``=``, and text otherwise.  Empty text clears the cell.

        Returns:
            The edited name plus every cell that depends on it, directly or
            indirectly.

        Raises:
            InvalidNameError: If *name* is not a valid cell name.
            FormulaFormatError: If a formula is syntactically invalid.
            CircularDependencyError: If the formula would create a cycle;
                the spreadsheet is left unchanged.
        """
        name = self._check_name(name)
        if content is None:
            raise TypeError("content must be a string, not None")

        number = parse_number(content)
        if number is not None:
            return self.set_number(name, number)
        if is_formula_text(content):
            formula = self.parse_formula(content.lstrip()[len(FORMULA_MARKER):])
            return self.set_formula(name, formula)
        return self.set_text(name, content)

    def parse_formula(self, text: str) -> Formula:
        """Parse formula text, normalizing and validating its variables."""
        return Formula(text, normalize=self.normalize, is_valid=self._is_valid_variable)

    def set_number(self, name: str, number: float) -> set[str]:
        """Set the named cell to a finite number."""
        name = self._check_name(name)
        number = float(number)
        if not math.isfinite(number):
            raise ValueError(f"Cell numbers must be finite, not {number!r}")
        return self._replace(name, Cell.number(name, number), ())

    def set_text(self, name: str, text: str) -> set[str]:
        """Set the named cell to text; blank text empties the cell."""
        name = self._check_name(name)
        if text is None:
            raise TypeError("text must be a string, not None")
        cell = Cell.text(name, text) if text.strip() else None
        return self._replace(name, cell, ())

    def set_formula(self, name: str, formula: Formula) -> set[str]:
        """Set the named cell to a formula and evaluate it.

        The formula is re-read with this spreadsheet's normalizer and
        validity predicate, so its variables name the same cells as
        ``set_contents`` would.

        Raises:
            FormulaFormatError: If a variable is not a valid name here.
        """
        name = self._check_name(name)
        if formula is None:
            raise TypeError("formula must not be None")
        formula = self.parse_formula(str(formula))
        return self._replace(name, Cell.formula(name, formula, ""), formula.variables)

    def try_set_contents(self, name: str, content: str) -> DryRunResult:
        """Report whether ``set_contents(name, content)`` would succeed.

        The change is attempted and then undone whatever the outcome, so
        the spreadsheet's contents, values and ``changed`` flag are the same
        before and after the call.

        Raises:
            InvalidNameError: If *name* is not a valid cell name.
        """
        name = self._check_name(name)
        previous = self._cells.get(name)
        previous_dependees = list(self._graph.dependees(name))
        previous_order = list(self._cells)
        was_changed = self._changed

        try:
            self.set_contents(name, content)
        except (FormulaFormatError, CircularDependencyError) as exc:
            return DryRunResult(False, exc)

        self._graph.replace_dependees(name, previous_dependees)
        if previous is None:
            self._cells.pop(name, None)
        else:
            reinserted = name not in self._cells
            self._cells[name] = previous
            if reinserted:
                self._cells = {n: self._cells[n] for n in previous_order}
        self._recalculate(self._graph.recalculation_order(name))
        self._changed = was_changed
        return DryRunResult(True)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_xml(self) -> bytes:
        """Serialize every non-empty cell into document bytes."""
        if not self.version or not self.version.strip():
            raise SpreadsheetReadWriteError("Version cannot be empty")
        records = ((cell.name, cell.serialized_contents()) for cell in self._cells.values())
        return persistence.render_document(self.version, records)

    def save(self, path: str | Path) -> Path:
        """Write the spreadsheet to *path* (``.ss`` appended if missing).

        Returns:
            The path actually written.

        Raises:
            SpreadsheetReadWriteError: If the version is empty or the file
                cannot be written.
        """
        target = persistence.write_document(path, self.to_xml())
        self._changed = False
        logger.debug("Saved %d cells to %s", len(self._cells), target)
        return target

    def load(self, path: str | Path) -> str:
        """Replace this spreadsheet's cells with those saved at *path*.

        Returns:
            The document's version attribute.
        """
        return self.load_xml(persistence.read_document(path))

    def load_xml(self, data: str | bytes) -> str:
        """Replace this spreadsheet's cells with those in *data*.

        Records are replayed through ``set_contents`` in document order.
        Loading is all-or-nothing: on any failure the spreadsheet keeps its
        previous state.

        Returns:
            The document's version attribute.

        Raises:
            SpreadsheetReadWriteError: If the document is malformed or any
                record is rejected.
        """
        version, records = persistence.parse_document(data)
        staged = Spreadsheet(self.is_valid, self.normalize, self.version)
        for name, contents in records:
            try:
                staged.set_contents(name, contents)
            except SpreadsheetError as exc:
                raise SpreadsheetReadWriteError(
                    f"Invalid cell record {name!r}: {exc}"
                ) from exc

        self._cells = staged._cells
        self._graph = staged._graph
        self._changed = False
        logger.debug("Loaded %d cells (document version %r)", len(self._cells), version)
        return version

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _check_name(self, name: str) -> str:
        return check_name(name, self.is_valid, self.normalize)

    def _is_valid_variable(self, name: str) -> bool:
        return is_cell_name(name) and self.is_valid(name)

    def _replace(self, name: str, cell: Cell | None, dependees: tuple[str, ...]) -> set[str]:
        """Swap in new contents for *name* and recalculate.

        The cell's old dependee edges are always dropped first.  If the new
        edges close a cycle they are rolled back before re-raising.
        """
        previous_dependees = list(self._graph.dependees(name))
        self._graph.replace_dependees(name, dependees)
        try:
            order = self._graph.recalculation_order(name)
        except CircularDependencyError as exc:
            self._graph.replace_dependees(name, previous_dependees)
            logger.debug("Rejected %s: %s", name, exc)
            raise

        if cell is None:
            self._cells.pop(name, None)
        else:
            self._cells[name] = cell
        self._changed = True
        self._recalculate(order)
        return set(order)

    def _recalculate(self, order: list[str]) -> None:
        """Re-evaluate the formula cells among *order*, in that order."""
        for name in order:
            cell = self._cells.get(name)
            if cell is not None and cell.is_formula:
                cell.value = cell.contents.evaluate(self.lookup)
