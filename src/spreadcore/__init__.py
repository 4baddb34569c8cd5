"""spreadcore -- spreadsheet computation engine.

Public API::

    from spreadcore import Spreadsheet, Formula, DependencyGraph
"""

from spreadcore.dependency_graph import DependencyGraph
from spreadcore.errors import (
    CircularDependencyError,
    InvalidNameError,
    SpreadsheetError,
    SpreadsheetReadWriteError,
)
from spreadcore.formulas import Formula, FormulaError, FormulaFormatError
from spreadcore.spreadsheet import Spreadsheet

__version__ = "0.3.0"

__all__ = [
    "CircularDependencyError",
    "DependencyGraph",
    "Formula",
    "FormulaError",
    "FormulaFormatError",
    "InvalidNameError",
    "Spreadsheet",
    "SpreadsheetError",
    "SpreadsheetReadWriteError",
    "__version__",
]
