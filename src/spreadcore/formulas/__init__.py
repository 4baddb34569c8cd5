"""Infix formula tokenizing, parsing and evaluation.

Public API::

    from spreadcore.formulas import Formula, FormulaError, tokenize
"""

from spreadcore.formulas.errors import (
    FormulaError,
    FormulaEvalError,
    FormulaFormatError,
    FormulaRefError,
)
from spreadcore.formulas.evaluator import evaluate_tokens
from spreadcore.formulas.formula import Formula, parse
from spreadcore.formulas.tokenizer import tokenize

__all__ = [
    "Formula",
    "FormulaError",
    "FormulaEvalError",
    "FormulaFormatError",
    "FormulaRefError",
    "evaluate_tokens",
    "parse",
    "tokenize",
]
