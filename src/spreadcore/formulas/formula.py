"""Immutable, validated infix formulas.

A formula is written in standard infix notation over non-negative
floating-point literals, variables (letters followed by digits),
parentheses and the operators ``+ - * /``.  Construction tokenizes and
validates the text; a formula that exists is always syntactically valid.
"""

from __future__ import annotations

from typing import Callable

from lark import Token

from spreadcore.formulas.errors import (
    FormulaError,
    FormulaEvalError,
    FormulaFormatError,
    FormulaRefError,
)
from spreadcore.formulas.evaluator import evaluate_tokens
from spreadcore.formulas.tokenizer import (
    INVALID,
    LPAREN,
    NUMBER,
    OPERATOR,
    RPAREN,
    VARIABLE,
    is_value,
    tokenize,
)

Lookup = Callable[[str], float]


def _validate(tokens: list[Token]) -> None:
    """Check the token sequence against the formula grammar.

    Raises:
        FormulaFormatError: On the first rule violation.
    """
    if not tokens:
        raise FormulaFormatError("Formula expression cannot be empty.")

    opened = 0
    closed = 0
    previous: Token | None = None
    last = len(tokens) - 1

    for i, token in enumerate(tokens):
        kind = token.type
        if kind == INVALID:
            raise FormulaFormatError(
                f"Invalid token {str(token)!r}: expected a number, variable, operator or parenthesis.",
                position=i,
            )
        if i == 0 and not (is_value(token) or kind == LPAREN):
            raise FormulaFormatError(
                "Formula must begin with '(', a variable or a number.", position=i
            )
        if i == last and not (is_value(token) or kind == RPAREN):
            raise FormulaFormatError(
                "Formula must end with ')', a variable or a number.", position=i
            )

        if kind == LPAREN:
            opened += 1
        elif kind == RPAREN:
            closed += 1
        if closed > opened:
            raise FormulaFormatError(
                "Formula has more closing than opening parentheses at this point.",
                position=i,
            )

        if previous is not None:
            if previous.type in (LPAREN, OPERATOR) and not (is_value(token) or kind == LPAREN):
                raise FormulaFormatError(
                    "An opening parenthesis or operator must be followed by '(', a number or a variable.",
                    position=i,
                )
            if (is_value(previous) or previous.type == RPAREN) and kind not in (RPAREN, OPERATOR):
                raise FormulaFormatError(
                    "A number, variable or ')' must be followed by ')' or an operator.",
                    position=i,
                )
        previous = token

    if opened != closed:
        raise FormulaFormatError(
            "Formula must contain the same number of opening and closing parentheses."
        )


class Formula:
    """A syntactically valid infix formula.

    Usage::

        f = Formula("x1 + 2 * y2", normalize=str.upper)
        f.variables            # ("X1", "Y2")
        str(f)                 # "X1+2*Y2"
        f.evaluate(lookup)     # float or FormulaError

    Two formulas are equal when they consist of the same tokens in the same
    order; numeric tokens compare by value, so ``2.0`` equals ``2.000``.

    Args:
        text: Formula text without the leading ``=``.
        normalize: Applied to every variable token before validation.
        is_valid: Extra predicate every normalized variable must satisfy.

    Raises:
        FormulaFormatError: If the text is empty or syntactically invalid.
    """

    __slots__ = ("_tokens", "_text", "_key")

    def __init__(
        self,
        text: str,
        normalize: Callable[[str], str] | None = None,
        is_valid: Callable[[str], bool] | None = None,
    ) -> None:
        if text is None or not text.strip():
            raise FormulaFormatError("Formula expression cannot be empty.")

        tokens = list(tokenize(text))
        _validate(tokens)

        if normalize is not None or is_valid is not None:
            tokens = [self._check_variable(t, i, normalize, is_valid) for i, t in enumerate(tokens)]

        self._tokens: tuple[Token, ...] = tuple(tokens)
        self._text = "".join(self._tokens)
        self._key = tuple(float(t) if t.type == NUMBER else str(t) for t in self._tokens)

    @staticmethod
    def _check_variable(
        token: Token,
        position: int,
        normalize: Callable[[str], str] | None,
        is_valid: Callable[[str], bool] | None,
    ) -> Token:
        if token.type != VARIABLE:
            return token
        name = normalize(str(token)) if normalize is not None else str(token)
        if is_valid is not None and not is_valid(name):
            raise FormulaFormatError(f"Variable {name!r} is not a valid cell name.", position=position)
        return token.update(value=name)

    @property
    def tokens(self) -> tuple[Token, ...]:
        """The validated token sequence."""
        return self._tokens

    @property
    def variables(self) -> tuple[str, ...]:
        """Distinct variables in order of first occurrence."""
        seen: dict[str, None] = {}
        for token in self._tokens:
            if token.type == VARIABLE:
                seen.setdefault(str(token), None)
        return tuple(seen)

    def evaluate(self, lookup: Lookup) -> float | FormulaError:
        """Evaluate the formula, resolving variables through *lookup*.

        *lookup* returns a variable's numeric value or raises if it has
        none.  This method never raises: every failure is reported as a
        ``FormulaError`` value.
        """
        try:
            return evaluate_tokens(self._tokens, lookup)
        except FormulaRefError as exc:
            return FormulaError(f"#REF: Cannot find a value for variable {exc.ref_name}.")
        except ZeroDivisionError:
            return FormulaError("#DIV/0: Cannot divide by zero.")
        except (FormulaEvalError, IndexError):
            return FormulaError("#VALUE: Cannot evaluate an empty or incomplete expression.")
        except Exception as exc:  # noqa: BLE001
            return FormulaError(f"#ERROR: Cannot evaluate expression ({exc}).")

    def __str__(self) -> str:
        return self._text

    def __repr__(self) -> str:
        return f"Formula({self._text!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Formula):
            return NotImplemented
        return self._key == other._key

    def __hash__(self) -> int:
        return hash(self._key)


def parse(text: str, normalize: Callable[[str], str] | None = None) -> Formula:
    """Parse *text* into a ``Formula`` (alias for the constructor)."""
    return Formula(text, normalize=normalize)

