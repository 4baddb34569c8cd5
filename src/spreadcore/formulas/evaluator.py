"""Two-stack infix evaluator for validated formula tokens.

Operands go on a value stack, ``+ - * / (`` on an operator stack.
Multiplication and division are applied as soon as their right operand
arrives; addition and subtraction wait until the next ``+``/``-``, a
closing parenthesis, or the end of the expression.  Each token is
processed once.

Both stacks are local to a call, so evaluation is reentrant.
"""

from __future__ import annotations

from typing import Callable, Iterable

from lark import Token

from spreadcore.formulas.errors import FormulaEvalError, FormulaRefError
from spreadcore.formulas.tokenizer import LPAREN, NUMBER, OPERATOR, RPAREN, VARIABLE


def _apply(op: str, left: float, right: float) -> float:
    if op == "+":
        return left + right
    if op == "-":
        return left - right
    if op == "*":
        return left * right
    if op == "/":
        if right == 0:
            raise ZeroDivisionError("Division by zero in formula")
        return left / right
    raise FormulaEvalError(f"Unknown operator: {op!r}")


def _resolve(token: Token, lookup: Callable[[str], float]) -> float:
    """Turn a number or variable token into a float."""
    if token.type == NUMBER:
        return float(token)
    name = str(token)
    try:
        return float(lookup(name))
    except Exception as exc:
        raise FormulaRefError(name) from exc


def evaluate_tokens(tokens: Iterable[Token], lookup: Callable[[str], float]) -> float:
    """Evaluate an infix token sequence.

    Args:
        tokens: Tokens produced by the formula tokenizer.
        lookup: Returns the value of a variable, or raises if it has none.

    Returns:
        The numeric result.

    Raises:
        FormulaRefError: If *lookup* fails for a variable.
        ZeroDivisionError: On division by exactly zero.
        FormulaEvalError: If the tokens do not form a complete expression.
    """
    values: list[float] = []
    ops: list[str] = []

    def top() -> str | None:
        return ops[-1] if ops else None

    def reduce_top() -> None:
        op = ops.pop()
        right = values.pop()
        left = values.pop()
        values.append(_apply(op, left, right))

    for token in tokens:
        kind = token.type
        if kind in (NUMBER, VARIABLE):
            value = _resolve(token, lookup)
            if top() in ("*", "/"):
                values.append(_apply(ops.pop(), values.pop(), value))
            else:
                values.append(value)
        elif kind == LPAREN:
            ops.append("(")
        elif kind == OPERATOR:
            op = str(token)
            if op in ("+", "-") and top() in ("+", "-"):
                reduce_top()
            ops.append(op)
        elif kind == RPAREN:
            if top() in ("+", "-"):
                reduce_top()
            if top() != "(":
                raise FormulaEvalError("Unbalanced ')' in expression")
            ops.pop()
            if top() in ("*", "/"):
                reduce_top()
        else:
            raise FormulaEvalError(f"Unexpected token {str(token)!r}")

    if len(ops) == 1 and len(values) == 2 and top() in ("+", "-"):
        reduce_top()

    if ops or len(values) != 1:
        raise FormulaEvalError("Incomplete expression")
    return values[0]
