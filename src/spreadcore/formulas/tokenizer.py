"""Lark-based lexer that splits formula text into classified tokens.

Token kinds (``Token.type``):

- ``LPAREN`` / ``RPAREN``: ``(`` and ``)``
- ``OPERATOR``: one of ``+ - * /``
- ``VARIABLE``: one or more letters followed by one or more digits
- ``NUMBER``: unsigned integer, decimal or exponent literal
- ``INVALID``: any other run of non-whitespace characters

Whitespace separates tokens and is never emitted.
"""

from __future__ import annotations

from typing import Iterator

from lark import Lark, Token

LPAREN = "LPAREN"
RPAREN = "RPAREN"
OPERATOR = "OPERATOR"
VARIABLE = "VARIABLE"
NUMBER = "NUMBER"
INVALID = "INVALID"

# Every valid kind outranks INVALID, so INVALID only claims what nothing
# else matches at the current position.
GRAMMAR = r"""
start: (LPAREN | RPAREN | OPERATOR | VARIABLE | NUMBER | INVALID)*

LPAREN.2: "("
RPAREN.2: ")"
OPERATOR.2: /[+\-*\/]/
VARIABLE.2: /[A-Za-z]+[0-9]+/
NUMBER.2: /(?:[0-9]+\.[0-9]*|[0-9]*\.[0-9]+|[0-9]+)(?:[eE][+-]?[0-9]+)?/
INVALID: /[^\s()+\-*\/]+/

WS: /\s+/
%ignore WS
"""

_lexer = Lark(GRAMMAR, parser=None, lexer="basic")


def tokenize(text: str) -> Iterator[Token]:
    """Lazily yield the tokens of *text*.

    Each call starts a fresh scan, so the sequence can be restarted by
    calling again with the same text.

    Args:
        text: Formula text without the leading ``=`` marker.

    Returns:
        An iterator of lark ``Token`` objects (``str`` subclasses).
    """
    return _lexer.lex(text)


def is_value(token: Token) -> bool:
    """True for number and variable tokens."""
    return token.type in (NUMBER, VARIABLE)
