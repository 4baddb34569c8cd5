"""Cell-name validation and normalization."""

from __future__ import annotations

import re
from typing import Callable

from spreadcore.errors import InvalidNameError

NameValidator = Callable[[str], bool]
NameNormalizer = Callable[[str], str]

_CELL_NAME_RE = re.compile(r"[A-Za-z]+[0-9]+")

# Cells addressable in the 26 x 99 desktop grid: A1 .. Z99
_GRID_NAME_RE = re.compile(r"[A-Za-z][1-9][0-9]?")


def is_cell_name(name: object) -> bool:
    """True if *name* is one or more letters followed by one or more digits."""
    return isinstance(name, str) and _CELL_NAME_RE.fullmatch(name) is not None


def grid_cell_name(name: str) -> bool:
    """Validity predicate restricting names to the visible grid (A1 .. Z99)."""
    return _GRID_NAME_RE.fullmatch(name) is not None


def accept_all(name: str) -> bool:
    """Default validity predicate: imposes nothing beyond the name syntax."""
    return True


def normalize_upper(name: str) -> str:
    """Default normalizer: upper-case letters."""
    return name.upper()


def identity(name: str) -> str:
    """Normalizer that leaves names as written."""
    return name


def check_name(name: object, is_valid: NameValidator, normalize: NameNormalizer) -> str:
    """Validate and normalize a cell name.

    The name must match the letters-then-digits syntax both before and after
    normalization, and the normalized form must satisfy *is_valid*.

    Returns:
        The normalized name.

    Raises:
        InvalidNameError: If the name is missing or rejected.
    """
    if not is_cell_name(name):
        raise InvalidNameError(name)
    try:
        normalized = normalize(name)
        ok = is_cell_name(normalized) and is_valid(normalized)
    except Exception as exc:
        raise InvalidNameError(name) from exc
    if not ok:
        raise InvalidNameError(name)
    return normalized
