"""Project-level configuration and scaffolding.

A project is the directory holding one or more saved documents.  Its
optional ``spreadcore.yaml`` configures how documents are opened and
saved, and whether events are logged.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import yaml

from spreadcore.names import accept_all, grid_cell_name, identity, normalize_upper
from spreadcore.spreadsheet import DEFAULT_VERSION, Spreadsheet

CONFIG_FILENAME = "spreadcore.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "version": DEFAULT_VERSION,
    "normalize": "upper",  # upper | lower | none
    "name_pattern": None,  # extra regex a normalized name must fully match
    "grid_only": False,  # restrict names to A1 .. Z99
    "logging_enabled": True,
    "logging_fsync": False,
    "logging_tail_bytes": 2_097_152,  # 2 MB
}

DEFAULT_CONFIG_YAML = """\
# spreadcore project config
version: "{version}"
normalize: upper
# name_pattern: "[A-J][0-9]+"
grid_only: false
logging_enabled: true
"""

_NORMALIZERS = {
    "upper": normalize_upper,
    "lower": str.lower,
    "none": identity,
}


def load_project_config(project_dir: Path) -> dict[str, Any]:
    """Load project configuration from ``spreadcore.yaml``, with defaults.

    Args:
        project_dir: Directory containing the config file.

    Returns:
        Merged configuration dict.

    Raises:
        ValueError: If the file is not a mapping or holds an unknown
            ``normalize`` setting or an invalid ``name_pattern``.
    """
    config = dict(DEFAULT_CONFIG)
    config_path = project_dir / CONFIG_FILENAME
    if config_path.exists():
        user_config = yaml.safe_load(config_path.read_text()) or {}
        if not isinstance(user_config, dict):
            raise ValueError(f"{config_path} must contain a mapping")
        config.update(user_config)

    config["version"] = str(config["version"])
    normalize = str(config.get("normalize") or "none").lower()
    if normalize not in _NORMALIZERS:
        raise ValueError(
            f"Unknown normalize setting {normalize!r}; expected one of {sorted(_NORMALIZERS)}"
        )
    config["normalize"] = normalize

    pattern = config.get("name_pattern")
    if pattern is not None:
        try:
            re.compile(pattern)
        except re.error as exc:
            raise ValueError(f"Invalid name_pattern {pattern!r}: {exc}") from exc
    return config


def name_validator(config: dict[str, Any]):
    """Build the validity predicate described by *config*."""
    pattern = config.get("name_pattern")
    grid_only = bool(config.get("grid_only"))
    if pattern is None and not grid_only:
        return accept_all

    compiled = re.compile(pattern) if pattern is not None else None

    def is_valid(name: str) -> bool:
        if grid_only and not grid_cell_name(name):
            return False
        return compiled is None or compiled.fullmatch(name) is not None

    return is_valid


def build_spreadsheet(config: dict[str, Any]) -> Spreadsheet:
    """Create an empty spreadsheet configured by *config*."""
    return Spreadsheet(
        is_valid=name_validator(config),
        normalize=_NORMALIZERS[config["normalize"]],
        version=config["version"],
    )


def open_document(path: Path) -> Spreadsheet:
    """Load the document at *path* using its project's configuration."""
    config = load_project_config(path.parent)
    sheet = build_spreadsheet(config)
    sheet.load(path)
    return sheet


def scaffold_project(document: Path) -> Path:
    """Create an empty document, and a default config next to it if absent.

    Args:
        document: Document path; ``.ss`` is appended if missing.

    Returns:
        Path of the created document.

    Raises:
        FileExistsError: If the document already exists.
    """
    from spreadcore.persistence import document_path

    target = document_path(document).resolve()
    if target.exists():
        raise FileExistsError(f"{target} already exists")
    target.parent.mkdir(parents=True, exist_ok=True)

    config_path = target.parent / CONFIG_FILENAME
    if not config_path.exists():
        config_path.write_text(DEFAULT_CONFIG_YAML.format(version=DEFAULT_VERSION))

    sheet = build_spreadsheet(load_project_config(target.parent))
    return sheet.save(target)
