"""XML document format for saved spreadsheets.

Shape::

    <?xml version='1.0' encoding='utf-8'?>
    <spreadsheet version="1.0">
      <cell>
        <name>A1</name>
        <contents>=B1*2</contents>
      </cell>
    </spreadsheet>

One ``cell`` element per non-empty cell, in insertion order.  Formulas are
written as ``=`` + canonical text, numbers in their shortest round-tripping
form, text verbatim.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Iterable

from spreadcore.errors import SpreadsheetReadWriteError

SPREADSHEET_TAG = "spreadsheet"
VERSION_ATTR = "version"
CELL_TAG = "cell"
NAME_TAG = "name"
CONTENTS_TAG = "contents"

DOCUMENT_SUFFIX = ".ss"

# Characters outside the XML 1.0 Char production.
_XML_ILLEGAL_RE = re.compile(r"[^\t\n\r\x20-\uD7FF\uE000-\uFFFD\U00010000-\U0010FFFF]")


def document_path(path: str | Path) -> Path:
    """Return *path* with the ``.ss`` suffix appended when it is missing."""
    p = Path(path)
    if p.suffix.lower() != DOCUMENT_SUFFIX:
        p = p.with_name(p.name + DOCUMENT_SUFFIX)
    return p


def _check_xml_text(what: str, text: str) -> None:
    bad = _XML_ILLEGAL_RE.search(text)
    if bad is not None:
        raise SpreadsheetReadWriteError(
            f"Cannot save {what}: character {bad.group()!r} is not allowed in XML"
        )


def render_document(version: str, records: Iterable[tuple[str, str]]) -> bytes:
    """Serialize ``(name, contents)`` records into UTF-8 XML bytes.

    Carriage returns in contents are written as ``&#13;`` so they survive
    the parser's line-ending normalization.

    Raises:
        SpreadsheetReadWriteError: If the version or any contents holds a
            character XML 1.0 cannot represent.
    """
    _check_xml_text("version", version)
    root = ET.Element(SPREADSHEET_TAG, {VERSION_ATTR: version})
    for name, contents in records:
        _check_xml_text(f"cell {name}", contents)
        cell = ET.SubElement(root, CELL_TAG)
        ET.SubElement(cell, NAME_TAG).text = name
        ET.SubElement(cell, CONTENTS_TAG).text = contents
    ET.indent(root)
    data = ET.tostring(root, encoding="utf-8", xml_declaration=True) + b"\n"
    # Attribute values are already escaped, so a raw CR can only come from text.
    return data.replace(b"\r", b"&#13;")


def parse_document(data: str | bytes) -> tuple[str, list[tuple[str, str]]]:
    """Parse a document into its version and ``(name, contents)`` records.

    Raises:
        SpreadsheetReadWriteError: If the document is empty or malformed.
    """
    if not data or not data.strip():
        raise SpreadsheetReadWriteError("Spreadsheet document is empty")
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise SpreadsheetReadWriteError(f"Malformed spreadsheet document: {exc}") from exc

    if root.tag != SPREADSHEET_TAG:
        raise SpreadsheetReadWriteError(
            f"Expected <{SPREADSHEET_TAG}> root element, found <{root.tag}>"
        )
    version = root.get(VERSION_ATTR)
    if version is None:
        raise SpreadsheetReadWriteError("Spreadsheet document has no version attribute")

    records: list[tuple[str, str]] = []
    for i, cell in enumerate(root.iter(CELL_TAG)):
        name = cell.findtext(NAME_TAG)
        contents = cell.findtext(CONTENTS_TAG)
        if name is None or contents is None:
            raise SpreadsheetReadWriteError(
                f"Cell record {i} is missing its <{NAME_TAG}> or <{CONTENTS_TAG}> element"
            )
        records.append((name.strip(), contents))
    return version, records


def write_document(path: str | Path, data: bytes) -> Path:
    """Write serialized document bytes, returning the final path."""
    target = document_path(path)
    try:
        target.write_bytes(data)
    except OSError as exc:
        raise SpreadsheetReadWriteError(f"Could not save spreadsheet to {target}: {exc}") from exc
    return target


def read_document(path: str | Path) -> bytes:
    """Read raw document bytes from *path*."""
    p = Path(path)
    try:
        return p.read_bytes()
    except OSError as exc:
        raise SpreadsheetReadWriteError(f"Could not read spreadsheet from {p}: {exc}") from exc


def saved_version(path: str | Path) -> str:
    """Return the version attribute of the document stored at *path*."""
    version, _ = parse_document(read_document(path))
    return version
