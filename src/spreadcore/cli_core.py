"""Command-line interface for spreadcore documents."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click

from spreadcore import __version__
from spreadcore.cells import format_number
from spreadcore.errors import SpreadsheetError
from spreadcore.formulas import Formula, FormulaError
from spreadcore.logging import (
    EventLevel,
    EventType,
    emit,
    emit_error,
    emit_info,
    error_code_for,
    make_cell_event,
    set_project_dir,
)
from spreadcore.persistence import document_path

_EDIT_SETTINGS = {"ignore_unknown_options": True}


@click.group()
@click.version_option(version=__version__, prog_name="spreadcore")
def main() -> None:
    """spreadcore -- spreadsheet computation engine.

    Cells hold text, numbers or formulas (``=A1*2``); every edit
    recalculates the cells that depend on it.
    """


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


def _display(value: Any) -> str:
    if isinstance(value, float):
        return format_number(value)
    if isinstance(value, Formula):
        return f"={value}"
    if isinstance(value, FormulaError):
        return value.reason
    return str(value)


def _open(path: str):
    """Resolve a document path, configure logging, and load it."""
    from spreadcore.project import open_document

    doc = document_path(path)
    set_project_dir(doc.parent)
    try:
        sheet = open_document(doc)
    except (SpreadsheetError, ValueError) as e:
        emit_error(
            EventType.document_load_failed,
            str(e),
            {"document": str(doc)},
            error_code=error_code_for(e),
        )
        raise click.ClickException(str(e))
    emit_info(
        EventType.document_loaded,
        f"Loaded {len(sheet.non_empty_names())} cells",
        {"document": str(doc), "version": sheet.version},
    )
    return doc, sheet


def _cell_record(sheet, name: str) -> dict[str, str]:
    return {
        "name": name,
        "contents": _display(sheet.get_contents(name)),
        "value": _display(sheet.get_value(name)),
    }


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@main.command()
@click.argument("path", type=click.Path())
def new(path: str) -> None:
    """Create an empty document at PATH (``.ss`` is appended if missing)."""
    from spreadcore.project import scaffold_project

    try:
        created = scaffold_project(Path(path))
    except (FileExistsError, SpreadsheetError, ValueError) as e:
        raise click.ClickException(str(e))
    set_project_dir(created.parent)
    emit_info(EventType.document_created, "Created document", {"document": str(created)})
    click.echo(f"Created document at {created}")


@main.command()
@click.argument("path", type=click.Path())
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def show(path: str, as_json: bool) -> None:
    """List every non-empty cell of the document at PATH."""
    _, sheet = _open(path)
    records = [_cell_record(sheet, name) for name in sheet.non_empty_names()]
    if as_json:
        click.echo(json.dumps(records, indent=2))
        return
    if not records:
        click.echo("Document is empty.")
        return
    for r in records:
        click.echo(f"  {r['name']:8s} {r['contents']:30s} {r['value']}")


@main.command()
@click.argument("path", type=click.Path())
@click.argument("name")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def get(path: str, name: str, as_json: bool) -> None:
    """Print the contents and value of cell NAME."""
    _, sheet = _open(path)
    try:
        record = _cell_record(sheet, name)
    except SpreadsheetError as e:
        raise click.ClickException(str(e))
    record["name"] = sheet.normalize(name)
    if as_json:
        click.echo(json.dumps(record, indent=2))
    else:
        click.echo(f"contents: {record['contents']}")
        click.echo(f"value:    {record['value']}")


# ---------------------------------------------------------------------------
# Editing
# ---------------------------------------------------------------------------


@main.command("set", context_settings=_EDIT_SETTINGS)
@click.argument("path", type=click.Path())
@click.argument("name")
@click.argument("content")
def set_cell(path: str, name: str, content: str) -> None:
    """Set cell NAME to CONTENT and save the document.

    CONTENT is a number, a formula starting with ``=``, or text.  An empty
    string clears the cell.
    """
    doc, sheet = _open(path)
    try:
        affected = sheet.set_contents(name, content)
    except SpreadsheetError as e:
        emit(
            make_cell_event(
                EventType.cell_rejected,
                EventLevel.error,
                str(e),
                document=str(doc),
                cell=name,
                contents=content,
                error_code=error_code_for(e),
            )
        )
        raise click.ClickException(str(e))

    try:
        sheet.save(doc)
    except SpreadsheetError as e:
        raise click.ClickException(str(e))

    recalculated = [n for n in sheet.cells_to_recalculate(name) if n in affected]
    emit(
        make_cell_event(
            EventType.cell_updated,
            EventLevel.info,
            "Cell updated",
            document=str(doc),
            cell=sheet.normalize(name),
            contents=content,
            recalculated=recalculated,
        )
    )
    emit_info(EventType.document_saved, "Saved document", {"document": str(doc)})
    click.echo(f"Updated {sheet.normalize(name)}; recalculated: {', '.join(recalculated)}")


@main.command(context_settings=_EDIT_SETTINGS)
@click.argument("path", type=click.Path())
@click.argument("name")
@click.argument("content")
def check(path: str, name: str, content: str) -> None:
    """Report whether setting NAME to CONTENT would succeed, without saving."""
    doc, sheet = _open(path)
    try:
        result = sheet.try_set_contents(name, content)
    except SpreadsheetError as e:
        raise click.ClickException(str(e))

    emit(
        make_cell_event(
            EventType.cell_checked,
            EventLevel.info if result.ok else EventLevel.warning,
            "ok" if result.ok else str(result.error),
            document=str(doc),
            cell=name,
            contents=content,
            error_code=None if result.ok else error_code_for(result.error),
        )
    )
    if not result.ok:
        raise click.ClickException(str(result.error))
    click.echo("ok")


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@main.command()
@click.argument("directory", type=click.Path(exists=True, file_okay=False), default=".")
@click.option("--limit", default=20, show_default=True, help="Maximum number of events.")
@click.option("--cell", default=None, help="Only events about this cell.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def events(directory: str, limit: int, cell: str | None, as_json: bool) -> None:
    """Show recent events logged in the project at DIRECTORY."""
    from spreadcore.logging import EventSink

    sink = EventSink(Path(directory))
    rows = sink.read_events(limit=limit, cell=cell)
    if as_json:
        click.echo(json.dumps(rows, indent=2))
        return
    if not rows:
        click.echo("No events.")
        return
    for e in rows:
        where = e.get("context", {}).get("cell", "")
        click.echo(f"{e.get('ts', '')}  {e.get('level', ''):7s} {e.get('event_type', ''):22s} {where:6s} {e.get('message', '')}")
