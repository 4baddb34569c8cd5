"""Tests for Spreadsheet editing, recalculation and dry runs."""

from __future__ import annotations

import pytest

from spreadcore import (
    CircularDependencyError,
    Formula,
    FormulaError,
    FormulaFormatError,
    InvalidNameError,
    Spreadsheet,
)
from spreadcore.names import grid_cell_name
from spreadcore.spreadsheet import is_formula_text, parse_number


@pytest.fixture
def sheet() -> Spreadsheet:
    return Spreadsheet()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestParseNumber:
    @pytest.mark.parametrize(
        "text,expected",
        [("3", 3.0), ("-2.5", -2.5), (" 1e3 ", 1000.0), (".5", 0.5), ("7.", 7.0), ("+4", 4.0)],
    )
    def test_numbers(self, text: str, expected: float) -> None:
        assert parse_number(text) == expected

    @pytest.mark.parametrize("text", ["", "abc", "nan", "inf", "1_000", "1,5", "=1", "1 2", "1e400", "-1e400"])
    def test_not_numbers(self, text: str) -> None:
        assert parse_number(text) is None

    def test_formula_marker(self) -> None:
        assert is_formula_text("=A1")
        assert is_formula_text("  =1")
        assert not is_formula_text("a=b")


# ---------------------------------------------------------------------------
# Contents and values
# ---------------------------------------------------------------------------


class TestContents:
    def test_empty_sheet(self, sheet: Spreadsheet) -> None:
        assert sheet.non_empty_names() == []
        assert sheet.get_contents("A1") == ""
        assert sheet.get_value("A1") == ""
        assert not sheet.changed

    def test_number(self, sheet: Spreadsheet) -> None:
        assert sheet.set_contents("A1", "3") == {"A1"}
        assert sheet.get_contents("A1") == 3.0
        assert sheet.get_value("A1") == 3.0

    def test_text(self, sheet: Spreadsheet) -> None:
        sheet.set_contents("A1", "hello")
        assert sheet.get_contents("A1") == "hello"
        assert sheet.get_value("A1") == "hello"

    def test_formula(self, sheet: Spreadsheet) -> None:
        sheet.set_contents("A1", "2")
        sheet.set_contents("B1", "= a1 * 4")
        contents = sheet.get_contents("B1")
        assert isinstance(contents, Formula)
        assert str(contents) == "A1*4"
        assert sheet.get_value("B1") == 8.0

    def test_names_are_normalized(self, sheet: Spreadsheet) -> None:
        sheet.set_contents("a1", "1")
        assert sheet.get_value("A1") == 1.0
        assert sheet.non_empty_names() == ["A1"]

    def test_empty_text_clears(self, sheet: Spreadsheet) -> None:
        sheet.set_contents("A1", "x")
        sheet.set_contents("A1", "")
        assert sheet.non_empty_names() == []
        assert sheet.get_contents("A1") == ""

    def test_insertion_order(self, sheet: Spreadsheet) -> None:
        sheet.set_contents("C1", "1")
        sheet.set_contents("A1", "2")
        sheet.set_contents("C1", "3")
        assert sheet.non_empty_names() == ["C1", "A1"]

    def test_none_content(self, sheet: Spreadsheet) -> None:
        with pytest.raises(TypeError):
            sheet.set_contents("A1", None)

    @pytest.mark.parametrize("name", ["Z", "X_", "hello", "", None])
    def test_invalid_names(self, sheet: Spreadsheet, name) -> None:
        with pytest.raises(InvalidNameError):
            sheet.set_contents(name, "1")
        with pytest.raises(InvalidNameError):
            sheet.get_contents(name)
        with pytest.raises(InvalidNameError):
            sheet.get_value(name)

    def test_validity_predicate(self) -> None:
        sheet = Spreadsheet(is_valid=grid_cell_name)
        sheet.set_contents("A1", "1")
        with pytest.raises(InvalidNameError):
            sheet.set_contents("A100", "1")

    def test_formula_variable_must_be_valid(self) -> None:
        sheet = Spreadsheet(is_valid=grid_cell_name)
        with pytest.raises(FormulaFormatError):
            sheet.set_contents("A1", "=AA1+1")
        assert sheet.non_empty_names() == []

    def test_bad_formula_leaves_cell(self, sheet: Spreadsheet) -> None:
        sheet.set_contents("A1", "5")
        with pytest.raises(FormulaFormatError):
            sheet.set_contents("A1", "=1+")
        assert sheet.get_value("A1") == 5.0

    def test_typed_setters(self, sheet: Spreadsheet) -> None:
        sheet.set_number("A1", 2)
        sheet.set_text("B1", "=not a formula")
        sheet.set_formula("C1", sheet.parse_formula("a1+1"))
        assert sheet.get_contents("A1") == 2.0
        assert sheet.get_value("B1") == "=not a formula"
        assert sheet.get_value("C1") == 3.0

    def test_blank_text_setter_clears(self, sheet: Spreadsheet) -> None:
        sheet.set_text("A1", "x")
        sheet.set_text("A1", "   ")
        assert sheet.non_empty_names() == []

    def test_overflowing_literal_is_text(self, sheet: Spreadsheet) -> None:
        sheet.set_contents("A1", "1e400")
        assert sheet.get_value("A1") == "1e400"

    def test_set_number_rejects_non_finite(self, sheet: Spreadsheet) -> None:
        with pytest.raises(ValueError):
            sheet.set_number("A1", float("inf"))
        assert sheet.non_empty_names() == []

    def test_set_formula_normalizes_variables(self, sheet: Spreadsheet) -> None:
        sheet.set_contents("A1", "3")
        sheet.set_formula("B1", Formula("a1*2"))
        assert sheet.direct_dependents("A1") == ["B1"]
        assert sheet.set_contents("A1", "5") == {"A1", "B1"}
        assert sheet.get_value("B1") == 10.0

    def test_set_formula_self_reference_is_cycle(self, sheet: Spreadsheet) -> None:
        with pytest.raises(CircularDependencyError):
            sheet.set_formula("A1", Formula("a1+1"))
        assert sheet.non_empty_names() == []

    def test_set_formula_applies_validity(self) -> None:
        sheet = Spreadsheet(is_valid=grid_cell_name)
        with pytest.raises(FormulaFormatError):
            sheet.set_formula("A1", Formula("AA1+1"))


# ---------------------------------------------------------------------------
# Recalculation
# ---------------------------------------------------------------------------


class TestRecalculation:
    def test_propagation(self, sheet: Spreadsheet) -> None:
        sheet.set_contents("A1", "3")
        sheet.set_contents("B1", "=A1*2")
        sheet.set_contents("C1", "=B1+A1")
        assert sheet.set_contents("A1", "5") == {"A1", "B1", "C1"}
        assert sheet.get_value("B1") == 10.0
        assert sheet.get_value("C1") == 15.0

    def test_order(self, sheet: Spreadsheet) -> None:
        sheet.set_contents("B1", "=A1*2")
        sheet.set_contents("C1", "=B1+A1")
        order = sheet.cells_to_recalculate("A1")
        assert order[0] == "A1"
        assert order.index("B1") < order.index("C1")

    def test_direct_dependents(self, sheet: Spreadsheet) -> None:
        sheet.set_contents("B1", "=A1")
        sheet.set_contents("C1", "=A1+B1")
        assert sorted(sheet.direct_dependents("a1")) == ["B1", "C1"]
        assert sheet.direct_dependents("C1") == []

    def test_missing_variable_is_ref_error(self, sheet: Spreadsheet) -> None:
        sheet.set_contents("B1", "=A1+1")
        value = sheet.get_value("B1")
        assert isinstance(value, FormulaError)
        assert "A1" in value.reason
        sheet.set_contents("A1", "1")
        assert sheet.get_value("B1") == 2.0

    def test_text_variable_is_ref_error(self, sheet: Spreadsheet) -> None:
        sheet.set_contents("A1", "hello")
        sheet.set_contents("B1", "=A1")
        assert isinstance(sheet.get_value("B1"), FormulaError)

    def test_errors_propagate(self, sheet: Spreadsheet) -> None:
        sheet.set_contents("A1", "=1/0")
        sheet.set_contents("B1", "=A1+1")
        assert isinstance(sheet.get_value("A1"), FormulaError)
        assert isinstance(sheet.get_value("B1"), FormulaError)

    def test_clearing_dependee(self, sheet: Spreadsheet) -> None:
        sheet.set_contents("A1", "2")
        sheet.set_contents("B1", "=A1")
        assert sheet.set_contents("A1", "") == {"A1", "B1"}
        assert isinstance(sheet.get_value("B1"), FormulaError)

    def test_replacing_formula_drops_edges(self, sheet: Spreadsheet) -> None:
        sheet.set_contents("B1", "=A1")
        sheet.set_contents("B1", "=C1")
        assert sheet.direct_dependents("A1") == []
        assert sheet.direct_dependents("C1") == ["B1"]
        sheet.set_contents("B1", "7")
        assert sheet.direct_dependents("C1") == []


# ---------------------------------------------------------------------------
# Cycles
# ---------------------------------------------------------------------------


class TestCycles:
    def test_self_reference(self, sheet: Spreadsheet) -> None:
        with pytest.raises(CircularDependencyError):
            sheet.set_contents("A1", "=A1")
        assert sheet.non_empty_names() == []
        assert not sheet.changed

    def test_two_cell_cycle_leaves_sheet_unchanged(self, sheet: Spreadsheet) -> None:
        sheet.set_contents("A1", "=B1")
        sheet.set_contents("B1", "4")
        with pytest.raises(CircularDependencyError) as exc_info:
            sheet.set_contents("B1", "=A1*2")
        assert exc_info.value.cycle_path[0] == exc_info.value.cycle_path[-1] == "B1"
        assert sheet.get_contents("B1") == 4.0
        assert sheet.get_value("A1") == 4.0
        assert sheet.direct_dependents("A1") == []
        assert sheet.direct_dependents("B1") == ["A1"]

    def test_long_cycle(self, sheet: Spreadsheet) -> None:
        sheet.set_contents("B1", "=A1")
        sheet.set_contents("C1", "=B1")
        sheet.set_contents("D1", "=C1")
        with pytest.raises(CircularDependencyError, match="A1 -> B1 -> C1 -> D1 -> A1"):
            sheet.set_contents("A1", "=D1")
        assert sheet.get_contents("A1") == ""


# ---------------------------------------------------------------------------
# Changed flag
# ---------------------------------------------------------------------------


class TestChanged:
    def test_set_marks_changed(self, sheet: Spreadsheet) -> None:
        sheet.set_contents("A1", "1")
        assert sheet.changed

    def test_rejected_edit_does_not_mark(self, sheet: Spreadsheet) -> None:
        with pytest.raises(FormulaFormatError):
            sheet.set_contents("A1", "=(")
        assert not sheet.changed

    def test_save_clears(self, sheet: Spreadsheet, tmp_path) -> None:
        sheet.set_contents("A1", "1")
        sheet.save(tmp_path / "book")
        assert not sheet.changed


# ---------------------------------------------------------------------------
# Dry run
# ---------------------------------------------------------------------------


class TestTrySetContents:
    def test_ok_leaves_state(self, sheet: Spreadsheet) -> None:
        sheet.set_contents("A1", "3")
        sheet.set_contents("B1", "=A1*2")
        result = sheet.try_set_contents("A1", "10")
        assert result.ok and result.error is None
        assert sheet.get_value("A1") == 3.0
        assert sheet.get_value("B1") == 6.0

    def test_does_not_touch_changed(self, sheet: Spreadsheet, tmp_path) -> None:
        sheet.set_contents("A1", "3")
        sheet.save(tmp_path / "book")
        assert sheet.try_set_contents("A1", "4").ok
        assert not sheet.changed

    def test_new_cell_is_removed(self, sheet: Spreadsheet) -> None:
        assert sheet.try_set_contents("C1", "=A1+1").ok
        assert sheet.non_empty_names() == []
        assert sheet.direct_dependents("A1") == []

    def test_restores_order_of_cleared_cell(self, sheet: Spreadsheet) -> None:
        sheet.set_contents("A1", "1")
        sheet.set_contents("B1", "2")
        assert sheet.try_set_contents("A1", "").ok
        assert sheet.non_empty_names() == ["A1", "B1"]

    def test_restores_formula_edges(self, sheet: Spreadsheet) -> None:
        sheet.set_contents("B1", "=A1")
        assert sheet.try_set_contents("B1", "=C1").ok
        assert sheet.direct_dependents("A1") == ["B1"]
        assert sheet.direct_dependents("C1") == []

    def test_reports_cycle(self, sheet: Spreadsheet) -> None:
        sheet.set_contents("B1", "=A1")
        result = sheet.try_set_contents("A1", "=B1")
        assert not result.ok
        assert isinstance(result.error, CircularDependencyError)
        assert sheet.get_contents("A1") == ""

    def test_reports_format_error(self, sheet: Spreadsheet) -> None:
        result = sheet.try_set_contents("A1", "=1 +")
        assert not result.ok
        assert isinstance(result.error, FormulaFormatError)

    def test_invalid_name_raises(self, sheet: Spreadsheet) -> None:
        with pytest.raises(InvalidNameError):
            sheet.try_set_contents("nope", "1")
