from __future__ import annotations

from student_mover.models.worksheet import WorksheetHandle
from student_mover.services.renumber import plan_renumber, renumber_sequence_columns
from student_mover.store.access import UpdateCell
from student_mover.store.memory import InMemorySheetAccess

WS = WorksheetHandle("WS", 5)


def test_only_changed_cells_are_updated():
    grid = [
        ["#", "Name", "DOB"],
        ["1", "Ann", "2015-01-01"],
        ["7", "Bo", "2015-02-01"],
        ["", "Cy", "2015-03-01"],
    ]
    assert plan_renumber(grid, WS) == [
        UpdateCell(5, 2, 0, "2"),
        UpdateCell(5, 3, 0, "3"),
    ]


def test_blank_rows_do_not_consume_numbers():
    grid = [
        ["#", "Name", "DOB"],
        ["1", "Ann", "2015-01-01"],
        ["", "", ""],
        ["9", "", ""],
        ["3", "Bo", "2015-02-01"],
    ]
    assert plan_renumber(grid, WS) == [UpdateCell(5, 4, 0, "2")]


def test_rows_above_header_are_ignored():
    grid = [["Title", "x"], ["#", "Name", "DOB"], ["5", "Ann", "2015-01-01"]]
    assert plan_renumber(grid, WS) == [UpdateCell(5, 2, 0, "1")]


def test_dob_in_first_column_is_not_renumbered():
    grid = [["DOB", "Name"], ["2015-01-01", "Ann"]]
    assert plan_renumber(grid, WS) == []


def test_name_in_first_column_is_not_renumbered():
    grid = [["Name", "DOB"], ["Ann", "2015-01-01"]]
    assert plan_renumber(grid, WS) == []


def test_sheet_without_header_is_not_renumbered():
    assert plan_renumber([["a", "b"], ["c", "d"]], WS) == []


def test_renumber_skips_excluded_worksheets():
    access = InMemorySheetAccess({
        "ALL STUDENTS": [["#", "Name", "DOB"], ["4", "Ann", "2015-01-01"]],
        "WS": [["#", "Name", "DOB"], ["4", "Bo", "2015-01-01"]],
    })
    worksheets = [WorksheetHandle("ALL STUDENTS", 0, excluded=True), WorksheetHandle("WS", 1)]

    assert renumber_sequence_columns(access, "memory", worksheets) == 1

    grids = access.snapshot()
    assert grids["ALL STUDENTS"][1][0] == "4"
    assert grids["WS"][1][0] == "1"


def test_renumber_respects_batch_size():
    rows = [["#", "Name", "DOB"]] + [["x", f"S{i}", "2015-01-01"] for i in range(25)]
    access = InMemorySheetAccess({"WS": rows})

    count = renumber_sequence_columns(access, "memory", [WorksheetHandle("WS", 0)], batch_size=10)

    assert count == 25
    assert [len(b) for b in access.batch_calls()] == [10, 10, 5]
