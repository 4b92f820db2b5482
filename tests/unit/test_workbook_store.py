from __future__ import annotations

from pathlib import Path

import pytest

from student_mover.store.access import RemoteAccessError, UpdateCell
from student_mover.store.workbook import WorkbookSheetAccess, read_workbook_grids


def test_reads_every_sheet_as_text(roster_workbook: Path):
    store = WorkbookSheetAccess(roster_workbook)
    titles = [s.title for s in store.list_worksheets(str(roster_workbook))]
    assert titles == ["ALL STUDENTS", "Young WS", "WS", "Young Victor", "Victor"]
    grid = store.read_grid(str(roster_workbook), "Young WS")
    assert grid[0] == ["Young WS roster"]
    assert grid[2] == ["1", "Alice", "2014-03-10", "a"]
    # 末尾の空セルは落とす
    assert grid[3] == ["2", "Ben", "2017-01-01"]


def test_mutations_are_persisted(roster_workbook: Path):
    store = WorkbookSheetAccess(roster_workbook)
    sid = str(roster_workbook)
    store.append_row(sid, "Young Victor", ["1", "Cara", "2011-05-01"])
    store.batch_mutate(sid, [UpdateCell(store.list_worksheets(sid)[2].sheet_id, 1, 3, "note")])

    grids = read_workbook_grids(roster_workbook)
    assert grids["Young Victor"][1] == ["1", "Cara", "2011-05-01"]
    assert grids["WS"][1] == ["1", "Dan", "2014-01-01", "note"]


def test_missing_workbook(temp_workdir: Path):
    with pytest.raises(RemoteAccessError) as exc:
        WorkbookSheetAccess(temp_workdir / "data" / "nope.xlsx")
    assert exc.value.status_code == 404
