from __future__ import annotations

from pathlib import Path

from student_mover.cli import main as cli_main
from student_mover.store.workbook import read_workbook_grids

"""End-to-end runs against a real .xlsx roster (workbook store).

Reference date 2024-06-01: Alice (10) moves Young WS -> WS, Cara (13) skips
WS and moves to Young Victor, Eve (24) has outgrown every band and stays.
"""


def test_analysis_leaves_workbook_untouched(write_config: Path, roster_workbook: Path, capsys):
    before = read_workbook_grids(roster_workbook)

    code = cli_main([])

    out = capsys.readouterr().out
    assert code == 0
    assert "INFO move: Alice (Age 10): Young WS -> WS" in out
    assert "INFO move: Cara (Age 13): Young WS -> Young Victor" in out
    assert "Eve" not in out
    assert "SUMMARY proposed=2 moved=0 failed=0 renumbered=0" in out
    assert read_workbook_grids(roster_workbook) == before


def test_execute_then_revert(write_config: Path, roster_workbook: Path, temp_workdir: Path, capsys):
    code = cli_main(["--execute", "--yes"])
    out = capsys.readouterr().out
    assert code == 0
    assert "SUMMARY proposed=2 moved=2 failed=0 renumbered=3" in out

    grids = read_workbook_grids(roster_workbook)
    assert grids["Young WS"][2:] == [["1", "Ben", "2017-01-01"]]
    assert grids["WS"][1:] == [["1", "Dan", "2014-01-01"], ["2", "Alice", "2014-03-10", "a"]]
    assert grids["Young Victor"][1:] == [["1", "Cara", "2011-05-01"]]
    assert grids["ALL STUDENTS"] == [["Name", "DOB"], ["Zed", "01/01/2000"]]

    # 2 回目は移動対象なし
    assert cli_main([]) == 0
    assert "SUMMARY proposed=0 moved=0" in capsys.readouterr().out

    records = sorted((temp_workdir / "logs").glob("execution-*.json"))
    assert len(records) == 1
    code = cli_main(["--revert", str(records[0])])
    out = capsys.readouterr().out
    assert code == 0
    assert "SUMMARY proposed=2 moved=2 failed=0 renumbered=1" in out

    grids = read_workbook_grids(roster_workbook)
    assert [row[:2] for row in grids["Young WS"][2:]] == [["1", "Ben"], ["2", "Alice"], ["3", "Cara"]]
    assert grids["WS"][1:] == [["1", "Dan", "2014-01-01"]]
    assert grids["Young Victor"] == [["#", "Student Name", "DOB"]]
