# Shared pytest fixtures
from __future__ import annotations

import tempfile
from datetime import date
from pathlib import Path

import pandas as pd
import pytest

from student_mover.logging.init import reset_logging
from student_mover.models.bands import BandConfiguration
from student_mover.store.memory import InMemorySheetAccess

REFERENCE_DATE = date(2024, 6, 1)


@pytest.fixture(autouse=True)
def _clean_logging():
    # handler は sys.stdout を掴むので capsys ごとに作り直す
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        monkeypatch.delenv("GOOGLE_SERVICE_ACCOUNT_FILE", raising=False)
        monkeypatch.delenv("GOOGLE_SERVICE_ACCOUNT_JSON", raising=False)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """spreadsheet_id: data/roster.xlsx
store:
  kind: workbook
timezone: UTC
reference_date: 2024-06-01
batch_size: 100
excluded_sheets:
  - ALL STUDENTS
  - NEW STUDENTS
  - Sheet4
bands:
  - label: Young WS
    pattern: "young ws|young w/"
    min_age: 6
    max_age: 8
  - label: WS
    pattern: "^ws(?!.*young)"
    min_age: 9
    max_age: 11
  - label: Young Victor
    pattern: "young victor"
    min_age: 12
    max_age: 14
  - label: Victor
    pattern: "^victor(?!.*young)"
    min_age: 15
    max_age: 17
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "mover.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


def make_roster() -> dict[str, list[list[str]]]:
    """Four band worksheets plus one administrative sheet.

    On 2024-06-01: Alice (10) outgrew Young WS, Cara (13) outgrew both Young WS
    and WS, Eve (24) is past every band and stays.
    """
    return {
        "ALL STUDENTS": [
            ["Name", "DOB"],
            ["Zed", "01/01/2000"],
        ],
        "Young WS": [
            ["Young WS roster"],
            ["#", "Name", "DOB", "Notes"],
            ["1", "Alice", "2014-03-10", "a"],
            ["2", "Ben", "2017-01-01", ""],
            ["3", "Cara", "2011-05-01", "c"],
        ],
        "WS": [
            ["#", "Name", "DOB", "Notes"],
            ["1", "Dan", "2014-01-01", ""],
        ],
        "Young Victor": [
            ["#", "Student Name", "DOB"],
        ],
        "Victor": [
            ["#", "Name", "DOB"],
            ["1", "Eve", "2000-01-01"],
        ],
    }


@pytest.fixture()
def roster() -> dict[str, list[list[str]]]:
    return make_roster()


@pytest.fixture()
def memory_store(roster) -> InMemorySheetAccess:
    return InMemorySheetAccess(roster)


@pytest.fixture()
def band_configuration() -> BandConfiguration:
    return BandConfiguration()


def write_roster_workbook(path: Path, sheets: dict[str, list[list[str]]]) -> Path:
    """Create a real .xlsx file with one worksheet per entry."""
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for sheet_name, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=sheet_name, header=False, index=False)
    return path


@pytest.fixture()
def roster_workbook(temp_workdir: Path, roster) -> Path:
    return write_roster_workbook(temp_workdir / "data" / "roster.xlsx", roster)


@pytest.fixture()
def workbook_writer():
    return write_roster_workbook
