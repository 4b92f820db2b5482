from __future__ import annotations

import json
import re
from pathlib import Path

from student_mover.logging.error_log import ErrorLogBuffer

"""Error log JSON Lines contract: fixed key set, UTC 'Z' timestamps, row -1 for sheet-level errors."""

EXPECTED_KEYS = {"timestamp", "sheet", "row", "error_type", "message"}


def test_error_log_lines_have_fixed_keys(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path)
    buf.add("Young WS", 4, "INVALID_DATE", "cannot parse DOB 'abc'")
    buf.add("Young Victor", -1, "NO_HEADER", "no row contains a DOB cell")
    path = buf.flush()

    for line in path.read_text(encoding="utf-8").splitlines():
        data = json.loads(line)
        assert set(data) == EXPECTED_KEYS
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?Z", data["timestamp"])
        assert re.fullmatch(r"[A-Z]+(_[A-Z]+)*", data["error_type"])
        assert isinstance(data["row"], int)


def test_sheet_level_errors_use_row_minus_one(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path)
    buf.add("Young Victor", -1, "NO_HEADER", "no row contains a DOB cell")
    data = json.loads(buf.flush().read_text(encoding="utf-8"))
    assert data["row"] == -1
