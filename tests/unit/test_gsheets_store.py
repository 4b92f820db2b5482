from __future__ import annotations

from unittest.mock import MagicMock, patch

import gspread
import pytest

from student_mover.store.access import DeleteRows, RemoteAccessError, UpdateCell, UpdateRow
from student_mover.store.gsheets import GoogleSheetAccess, build_batch_requests, client_from_service_account


def _api_error(status: int) -> gspread.exceptions.APIError:
    response = MagicMock()
    response.status_code = status
    response.json.return_value = {"error": {"code": status, "message": "denied", "status": "PERMISSION_DENIED"}}
    return gspread.exceptions.APIError(response)


def test_build_batch_requests():
    body = build_batch_requests([
        DeleteRows(7, 4, 5),
        UpdateCell(7, 2, 0, "3"),
        UpdateRow(8, 1, ("007", "Ann")),
    ])
    assert body[0] == {
        "deleteDimension": {"range": {"sheetId": 7, "dimension": "ROWS", "startIndex": 4, "endIndex": 5}}
    }
    assert body[1]["updateCells"]["start"] == {"sheetId": 7, "rowIndex": 2, "columnIndex": 0}
    assert body[1]["updateCells"]["rows"] == [{"values": [{"userEnteredValue": {"numberValue": 3}}]}]
    # 生徒データは文字列のまま (先頭ゼロを保持)
    assert body[2]["updateCells"]["rows"] == [{"values": [
        {"userEnteredValue": {"stringValue": "007"}},
        {"userEnteredValue": {"stringValue": "Ann"}},
    ]}]
    assert body[2]["updateCells"]["fields"] == "userEnteredValue"


def test_reads_through_gspread():
    ws = MagicMock(id=11, title="WS")
    ws.get_all_values.return_value = [["#", "Name", "DOB"], ["1", "Dan", "2014-01-01"]]
    sh = MagicMock()
    sh.worksheets.return_value = [ws]
    sh.worksheet.return_value = ws
    client = MagicMock()
    client.open_by_key.return_value = sh

    store = GoogleSheetAccess(client)
    infos = store.list_worksheets("abc")
    grid = store.read_grid("abc", "WS")

    assert [(i.sheet_id, i.title) for i in infos] == [(11, "WS")]
    assert grid[1] == ["1", "Dan", "2014-01-01"]
    client.open_by_key.assert_called_once_with("abc")


def test_append_and_batch():
    ws = MagicMock()
    sh = MagicMock()
    sh.worksheet.return_value = ws
    client = MagicMock()
    client.open_by_key.return_value = sh
    store = GoogleSheetAccess(client)

    store.append_row("abc", "WS", ("1", "Ann"))
    store.batch_mutate("abc", [DeleteRows(0, 1, 2)])
    store.batch_mutate("abc", [])

    ws.append_row.assert_called_once_with(["1", "Ann"], value_input_option="RAW")
    sh.batch_update.assert_called_once()


def test_student_values_are_written_verbatim_on_both_paths():
    # 先頭ゼロや "=" を Sheets に解釈させない
    ws = MagicMock()
    sh = MagicMock()
    sh.worksheet.return_value = ws
    client = MagicMock()
    client.open_by_key.return_value = sh
    store = GoogleSheetAccess(client)
    values = ("0123", "=Ann", "03/10/2014")

    store.append_row("abc", "WS", values)
    store.batch_mutate("abc", [UpdateRow(5, 2, values)])

    ws.append_row.assert_called_once_with(list(values), value_input_option="RAW")
    body = sh.batch_update.call_args.args[0]
    cells = body["requests"][0]["updateCells"]["rows"][0]["values"]
    assert cells == [{"userEnteredValue": {"stringValue": v}} for v in values]


def test_not_found_maps_to_404():
    client = MagicMock()
    client.open_by_key.side_effect = gspread.exceptions.SpreadsheetNotFound()
    with pytest.raises(RemoteAccessError) as exc:
        GoogleSheetAccess(client).list_worksheets("missing")
    assert exc.value.status_code == 404


def test_api_error_keeps_status():
    sh = MagicMock()
    sh.batch_update.side_effect = _api_error(403)
    client = MagicMock()
    client.open_by_key.return_value = sh
    with pytest.raises(RemoteAccessError) as exc:
        GoogleSheetAccess(client).batch_mutate("abc", [DeleteRows(0, 1, 2)])
    assert exc.value.status_code == 403
    assert "Editor" in exc.value.describe()


def test_client_requires_credentials(monkeypatch):
    monkeypatch.delenv("GOOGLE_SERVICE_ACCOUNT_JSON", raising=False)
    monkeypatch.delenv("GOOGLE_SERVICE_ACCOUNT_FILE", raising=False)
    with pytest.raises(RemoteAccessError) as exc:
        client_from_service_account(None)
    assert exc.value.status_code == 401
    with pytest.raises(RemoteAccessError, match="not found"):
        client_from_service_account("/nonexistent/sa.json")


def test_client_from_file(monkeypatch, tmp_path):
    monkeypatch.delenv("GOOGLE_SERVICE_ACCOUNT_JSON", raising=False)
    monkeypatch.delenv("GOOGLE_SERVICE_ACCOUNT_FILE", raising=False)
    key = tmp_path / "sa.json"
    key.write_text("{}", encoding="utf-8")
    with patch("student_mover.store.gsheets.Credentials") as creds, \
         patch("student_mover.store.gsheets.gspread.authorize") as authorize:
        client_from_service_account(str(key))
    creds.from_service_account_file.assert_called_once()
    authorize.assert_called_once_with(creds.from_service_account_file.return_value)
