from __future__ import annotations

import json
import logging
import os
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import gspread
from google.oauth2.service_account import Credentials

from student_mover.models.worksheet import Grid, SheetInfo

from .access import DeleteRows, MutationRequest, RemoteAccessError, TabularSheetAccess, UpdateCell, UpdateRow

"""Google Sheets store backed by gspread.

Authentication uses a service account (JSON key file or inline JSON in the
environment). Interactive OAuth flows are handled outside this package.
"""

__all__ = [
    "GoogleSheetAccess",
    "client_from_service_account",
    "build_batch_requests",
    "SCOPES",
]

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive.readonly",
]

ENV_KEY_FILE = "GOOGLE_SERVICE_ACCOUNT_FILE"
ENV_KEY_JSON = "GOOGLE_SERVICE_ACCOUNT_JSON"


def client_from_service_account(credentials_file: str | None = None) -> gspread.Client:
    """Build a gspread client.

    Resolution order: ``GOOGLE_SERVICE_ACCOUNT_JSON`` (inline JSON),
    ``GOOGLE_SERVICE_ACCOUNT_FILE``, then ``credentials_file`` from config.
    """
    inline = os.getenv(ENV_KEY_JSON)
    if inline:
        logger.debug("Initialising Google Sheets client using %s", ENV_KEY_JSON)
        try:
            info = json.loads(inline)
        except json.JSONDecodeError as e:
            raise RemoteAccessError(f"{ENV_KEY_JSON} is not valid JSON: {e}", status_code=401) from e
        creds = Credentials.from_service_account_info(info, scopes=SCOPES)
        return gspread.authorize(creds)

    path = os.getenv(ENV_KEY_FILE) or credentials_file
    if not path:
        raise RemoteAccessError(
            f"no service account credentials: set {ENV_KEY_FILE} or store.credentials_file",
            status_code=401,
        )
    if not Path(path).exists():
        raise RemoteAccessError(f"service account file not found: {path}", status_code=401)
    logger.debug("Initialising Google Sheets client using %s", path)
    creds = Credentials.from_service_account_file(path, scopes=SCOPES)
    return gspread.authorize(creds)


def _request_body(req: MutationRequest) -> dict[str, Any]:
    if isinstance(req, DeleteRows):
        return {
            "deleteDimension": {
                "range": {
                    "sheetId": req.worksheet_id,
                    "dimension": "ROWS",
                    "startIndex": req.start_index,
                    "endIndex": req.end_index,
                }
            }
        }
    if isinstance(req, UpdateCell):
        return {
            "updateCells": {
                "start": {
                    "sheetId": req.worksheet_id,
                    "rowIndex": req.row_index,
                    "columnIndex": req.column_index,
                },
                "rows": [{"values": [_cell_value(req.value, numeric=True)]}],
                "fields": "userEnteredValue",
            }
        }
    if isinstance(req, UpdateRow):
        return {
            "updateCells": {
                "start": {"sheetId": req.worksheet_id, "rowIndex": req.row_index, "columnIndex": 0},
                "rows": [{"values": [_cell_value(v) for v in req.values]}],
                "fields": "userEnteredValue",
            }
        }
    raise RemoteAccessError(f"unsupported request: {req!r}", status_code=400)


def _cell_value(value: str, numeric: bool = False) -> dict[str, Any]:
    # 連番は数値として書き込む
    if numeric and value.isdigit():
        return {"userEnteredValue": {"numberValue": int(value)}}
    return {"userEnteredValue": {"stringValue": value}}


def build_batch_requests(requests: Sequence[MutationRequest]) -> list[dict[str, Any]]:
    """Translate mutation requests to Sheets API batchUpdate request bodies."""
    return [_request_body(r) for r in requests]


def _status_of(e: gspread.exceptions.APIError) -> int | None:
    response = getattr(e, "response", None)
    return getattr(response, "status_code", None)


class GoogleSheetAccess(TabularSheetAccess):
    def __init__(self, client: gspread.Client) -> None:
        self._client = client
        self._spreadsheets: dict[str, gspread.Spreadsheet] = {}

    def _open(self, spreadsheet_id: str) -> gspread.Spreadsheet:
        if spreadsheet_id not in self._spreadsheets:
            try:
                self._spreadsheets[spreadsheet_id] = self._client.open_by_key(spreadsheet_id)
            except gspread.exceptions.SpreadsheetNotFound as e:
                raise RemoteAccessError(f"spreadsheet not found: {spreadsheet_id}", status_code=404) from e
            except gspread.exceptions.APIError as e:
                raise RemoteAccessError(str(e), status_code=_status_of(e)) from e
        return self._spreadsheets[spreadsheet_id]

    def list_worksheets(self, spreadsheet_id: str) -> list[SheetInfo]:
        sh = self._open(spreadsheet_id)
        try:
            return [SheetInfo(sheet_id=ws.id, title=ws.title) for ws in sh.worksheets()]
        except gspread.exceptions.APIError as e:
            raise RemoteAccessError(str(e), status_code=_status_of(e)) from e

    def read_grid(self, spreadsheet_id: str, worksheet_title: str) -> Grid:
        sh = self._open(spreadsheet_id)
        try:
            return [list(row) for row in sh.worksheet(worksheet_title).get_all_values()]
        except gspread.exceptions.WorksheetNotFound as e:
            raise RemoteAccessError(f"worksheet not found: {worksheet_title}", status_code=404) from e
        except gspread.exceptions.APIError as e:
            raise RemoteAccessError(str(e), status_code=_status_of(e)) from e

    def append_row(self, spreadsheet_id: str, worksheet_title: str, row: Sequence[str]) -> None:
        sh = self._open(spreadsheet_id)
        try:
            # UpdateRow の stringValue と揃え、値を解釈させない
            sh.worksheet(worksheet_title).append_row(list(row), value_input_option="RAW")
        except gspread.exceptions.WorksheetNotFound as e:
            raise RemoteAccessError(f"worksheet not found: {worksheet_title}", status_code=404) from e
        except gspread.exceptions.APIError as e:
            raise RemoteAccessError(str(e), status_code=_status_of(e)) from e

    def batch_mutate(self, spreadsheet_id: str, requests: Sequence[MutationRequest]) -> None:
        if not requests:
            return
        sh = self._open(spreadsheet_id)
        try:
            sh.batch_update({"requests": build_batch_requests(requests)})
        except gspread.exceptions.APIError as e:
            raise RemoteAccessError(str(e), status_code=_status_of(e)) from e
