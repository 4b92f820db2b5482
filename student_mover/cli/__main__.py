from __future__ import annotations

import argparse
import json
import sys
import time
from datetime import UTC, date, datetime
from pathlib import Path

from dotenv import load_dotenv

from student_mover.config.loader import DEFAULT_CONFIG_PATH, ConfigError, MoverConfig, load_config
from student_mover.logging.error_log import LOGS_DIR, TIMESTAMP_FMT, ErrorLogBuffer
from student_mover.logging.init import log_summary, setup_logging
from student_mover.models.moves import ExecutionRecord, ExecutionResult
from student_mover.services.age import today_in
from student_mover.services.analyzer import analyze, list_handles
from student_mover.services.executor import execute, revert
from student_mover.services.headers import resolve_header
from student_mover.services.summary import render_move_list, render_summary_line
from student_mover.store.access import RemoteAccessError, TabularSheetAccess

"""CLI entrypoint.

Flow:
- Load .env (override) then config/mover.yml
- Open the configured store
- Analyze and list proposed moves (default: read-only)
- --execute: confirm, apply, save the execution record, print SUMMARY
- --revert PATH: undo a saved execution record
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv.

    override=True で .env の値を既存環境変数より優先する。
    """
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Move students between age-band worksheets")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Path to mover.yml")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--execute", action="store_true", help="Apply the proposed moves")
    p.add_argument("--yes", action="store_true", help="Do not ask for confirmation")
    p.add_argument("--revert", type=Path, metavar="RECORD", help="Undo a saved execution record")
    p.add_argument("--today", type=date.fromisoformat, help="Reference date (YYYY-MM-DD)")
    p.add_argument("--inspect-data", action="store_true", help="Print worksheets & detected headers then exit")
    return p.parse_args(argv)


def _open_store(cfg: MoverConfig) -> TabularSheetAccess:
    """Build the store for the configured backend (imports are backend-local)."""
    if cfg.store.kind == "workbook":
        from student_mover.store.workbook import WorkbookSheetAccess
        return WorkbookSheetAccess(Path(cfg.spreadsheet_id))
    from student_mover.store.gsheets import GoogleSheetAccess, client_from_service_account
    return GoogleSheetAccess(client_from_service_account(cfg.store.credentials_file))


def _inspect_data(access: TabularSheetAccess, cfg: MoverConfig) -> int:
    for ws in list_handles(access, cfg.spreadsheet_id, cfg.bands.excluded_titles):
        if ws.excluded:
            print(f"SHEET: {ws.title} (excluded)")
            continue
        grid = access.read_grid(cfg.spreadsheet_id, ws.title)
        header = resolve_header(grid)
        if header is None:
            print(f"SHEET: {ws.title} rows={len(grid)} header=none")
            continue
        print(
            f"SHEET: {ws.title} rows={len(grid)} header_row={header.row_index + 1} "
            f"dob_col={header.dob_column_index} name_col={header.name_column_index} cols={list(header.cells)}"
        )
    return EXIT_SUCCESS_ALL


def _save_record(record: ExecutionRecord, logs_dir: Path = LOGS_DIR) -> Path:
    logs_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
    path = logs_dir / f"execution-{stamp}.json"
    path.write_text(json.dumps(record.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
    return path


def _load_record(path: Path) -> ExecutionRecord:
    try:
        return ExecutionRecord.from_dict(json.loads(path.read_text(encoding="utf-8")))
    except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        raise ConfigError(f"invalid execution record {path}: {e}") from e


def _exit_code(result: ExecutionResult) -> int:
    if result.failures or result.deletion_error or result.renumber_error:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def _confirm(count: int) -> bool:
    try:
        answer = input(f"Proceed with {count} move(s)? [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in {"y", "yes"}


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None のときのみシステム引数を読む (テストで [] を渡すため)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        logger = setup_logging(debug=True)
        logger.debug("debug mode enabled")

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    start = time.perf_counter()
    error_log = ErrorLogBuffer()
    try:
        access = _open_store(cfg)

        if args.inspect_data:
            return _inspect_data(access, cfg)

        if args.revert is not None:
            record = _load_record(args.revert)
            logger.info(f"Reverting {len(record)} move(s) from {args.revert}")
            result = revert(access, record, cfg.bands.excluded_titles, cfg.batch_size, error_log=error_log)
            _flush(error_log, logger)
            log_summary(render_summary_line(len(record), result, time.perf_counter() - start))
            return _exit_code(result)

        today = args.today or cfg.reference_date or today_in(cfg.timezone)
        logger.info(f"Analyzing {cfg.spreadsheet_id} (reference date {today.isoformat()})")
        moves = analyze(access, cfg.spreadsheet_id, cfg.bands, today=today, error_log=error_log)
        for line in render_move_list(moves):
            logger.info(f"move: {line}")

        if not args.execute or not moves:
            _flush(error_log, logger)
            log_summary(render_summary_line(len(moves), None, time.perf_counter() - start))
            return EXIT_SUCCESS_ALL

        if not args.yes and not _confirm(len(moves)):
            logger.info("aborted by user; nothing changed")
            return EXIT_SUCCESS_ALL

        result = execute(access, cfg.spreadsheet_id, moves, cfg.bands.excluded_titles,
                         cfg.batch_size, error_log=error_log)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL
    except RemoteAccessError as e:
        logger.error(f"store: {e.describe()}")
        _flush(error_log, logger)
        return EXIT_FATAL

    if result.record is not None and len(result.record):
        path = _save_record(result.record)
        logger.info(f"execution record saved: {path} (use --revert to undo)")
    if result.failures:
        logger.warning(f"failed: {', '.join(result.failed_names)}")
    _flush(error_log, logger)
    log_summary(render_summary_line(len(moves), result, time.perf_counter() - start))
    return _exit_code(result)


def _flush(error_log: ErrorLogBuffer, logger) -> None:
    try:
        path = error_log.flush()
    except OSError as e:
        logger.warning(f"error log flush failed: {e}")
        return
    if path is not None:
        logger.info(f"error log: {path}")


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
