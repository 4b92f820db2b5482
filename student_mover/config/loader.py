from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from student_mover.models.bands import DEFAULT_EXCLUDED_TITLES, AgeBand, BandConfiguration
from student_mover.store.access import MAX_BATCH_REQUESTS

"""Config loader.

Responsibilities:
- Load YAML config (default config/mover.yml)
- Validate against config_schema.json (shipped next to this module)
- Apply defaults (timezone=UTC, batch_size=100, default excluded sheets)
- Compile band patterns and check band ordering
- Let GOOGLE_SERVICE_ACCOUNT_FILE override store.credentials_file
"""

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/mover.yml")


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class StoreConfig:
    kind: str  # gsheets | workbook
    credentials_file: str | None = None


@dataclass(frozen=True)
class MoverConfig:
    spreadsheet_id: str  # workbook の場合はファイルパス
    store: StoreConfig
    bands: BandConfiguration
    timezone: str = "UTC"
    reference_date: date | None = None
    batch_size: int = MAX_BATCH_REQUESTS


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against JSON schema.

    Raises:
        ConfigError: If the schema file is missing or invalid, or the config
            data fails schema validation.
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _build_bands(raw_bands: list[dict[str, Any]]) -> tuple[AgeBand, ...]:
    bands: list[AgeBand] = []
    for i, raw in enumerate(raw_bands):
        try:
            band = AgeBand.from_pattern(
                raw["pattern"], int(raw["min_age"]), int(raw["max_age"]), label=raw.get("label", "")
            )
        except re.error as e:
            raise ConfigError(f"bands[{i}]: invalid pattern {raw['pattern']!r}: {e}") from e
        except ValueError as e:
            raise ConfigError(f"bands[{i}]: {e}") from e
        if bands and band.max_age <= bands[-1].max_age:
            # 若い順に並んでいること
            raise ConfigError(
                f"bands[{i}]: max_age {band.max_age} must be greater than previous band's {bands[-1].max_age}"
            )
        bands.append(band)
    return tuple(bands)


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> MoverConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")
    # YAML は 2024-06-01 を date として読むので文字列に戻す
    if isinstance(data.get("reference_date"), date):
        data["reference_date"] = data["reference_date"].isoformat()

    _validate_config_schema(data)

    excluded = data.get("excluded_sheets")
    excluded_titles = frozenset(excluded) if excluded is not None else DEFAULT_EXCLUDED_TITLES

    store_raw = data["store"]
    credentials = os.getenv("GOOGLE_SERVICE_ACCOUNT_FILE") or store_raw.get("credentials_file")

    timezone = data.get("timezone", "UTC")
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"unknown timezone: {timezone}") from e

    ref_raw = data.get("reference_date")
    try:
        reference = date.fromisoformat(ref_raw) if ref_raw else None
    except ValueError as e:
        raise ConfigError(f"invalid reference_date: {e}") from e

    return MoverConfig(
        spreadsheet_id=str(data["spreadsheet_id"]),
        store=StoreConfig(kind=store_raw["kind"], credentials_file=credentials),
        bands=BandConfiguration(bands=_build_bands(data["bands"]), excluded_titles=excluded_titles),
        timezone=timezone,
        reference_date=reference,
        batch_size=int(data.get("batch_size", MAX_BATCH_REQUESTS)),
    )
