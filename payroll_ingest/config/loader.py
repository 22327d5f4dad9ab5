from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_HISTORY_LIMIT,
    DEFAULT_MAX_FILE_SIZE_MB,
    DatabaseConfig,
    IngestConfig,
)

"""Config loader.

Responsibilities:
- Load the YAML config (default ``config/payroll.yml``)
- Validate it against the bundled JSON schema
- Apply defaults for every omitted key
"""

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/payroll.yml")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing or unreadable, or data invalid
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


def load_config(path: Path) -> IngestConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    return IngestConfig(
        chunk_size=data.get("chunk_size", DEFAULT_CHUNK_SIZE),
        history_limit=data.get("history_limit", DEFAULT_HISTORY_LIMIT),
        max_file_size_mb=data.get("max_file_size_mb", DEFAULT_MAX_FILE_SIZE_MB),
        logs_directory=data.get("logs_directory", "./logs"),
        header_variants={k: list(v) for k, v in (data.get("header_variants") or {}).items()},
        database=db,
    )


def load_config_or_default(path: Path | None) -> IngestConfig:
    """Load ``path``; when no path is given use the default file if present."""
    if path is not None:
        return load_config(path)
    if DEFAULT_CONFIG_PATH.exists():
        return load_config(DEFAULT_CONFIG_PATH)
    return IngestConfig()
