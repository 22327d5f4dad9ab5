from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the payroll ingestion pipeline.

Built by ``payroll_ingest.config.loader.load_config``; every field has a
default so that the pipeline can run without a config file.
"""

DEFAULT_CHUNK_SIZE = 500  # per-transaction write ceiling of the backing store
DEFAULT_HISTORY_LIMIT = 50
DEFAULT_MAX_FILE_SIZE_MB = 5


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection fallback.

    Environment variables (and ``.env``) take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class IngestConfig:
    """Root configuration object for an upload run."""
    chunk_size: int = DEFAULT_CHUNK_SIZE
    history_limit: int = DEFAULT_HISTORY_LIMIT
    max_file_size_mb: float = DEFAULT_MAX_FILE_SIZE_MB
    logs_directory: str = "./logs"
    # canonical field -> extra accepted headers (appended after built-ins)
    header_variants: dict[str, list[str]] = field(default_factory=dict)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    @property
    def max_file_size_bytes(self) -> int:
        return int(self.max_file_size_mb * 1024 * 1024)
