"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (CODESEARCH__SECTION__KEY)
3. YAML config file (codesearch.yaml)
4. Built-in defaults (this file)

Environment Variable Format:
    CODESEARCH__<SECTION>__<KEY>=<VALUE>

Examples:
    CODESEARCH__LOGGING__LEVEL=DEBUG
    CODESEARCH__INDEXER__ENABLED=false
    CODESEARCH__INDEXER__STARTUP_TIMEOUT_SEC=60
    CODESEARCH__QUEUE__TYPE=persistable-channel
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
QueueType = Literal["channel", "persistable-channel"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration."""

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        CODESEARCH__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG logs every dequeued task.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class IndexerConfig(BaseModel):
    """Repository code indexer configuration.

    Env vars:
        CODESEARCH__INDEXER__ENABLED: Enable repository code indexing
        CODESEARCH__INDEXER__REPO_TYPE: Registered backend name (default: tantivy)
        CODESEARCH__INDEXER__REPO_PATH: Index storage location
        CODESEARCH__INDEXER__STARTUP_TIMEOUT_SEC: Max time to open the index
    """

    enabled: bool = Field(
        default=True,
        description="Enable repository code indexing. When false the indexer is closed at startup.",
    )
    repo_type: str = Field(
        default="tantivy",
        description="Name of the registered search backend.",
    )
    repo_path: str = Field(
        default="indexers/repos.tantivy",
        description="Index storage directory. Relative paths resolve against data_dir.",
    )
    startup_timeout_sec: float = Field(
        default=30.0,
        description="Max time for the index to open before startup is aborted. 0 disables. "
        "RISK: Too low aborts startup on slow disks.",
    )
    close_timeout_sec: float = Field(
        default=5.0,
        description="Max wait for in-flight index operations when closing the index.",
    )
    max_file_size_mb: int = Field(
        default=1,
        description="Skip repository files larger than this (MB).",
    )
    excluded_extensions: list[str] = Field(
        default_factory=lambda: [".min.js", ".min.css", ".map"],
        description="File extensions to exclude from indexing.",
    )
    dead_letter_capacity: int = Field(
        default=1000,
        description="Max failed tasks kept for retry. Oldest entries are evicted first.",
    )

    @field_validator("startup_timeout_sec", "close_timeout_sec")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"Timeout must be >= 0, got {v}")
        return v

    @field_validator("repo_type")
    @classmethod
    def validate_repo_type(cls, v: str) -> str:
        return v.strip().lower()


class QueueConfig(BaseModel):
    """Indexer work queue configuration.

    Env vars:
        CODESEARCH__QUEUE__TYPE: channel or persistable-channel
        CODESEARCH__QUEUE__LENGTH: Buffer capacity before push blocks
        CODESEARCH__QUEUE__BATCH_LENGTH: Max tasks handed to the consumer at once
    """

    name: str = Field(default="code_indexer", description="Queue name.")
    type: QueueType = Field(
        default="persistable-channel",
        description="channel keeps tasks in memory; persistable-channel also spills "
        "unprocessed tasks to the database on shutdown.",
    )
    length: int = Field(
        default=20,
        description="Buffer capacity. push() waits while the buffer is full.",
    )
    batch_length: int = Field(
        default=20,
        description="Max tasks per consumer batch.",
    )

    @field_validator("length", "batch_length")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Must be >= 1, got {v}")
        return v


class BackfillConfig(BaseModel):
    """Backfill of pre-existing repositories into a freshly created index."""

    page_size: int = Field(
        default=50,
        description="Repository ids fetched per page while walking the repository table.",
    )

    @field_validator("page_size")
    @classmethod
    def validate_page_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"page_size must be >= 1, got {v}")
        return v


class DatabaseConfig(BaseModel):
    """Database connection configuration.

    Env vars:
        CODESEARCH__DATABASE__PATH: SQLite file. Relative paths resolve against data_dir.
        CODESEARCH__DATABASE__BUSY_TIMEOUT_MS: SQLite busy timeout
    """

    path: str = Field(default="codesearch.db", description="SQLite database file.")
    busy_timeout_ms: int = Field(
        default=30000,
        description="SQLite busy timeout (ms). How long to wait for locks.",
    )


class CodeSearchConfig(BaseModel):
    """Root configuration for codesearch."""

    data_dir: str = Field(
        default="data",
        description="Base directory for relative index and database paths.",
    )
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    indexer: IndexerConfig = Field(default_factory=IndexerConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    backfill: BackfillConfig = Field(default_factory=BackfillConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)

    def resolve_path(self, value: str) -> Path:
        """Resolve a configured path against data_dir."""
        path = Path(value).expanduser()
        if path.is_absolute():
            return path
        return Path(self.data_dir).expanduser() / path

    @property
    def index_path(self) -> Path:
        return self.resolve_path(self.indexer.repo_path)

    @property
    def db_path(self) -> Path:
        return self.resolve_path(self.database.path)
