"""codesearch error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Index
- 6xxx: Queue
- 9xxx: Internal
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002
    CONFIG_FILE_NOT_FOUND = 2004

    # Index (3xxx)
    INDEX_STARTUP_FAILED = 3001
    INDEX_STARTUP_TIMEOUT = 3002
    INDEX_NOT_READY = 3003
    INDEX_UNKNOWN_BACKEND = 3004
    INDEX_ALREADY_SET = 3005
    INDEX_BACKFILL_FAILED = 3006

    # Queue (6xxx)
    QUEUE_CLOSED = 6001
    QUEUE_CONSUMER_REGISTERED = 6002
    QUEUE_NO_CONSUMER = 6003

    # Internal (9xxx)
    INTERNAL_ERROR = 9001


@dataclass(frozen=True, slots=True)
class CodeSearchError(Exception):
    """Base error with structured context."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'INDEX_NOT_READY')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(CodeSearchError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )

    @classmethod
    def file_not_found(cls, path: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_FILE_NOT_FOUND,
            message=f"Config file not found: {path}",
            details={"path": path},
        )


class IndexerError(CodeSearchError):
    """Repository indexer errors."""

    @classmethod
    def startup_failed(cls, path: str, reason: str) -> "IndexerError":
        return cls(
            code=ErrorCode.INDEX_STARTUP_FAILED,
            message=f"Unable to initialize the repository indexer at path {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def startup_timeout(cls, timeout_sec: float) -> "IndexerError":
        return cls(
            code=ErrorCode.INDEX_STARTUP_TIMEOUT,
            message=f"Repository indexer initialization timed out after {timeout_sec}s",
            details={"timeout_sec": timeout_sec},
        )

    @classmethod
    def not_ready(cls) -> "IndexerError":
        return cls(
            code=ErrorCode.INDEX_NOT_READY,
            message="Repository indexer is not ready",
            retryable=True,
        )

    @classmethod
    def unknown_backend(cls, name: str, known: list[str]) -> "IndexerError":
        return cls(
            code=ErrorCode.INDEX_UNKNOWN_BACKEND,
            message=f"Unknown code indexer type: {name}",
            details={"name": name, "known": known},
        )

    @classmethod
    def already_set(cls) -> "IndexerError":
        return cls(
            code=ErrorCode.INDEX_ALREADY_SET,
            message="Repository indexer backend has already been set",
        )

    @classmethod
    def backfill_failed(cls, reason: str) -> "IndexerError":
        return cls(
            code=ErrorCode.INDEX_BACKFILL_FAILED,
            message=f"Populating the repository indexer failed: {reason}",
            retryable=True,
            details={"reason": reason},
        )


class QueueError(CodeSearchError):
    """Work queue errors."""

    @classmethod
    def closed(cls, name: str) -> "QueueError":
        return cls(
            code=ErrorCode.QUEUE_CLOSED,
            message=f"Queue '{name}' is not accepting work",
            details={"queue": name},
        )

    @classmethod
    def consumer_already_registered(cls, name: str) -> "QueueError":
        return cls(
            code=ErrorCode.QUEUE_CONSUMER_REGISTERED,
            message=f"Queue '{name}' already has a consumer",
            details={"queue": name},
        )

    @classmethod
    def no_consumer(cls, name: str) -> "QueueError":
        return cls(
            code=ErrorCode.QUEUE_NO_CONSUMER,
            message=f"Queue '{name}' cannot start without a consumer",
            details={"queue": name},
        )


class InternalError(CodeSearchError):
    """Internal/unexpected errors."""

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Internal error: {reason}",
            details=details,
        )
