"""
Package-level exception hierarchy for OptiDB.

All exceptions inherit from OptiDBError, enabling:
- Catching all OptiDB errors with a single except clause
- Rich context fields for debugging (config_key, source, provider, etc.)
- Structured serialization via to_dict() for JSON error responses

Hierarchy:
    OptiDBError
    ├── ConfigurationError – Invalid configuration values or files
    ├── SnapshotError      – Workload snapshot missing or malformed
    ├── CollectorError     – Statistics collection from the database failed
    └── AugmenterError     – AI augmenter unavailable or returned garbage

Detectors never raise: the absence of a condition is "no finding".
AugmenterError is always caught by the rule engine and turned into a
fallback to the heuristic rules.
"""

from __future__ import annotations

from typing import Any


class OptiDBError(Exception):
    """
    Base exception for all OptiDB errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON error responses."""
        return {
            "error_type": type(self).__name__,
            "message": self.message,
        }


class ConfigurationError(OptiDBError):
    """
    Error in OptiDB configuration.

    Attributes:
        config_key: The configuration key that caused the error (if known).
    """

    def __init__(self, message: str, config_key: str | None = None) -> None:
        self.config_key = config_key
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["config_key"] = self.config_key
        return result


class SnapshotError(OptiDBError):
    """
    Failed to load a workload snapshot.

    Attributes:
        source: Description of the input source (file path, "request", etc.).
    """

    def __init__(self, message: str, source: str | None = None) -> None:
        self.source = source
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["source"] = self.source
        return result


class CollectorError(OptiDBError):
    """
    Statistics or metadata collection failed.

    Attributes:
        operation: Which collector read failed (e.g. "query_stats").
    """

    def __init__(self, message: str, operation: str | None = None) -> None:
        self.operation = operation
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["operation"] = self.operation
        return result


class AugmenterError(OptiDBError):
    """
    The AI augmenter could not produce recommendations for a query.

    Attributes:
        provider: Name of the augmenter backend (e.g. "claude").
    """

    def __init__(self, message: str, provider: str | None = None) -> None:
        self.provider = provider
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["provider"] = self.provider
        return result
