"""
Data models for the recommendation pipeline.

Inputs (QueryStats, TableInfo, IndexInfo) mirror what the stats collector
reads from pg_stat_statements and the pg_stat_user_* views. The output
(Recommendation) is what every presentation layer renders. All models are:
- Immutable (frozen=True): built once per analysis call, never mutated
- Serializable: field names match the JSON emitted by the CLI and HTTP API
- Self-sanitizing: Recommendation clamps confidence and risk on construction
"""

from __future__ import annotations

import json
import logging
import math
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from optidb.analyzer.fingerprint import fingerprint_query, short_id
from optidb.exceptions import SnapshotError

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.5


class RecommendationType(str, Enum):
    """Closed set of recommendation kinds produced by rules and augmenters."""

    MISSING_INDEX = "missing_index"
    COMPOSITE_INDEX = "composite_index"
    CORRELATED_SUBQUERY = "correlated_subquery"
    JOIN_INDEX = "join_index"
    REDUNDANT_INDEX = "redundant_index"
    CARDINALITY_ISSUE = "cardinality_issue"

    @property
    def label(self) -> str:
        """Human-readable title used by reports."""
        return _TYPE_LABELS[self]


_TYPE_LABELS = {
    RecommendationType.MISSING_INDEX: "Missing Index",
    RecommendationType.COMPOSITE_INDEX: "Composite Index Opportunity",
    RecommendationType.CORRELATED_SUBQUERY: "Correlated Subquery Optimization",
    RecommendationType.JOIN_INDEX: "JOIN Index Missing",
    RecommendationType.REDUNDANT_INDEX: "Redundant Index",
    RecommendationType.CARDINALITY_ISSUE: "Cardinality / Statistics Issue",
}


class RiskLevel(str, Enum):
    """Risk of applying a recommendation."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class QueryStats(BaseModel):
    """
    Performance snapshot of one distinct statement from pg_stat_statements.

    Identity is derived from the SQL text (see ``fingerprint``), it is
    never stored on the model.
    """

    model_config = ConfigDict(frozen=True)

    query: str
    calls: int = 0
    mean_exec_time: float = Field(default=0.0, description="Mean execution time (ms)")
    total_time: float = Field(default=0.0, description="Total execution time (ms)")
    rows: int = 0
    shared_blks_hit: int = 0
    shared_blks_read: int = 0

    @property
    def fingerprint(self) -> str:
        """MD5 fingerprint of the normalized query text."""
        return fingerprint_query(self.query)

    @property
    def short_id(self) -> str:
        """12-character display id. Not guaranteed to be unique."""
        return short_id(self.fingerprint)


class TableInfo(BaseModel):
    """One physical table as seen by the last metadata pull."""

    model_config = ConfigDict(frozen=True)

    schema_name: str = "public"
    table_name: str
    row_count: int = 0
    size_bytes: int = 0


class IndexInfo(BaseModel):
    """One index with its ordered key columns and usage counters."""

    model_config = ConfigDict(frozen=True)

    schema_name: str = "public"
    table_name: str
    index_name: str
    columns: list[str] = Field(default_factory=list)
    is_unique: bool = False
    is_primary: bool = False
    size_bytes: int = 0
    index_scans: int = 0
    tuples_read: int = 0
    tuples_fetch: int = 0

    @property
    def leading_column(self) -> str | None:
        """First indexed column, lowercased; None for an empty column list."""
        if not self.columns:
            return None
        return self.columns[0].lower()


class Recommendation(BaseModel):
    """
    A typed, confidence-scored, risk-rated optimization suggestion.

    ``ddl`` and ``rewrite_sql`` are proposals only; nothing in OptiDB runs
    them. Out-of-range confidences are replaced with 0.5 and unknown risk
    levels with "medium", whoever built the recommendation.
    """

    model_config = ConfigDict(frozen=True)

    type: RecommendationType
    ddl: str | None = None
    rewrite_sql: str | None = None
    rationale: str = ""
    confidence: float = DEFAULT_CONFIDENCE
    impact_estimate: str | None = None
    risk_level: RiskLevel = RiskLevel.MEDIUM
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("confidence", mode="before")
    @classmethod
    def _sanitize_confidence(cls, value: Any) -> float:
        try:
            confidence = float(value)
        except (TypeError, ValueError):
            logger.debug("Replacing non-numeric confidence %r with %.1f", value, DEFAULT_CONFIDENCE)
            return DEFAULT_CONFIDENCE
        if math.isnan(confidence) or not 0.0 <= confidence <= 1.0:
            logger.debug("Adjusting invalid confidence score: %s -> %.1f", value, DEFAULT_CONFIDENCE)
            return DEFAULT_CONFIDENCE
        return confidence

    @field_validator("risk_level", mode="before")
    @classmethod
    def _sanitize_risk_level(cls, value: Any) -> RiskLevel:
        if isinstance(value, RiskLevel):
            return value
        try:
            return RiskLevel(value)
        except ValueError:
            logger.debug("Adjusting invalid risk level: %r -> medium", value)
            return RiskLevel.MEDIUM

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready dictionary; empty optional fields are omitted."""
        return self.model_dump(mode="json", exclude_none=True)


class QueryReport(BaseModel):
    """Recommendations produced for one query of a workload."""

    model_config = ConfigDict(frozen=True)

    query: QueryStats
    fingerprint: str
    recommendations: list[Recommendation] = Field(default_factory=list)

    @property
    def short_id(self) -> str:
        return short_id(self.fingerprint)

    def to_dict(self) -> dict[str, Any]:
        return {
            "fingerprint": self.fingerprint,
            "query": self.query.model_dump(mode="json"),
            "recommendations": [r.to_dict() for r in self.recommendations],
        }


class WorkloadSnapshot(BaseModel):
    """
    Everything one analysis run needs: statements plus schema metadata.

    Queries are expected in descending mean execution time order, as the
    collector returns them. Nothing here re-sorts them.
    """

    model_config = ConfigDict(frozen=True)

    queries: list[QueryStats] = Field(default_factory=list)
    tables: list[TableInfo] = Field(default_factory=list)
    indexes: list[IndexInfo] = Field(default_factory=list)
    captured_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_dict(cls, data: Any, source: str | None = None) -> "WorkloadSnapshot":
        """Validate a decoded JSON document, wrapping errors in SnapshotError."""
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise SnapshotError(
                f"Invalid workload snapshot: {e.error_count()} validation error(s): {e}",
                source=source,
            ) from e

    @classmethod
    def from_file(cls, path: Path) -> "WorkloadSnapshot":
        """Load a snapshot written by ``optidb collect`` (or by hand)."""
        source = str(path)
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            raise SnapshotError(f"Cannot read snapshot: {e}", source=source) from e

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise SnapshotError(f"Snapshot is not valid JSON: {e}", source=source) from e

        return cls.from_dict(data, source=source)

    def to_file(self, path: Path) -> None:
        path.write_text(self.model_dump_json(indent=2), encoding="utf-8")
