"""
RuleEngine - orchestration layer for OptiDB.

This is the single entry point for turning query statistics into
recommendations. CLI and API server should use this engine rather than
running rules themselves.

Pipeline for one query:
1. Gate: queries called fewer than ``min_calls`` times are never analyzed
2. Augmenter: if configured, ask it first; its answer wins when it succeeds
3. Heuristics: run every rule in priority order and collect the results

The engine holds only read-only configuration, so one instance can serve
concurrent calls.

Usage:
    from optidb.engine import RuleEngine

    engine = RuleEngine()
    recommendations = engine.analyze_query(query, tables, indexes)

    # Whole workload, first 10 queries with findings
    reports = engine.analyze_workload(snapshot, limit=10)

    # Inside an event loop (cancellable augmenter call)
    recommendations = await engine.analyze_query_async(query, tables, indexes)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from optidb.analyzer.rules import DEFAULT_RULES, Rule, RuleContext
from optidb.analyzer.sql_parser import extract_tables
from optidb.config import EngineConfig
from optidb.exceptions import AugmenterError
from optidb.models import (
    IndexInfo,
    QueryReport,
    QueryStats,
    Recommendation,
    TableInfo,
    WorkloadSnapshot,
)

if TYPE_CHECKING:
    from optidb.augmenter.protocol import Augmenter
    from optidb.config import Config


class RuleEngine:
    """
    Rule-based bottleneck detector with an optional AI override.

    Args:
        config: Thresholds gating the rules (defaults: 1000 rows, 0.1 ms, 5 calls)
        augmenter: Optional AI augmenter asked before the rules
        rules: Rule instances in priority order (defaults to DEFAULT_RULES)
        logger: Logger to report through (defaults to this module's logger)
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        augmenter: "Augmenter | None" = None,
        rules: Sequence[Rule] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.augmenter = augmenter
        self.rules: tuple[Rule, ...] = (
            tuple(rules) if rules is not None else tuple(cls() for cls in DEFAULT_RULES)
        )
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_config(cls, config: "Config", logger: logging.Logger | None = None) -> "RuleEngine":
        """Wire thresholds and, when an API key is set, the Claude augmenter."""
        log = logger or logging.getLogger(__name__)
        augmenter = None
        if config.ai_available:
            from optidb.augmenter.claude import ClaudeAugmenter

            augmenter = ClaudeAugmenter(
                api_key=config.ai_api_key or "",
                model=config.ai_model,
                max_tokens=config.ai_max_tokens,
                timeout_seconds=config.ai_timeout_seconds,
                base_url=config.ai_base_url,
            )
            log.info("AI-powered recommendations enabled (model %s)", config.ai_model)
        else:
            log.info("AI augmenter not configured, using heuristic rules")

        return cls(config=config.engine, augmenter=augmenter, logger=log)

    def analyze_query(
        self,
        query: QueryStats,
        tables: Sequence[TableInfo],
        indexes: Sequence[IndexInfo],
    ) -> list[Recommendation]:
        """
        Recommendations for one query. Never raises for data or augmenter errors.

        With an augmenter configured this drives analyze_query_async() with
        asyncio.run(), so call the async variant from inside an event loop.
        """
        if not self._is_significant(query):
            return []

        if self.augmenter is None:
            return self.run_heuristics(query, tables, indexes)

        return asyncio.run(self.analyze_query_async(query, tables, indexes))

    async def analyze_query_async(
        self,
        query: QueryStats,
        tables: Sequence[TableInfo],
        indexes: Sequence[IndexInfo],
    ) -> list[Recommendation]:
        """
        Coroutine form of analyze_query().

        Cancelling the task abandons an in-flight augmenter request; the
        CancelledError propagates instead of triggering the fallback.
        """
        if not self._is_significant(query):
            return []

        if self.augmenter is not None:
            self.logger.info("Using AI-powered recommendation generation")
            try:
                augmented = await self.augmenter.recommend(query, tables, indexes)
                recommendations = self._sanitize(augmented)
            except Exception as e:
                self.logger.error("AI recommendation failed, falling back to heuristics: %s", e)
            else:
                self.logger.info("Generated %d AI-powered recommendations", len(recommendations))
                return recommendations

        return self.run_heuristics(query, tables, indexes)

    def run_heuristics(
        self,
        query: QueryStats,
        tables: Sequence[TableInfo],
        indexes: Sequence[IndexInfo],
    ) -> list[Recommendation]:
        """Run every rule in priority order, without gating or augmenter."""
        self.logger.debug("Using heuristic rule-based recommendations")

        table_names = tuple(extract_tables(query.query))
        self.logger.debug("Extracted table names from query: %s", list(table_names))

        ctx = RuleContext(
            query=query,
            table_names=table_names,
            tables=tuple(tables),
            indexes=tuple(indexes),
            config=self.config,
        )

        recommendations: list[Recommendation] = []
        for rule in self.rules:
            recommendation = rule.analyze(ctx)
            if recommendation is not None:
                self.logger.info("Rule %s produced a %s recommendation", rule.rule_id, recommendation.type.value)
                recommendations.append(recommendation)

        self.logger.debug("Generated %d heuristic recommendations for query", len(recommendations))
        return recommendations

    def analyze_workload(
        self,
        snapshot: WorkloadSnapshot,
        limit: int | None = None,
    ) -> list[QueryReport]:
        """
        Analyze queries in snapshot order, keeping those with findings.

        Stops after ``limit`` reports. Queries are not re-sorted.
        """
        if self.augmenter is not None:
            return asyncio.run(self.analyze_workload_async(snapshot, limit=limit))

        reports: list[QueryReport] = []
        for query in snapshot.queries:
            if limit is not None and len(reports) >= limit:
                break

            recommendations = self.analyze_query(query, snapshot.tables, snapshot.indexes)
            self._collect(reports, query, recommendations)

        return reports

    async def analyze_workload_async(
        self,
        snapshot: WorkloadSnapshot,
        limit: int | None = None,
    ) -> list[QueryReport]:
        """Coroutine form of analyze_workload(), for use inside an event loop."""
        reports: list[QueryReport] = []
        for query in snapshot.queries:
            if limit is not None and len(reports) >= limit:
                break

            recommendations = await self.analyze_query_async(
                query, snapshot.tables, snapshot.indexes
            )
            self._collect(reports, query, recommendations)

        return reports

    def _collect(
        self,
        reports: list[QueryReport],
        query: QueryStats,
        recommendations: list[Recommendation],
    ) -> None:
        if not recommendations:
            self.logger.debug("No recommendations for query: %s", query.query[:50])
            return

        reports.append(QueryReport(
            query=query,
            fingerprint=query.fingerprint,
            recommendations=recommendations,
        ))
        self.logger.info(
            "Found bottleneck #%d with %d recommendations", len(reports), len(recommendations)
        )

    def _is_significant(self, query: QueryStats) -> bool:
        self.logger.debug(
            "Analyzing query with %d calls, %.2fms avg time", query.calls, query.mean_exec_time
        )
        if query.calls < self.config.min_calls:
            self.logger.debug(
                "Skipping query with insufficient calls (%d < %d)", query.calls, self.config.min_calls
            )
            return False
        return True

    def _sanitize(self, items: Sequence[Any]) -> list[Recommendation]:
        """
        Re-validate augmenter output so confidence and risk hold their invariants.

        Items that cannot be read as a recommendation at all are dropped.

        Raises:
            AugmenterError: If the output is not a list of items.
        """
        if not isinstance(items, (list, tuple)):
            raise AugmenterError(
                f"Augmenter returned {type(items).__name__}, expected a list",
                provider=getattr(self.augmenter, "name", None),
            )

        sanitized: list[Recommendation] = []
        for item in items:
            data = item.model_dump() if isinstance(item, Recommendation) else item
            try:
                sanitized.append(Recommendation.model_validate(data))
            except ValidationError as e:
                self.logger.warning("Dropping invalid augmenter recommendation: %s", e)
        return sanitized
