"""
Cardinality / statistics issue detection.

A slow query that returns a tiny fraction of a very large table usually
means the planner has no good access path or is misjudging selectivity,
often because column statistics are stale or too coarse.

Detection: rows returned / rows in the largest known table.
"""

from __future__ import annotations

from optidb.analyzer.rules.base import Rule, RuleContext
from optidb.models import Recommendation, RecommendationType, RiskLevel


class CardinalityIssue(Rule):
    """
    Suggest refreshing statistics for a selective but slow query.

    Fires when the largest known table has more than LARGE_TABLE_ROWS rows,
    selectivity is below MAX_SELECTIVITY and the mean execution time is
    above MIN_MEAN_EXEC_TIME ms.

    Fix: ANALYZE tablename; or raise the column's statistics target.
    """

    rule_id = "CARDINALITY_ISSUE"
    version = "1.0.0"
    recommendation_type = RecommendationType.CARDINALITY_ISSUE
    description = "Very selective query on a large table is still slow"

    CONFIDENCE = 0.60
    LARGE_TABLE_ROWS = 100_000
    MAX_SELECTIVITY = 0.001
    MIN_MEAN_EXEC_TIME = 1.0

    def analyze(self, ctx: RuleContext) -> Recommendation | None:
        if not ctx.tables or ctx.query.rows <= 0:
            return None

        largest = max(ctx.tables, key=lambda t: t.row_count)
        if largest.row_count <= 0:
            return None

        selectivity = ctx.query.rows / largest.row_count
        if (
            largest.row_count <= self.LARGE_TABLE_ROWS
            or selectivity >= self.MAX_SELECTIVITY
            or ctx.query.mean_exec_time <= self.MIN_MEAN_EXEC_TIME
        ):
            return None

        table = largest.table_name
        return Recommendation(
            type=self.recommendation_type,
            ddl=(
                f"ANALYZE {table}; -- or ALTER TABLE {table} ALTER COLUMN "
                "<selective_column> SET STATISTICS 1000;"
            ),
            rationale=(
                f"Query has very low selectivity ({selectivity * 100:.4f}%) on large table "
                f"'{table}' but still slow. Consider updating table statistics or creating "
                "expression indexes."
            ),
            confidence=self.CONFIDENCE,
            impact_estimate="Expected 20-50% improvement with better statistics",
            risk_level=RiskLevel.LOW,
        )
