"""
Rule: Missing Index

Detects slow queries filtering on a column that no index leads with.

Why it matters:
- Without a leading index on the filter column PostgreSQL reads the whole table
- On a million-row table that is a million tuples per call instead of a few

When it's okay:
- Small tables (<= min_table_size rows), a seq scan is cheap there
- Low-selectivity columns where the planner would ignore the index anyway

Detection is lexical: only the first ``WHERE <col> <op>`` predicate is
considered, with operators tried in the order =, IN, >, <, LIKE.
"""

from __future__ import annotations

from optidb.analyzer.rules.base import Rule, RuleContext
from optidb.analyzer.sql_parser import extract_filter_column
from optidb.models import Recommendation, RecommendationType, RiskLevel


class MissingIndex(Rule):
    """Suggest a single-column index for an unindexed WHERE column."""

    rule_id = "MISSING_INDEX"
    version = "1.0.0"
    recommendation_type = RecommendationType.MISSING_INDEX
    description = "Slow query filters on a column with no leading index"

    CONFIDENCE = 0.8

    def analyze(self, ctx: RuleContext) -> Recommendation | None:
        if ctx.query.mean_exec_time < ctx.config.min_seq_scan_time:
            return None

        column = extract_filter_column(ctx.query.query)
        if column is None:
            return None

        if ctx.has_leading_index(column, ctx.table_names):
            return None

        for table_name in ctx.table_names:
            table = ctx.find_table(table_name)
            if table is None or table.row_count <= ctx.config.min_table_size:
                continue

            return Recommendation(
                type=self.recommendation_type,
                ddl=f"CREATE INDEX idx_{table_name}_{column} ON {table_name} ({column});",
                rationale=(
                    f"Query performs sequential scan on table '{table_name}' filtering by "
                    f"column '{column}'. An index would improve performance."
                ),
                confidence=self.CONFIDENCE,
                impact_estimate=(
                    f"Expected 50-90% performance improvement for queries filtering by {column}"
                ),
                risk_level=RiskLevel.LOW,
            )

        return None
