"""
Rule: Inefficient Join

Detects equi-joins whose columns have no leading index on either side.

Why it matters:
- Without an index on the inner join column every outer row triggers a scan
- Nested loops over unindexed columns are O(n*m)

Only ``JOIN <table> [alias] ON a.<col> = b.<col>`` conditions are seen.
The left column may be indexed on any referenced table; the right column
must be indexed on the joined table itself. The first join missing an index
is reported; the joined (right) side wins when both are missing.
"""

from __future__ import annotations

from optidb.analyzer.rules.base import Rule, RuleContext
from optidb.analyzer.sql_parser import extract_join_conditions
from optidb.models import Recommendation, RecommendationType, RiskLevel


class InefficientJoin(Rule):
    """Suggest an index on an unindexed join column."""

    rule_id = "INEFFICIENT_JOIN"
    version = "1.0.0"
    recommendation_type = RecommendationType.JOIN_INDEX
    description = "JOIN condition column lacks a leading index"

    CONFIDENCE = 0.75

    def analyze(self, ctx: RuleContext) -> Recommendation | None:
        if ctx.query.mean_exec_time < ctx.config.min_seq_scan_time:
            return None

        for join in extract_join_conditions(ctx.query.query):
            has_left = ctx.has_leading_index(join.left_column, ctx.table_names)
            has_right = ctx.has_leading_index(join.right_column, (join.table,))

            if has_left and has_right:
                continue

            if not has_right:
                table, column = join.table, join.right_column
            elif ctx.table_names:
                table, column = ctx.table_names[0], join.left_column
            else:
                continue

            return Recommendation(
                type=self.recommendation_type,
                ddl=f"CREATE INDEX idx_{table}_{column} ON {table} ({column});",
                rationale=(
                    f"JOIN operation lacks index on column '{column}' in table '{table}', "
                    "causing slow nested loop joins."
                ),
                confidence=self.CONFIDENCE,
                impact_estimate="Expected 40-80% improvement in join performance",
                risk_level=RiskLevel.LOW,
            )

        return None
