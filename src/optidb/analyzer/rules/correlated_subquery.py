"""
Rule: Correlated Subquery

Detects subqueries that filter on a column of the outer query, which
PostgreSQL may execute once per outer row.

Why it matters:
- A 10K row outer result with a correlated subquery = 10K subquery executions
- JOINs, EXISTS semi-joins or LATERAL can often achieve the same result in one pass

The signature is lexical (``SELECT ... (SELECT ... WHERE ... = alias.col``
and the EXISTS / NOT EXISTS forms), so the bar is set at twice the normal
slow-query threshold to keep false positives down.
"""

from __future__ import annotations

from optidb.analyzer.rules.base import Rule, RuleContext
from optidb.analyzer.sql_parser import has_correlated_subquery
from optidb.models import Recommendation, RecommendationType, RiskLevel


class CorrelatedSubquery(Rule):
    """Suggest rewriting a correlated subquery as a JOIN or EXISTS."""

    rule_id = "CORRELATED_SUBQUERY"
    version = "1.0.0"
    recommendation_type = RecommendationType.CORRELATED_SUBQUERY
    description = "Subquery references the outer query and may run once per row"

    CONFIDENCE = 0.7

    def analyze(self, ctx: RuleContext) -> Recommendation | None:
        if ctx.query.mean_exec_time < ctx.config.min_seq_scan_time * 2:
            return None

        if not has_correlated_subquery(ctx.query.query):
            return None

        return Recommendation(
            type=self.recommendation_type,
            rewrite_sql="-- Consider rewriting correlated subquery as JOIN or EXISTS clause",
            rationale=(
                "Query contains a correlated subquery that executes once per outer row. "
                "Consider rewriting as a JOIN or EXISTS for better performance."
            ),
            confidence=self.CONFIDENCE,
            impact_estimate="Expected 30-70% performance improvement by eliminating correlated subquery",
            risk_level=RiskLevel.MEDIUM,
        )
