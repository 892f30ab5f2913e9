"""
Rule: Redundant Index

Detects a rarely used index whose columns are a leading prefix of a wider
index on the same table.

Why it matters:
- The wider index can serve every lookup the narrow one serves
- Each extra index slows INSERT/UPDATE and costs disk and cache

Only indexes on tables the query references are compared, and only when
the narrower index has fewer than UNUSED_SCAN_THRESHOLD recorded scans.
"""

from __future__ import annotations

from itertools import permutations

from optidb.analyzer.rules.base import Rule, RuleContext
from optidb.models import IndexInfo, Recommendation, RecommendationType, RiskLevel
from optidb.recommend.generator import format_bytes


def is_column_prefix(shorter: list[str], longer: list[str]) -> bool:
    """True if ``shorter`` is a strict, case-insensitive leading prefix of ``longer``."""
    if not shorter or len(shorter) >= len(longer):
        return False
    return all(a.lower() == b.lower() for a, b in zip(shorter, longer))


class RedundantIndex(Rule):
    """Suggest dropping a low-usage index covered by a wider one."""

    rule_id = "REDUNDANT_INDEX"
    version = "1.0.0"
    recommendation_type = RecommendationType.REDUNDANT_INDEX
    description = "Low-usage index is a column prefix of another index"

    CONFIDENCE = 0.85
    UNUSED_SCAN_THRESHOLD = 10

    def analyze(self, ctx: RuleContext) -> Recommendation | None:
        candidates = ctx.indexes_on(ctx.table_names)

        for shorter, longer in permutations(candidates, 2):
            if not self._is_redundant(shorter, longer):
                continue

            return Recommendation(
                type=self.recommendation_type,
                ddl=f"DROP INDEX {shorter.index_name};",
                rationale=(
                    f"Index '{shorter.index_name}' on table '{shorter.table_name}' is redundant "
                    f"with '{longer.index_name}' and has low usage ({shorter.index_scans} scans). "
                    "The larger index covers the same queries."
                ),
                confidence=self.CONFIDENCE,
                impact_estimate=(
                    f"Reclaim {format_bytes(shorter.size_bytes)} storage and reduce "
                    "maintenance overhead"
                ),
                risk_level=RiskLevel.LOW,
            )

        return None

    def _is_redundant(self, shorter: IndexInfo, longer: IndexInfo) -> bool:
        if shorter.table_name.lower() != longer.table_name.lower():
            return False
        if shorter.index_scans >= self.UNUSED_SCAN_THRESHOLD:
            return False
        return is_column_prefix(shorter.columns, longer.columns)
