"""
Template-driven recommendation synthesis.

Provides DDL, rationale and impact text for every recommendation type.
No LLM required - just templates keyed by RecommendationType.

Recommendations built here get a confidence adjusted to the evidence
(table size and call count). The detection rules embed fixed confidences
instead and do not go through calculate_confidence().
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType

from optidb.models import QueryStats, Recommendation, RecommendationType, RiskLevel


@dataclass(frozen=True)
class RecommendationTemplate:
    """
    Text templates and scoring defaults for one recommendation type.

    Attributes:
        ddl: str.format template for the proposed statement ("" if none)
        rationale: str.format template for the explanation
        impact: str.format template for the impact estimate
        default_confidence: Confidence before evidence adjustment
        default_risk: Risk of applying the recommendation
    """

    ddl: str
    rationale: str
    impact: str
    default_confidence: float
    default_risk: RiskLevel


TEMPLATES = MappingProxyType({
    RecommendationType.MISSING_INDEX: RecommendationTemplate(
        ddl="CREATE INDEX idx_{table}_{column} ON {table} ({column});",
        rationale=(
            "Table '{table}' with {row_count} rows performs sequential scans on column "
            "'{column}'. Adding an index will significantly improve query performance."
        ),
        impact="Expected 50-90% performance improvement for queries filtering by {column}",
        default_confidence=0.85,
        default_risk=RiskLevel.LOW,
    ),
    RecommendationType.COMPOSITE_INDEX: RecommendationTemplate(
        ddl="CREATE INDEX idx_{index_name} ON {table} ({column_list});",
        rationale=(
            "Multiple column filters on table '{table}' would benefit from a composite "
            "index covering columns ({column_list})."
        ),
        impact="Expected 40-80% improvement for multi-column WHERE clauses",
        default_confidence=0.75,
        default_risk=RiskLevel.LOW,
    ),
    RecommendationType.CORRELATED_SUBQUERY: RecommendationTemplate(
        ddl="",
        rationale=(
            "Correlated subquery executes once per outer row ({calls} calls). "
            "Consider rewriting as JOIN or EXISTS for better performance."
        ),
        impact="Expected 30-70% performance improvement by eliminating N+1 query pattern",
        default_confidence=0.70,
        default_risk=RiskLevel.MEDIUM,
    ),
    RecommendationType.JOIN_INDEX: RecommendationTemplate(
        ddl="CREATE INDEX idx_{table}_{column} ON {table} ({column});",
        rationale=(
            "JOIN operation on table '{table}' lacks index on column '{column}' "
            "(average {avg_join_time:.2f} ms), causing nested loop joins instead of "
            "more efficient hash/merge joins."
        ),
        impact="Expected 40-80% improvement in join performance",
        default_confidence=0.80,
        default_risk=RiskLevel.LOW,
    ),
    RecommendationType.REDUNDANT_INDEX: RecommendationTemplate(
        ddl="DROP INDEX {index_name};",
        rationale=(
            "Index '{index_name}' on table '{table}' is redundant with existing index "
            "'{existing_index}' and consumes {size} of storage."
        ),
        impact="Reclaim {size} storage and reduce maintenance overhead",
        default_confidence=0.90,
        default_risk=RiskLevel.LOW,
    ),
    RecommendationType.CARDINALITY_ISSUE: RecommendationTemplate(
        ddl=(
            "ANALYZE {table}; -- or ALTER TABLE {table} ALTER COLUMN "
            "<selective_column> SET STATISTICS 1000;"
        ),
        rationale=(
            "Query has very low selectivity ({selectivity_pct:.4f}%) on large table "
            "'{table}' but is still slow. Consider updating table statistics or "
            "creating expression indexes."
        ),
        impact="Expected 20-50% improvement with better statistics",
        default_confidence=0.60,
        default_risk=RiskLevel.LOW,
    ),
})

_missing_templates = set(RecommendationType) - set(TEMPLATES)
if _missing_templates:
    raise RuntimeError(f"No recommendation template for: {sorted(t.value for t in _missing_templates)}")


def format_bytes(size: int) -> str:
    """Human-readable size in binary units (B, KB, MB, GB)."""
    if size < 1024:
        return f"{size} B"
    if size < 1024 ** 2:
        return f"{size / 1024:.1f} KB"
    if size < 1024 ** 3:
        return f"{size / 1024 ** 2:.1f} MB"
    return f"{size / 1024 ** 3:.1f} GB"


def subquery_rewrite(sql: str) -> str:
    """Rewrite hint (SQL comment) for a correlated subquery."""
    upper = sql.upper()
    if "EXISTS" in upper:
        return (
            "-- Consider using JOIN instead of EXISTS subquery\n"
            "-- Example: SELECT ... FROM table1 t1 JOIN table2 t2 ON t1.id = t2.foreign_id"
        )
    if "SELECT" in upper and "(" in sql:
        return (
            "-- Consider rewriting correlated subquery as JOIN\n"
            "-- Example: Replace (SELECT ... WHERE outer.id = inner.id) with proper JOIN"
        )
    return "-- Consider rewriting subquery as JOIN or window function for better performance"


class RecommendationGenerator:
    """
    Builds fully formed recommendations from raw detection facts.

    Example:
        generator = RecommendationGenerator()
        rec = generator.missing_index("orders", "customer_id", row_count=500_000, query_count=50)
        print(rec.ddl)  # CREATE INDEX idx_orders_customer_id ON orders (customer_id);
    """

    def __init__(self, templates: MappingProxyType | None = None) -> None:
        self.templates = templates if templates is not None else TEMPLATES

    def calculate_confidence(
        self,
        rec_type: RecommendationType,
        row_count: int,
        query_count: int,
    ) -> float:
        """
        Template confidence nudged by evidence.

        +0.1 for big, frequently run queries; -0.2 for small tables or
        rarely run queries; unchanged otherwise.
        """
        base = self.templates[rec_type].default_confidence

        if row_count > 10_000 and query_count > 10:
            confidence = base + 0.1
        elif row_count < 1_000 or query_count < 5:
            confidence = base - 0.2
        else:
            confidence = base

        return round(min(max(confidence, 0.0), 1.0), 2)

    def missing_index(
        self,
        table: str,
        column: str,
        row_count: int,
        query_count: int,
    ) -> Recommendation:
        template = self.templates[RecommendationType.MISSING_INDEX]
        fields = {"table": table, "column": column, "row_count": f"{row_count:,}"}
        return Recommendation(
            type=RecommendationType.MISSING_INDEX,
            ddl=template.ddl.format(**fields),
            rationale=template.rationale.format(**fields),
            confidence=self.calculate_confidence(
                RecommendationType.MISSING_INDEX, row_count, query_count
            ),
            impact_estimate=template.impact.format(**fields),
            risk_level=template.default_risk,
        )

    def composite_index(
        self,
        table: str,
        columns: list[str],
        row_count: int,
    ) -> Recommendation:
        template = self.templates[RecommendationType.COMPOSITE_INDEX]
        fields = {
            "table": table,
            "column_list": ", ".join(columns),
            "index_name": f"{table}_{'_'.join(columns)}",
            "row_count": f"{row_count:,}",
        }
        return Recommendation(
            type=RecommendationType.COMPOSITE_INDEX,
            ddl=template.ddl.format(**fields),
            rationale=template.rationale.format(**fields),
            confidence=template.default_confidence,
            impact_estimate=template.impact.format(**fields),
            risk_level=template.default_risk,
        )

    def correlated_subquery(self, query: QueryStats) -> Recommendation:
        template = self.templates[RecommendationType.CORRELATED_SUBQUERY]
        return Recommendation(
            type=RecommendationType.CORRELATED_SUBQUERY,
            rewrite_sql=subquery_rewrite(query.query),
            rationale=template.rationale.format(calls=query.calls),
            confidence=template.default_confidence,
            impact_estimate=template.impact,
            risk_level=template.default_risk,
        )

    def join_index(self, table: str, column: str, avg_join_time: float) -> Recommendation:
        template = self.templates[RecommendationType.JOIN_INDEX]
        fields = {"table": table, "column": column, "avg_join_time": avg_join_time}
        return Recommendation(
            type=RecommendationType.JOIN_INDEX,
            ddl=template.ddl.format(**fields),
            rationale=template.rationale.format(**fields),
            confidence=template.default_confidence,
            impact_estimate=template.impact.format(**fields),
            risk_level=template.default_risk,
        )

    def redundant_index(
        self,
        redundant_index: str,
        existing_index: str,
        table: str,
        size_bytes: int,
    ) -> Recommendation:
        template = self.templates[RecommendationType.REDUNDANT_INDEX]
        fields = {
            "index_name": redundant_index,
            "existing_index": existing_index,
            "table": table,
            "size": format_bytes(size_bytes),
        }
        return Recommendation(
            type=RecommendationType.REDUNDANT_INDEX,
            ddl=template.ddl.format(**fields),
            rationale=template.rationale.format(**fields),
            confidence=template.default_confidence,
            impact_estimate=template.impact.format(**fields),
            risk_level=template.default_risk,
        )

    def cardinality_issue(self, table: str, selectivity: float) -> Recommendation:
        template = self.templates[RecommendationType.CARDINALITY_ISSUE]
        fields = {"table": table, "selectivity_pct": selectivity * 100}
        return Recommendation(
            type=RecommendationType.CARDINALITY_ISSUE,
            ddl=template.ddl.format(**fields),
            rationale=template.rationale.format(**fields),
            confidence=template.default_confidence,
            impact_estimate=template.impact.format(**fields),
            risk_level=template.default_risk,
        )
