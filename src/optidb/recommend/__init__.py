"""Recommendation synthesis - DDL, rationale and impact text."""

from optidb.recommend.generator import (
    TEMPLATES,
    RecommendationGenerator,
    RecommendationTemplate,
    format_bytes,
    subquery_rewrite,
)

__all__ = [
    "TEMPLATES",
    "RecommendationGenerator",
    "RecommendationTemplate",
    "format_bytes",
    "subquery_rewrite",
]
