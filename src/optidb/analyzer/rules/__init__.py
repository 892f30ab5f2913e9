"""Analyzer rules module - individual detection rules."""

from optidb.analyzer.rules.base import Rule, RuleContext
from optidb.analyzer.rules.cardinality import CardinalityIssue
from optidb.analyzer.rules.correlated_subquery import CorrelatedSubquery
from optidb.analyzer.rules.inefficient_join import InefficientJoin
from optidb.analyzer.rules.missing_index import MissingIndex
from optidb.analyzer.rules.redundant_index import RedundantIndex, is_column_prefix

# Priority order used by the rule engine.
DEFAULT_RULES: tuple[type[Rule], ...] = (
    MissingIndex,
    CorrelatedSubquery,
    InefficientJoin,
    RedundantIndex,
    CardinalityIssue,
)

__all__ = [
    "Rule",
    "RuleContext",
    "DEFAULT_RULES",
    "is_column_prefix",
    # Individual rules
    "CardinalityIssue",
    "CorrelatedSubquery",
    "InefficientJoin",
    "MissingIndex",
    "RedundantIndex",
]
