"""
Base class for detection rules.

All rules must inherit from Rule and implement the analyze() method.
This ensures consistent behavior and enables contract testing.

A rule inspects one aspect of a (query, metadata) combination and returns
at most one Recommendation. Rules are:
- Pure: no state survives a call, inputs are never mutated
- Total: a missing condition yields None, never an exception
- Independent: a rule never sees another rule's output
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from optidb.config import EngineConfig
from optidb.models import IndexInfo, QueryStats, Recommendation, RecommendationType, TableInfo


@dataclass(frozen=True)
class RuleContext:
    """
    Everything a rule may look at for one query.

    ``table_names`` is extracted once per call by the engine, so every rule
    agrees on which tables the query references.
    """

    query: QueryStats
    table_names: tuple[str, ...] = ()
    tables: Sequence[TableInfo] = ()
    indexes: Sequence[IndexInfo] = ()
    config: EngineConfig = field(default_factory=EngineConfig)

    def find_table(self, name: str) -> TableInfo | None:
        """Known table by (case-insensitive) name, if any."""
        for table in self.tables:
            if table.table_name.lower() == name:
                return table
        return None

    def indexes_on(self, table_names: Iterable[str]) -> list[IndexInfo]:
        """Indexes belonging to any of the given tables."""
        wanted = set(table_names)
        return [idx for idx in self.indexes if idx.table_name.lower() in wanted]

    def has_leading_index(self, column: str, table_names: Iterable[str]) -> bool:
        """
        True if some index on one of ``table_names`` starts with ``column``.

        Indexes with an empty column list are ignored.
        """
        return any(
            idx.leading_column == column
            for idx in self.indexes_on(table_names)
        )


class Rule(ABC):
    """
    Abstract base class for detection rules.

    Attributes:
        rule_id: Unique identifier, UPPER_SNAKE_CASE (e.g., "MISSING_INDEX")
        version: Semver string, bump when detection logic changes
        recommendation_type: Type of the recommendation this rule emits
        description: One-line description for documentation
    """

    rule_id: str
    version: str = "1.0.0"
    recommendation_type: RecommendationType
    description: str = ""

    @abstractmethod
    def analyze(self, ctx: RuleContext) -> Recommendation | None:
        """
        Inspect one query and its metadata.

        Returns:
            A recommendation, or None when the rule does not apply.
        """

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(rule_id={self.rule_id!r}, version={self.version!r})"
