"""
Augmenter protocol (optional AI integration).

The rule engine works without any augmenter. When one is configured it is
asked first, and on success its recommendations replace the heuristic rules
for that query. Any AugmenterError makes the engine fall back to the rules.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from optidb.models import IndexInfo, QueryStats, Recommendation, TableInfo


class Augmenter(ABC):
    """
    Abstract base for AI-backed recommendation sources.

    Implementations must raise AugmenterError (or let any exception escape)
    when they cannot answer; they must not return partial garbage. The call
    is awaited, so cancelling the caller's task abandons the request.
    """

    name: str = "augmenter"

    @abstractmethod
    async def recommend(
        self,
        query: "QueryStats",
        tables: Sequence["TableInfo"],
        indexes: Sequence["IndexInfo"],
    ) -> list["Recommendation"]:
        """Produce recommendations for one query and its schema context."""
        ...
