"""
Lexical SQL reference extraction.

Pulls table names, filter columns and join conditions out of raw SQL text
with regular expressions. This is deliberately NOT a parser:
- Aliases are not resolved back to their tables
- Subqueries and CTEs are scanned as flat text
- Quoted and schema-qualified identifiers are not handled
  ("public.orders" yields "public")

The rules and their tests are calibrated against this behaviour, so it
must not be upgraded to a real parser without re-calibrating them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_IDENT = r"([a-zA-Z_][a-zA-Z0-9_]*)"

_TABLE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(rf"\bFROM\s+{_IDENT}", re.IGNORECASE),
    re.compile(rf"\bJOIN\s+{_IDENT}", re.IGNORECASE),
    re.compile(rf"\bINTO\s+{_IDENT}", re.IGNORECASE),
    re.compile(rf"\bUPDATE\s+{_IDENT}", re.IGNORECASE),
)

# Tried in this order; the first operator with a match wins.
_FILTER_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"WHERE\s+(\w+)\s*="),
    re.compile(r"WHERE\s+(\w+)\s*IN"),
    re.compile(r"WHERE\s+(\w+)\s*>"),
    re.compile(r"WHERE\s+(\w+)\s*<"),
    re.compile(r"WHERE\s+(\w+)\s*LIKE"),
)

_JOIN_PATTERN = re.compile(r"JOIN\s+(\w+)\s+\w*\s*ON\s+\w+\.(\w+)\s*=\s*\w+\.(\w+)")

_CORRELATED_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"SELECT.*\(.*SELECT.*WHERE.*=.*\w+\.", re.DOTALL),
    re.compile(r"EXISTS.*\(.*SELECT.*WHERE.*=.*\w+\.", re.DOTALL),
    re.compile(r"NOT EXISTS.*\(.*SELECT.*WHERE.*=.*\w+\.", re.DOTALL),
)

_SEQ_SCAN_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"WHERE.*LIKE", re.DOTALL),
    re.compile(r"WHERE.*!=", re.DOTALL),
    re.compile(r"WHERE.*<>", re.DOTALL),
    re.compile(r"WHERE.*\bOR\b", re.DOTALL),
    re.compile(r"WHERE.*ILIKE", re.DOTALL),
    re.compile(r"ORDER BY.*RANDOM", re.DOTALL),
)


@dataclass(frozen=True)
class JoinCondition:
    """
    One ``JOIN <table> [alias] ON a.<left> = b.<right>`` occurrence.

    Attributes:
        table: Joined table (lowercase)
        left_column: Column on the left of the equality (lowercase)
        right_column: Column on the right of the equality (lowercase)
    """

    table: str
    left_column: str
    right_column: str


def extract_tables(sql: str) -> list[str]:
    """
    Lowercase table names referenced after FROM, JOIN, INTO and UPDATE.

    Order follows the keyword scan (all FROMs, then JOINs, ...) with
    duplicates removed.
    """
    tables: list[str] = []
    for pattern in _TABLE_PATTERNS:
        for match in pattern.finditer(sql):
            table = match.group(1).lower()
            if table not in tables:
                tables.append(table)
    return tables


def extract_filter_column(sql: str) -> str | None:
    """First column compared directly after WHERE, lowercase."""
    upper = sql.upper()
    for pattern in _FILTER_PATTERNS:
        match = pattern.search(upper)
        if match:
            return match.group(1).lower()
    return None


def extract_join_conditions(sql: str) -> list[JoinCondition]:
    """All qualified equi-join conditions, in textual order."""
    return [
        JoinCondition(
            table=match.group(1).lower(),
            left_column=match.group(2).lower(),
            right_column=match.group(3).lower(),
        )
        for match in _JOIN_PATTERN.finditer(sql.upper())
    ]


def has_correlated_subquery(sql: str) -> bool:
    """
    Lexical signature of a subquery filtering on an outer alias.

    Matches ``SELECT ... (SELECT ... WHERE ... = alias.col)`` and the
    EXISTS / NOT EXISTS forms.
    """
    upper = sql.upper()
    return any(pattern.search(upper) for pattern in _CORRELATED_PATTERNS)


def has_sequential_scan_hint(sql: str) -> bool:
    """True if the query uses predicates that commonly defeat B-tree indexes."""
    upper = sql.upper()
    return any(pattern.search(upper) for pattern in _SEQ_SCAN_PATTERNS)
