"""
Query fingerprinting.

Stable identifiers for SQL statements so that the same statement with
different literals collapses to one identity:
- Literal values, $n parameters and IN/VALUES list lengths are erased
- Case and whitespace differences are erased
- Structural differences (columns, clauses) are preserved

The digest is MD5 over the normalized text, rendered as 32 lowercase hex
characters. ``short_id`` truncates it to 12 characters for display; the
truncated form is a convenience and is not collision-free.
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass

WILDCARD = "?"
SHORT_ID_LENGTH = 12

# Applied in order to the trimmed, upper-cased statement.
_NORMALIZATION_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\$\d+"), WILDCARD),
    (re.compile(r"'[^']*'"), WILDCARD),
    (re.compile(r"\b\d+\b"), WILDCARD),
    (re.compile(r"\s+"), " "),
    (re.compile(r"\(\s*\?\s*(,\s*\?\s*)*\)"), "(?)"),
    (re.compile(r"IN\s*\(\s*\?\s*(,\s*\?\s*)*\)"), "IN (?)"),
    (re.compile(r"VALUES\s*\(\s*\?\s*(,\s*\?\s*)*\)"), "VALUES (?)"),
)

_QUERY_TYPES = ("SELECT", "INSERT", "UPDATE", "DELETE", "CREATE", "ALTER", "DROP")


def normalize_query(sql: str) -> str:
    """
    Canonicalize SQL text for fingerprinting.

    Example:
        >>> normalize_query("select * from t where id in (1, 2, 3)")
        'SELECT * FROM T WHERE ID IN (?)'
    """
    normalized = sql.strip().upper()
    for pattern, replacement in _NORMALIZATION_RULES:
        normalized = pattern.sub(replacement, normalized)
    return normalized.strip()


def fingerprint_query(sql: str) -> str:
    """128-bit MD5 digest of the normalized query, lowercase hex."""
    normalized = normalize_query(sql)
    return hashlib.md5(normalized.encode("utf-8")).hexdigest()


def short_id(fingerprint: str) -> str:
    """Display prefix of a fingerprint. Two queries may share one."""
    return fingerprint[:SHORT_ID_LENGTH]


def detect_query_type(sql: str) -> str:
    """Statement kind from the leading keyword, or "OTHER"."""
    head = sql.strip().upper()
    for query_type in _QUERY_TYPES:
        if head.startswith(query_type):
            return query_type
    return "OTHER"


@dataclass(frozen=True)
class QueryFingerprint:
    """
    Normalized text plus digest for one SQL statement.

    Used by reports to group statements and by the CLI ``fingerprint``
    command.
    """

    normalized: str
    digest: str
    query_type: str = "OTHER"

    @classmethod
    def from_sql(cls, sql: str) -> "QueryFingerprint":
        normalized = normalize_query(sql)
        return cls(
            normalized=normalized,
            digest=hashlib.md5(normalized.encode("utf-8")).hexdigest(),
            query_type=detect_query_type(sql),
        )

    @property
    def short(self) -> str:
        return short_id(self.digest)

    def matches(self, sql: str) -> bool:
        """True if ``sql`` fingerprints to the same identity."""
        return fingerprint_query(sql) == self.digest
