"""Analyzer module - lexical SQL analysis and detection rules."""

from optidb.analyzer.fingerprint import (
    QueryFingerprint,
    detect_query_type,
    fingerprint_query,
    normalize_query,
    short_id,
)
from optidb.analyzer.sql_parser import (
    JoinCondition,
    extract_filter_column,
    extract_join_conditions,
    extract_tables,
    has_correlated_subquery,
    has_sequential_scan_hint,
)

__all__ = [
    # Fingerprinting
    "QueryFingerprint",
    "detect_query_type",
    "fingerprint_query",
    "normalize_query",
    "short_id",
    # Reference extraction
    "JoinCondition",
    "extract_filter_column",
    "extract_join_conditions",
    "extract_tables",
    "has_correlated_subquery",
    "has_sequential_scan_hint",
]
