"""
Stats collector - read-only source of query statistics and schema metadata.

Reads:
- pg_stat_statements: per-statement calls, timings, rows and buffer counters
- pg_stat_user_tables: table row estimates and on-disk size
- pg_stat_user_indexes + pg_index: index columns, flags, size and usage

Safety requirements:
- Read-only: only SELECT statements are issued
- Time-bounded: every session sets statement_timeout

Query statistics come back ordered by descending mean execution time and
already truncated; the rule engine relies on that order and does not
re-sort.

Usage:
    from optidb.collector import StatsCollector

    with StatsCollector.connect("postgresql://profiler_ro@localhost/app") as collector:
        snapshot = collector.snapshot(min_duration_ms=1.0)
"""

from __future__ import annotations

import logging
from typing import Any

import psycopg
from psycopg.rows import dict_row

from optidb.exceptions import CollectorError
from optidb.models import IndexInfo, QueryStats, TableInfo, WorkloadSnapshot

logger = logging.getLogger(__name__)

QUERY_STATS_SQL = """
    SELECT
        query,
        calls,
        mean_exec_time,
        total_exec_time AS total_time,
        rows,
        shared_blks_hit,
        shared_blks_read
    FROM pg_stat_statements
    WHERE query NOT LIKE '%%pg_stat_statements%%'
      AND calls > 1
    ORDER BY mean_exec_time DESC
    LIMIT %(limit)s
"""

SLOW_QUERIES_SQL = """
    SELECT
        query,
        calls,
        mean_exec_time,
        total_exec_time AS total_time,
        rows,
        shared_blks_hit,
        shared_blks_read
    FROM pg_stat_statements
    WHERE query NOT LIKE '%%pg_stat_statements%%'
      AND mean_exec_time > %(min_duration_ms)s
      AND calls > 1
    ORDER BY mean_exec_time DESC
    LIMIT %(limit)s
"""

TABLE_INFO_SQL = """
    SELECT
        schemaname AS schema_name,
        relname AS table_name,
        GREATEST(n_live_tup, 0) AS row_count,
        pg_total_relation_size(relid) AS size_bytes
    FROM pg_stat_user_tables
    ORDER BY size_bytes DESC
"""

INDEX_INFO_SQL = """
    SELECT
        psi.schemaname AS schema_name,
        psi.relname AS table_name,
        psi.indexrelname AS index_name,
        array(
            SELECT pg_get_indexdef(psi.indexrelid, k + 1, true)
            FROM generate_subscripts(pi.indkey, 1) AS k
            WHERE k < pi.indnkeyatts
            ORDER BY k
        ) AS columns,
        pi.indisunique AS is_unique,
        pi.indisprimary AS is_primary,
        pg_relation_size(psi.indexrelid) AS size_bytes,
        psi.idx_scan AS index_scans,
        psi.idx_tup_read AS tuples_read,
        psi.idx_tup_fetch AS tuples_fetch
    FROM pg_stat_user_indexes psi
    JOIN pg_index pi ON psi.indexrelid = pi.indexrelid
    ORDER BY size_bytes DESC
"""


class StatsCollector:
    """
    Reads statistics and metadata through an open psycopg connection.

    Any connection-like object with a ``cursor(row_factory=...)`` context
    manager works, which keeps the collector testable without a server.
    """

    def __init__(self, conn: Any, query_limit: int = 100) -> None:
        self.conn = conn
        self.query_limit = query_limit

    @classmethod
    def connect(
        cls,
        dsn: str,
        statement_timeout_ms: int = 5000,
        query_limit: int = 100,
    ) -> "StatsCollector":
        """Open a read-only, time-bounded session."""
        try:
            conn = psycopg.connect(
                dsn,
                autocommit=True,
                options=f"-c statement_timeout={statement_timeout_ms} -c default_transaction_read_only=on",
            )
        except psycopg.Error as e:
            raise CollectorError(f"Failed to connect to database: {e}", operation="connect") from e

        logger.info("Connected to database for statistics collection")
        return cls(conn, query_limit=query_limit)

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "StatsCollector":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _fetch(self, operation: str, sql: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        try:
            with self.conn.cursor(row_factory=dict_row) as cur:
                cur.execute(sql, params)
                return list(cur.fetchall())
        except psycopg.Error as e:
            logger.error("Failed to collect %s: %s", operation, e)
            raise CollectorError(f"Failed to collect {operation}: {e}", operation=operation) from e

    def get_query_stats(self) -> list[QueryStats]:
        """Top statements by mean execution time."""
        logger.info("Collecting query statistics from pg_stat_statements")
        rows = self._fetch("query_stats", QUERY_STATS_SQL, {"limit": self.query_limit})
        stats = [QueryStats.model_validate(row) for row in rows]
        logger.info("Collected %d query statistics records", len(stats))
        return stats

    def get_slow_queries(self, min_duration_ms: float) -> list[QueryStats]:
        """Statements whose mean execution time exceeds ``min_duration_ms``."""
        logger.info("Collecting slow queries with min duration: %.2fms", min_duration_ms)
        rows = self._fetch(
            "slow_queries",
            SLOW_QUERIES_SQL,
            {"min_duration_ms": min_duration_ms, "limit": self.query_limit},
        )
        stats = [QueryStats.model_validate(row) for row in rows]
        logger.info("Collected %d slow queries", len(stats))
        return stats

    def get_table_info(self) -> list[TableInfo]:
        logger.info("Collecting table information from pg_stat_user_tables")
        rows = self._fetch("table_info", TABLE_INFO_SQL)
        tables = [TableInfo.model_validate(row) for row in rows]
        logger.info("Collected %d table info records", len(tables))
        return tables

    def get_index_info(self) -> list[IndexInfo]:
        logger.info("Collecting index information from pg_stat_user_indexes")
        rows = self._fetch("index_info", INDEX_INFO_SQL)

        indexes: list[IndexInfo] = []
        for row in rows:
            index = IndexInfo.model_validate({**row, "columns": row.get("columns") or []})
            logger.debug(
                "Found index: %s on %s.%s with columns [%s]",
                index.index_name,
                index.schema_name,
                index.table_name,
                ", ".join(index.columns),
            )
            indexes.append(index)

        logger.info("Collected %d index info records", len(indexes))
        return indexes

    def snapshot(self, min_duration_ms: float | None = None) -> WorkloadSnapshot:
        """Queries (all, or only slow ones) plus table and index metadata."""
        if min_duration_ms is None:
            queries = self.get_query_stats()
        else:
            queries = self.get_slow_queries(min_duration_ms)

        return WorkloadSnapshot(
            queries=queries,
            tables=self.get_table_info(),
            indexes=self.get_index_info(),
        )
