"""Tests for the RuleEngine orchestration layer."""

import asyncio
import logging

import pytest

from optidb.augmenter import Augmenter, ClaudeAugmenter
from optidb.config import Config, EngineConfig
from optidb.engine import RuleEngine
from optidb.exceptions import AugmenterError
from optidb.models import (
    IndexInfo,
    QueryStats,
    Recommendation,
    RecommendationType,
    RiskLevel,
    TableInfo,
    WorkloadSnapshot,
)

MISSING_INDEX_SQL = "SELECT * FROM orders WHERE customer_id = 42"
TABLES = [TableInfo(table_name="orders", row_count=500_000)]


def make_query(sql: str = MISSING_INDEX_SQL, calls: int = 50, mean_exec_time: float = 5.0, rows: int = 0) -> QueryStats:
    return QueryStats(query=sql, calls=calls, mean_exec_time=mean_exec_time, rows=rows)


def comparable(recommendations: list[Recommendation]) -> list[dict]:
    """Drop timestamps so two runs can be compared."""
    return [r.model_dump(exclude={"created_at"}) for r in recommendations]


class FailingAugmenter(Augmenter):
    name = "failing"

    def __init__(self, exc: Exception | None = None):
        self.exc = exc or AugmenterError("service unavailable", provider="failing")
        self.calls = 0

    async def recommend(self, query, tables, indexes):
        self.calls += 1
        raise self.exc


class StaticAugmenter(Augmenter):
    """Returns canned output without validation."""

    name = "static"

    def __init__(self, items):
        self.items = items

    async def recommend(self, query, tables, indexes):
        return self.items


class SlowAugmenter(Augmenter):
    name = "slow"

    def __init__(self):
        self.started = asyncio.Event()

    async def recommend(self, query, tables, indexes):
        self.started.set()
        await asyncio.sleep(60)
        return []


class TestGating:
    """Rarely called queries are never analyzed."""

    def test_below_min_calls(self):
        engine = RuleEngine()
        assert engine.analyze_query(make_query(calls=4), TABLES, []) == []

    def test_gating_skips_augmenter(self):
        augmenter = FailingAugmenter()
        engine = RuleEngine(augmenter=augmenter)

        assert engine.analyze_query(make_query(calls=1), TABLES, []) == []
        assert augmenter.calls == 0

    def test_custom_min_calls(self):
        engine = RuleEngine(config=EngineConfig(min_calls=100))
        assert engine.analyze_query(make_query(calls=50), TABLES, []) == []


class TestHeuristics:
    """Scenario-level behaviour of the rule pipeline."""

    def test_missing_index_scenario(self):
        recs = RuleEngine().analyze_query(make_query(), TABLES, [])

        assert len(recs) == 1
        rec = recs[0]
        assert rec.type == RecommendationType.MISSING_INDEX
        assert "orders" in rec.ddl and "customer_id" in rec.ddl
        assert rec.confidence == 0.8
        assert rec.risk_level == RiskLevel.LOW

    def test_redundant_index_scenario(self):
        indexes = [
            IndexInfo(table_name="users", index_name="idx_users_email", columns=["email"], index_scans=2),
            IndexInfo(
                table_name="users",
                index_name="idx_users_email_created",
                columns=["email", "created_at"],
                index_scans=900,
            ),
        ]
        query = make_query("SELECT * FROM users WHERE email = 'a@example.com'", calls=10)

        recs = RuleEngine().analyze_query(query, [TableInfo(table_name="users", row_count=5000)], indexes)

        assert [r.type for r in recs] == [RecommendationType.REDUNDANT_INDEX]
        assert recs[0].ddl == "DROP INDEX idx_users_email;"

    def test_cardinality_scenario(self):
        indexes = [IndexInfo(table_name="events", index_name="events_pkey", columns=["id"], is_primary=True)]
        query = make_query("SELECT * FROM events WHERE id = 7", mean_exec_time=2.0, rows=5)

        large = RuleEngine().analyze_query(query, [TableInfo(table_name="events", row_count=1_000_000)], indexes)
        small = RuleEngine().analyze_query(query, [TableInfo(table_name="events", row_count=500)], indexes)

        assert [r.type for r in large] == [RecommendationType.CARDINALITY_ISSUE]
        assert small == []

    def test_priority_order(self):
        """Several findings come back in rule priority order."""
        sql = (
            "SELECT o.id, (SELECT COUNT(*) FROM items i WHERE i.order_id = o.id) "
            "FROM orders o JOIN customers c ON o.customer_id = c.id"
        )
        recs = RuleEngine().analyze_query(make_query(sql), [], [])

        assert [r.type for r in recs] == [
            RecommendationType.CORRELATED_SUBQUERY,
            RecommendationType.JOIN_INDEX,
        ]

    def test_invariants_hold(self):
        recs = RuleEngine().analyze_query(make_query(), TABLES, [])
        for rec in recs:
            assert 0.0 <= rec.confidence <= 1.0
            assert rec.risk_level in set(RiskLevel)

    def test_injected_logger(self, caplog):
        logger = logging.getLogger("optidb.tests.engine")
        engine = RuleEngine(logger=logger)

        with caplog.at_level(logging.INFO, logger="optidb.tests.engine"):
            engine.analyze_query(make_query(), TABLES, [])

        assert any("MISSING_INDEX" in record.getMessage() for record in caplog.records)


class TestAugmenter:
    """AI override and fallback."""

    def test_fallback_equals_heuristics(self):
        query = make_query()
        heuristic = RuleEngine().analyze_query(query, TABLES, [])
        augmenter = FailingAugmenter()

        fallback = RuleEngine(augmenter=augmenter).analyze_query(query, TABLES, [])

        assert augmenter.calls == 1
        assert comparable(fallback) == comparable(heuristic)

    def test_fallback_on_unexpected_exception(self):
        engine = RuleEngine(augmenter=FailingAugmenter(RuntimeError("boom")))
        recs = engine.analyze_query(make_query(), TABLES, [])
        assert [r.type for r in recs] == [RecommendationType.MISSING_INDEX]

    def test_success_replaces_heuristics(self):
        canned = Recommendation(
            type=RecommendationType.COMPOSITE_INDEX,
            ddl="CREATE INDEX idx_orders_customer_status ON orders (customer_id, status);",
            rationale="from the model",
            confidence=0.9,
            risk_level=RiskLevel.LOW,
        )
        engine = RuleEngine(augmenter=StaticAugmenter([canned]))

        recs = engine.analyze_query(make_query(), TABLES, [])

        assert comparable(recs) == comparable([canned])

    def test_empty_success_is_kept(self):
        """An empty augmenter answer does not trigger the rules."""
        engine = RuleEngine(augmenter=StaticAugmenter([]))
        assert engine.analyze_query(make_query(), TABLES, []) == []

    def test_output_is_sanitized(self):
        items = [
            {"type": "missing_index", "rationale": "x", "confidence": 7.5, "risk_level": "extreme"},
            {"type": "not_a_type", "rationale": "dropped"},
        ]
        engine = RuleEngine(augmenter=StaticAugmenter(items))

        recs = engine.analyze_query(make_query(), TABLES, [])

        assert len(recs) == 1
        assert recs[0].confidence == 0.5
        assert recs[0].risk_level == RiskLevel.MEDIUM

    @pytest.mark.parametrize("output", [None, "CREATE INDEX ...", {"type": "missing_index"}])
    def test_non_list_output_falls_back(self, output):
        query = make_query()
        heuristic = RuleEngine().analyze_query(query, TABLES, [])

        recs = RuleEngine(augmenter=StaticAugmenter(output)).analyze_query(query, TABLES, [])

        assert [r.type for r in recs] == [RecommendationType.MISSING_INDEX]
        assert comparable(recs) == comparable(heuristic)

    def test_cancellation_propagates(self):
        augmenter = SlowAugmenter()
        engine = RuleEngine(augmenter=augmenter)

        async def run():
            task = asyncio.create_task(engine.analyze_query_async(make_query(), TABLES, []))
            await augmenter.started.wait()
            task.cancel()
            await task

        with pytest.raises(asyncio.CancelledError):
            asyncio.run(run())

    def test_from_config_without_key(self):
        engine = RuleEngine.from_config(Config())
        assert engine.augmenter is None

    def test_from_config_with_key(self):
        config = Config(
            ai_api_key="sk-test",
            ai_model="claude-test",
            ai_base_url="http://localhost:9999",
            engine=EngineConfig(min_calls=2),
        )
        engine = RuleEngine.from_config(config)

        assert isinstance(engine.augmenter, ClaudeAugmenter)
        assert engine.augmenter.model == "claude-test"
        assert engine.augmenter.base_url == "http://localhost:9999"
        assert engine.config.min_calls == 2

    def test_from_config_ai_disabled(self):
        engine = RuleEngine.from_config(Config(ai_api_key="sk-test", ai_enabled=False))
        assert engine.augmenter is None


class TestWorkload:
    """Workload analysis keeps snapshot order and honours the limit."""

    def make_snapshot(self) -> WorkloadSnapshot:
        return WorkloadSnapshot(
            queries=[
                make_query("SELECT * FROM orders WHERE customer_id = 1", mean_exec_time=9.0),
                make_query("SELECT * FROM orders WHERE id = 1", calls=2),
                make_query("SELECT * FROM orders WHERE status = 'x'", mean_exec_time=3.0),
                make_query("SELECT * FROM orders WHERE total > 10", mean_exec_time=1.0),
            ],
            tables=TABLES,
            indexes=[],
        )

    def test_reports_in_snapshot_order(self):
        reports = RuleEngine().analyze_workload(self.make_snapshot())

        assert [r.query.query for r in reports] == [
            "SELECT * FROM orders WHERE customer_id = 1",
            "SELECT * FROM orders WHERE status = 'x'",
            "SELECT * FROM orders WHERE total > 10",
        ]
        assert reports[0].fingerprint == reports[0].query.fingerprint

    def test_limit(self):
        reports = RuleEngine().analyze_workload(self.make_snapshot(), limit=2)
        assert len(reports) == 2

    def test_async_matches_sync(self):
        engine = RuleEngine()
        snapshot = self.make_snapshot()

        sync_reports = engine.analyze_workload(snapshot, limit=2)
        async_reports = asyncio.run(engine.analyze_workload_async(snapshot, limit=2))

        assert [r.fingerprint for r in async_reports] == [r.fingerprint for r in sync_reports]
