"""
FastAPI application for OptiDB.

Stateless: each request carries its own snapshot and nothing is stored.

Endpoints:
- GET  /health           health check
- POST /api/v1/analyze   analyze a workload snapshot

Run with:
    uvicorn optidb.api:create_app --factory
    optidb serve --port 8000
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, FastAPI, Request
from pydantic import BaseModel, Field

from optidb import __version__
from optidb.config import Config, get_config
from optidb.engine import RuleEngine
from optidb.models import IndexInfo, QueryStats, TableInfo, WorkloadSnapshot

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["analysis"])


class AnalyzeRequest(BaseModel):
    """Request body for workload analysis."""

    queries: list[QueryStats] = Field(..., description="Query statistics, slowest first")
    tables: list[TableInfo] = Field(default_factory=list)
    indexes: list[IndexInfo] = Field(default_factory=list)
    limit: int | None = Field(default=None, ge=1, description="Maximum number of reports")

    def to_snapshot(self) -> WorkloadSnapshot:
        return WorkloadSnapshot(queries=self.queries, tables=self.tables, indexes=self.indexes)


def get_engine(request: Request) -> RuleEngine:
    """Engine built at app creation time."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise RuntimeError("App not configured. RuleEngine not initialized.")
    return engine


@router.post("/analyze", summary="Analyze a workload snapshot")
async def analyze(body: AnalyzeRequest, request: Request) -> list[dict[str, Any]]:
    """
    Return one report per query that produced recommendations.

    Queries are analyzed in the order given and are not re-sorted.
    """
    engine = get_engine(request)
    snapshot = body.to_snapshot()

    reports = await engine.analyze_workload_async(snapshot, limit=body.limit)
    logger.info("Analyzed %d queries, %d reports", len(snapshot.queries), len(reports))
    return [report.to_dict() for report in reports]


def create_app(config: Config | None = None, engine: RuleEngine | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Optional config override (uses env vars if None).
        engine: Optional prebuilt engine, mainly for tests.
    """
    app = FastAPI(
        title="OptiDB",
        description="PostgreSQL performance recommendations from query statistics.",
        version=__version__,
        docs_url="/api/docs",
        openapi_url="/api/openapi.json",
    )
    app.state.engine = engine or RuleEngine.from_config(config or get_config())

    @app.get("/health", summary="Health check")
    async def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    app.include_router(router)
    return app
