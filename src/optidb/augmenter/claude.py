"""
Claude-backed augmenter (OPTIONAL).

Sends the query statistics and schema metadata to Claude and turns the JSON
answer into recommendations. The rule engine works perfectly without it.

Requires: pip install anthropic
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from optidb.augmenter.protocol import Augmenter
from optidb.exceptions import AugmenterError
from optidb.models import IndexInfo, QueryStats, Recommendation, RecommendationType, TableInfo

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are an expert PostgreSQL performance analyst. Respond only with valid JSON."

_KNOWN_TYPES = {t.value for t in RecommendationType}


def build_prompt(
    query: QueryStats,
    tables: Sequence[TableInfo],
    indexes: Sequence[IndexInfo],
) -> str:
    """Prompt carrying the statistics, tables and indexes as JSON."""
    tables_json = json.dumps([t.model_dump(mode="json") for t in tables], indent=2)
    indexes_json = json.dumps([i.model_dump(mode="json") for i in indexes], indent=2)
    types = "\n".join(f"- {t.value}" for t in RecommendationType)

    return f"""You are an expert PostgreSQL performance analyst. Analyze the following slow query and database metadata to provide actionable optimization recommendations.

QUERY PERFORMANCE DATA:
- SQL: {query.query}
- Calls: {query.calls}
- Mean Execution Time: {query.mean_exec_time:.2f} ms
- Total Time: {query.total_time:.2f} ms
- Rows Returned: {query.rows}
- Shared Blocks Hit: {query.shared_blks_hit}
- Shared Blocks Read: {query.shared_blks_read}

DATABASE TABLES:
{tables_json}

DATABASE INDEXES:
{indexes_json}

ANALYSIS REQUIREMENTS:
1. Identify specific performance bottlenecks in this query
2. Suggest concrete optimizations with DDL statements
3. Provide confidence scores (0.0-1.0) based on data evidence
4. Estimate performance impact in plain English
5. Assess risk level (low/medium/high) for each recommendation

RECOMMENDATION TYPES (use exactly one of these for "type"):
{types}

RESPONSE FORMAT (JSON only, no markdown):
{{
  "recommendations": [
    {{
      "type": "missing_index",
      "ddl": "CREATE INDEX idx_table_column ON table_name (column_name);",
      "rationale": "Detailed explanation of why this helps performance",
      "confidence": 0.85,
      "impact_estimate": "Expected 50-80% performance improvement",
      "risk_level": "low",
      "rewrite_sql": "Alternative SQL if applicable"
    }}
  ],
  "analysis": "Overall performance analysis summary"
}}"""


def _strip_code_fence(text: str) -> str:
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = stripped.split("\n", 1)[1] if "\n" in stripped else ""
        if stripped.rstrip().endswith("```"):
            stripped = stripped.rstrip()[:-3]
    return stripped.strip()


def parse_recommendations(text: str) -> list[Recommendation]:
    """
    Decode the model's JSON answer.

    Raises:
        AugmenterError: If the answer is not a JSON object with a
            ``recommendations`` array.
    """
    try:
        payload = json.loads(_strip_code_fence(text))
    except json.JSONDecodeError as e:
        logger.debug("Raw AI response: %s", text)
        raise AugmenterError(f"Invalid JSON response from AI: {e}", provider="claude") from e

    if not isinstance(payload, dict) or not isinstance(payload.get("recommendations"), list):
        raise AugmenterError(
            "AI response has no 'recommendations' array", provider="claude"
        )

    recommendations: list[Recommendation] = []
    for item in payload["recommendations"]:
        if not isinstance(item, dict):
            logger.warning("Skipping non-object AI recommendation: %r", item)
            continue
        if item.get("type") not in _KNOWN_TYPES:
            logger.warning("Skipping AI recommendation with unknown type %r", item.get("type"))
            continue

        recommendations.append(Recommendation(
            type=item["type"],
            ddl=item.get("ddl") or None,
            rewrite_sql=item.get("rewrite_sql") or None,
            rationale=item.get("rationale") or "",
            confidence=item.get("confidence"),
            impact_estimate=item.get("impact_estimate") or None,
            risk_level=item.get("risk_level"),
        ))

    return recommendations


@dataclass
class ClaudeAugmenter(Augmenter):
    """
    Augmenter calling the Anthropic Messages API.

    One attempt per call, bounded by ``timeout_seconds``; the engine does
    the falling back. Each call opens and closes its own client: a client's
    connection pool is bound to the event loop that created it.

    Example:
        augmenter = ClaudeAugmenter(api_key="...")
        engine = RuleEngine(augmenter=augmenter)
    """

    api_key: str = field(repr=False)
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 2000
    timeout_seconds: float = 30.0
    base_url: str | None = None

    name: str = "claude"
    _client: Any = field(default=None, repr=False)

    def _new_client(self) -> Any:
        """Create an Anthropic client for a single call."""
        try:
            import anthropic
        except ImportError as e:
            raise AugmenterError(
                "anthropic package required. Install with: pip install anthropic",
                provider=self.name,
            ) from e

        return anthropic.AsyncAnthropic(
            api_key=self.api_key,
            base_url=self.base_url,
            timeout=self.timeout_seconds,
            max_retries=0,
        )

    async def recommend(
        self,
        query: QueryStats,
        tables: Sequence[TableInfo],
        indexes: Sequence[IndexInfo],
    ) -> list[Recommendation]:
        logger.info(
            "Generating AI recommendations for query with %d calls, %.2fms avg time",
            query.calls,
            query.mean_exec_time,
        )
        start_time = time.perf_counter()

        if self._client is not None:
            text = await self._request(self._client, query, tables, indexes)
        else:
            async with self._new_client() as client:
                text = await self._request(client, query, tables, indexes)

        recommendations = parse_recommendations(text)
        logger.info(
            "Generated %d AI-powered recommendations in %.0f ms",
            len(recommendations),
            (time.perf_counter() - start_time) * 1000,
        )
        return recommendations

    async def _request(
        self,
        client: Any,
        query: QueryStats,
        tables: Sequence[TableInfo],
        indexes: Sequence[IndexInfo],
    ) -> str:
        """Send the prompt and return the concatenated text blocks."""
        try:
            response = await client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": build_prompt(query, tables, indexes)}],
            )
        except Exception as e:
            raise AugmenterError(f"Claude API call failed: {e}", provider=self.name) from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        if not text:
            raise AugmenterError("Claude returned no text content", provider=self.name)
        return text
