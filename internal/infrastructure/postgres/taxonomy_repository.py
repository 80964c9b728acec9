"""
PostgreSQL Taxonomy Repository.

Persists canonical taxonomy nodes, product assignments, aggregated metrics
and opportunity scores with asyncpg.
"""

import json
from typing import Mapping, Optional

import asyncpg
from asyncpg import Pool

from internal.domain.metrics import BehavioralAggregate, SearchAggregate
from internal.domain.opportunity import ComponentScores, OpportunityScore, OpportunityType
from internal.domain.taxonomy import TaxonomyNode
from pkg.logger.logger import get_logger

logger = get_logger(__name__)


class PostgresTaxonomyRepository:
    """
    PostgreSQL implementation of the taxonomy repository.

    The node and assignment tables mirror the latest canonical taxonomy;
    metric and score rows are keyed by (run_id, node_id) so earlier runs
    stay available for trend diffs.
    """

    def __init__(self, pool: Pool) -> None:
        """
        Initialize the repository.

        Args:
            pool: asyncpg connection pool.
        """
        self._pool = pool

    async def save_nodes(self, nodes: Mapping[str, TaxonomyNode]) -> int:
        """
        Replace the stored taxonomy with the canonical node set.

        Nodes are upserted parents before children; stored nodes missing from
        the set (merged away or gone from the feed) are deleted.

        Args:
            nodes: Canonical node map.

        Returns:
            Number of nodes written.
        """
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                return await self._write_nodes(conn, nodes)

    async def save_assignments(self, assignments: Mapping[str, set[str]]) -> int:
        """
        Replace product -> node assignments.

        Args:
            assignments: Node ID -> product IDs.

        Returns:
            Number of assignment rows written.
        """
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                return await self._write_assignments(conn, assignments)

    async def save_search_metrics(
        self, run_id: str, aggregates: Mapping[str, SearchAggregate]
    ) -> int:
        """
        Store search aggregates of one run.

        Args:
            run_id: Pipeline run ID.
            aggregates: Node ID -> search aggregate.

        Returns:
            Number of rows written.
        """
        async with self._pool.acquire() as conn:
            return await self._write_search_metrics(conn, run_id, aggregates)

    async def save_behavioral_metrics(
        self, run_id: str, aggregates: Mapping[str, BehavioralAggregate]
    ) -> int:
        """
        Store behavioral aggregates of one run.

        Args:
            run_id: Pipeline run ID.
            aggregates: Node ID -> behavioral aggregate.

        Returns:
            Number of rows written.
        """
        async with self._pool.acquire() as conn:
            return await self._write_behavioral_metrics(conn, run_id, aggregates)

    async def save_scores(self, run_id: str, scores: list[OpportunityScore]) -> int:
        """
        Store opportunity scores of one run.

        Args:
            run_id: Pipeline run ID.
            scores: Scores to store.

        Returns:
            Number of rows written.
        """
        async with self._pool.acquire() as conn:
            return await self._write_scores(conn, run_id, scores)

    async def save_run(
        self,
        run_id: str,
        nodes: Mapping[str, TaxonomyNode],
        assignments: Mapping[str, set[str]],
        search: Mapping[str, SearchAggregate],
        behavioral: Mapping[str, BehavioralAggregate],
        scores: list[OpportunityScore],
    ) -> None:
        """
        Store a complete pipeline run in one transaction.

        A failure in any step leaves the previously stored run untouched.

        Args:
            run_id: Pipeline run ID.
            nodes: Canonical node map.
            assignments: Node ID -> product IDs.
            search: Node ID -> search aggregate.
            behavioral: Node ID -> behavioral aggregate.
            scores: Ranked scores.
        """
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                await self._write_nodes(conn, nodes)
                await self._write_assignments(conn, assignments)
                await self._write_search_metrics(conn, run_id, search)
                await self._write_behavioral_metrics(conn, run_id, behavioral)
                await self._write_scores(conn, run_id, scores)

        logger.info("Pipeline run saved", run_id=run_id, node_total=len(nodes))

    async def _write_nodes(
        self, conn: asyncpg.Connection, nodes: Mapping[str, TaxonomyNode]
    ) -> int:
        ordered = sorted(nodes.values(), key=lambda n: (n.depth, n.id))
        rows = [
            (
                node.id,
                node.title,
                node.path,
                node.depth,
                node.parent_id,
                node.product_count,
                node.source.value,
                json.dumps(node.metadata, sort_keys=True),
            )
            for node in ordered
        ]

        await conn.executemany(
            """
            INSERT INTO taxonomy_nodes (
                id, title, path, depth, parent_id, product_count,
                source, metadata, updated_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8::jsonb, NOW())
            ON CONFLICT (id) DO UPDATE SET
                title = EXCLUDED.title,
                path = EXCLUDED.path,
                depth = EXCLUDED.depth,
                parent_id = EXCLUDED.parent_id,
                product_count = EXCLUDED.product_count,
                source = EXCLUDED.source,
                metadata = EXCLUDED.metadata,
                updated_at = NOW()
            """,
            rows,
        )

        removed = await conn.fetch(
            """
            DELETE FROM taxonomy_nodes
            WHERE NOT (id = ANY($1::text[]))
            RETURNING id
            """,
            sorted(nodes),
        )

        if removed:
            logger.info(
                "Stale taxonomy nodes removed",
                count=len(removed),
                node_ids=sorted(row["id"] for row in removed),
            )
        logger.info("Taxonomy nodes saved", count=len(rows))
        return len(rows)

    async def _write_assignments(
        self, conn: asyncpg.Connection, assignments: Mapping[str, set[str]]
    ) -> int:
        rows = [
            (product_id, node_id)
            for node_id in sorted(assignments)
            for product_id in sorted(assignments[node_id])
        ]

        await conn.execute("DELETE FROM node_products")
        await conn.executemany(
            """
            INSERT INTO node_products (product_id, node_id)
            VALUES ($1, $2)
            """,
            rows,
        )

        return len(rows)

    async def _write_search_metrics(
        self,
        conn: asyncpg.Connection,
        run_id: str,
        aggregates: Mapping[str, SearchAggregate],
    ) -> int:
        rows = [
            (run_id, m.node_id, m.clicks, m.impressions, m.ctr, m.avg_position, m.url_count)
            for _, m in sorted(aggregates.items())
        ]

        await conn.executemany(
            """
            INSERT INTO node_search_metrics (
                run_id, node_id, clicks, impressions, ctr, avg_position, url_count
            ) VALUES ($1, $2, $3, $4, $5, $6, $7)
            ON CONFLICT (run_id, node_id) DO NOTHING
            """,
            rows,
        )

        return len(rows)

    async def _write_behavioral_metrics(
        self,
        conn: asyncpg.Connection,
        run_id: str,
        aggregates: Mapping[str, BehavioralAggregate],
    ) -> int:
        rows = [
            (
                run_id,
                m.node_id,
                m.revenue,
                m.transactions,
                m.sessions,
                m.users,
                m.page_views,
                m.conversion_rate,
                m.avg_order_value,
                m.engagement_rate,
                m.bounce_rate,
            )
            for _, m in sorted(aggregates.items())
        ]

        await conn.executemany(
            """
            INSERT INTO node_behavioral_metrics (
                run_id, node_id, revenue, transactions, sessions, users,
                page_views, conversion_rate, avg_order_value,
                engagement_rate, bounce_rate
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
            ON CONFLICT (run_id, node_id) DO NOTHING
            """,
            rows,
        )

        return len(rows)

    async def _write_scores(
        self,
        conn: asyncpg.Connection,
        run_id: str,
        scores: list[OpportunityScore],
    ) -> int:
        rows = [
            (
                run_id,
                score.node_id,
                score.total_score,
                score.opportunity_type.value,
                json.dumps(score.components.to_dict()),
                json.dumps(score.recommendations),
                score.confidence,
            )
            for score in scores
        ]

        await conn.executemany(
            """
            INSERT INTO opportunity_scores (
                run_id, node_id, total_score, opportunity_type,
                components, recommendations, confidence, scored_at
            ) VALUES ($1, $2, $3, $4, $5::jsonb, $6::jsonb, $7, NOW())
            ON CONFLICT (run_id, node_id) DO NOTHING
            """,
            rows,
        )

        logger.info("Opportunity scores saved", run_id=run_id, count=len(rows))
        return len(rows)

    async def get_previous_scores(
        self, exclude_run_id: Optional[str] = None
    ) -> dict[str, OpportunityScore]:
        """
        Get the latest stored score of every node.

        Args:
            exclude_run_id: Run to ignore (usually the current one).

        Returns:
            Node ID -> most recent score from an earlier run.
        """
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT DISTINCT ON (node_id)
                       node_id, total_score, opportunity_type,
                       components, recommendations, confidence
                FROM opportunity_scores
                WHERE $1::text IS NULL OR run_id <> $1
                ORDER BY node_id, scored_at DESC
                """,
                exclude_run_id,
            )

            return {row["node_id"]: self._row_to_score(row) for row in rows}

    def _row_to_score(self, row: asyncpg.Record) -> OpportunityScore:
        """
        Convert database row to score.

        Args:
            row: Database row.

        Returns:
            OpportunityScore.
        """
        components = self._load_json(row["components"]) or {}
        recommendations = self._load_json(row["recommendations"]) or []

        return OpportunityScore(
            node_id=row["node_id"],
            total_score=row["total_score"],
            components=ComponentScores(**components),
            opportunity_type=OpportunityType(row["opportunity_type"]),
            recommendations=list(recommendations),
            confidence=float(row["confidence"]),
        )

    def _load_json(self, value):
        """asyncpg returns jsonb as text unless a codec is registered."""
        if isinstance(value, str):
            return json.loads(value)
        return value


async def create_pool(dsn: str, min_size: int = 1, max_size: int = 5) -> Pool:
    """
    Create an asyncpg connection pool.

    Args:
        dsn: Database connection string.
        min_size: Minimum pool size.
        max_size: Maximum pool size.

    Returns:
        asyncpg connection pool.
    """
    return await asyncpg.create_pool(
        dsn=dsn,
        min_size=min_size,
        max_size=max_size,
    )
