"""
Taxonomy Insights Pipeline Entry Point.

Loads a data snapshot, runs the taxonomy and opportunity pipeline, writes
CSV exports and optionally persists the run to PostgreSQL.
"""
import asyncio
import json
import sys
import uuid
from pathlib import Path
from typing import Optional

from prometheus_client import REGISTRY, write_to_textfile

from config.settings import Settings
from internal.infrastructure.postgres import PostgresTaxonomyRepository, create_pool
from internal.transport.batch import SnapshotDTO, write_exports
from internal.usecase import (
    CategoryDeduplicator,
    OpportunityPipeline,
    PipelineResult,
    TaxonomyBuilder,
)
from pkg.logger import get_logger, set_run_id, setup_logging

logger = get_logger(__name__)


def load_snapshot(path: Path) -> SnapshotDTO:
    """
    Read and validate a snapshot file.

    Args:
        path: JSON snapshot path.

    Returns:
        Validated snapshot.

    Raises:
        FileNotFoundError: The file does not exist.
        pydantic.ValidationError: The snapshot is malformed.
    """
    with path.open(encoding="utf-8") as f:
        return SnapshotDTO.model_validate(json.load(f))


async def persist(
    settings: Settings, run_id: str, result: PipelineResult
) -> None:
    """
    Store a pipeline run and log score changes against the previous run.

    Args:
        settings: Application settings.
        run_id: Current run ID.
        result: Pipeline result.
    """
    pool = await create_pool(settings.DATABASE_URL)
    try:
        repo = PostgresTaxonomyRepository(pool)
        previous = await repo.get_previous_scores(exclude_run_id=run_id)

        await repo.save_run(
            run_id,
            nodes=result.nodes,
            assignments=result.product_assignments,
            search=result.search,
            behavioral=result.behavioral,
            scores=result.scores,
        )

        for score in result.top(settings.TOP_N):
            change = score.diff(previous.get(score.node_id))
            if change["type_changed"] or change["total_delta"]:
                logger.info("Opportunity changed since last run", **change)
    finally:
        await pool.close()


def run(settings: Settings, snapshot_path: Optional[str] = None) -> PipelineResult:
    """
    Run one pipeline batch.

    Args:
        settings: Application settings.
        snapshot_path: Overrides SNAPSHOT_PATH when given.

    Returns:
        Pipeline result.
    """
    run_id = uuid.uuid4().hex
    set_run_id(run_id)

    path = Path(snapshot_path or settings.SNAPSHOT_PATH)
    logger.info("Loading snapshot", path=str(path))
    snapshot = load_snapshot(path).to_pipeline_input()

    pipeline = OpportunityPipeline(
        builder=TaxonomyBuilder(
            include_standardized_paths=settings.INCLUDE_STANDARDIZED_PATHS,
        ),
        deduplicator=CategoryDeduplicator(
            similarity_threshold=settings.SIMILARITY_THRESHOLD,
        ),
        stats_limit=settings.TOP_N,
    )
    result = pipeline.run(snapshot)

    write_exports(result, Path(settings.EXPORT_DIR))

    if settings.PERSIST_RESULTS:
        asyncio.run(persist(settings, run_id, result))

    for score in result.top(settings.TOP_N):
        logger.info(
            "Top opportunity",
            node_id=score.node_id,
            total_score=score.total_score,
            opportunity_type=score.opportunity_type.value,
            confidence=score.confidence,
        )

    logger.info(
        "Search summary",
        total_clicks=result.search_stats.total_clicks,
        total_impressions=result.search_stats.total_impressions,
        avg_ctr=result.search_stats.avg_ctr,
        avg_position=result.search_stats.avg_position,
    )
    logger.info(
        "Revenue summary",
        total_revenue=result.revenue_stats.total_revenue,
        total_transactions=result.revenue_stats.total_transactions,
        conversion_rate=result.revenue_stats.conversion_rate,
    )

    return result


def main() -> None:
    """Main entry point."""
    settings = Settings()
    setup_logging(settings.LOG_LEVEL, json_format=settings.use_json_logs())

    snapshot_path = sys.argv[1] if len(sys.argv) > 1 else None
    try:
        run(settings, snapshot_path)
    except Exception:
        logger.critical("Pipeline failed", exc_info=True)
        raise
    finally:
        if settings.METRICS_TEXTFILE:
            write_to_textfile(settings.METRICS_TEXTFILE, REGISTRY)


if __name__ == "__main__":
    main()
