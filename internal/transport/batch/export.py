"""
Tabular exports of pipeline results.

Every export has a fixed column order and fixed decimal formatting so that
identical runs produce byte-identical files.
"""
import csv
import io
from pathlib import Path
from typing import Mapping

from internal.domain.metrics import BehavioralAggregate, SearchAggregate
from internal.domain.opportunity import OpportunityScore
from internal.domain.taxonomy import TaxonomyNode
from internal.usecase.opportunity_pipeline import PipelineResult
from pkg.logger.logger import get_logger

logger = get_logger(__name__)

SEARCH_COLUMNS = [
    "node_id", "title", "path", "clicks", "impressions", "ctr", "avg_position", "url_count",
]
BEHAVIORAL_COLUMNS = [
    "node_id", "title", "path", "revenue", "transactions", "sessions", "users",
    "page_views", "conversion_rate", "avg_order_value", "engagement_rate", "bounce_rate",
]
SCORE_COLUMNS = [
    "rank", "node_id", "title", "path", "total_score", "opportunity_type", "confidence",
    "search_potential", "conversion_potential", "revenue_impact", "content_quality",
    "competition", "recommendations",
]

RECOMMENDATION_SEPARATOR = " | "


def _rate(value: float) -> str:
    return f"{value:.4f}"


def _money(value: float) -> str:
    return f"{value:.2f}"


def _node_columns(node_id: str, nodes: Mapping[str, TaxonomyNode]) -> list[str]:
    node = nodes.get(node_id)
    if node is None:
        return [node_id, "", ""]
    return [node_id, node.title, node.path]


def _render(header: list[str], rows: list[list]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()


def export_search_metrics(
    aggregates: Mapping[str, SearchAggregate],
    nodes: Mapping[str, TaxonomyNode],
) -> str:
    """
    Render search aggregates as CSV.

    Args:
        aggregates: Node ID -> search aggregate.
        nodes: Canonical node map for titles and paths.

    Returns:
        CSV text, one row per node ordered by node ID.
    """
    rows = []
    for node_id in sorted(aggregates):
        m = aggregates[node_id]
        rows.append(_node_columns(node_id, nodes) + [
            m.clicks,
            m.impressions,
            _rate(m.ctr),
            f"{m.avg_position:.1f}",
            m.url_count,
        ])
    return _render(SEARCH_COLUMNS, rows)


def export_behavioral_metrics(
    aggregates: Mapping[str, BehavioralAggregate],
    nodes: Mapping[str, TaxonomyNode],
) -> str:
    """
    Render behavioral aggregates as CSV.

    Args:
        aggregates: Node ID -> behavioral aggregate.
        nodes: Canonical node map for titles and paths.

    Returns:
        CSV text, one row per node ordered by node ID.
    """
    rows = []
    for node_id in sorted(aggregates):
        m = aggregates[node_id]
        rows.append(_node_columns(node_id, nodes) + [
            _money(m.revenue),
            m.transactions,
            m.sessions,
            m.users,
            m.page_views,
            _rate(m.conversion_rate),
            _money(m.avg_order_value),
            _rate(m.engagement_rate),
            _rate(m.bounce_rate),
        ])
    return _render(BEHAVIORAL_COLUMNS, rows)


def export_scores(
    scores: list[OpportunityScore],
    nodes: Mapping[str, TaxonomyNode],
) -> str:
    """
    Render opportunity scores as CSV.

    Args:
        scores: Ranked scores.
        nodes: Canonical node map for titles and paths.

    Returns:
        CSV text in the given rank order.
    """
    rows = []
    for rank, score in enumerate(scores, start=1):
        c = score.components
        rows.append([rank] + _node_columns(score.node_id, nodes) + [
            score.total_score,
            score.opportunity_type.value,
            f"{score.confidence:.2f}",
            _money(c.search_potential),
            _money(c.conversion_potential),
            _money(c.revenue_impact),
            _money(c.content_quality),
            _money(c.competition),
            RECOMMENDATION_SEPARATOR.join(score.recommendations),
        ])
    return _render(SCORE_COLUMNS, rows)


def write_exports(result: PipelineResult, directory: Path) -> list[Path]:
    """
    Write all CSV exports of a pipeline run.

    Args:
        result: Pipeline result.
        directory: Target directory (created if missing).

    Returns:
        Paths of the written files.
    """
    directory.mkdir(parents=True, exist_ok=True)
    outputs = {
        "search_metrics.csv": export_search_metrics(result.search, result.nodes),
        "behavioral_metrics.csv": export_behavioral_metrics(result.behavioral, result.nodes),
        "opportunity_scores.csv": export_scores(result.scores, result.nodes),
    }

    written = []
    for filename, content in outputs.items():
        path = directory / filename
        path.write_text(content, encoding="utf-8")
        written.append(path)

    logger.info("Exports written", directory=str(directory), files=len(written))
    return written
