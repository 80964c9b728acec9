"""
Summary statistics over aggregated node metrics.

Totals are taken over top-level aggregates only (those whose parent has no
aggregate of its own), so a click counted at a leaf is not counted again
at every ancestor.
"""
from typing import Mapping, TypeVar, Union

from internal.domain.metrics import (
    BehavioralAggregate,
    RevenueStatistics,
    SearchAggregate,
    SearchStatistics,
)
from internal.domain.value_objects import WeightedValue, round_half_up, weighted_mean

NEEDS_ATTENTION_MIN_IMPRESSIONS = 100
NEEDS_ATTENTION_MAX_CTR = 0.02
CONVERSION_MIN_SESSIONS = 100
HIGH_CONVERSION_RATE = 0.05
LOW_CONVERSION_RATE = 0.01

AggregateT = TypeVar("AggregateT", bound=Union[SearchAggregate, BehavioralAggregate])


def top_level(aggregates: Mapping[str, AggregateT]) -> list[AggregateT]:
    """
    Aggregates that are not folded into another aggregate.

    Args:
        aggregates: Node ID -> aggregate.

    Returns:
        Top-level aggregates sorted by node ID.
    """
    return [
        aggregates[node_id]
        for node_id in sorted(aggregates)
        if aggregates[node_id].parent_id not in aggregates
    ]


def search_statistics(
    aggregates: Mapping[str, SearchAggregate],
    limit: int = 10,
) -> SearchStatistics:
    """
    Calculate aggregate search statistics.

    Args:
        aggregates: Node ID -> search aggregate.
        limit: Maximum entries in the ranked views.

    Returns:
        Totals, overall rates, top performers and nodes needing attention.
    """
    roots = top_level(aggregates)
    total_clicks = sum(m.clicks for m in roots)
    total_impressions = sum(m.impressions for m in roots)

    positions = [
        WeightedValue(m.avg_position, m.impressions)
        for m in roots
        if m.impressions > 0 and m.avg_position > 0
    ]

    ordered = sorted(aggregates.values(), key=lambda m: m.node_id)
    top_performers = sorted(ordered, key=lambda m: -m.clicks)[:limit]
    needs_attention = sorted(
        (
            m for m in ordered
            if m.impressions > NEEDS_ATTENTION_MIN_IMPRESSIONS
            and m.ctr < NEEDS_ATTENTION_MAX_CTR
        ),
        key=lambda m: -m.impressions,
    )[:limit]

    return SearchStatistics(
        total_nodes=len(aggregates),
        total_clicks=total_clicks,
        total_impressions=total_impressions,
        avg_ctr=round_half_up(
            total_clicks / total_impressions if total_impressions > 0 else 0.0, 4
        ),
        avg_position=round_half_up(weighted_mean(positions), 1),
        top_performers=top_performers,
        needs_attention=needs_attention,
    )


def revenue_statistics(
    aggregates: Mapping[str, BehavioralAggregate],
    limit: int = 10,
) -> RevenueStatistics:
    """
    Calculate revenue and conversion statistics.

    Args:
        aggregates: Node ID -> behavioral aggregate.
        limit: Maximum entries in the ranked views.

    Returns:
        Totals, overall rates and the top/high/low conversion views.
    """
    roots = top_level(aggregates)
    total_revenue = sum(m.revenue for m in roots)
    total_transactions = sum(m.transactions for m in roots)
    total_sessions = sum(m.sessions for m in roots)

    ordered = sorted(aggregates.values(), key=lambda m: m.node_id)
    top_revenue = sorted(ordered, key=lambda m: -m.revenue)[:limit]
    high_conversion = sorted(
        (
            m for m in ordered
            if m.sessions > CONVERSION_MIN_SESSIONS
            and m.conversion_rate > HIGH_CONVERSION_RATE
        ),
        key=lambda m: -m.conversion_rate,
    )[:limit]
    low_conversion = sorted(
        (
            m for m in ordered
            if m.sessions > CONVERSION_MIN_SESSIONS
            and m.conversion_rate < LOW_CONVERSION_RATE
        ),
        key=lambda m: -m.sessions,
    )[:limit]

    return RevenueStatistics(
        total_nodes=len(aggregates),
        total_revenue=round_half_up(total_revenue, 2),
        total_transactions=total_transactions,
        total_sessions=total_sessions,
        avg_order_value=round_half_up(
            total_revenue / total_transactions if total_transactions > 0 else 0.0, 2
        ),
        conversion_rate=round_half_up(
            total_transactions / total_sessions if total_sessions > 0 else 0.0, 4
        ),
        top_revenue_nodes=top_revenue,
        high_conversion_nodes=high_conversion,
        low_conversion_nodes=low_conversion,
    )
