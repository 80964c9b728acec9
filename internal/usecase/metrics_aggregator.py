"""
Metrics Aggregator Use Case.

Rolls search and behavioral metrics up the taxonomy tree, bottom-up.

Absolute counts are summed from the deepest nodes towards the roots; rates
are derived only once every contribution is known:
- CTR = clicks / impressions
- conversion rate = transactions / sessions
- average order value = revenue / transactions
- average position: impression-weighted mean
- engagement and bounce rate: session-weighted means
"""
from typing import Iterable, Mapping, Optional

from internal.domain.errors import TaxonomyCycleError
from internal.domain.metrics import (
    BehavioralAggregate,
    BehavioralMetricRecord,
    MatchTracker,
    SearchAggregate,
    SearchMetricRecord,
)
from internal.domain.taxonomy import TaxonomyNode
from internal.domain.value_objects import WeightedValue, round_half_up, weighted_mean
from pkg.logger.logger import get_logger

logger = get_logger(__name__)

RATE_PRECISION = 4
POSITION_PRECISION = 1
CURRENCY_PRECISION = 2


def compute_depths(parent_of: Mapping[str, Optional[str]]) -> dict[str, int]:
    """
    Compute every node's depth from a child -> parent map.

    Roots (no parent) have depth 0. A parent outside the map counts as a
    root one level up. Depths are memoized, and ancestors are walked
    iteratively.

    Args:
        parent_of: Node ID -> parent ID.

    Returns:
        Node ID -> depth.

    Raises:
        TaxonomyCycleError: A parent chain loops.
    """
    depths: dict[str, int] = {}

    for node_id in parent_of:
        chain: list[str] = []
        on_chain: set[str] = set()
        current: Optional[str] = node_id
        base = -1

        while current is not None:
            if current in depths:
                base = depths[current]
                break
            if current in on_chain:
                raise TaxonomyCycleError(current)
            chain.append(current)
            on_chain.add(current)
            current = parent_of.get(current)

        for offset, chained_id in enumerate(reversed(chain), start=1):
            depths[chained_id] = base + offset

    return {node_id: depths[node_id] for node_id in parent_of}


def _children_map(parent_of: Mapping[str, Optional[str]]) -> dict[str, list[str]]:
    children: dict[str, list[str]] = {}
    for node_id in sorted(parent_of):
        parent_id = parent_of[node_id]
        if parent_id is not None:
            children.setdefault(parent_id, []).append(node_id)
    return children


def rollup_order(parent_of: Mapping[str, Optional[str]]) -> list[str]:
    """Node IDs deepest first; ties broken by ID for reproducible float sums."""
    depths = compute_depths(parent_of)
    return sorted(parent_of, key=lambda node_id: (-depths[node_id], node_id))


def _weight_of(values: list[WeightedValue]) -> float:
    return sum(item.weight for item in values)


class MetricsAggregator:
    """
    Aggregates metric records to taxonomy nodes (bottom-up).

    Both metric families share the same skeleton: direct accumulation,
    depth-sorted child folding, then finalization of derived rates.
    """

    def aggregate_search(
        self,
        nodes: Mapping[str, TaxonomyNode],
        search_metrics: Iterable[SearchMetricRecord],
        url_to_node: Mapping[str, str],
        tracker: Optional[MatchTracker] = None,
    ) -> dict[str, SearchAggregate]:
        """
        Aggregate search metrics from URLs to taxonomy nodes.

        Args:
            nodes: Canonical node map.
            search_metrics: Per-URL search records.
            url_to_node: URL -> node ID, resolved by the URL matcher.
            tracker: Optional tracker for matched/unmatched records.

        Returns:
            Node ID -> finalized search aggregate.
        """
        tracker = tracker or MatchTracker(family="search")
        parent_of = {node_id: node.parent_id for node_id, node in nodes.items()}
        aggregates: dict[str, SearchAggregate] = {}

        for record in search_metrics:
            node_id = url_to_node.get(record.url)
            if node_id is None or node_id not in nodes:
                tracker.record(False, record.url)
                continue
            tracker.record(True)

            target = aggregates.get(node_id)
            if target is None:
                target = SearchAggregate(node_id=node_id, parent_id=parent_of[node_id])
                aggregates[node_id] = target

            target.clicks += record.clicks
            target.impressions += record.impressions
            target.url_count += 1
            if record.impressions > 0 and record.position > 0:
                target.positions.append(
                    WeightedValue(record.position, record.impressions)
                )

        children = _children_map(parent_of)
        for node_id in rollup_order(parent_of):
            child_ids = children.get(node_id)
            if not child_ids:
                continue

            parent = aggregates.get(node_id)
            if parent is None:
                parent = SearchAggregate(node_id=node_id, parent_id=parent_of[node_id])
                aggregates[node_id] = parent

            for child_id in child_ids:
                child = aggregates.get(child_id)
                if child is None:
                    continue
                parent.clicks += child.clicks
                parent.impressions += child.impressions
                parent.url_count += child.url_count
                weight = _weight_of(child.positions)
                if weight > 0:
                    parent.positions.append(
                        WeightedValue(weighted_mean(child.positions), weight)
                    )

        for aggregate in aggregates.values():
            self._finalize_search(aggregate)

        self._log_unmatched(tracker)
        return aggregates

    def aggregate_behavioral(
        self,
        nodes: Mapping[str, TaxonomyNode],
        behavioral_metrics: Iterable[BehavioralMetricRecord],
        tracker: Optional[MatchTracker] = None,
    ) -> dict[str, BehavioralAggregate]:
        """
        Aggregate analytics metrics to taxonomy nodes.

        Args:
            nodes: Canonical node map.
            behavioral_metrics: Records carrying a resolved node ID.
            tracker: Optional tracker for matched/unmatched records.

        Returns:
            Node ID -> finalized behavioral aggregate.
        """
        tracker = tracker or MatchTracker(family="behavioral")
        parent_of = {node_id: node.parent_id for node_id, node in nodes.items()}
        aggregates: dict[str, BehavioralAggregate] = {}

        for record in behavioral_metrics:
            node_id = record.node_id
            if node_id is None or node_id not in nodes:
                tracker.record(False, record.page_path)
                continue
            tracker.record(True)

            target = aggregates.get(node_id)
            if target is None:
                target = BehavioralAggregate(
                    node_id=node_id, parent_id=parent_of[node_id]
                )
                aggregates[node_id] = target

            target.revenue += record.revenue
            target.transactions += record.transactions
            target.sessions += record.sessions
            target.users += record.users
            target.page_views += record.page_views
            target.record_count += 1
            if record.sessions > 0:
                target.engagement.append(
                    WeightedValue(record.engagement_rate, record.sessions)
                )
                target.bounce.append(WeightedValue(record.bounce_rate, record.sessions))

        children = _children_map(parent_of)
        for node_id in rollup_order(parent_of):
            child_ids = children.get(node_id)
            if not child_ids:
                continue

            parent = aggregates.get(node_id)
            if parent is None:
                parent = BehavioralAggregate(
                    node_id=node_id, parent_id=parent_of[node_id]
                )
                aggregates[node_id] = parent

            for child_id in child_ids:
                child = aggregates.get(child_id)
                if child is None:
                    continue
                parent.revenue += child.revenue
                parent.transactions += child.transactions
                parent.sessions += child.sessions
                parent.users += child.users
                parent.page_views += child.page_views
                parent.record_count += child.record_count
                weight = _weight_of(child.engagement)
                if weight > 0:
                    parent.engagement.append(
                        WeightedValue(weighted_mean(child.engagement), weight)
                    )
                    parent.bounce.append(
                        WeightedValue(weighted_mean(child.bounce), weight)
                    )

        for aggregate in aggregates.values():
            self._finalize_behavioral(aggregate)

        self._log_unmatched(tracker)
        return aggregates

    def _finalize_search(self, metrics: SearchAggregate) -> None:
        """
        Derive CTR and average position.

        Args:
            metrics: Aggregate with all contributions folded in.
        """
        ctr = metrics.clicks / metrics.impressions if metrics.impressions > 0 else 0.0
        metrics.ctr = round_half_up(ctr, RATE_PRECISION)
        metrics.avg_position = round_half_up(
            weighted_mean(metrics.positions), POSITION_PRECISION
        )

    def _finalize_behavioral(self, metrics: BehavioralAggregate) -> None:
        """
        Derive conversion rate, order value and weighted engagement rates.

        Args:
            metrics: Aggregate with all contributions folded in.
        """
        conversion_rate = (
            metrics.transactions / metrics.sessions if metrics.sessions > 0 else 0.0
        )
        avg_order_value = (
            metrics.revenue / metrics.transactions if metrics.transactions > 0 else 0.0
        )

        metrics.conversion_rate = round_half_up(conversion_rate, RATE_PRECISION)
        metrics.avg_order_value = round_half_up(avg_order_value, CURRENCY_PRECISION)
        metrics.engagement_rate = round_half_up(
            weighted_mean(metrics.engagement), RATE_PRECISION
        )
        metrics.bounce_rate = round_half_up(
            weighted_mean(metrics.bounce), RATE_PRECISION
        )

    def _log_unmatched(self, tracker: MatchTracker) -> None:
        if tracker.unmatched:
            logger.warning(
                "Metric records without a taxonomy node dropped",
                family=tracker.family,
                unmatched=tracker.unmatched,
                total=tracker.total,
            )
