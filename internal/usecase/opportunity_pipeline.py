"""
Opportunity Pipeline Use Case.

Runs one batch over a data snapshot:
products -> taxonomy -> canonical taxonomy -> aggregated metrics -> scores.
"""
import time
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Iterator, Optional
from urllib.parse import urlparse

from internal.domain.errors import NodeNotFoundError
from internal.domain.metrics import (
    BehavioralAggregate,
    BehavioralMetricRecord,
    MatchTracker,
    RevenueStatistics,
    SearchAggregate,
    SearchMetricRecord,
    SearchStatistics,
)
from internal.domain.opportunity import OpportunityScore, OpportunityType, ScoringFactors
from internal.domain.taxonomy import MergeResult, Product, TaxonomyNode
from internal.domain.value_objects import CatalogProfile, CompetitiveData, round_half_up
from internal.infrastructure.metrics.prometheus import (
    CATEGORY_MERGES,
    METRIC_RECORDS,
    NODE_ID_COLLISIONS,
    OPPORTUNITIES_BY_TYPE,
    PIPELINE_RUNS,
    PIPELINE_STAGE_DURATION,
    PRODUCTS_PROCESSED,
    TAXONOMY_NODES,
)
from internal.usecase.category_deduplicator import CategoryDeduplicator
from internal.usecase.metrics_aggregator import MetricsAggregator, rollup_order
from internal.usecase.metrics_statistics import revenue_statistics, search_statistics
from internal.usecase.opportunity_scorer import OpportunityScorer, quick_wins, top
from internal.usecase.taxonomy_builder import TaxonomyBuilder
from pkg.logger.logger import get_logger

logger = get_logger(__name__)


@dataclass
class PipelineInput:
    """
    Data snapshot for one pipeline run.

    Attributes:
        products: Catalog product records.
        search_metrics: Per-URL search records.
        behavioral_metrics: Per-page analytics records.
        url_to_node: Explicit URL -> node ID map; wins over derived entries.
        competitive_data: Node ID -> competitive landscape.
    """

    products: list[Product] = field(default_factory=list)
    search_metrics: list[SearchMetricRecord] = field(default_factory=list)
    behavioral_metrics: list[BehavioralMetricRecord] = field(default_factory=list)
    url_to_node: Optional[dict[str, str]] = None
    competitive_data: dict[str, CompetitiveData] = field(default_factory=dict)


@dataclass
class PipelineResult:
    """Everything one pipeline run produced."""

    nodes: dict[str, TaxonomyNode]
    product_assignments: dict[str, set[str]]
    merge: MergeResult
    search: dict[str, SearchAggregate]
    behavioral: dict[str, BehavioralAggregate]
    search_tracker: MatchTracker
    behavioral_tracker: MatchTracker
    search_stats: SearchStatistics
    revenue_stats: RevenueStatistics
    profiles: dict[str, CatalogProfile]
    scores: list[OpportunityScore]
    unassigned_product_ids: list[str] = field(default_factory=list)

    def top(self, limit: int = 10) -> list[OpportunityScore]:
        """Highest-scoring nodes."""
        return top(self.scores, limit)

    def quick_wins(self) -> list[OpportunityScore]:
        """Nodes classified as quick wins, best first."""
        return quick_wins(self.scores)

    def score_for(self, node_id: str) -> OpportunityScore:
        """
        Look up the score of one node.

        Args:
            node_id: Canonical node ID; merged-away IDs resolve to their survivor.

        Returns:
            The node's score.

        Raises:
            NodeNotFoundError: No such node in this run.
        """
        target = self.merge.merge_map.get(node_id, node_id)
        for score in self.scores:
            if score.node_id == target:
                return score
        raise NodeNotFoundError(node_id)


@contextmanager
def _stage(name: str) -> Iterator[None]:
    started = time.time()
    try:
        yield
    finally:
        PIPELINE_STAGE_DURATION.labels(stage=name).observe(time.time() - started)


def derive_url_map(
    products: dict[str, Product],
    assignments: dict[str, set[str]],
    explicit: Optional[dict[str, str]] = None,
) -> dict[str, str]:
    """
    Build the URL -> node ID map from product landing pages.

    Args:
        products: Product ID -> product.
        assignments: Canonical node ID -> directly assigned product IDs.
        explicit: Caller-supplied entries; these win over derived ones.

    Returns:
        URL -> node ID.
    """
    url_to_node: dict[str, str] = {}
    for node_id in sorted(assignments):
        for product_id in sorted(assignments[node_id]):
            product = products.get(product_id)
            if product is None or not product.url:
                continue
            url_to_node.setdefault(product.url, node_id)

    if explicit:
        url_to_node.update(explicit)
    return url_to_node


def resolve_page_paths(
    records: list[BehavioralMetricRecord],
    url_to_node: dict[str, str],
) -> list[BehavioralMetricRecord]:
    """
    Fill in missing node IDs on analytics records from the URL map.

    A record matches when its page path equals the path of a mapped URL.
    Records that already carry a node ID are left as they are.

    Args:
        records: Analytics records.
        url_to_node: URL -> node ID.

    Returns:
        Records with node IDs resolved where possible.
    """
    path_to_node: dict[str, str] = {}
    for url in sorted(url_to_node):
        path = urlparse(url).path or "/"
        path_to_node.setdefault(path, url_to_node[url])

    resolved = []
    for record in records:
        if record.node_id is None:
            node_id = path_to_node.get(urlparse(record.page_path).path or "/")
            if node_id is not None:
                record = replace(record, node_id=node_id)
        resolved.append(record)
    return resolved


def build_catalog_profiles(
    nodes: dict[str, TaxonomyNode],
    products: dict[str, Product],
    assignments: dict[str, set[str]],
) -> dict[str, CatalogProfile]:
    """
    Roll product attributes up the canonical tree.

    Args:
        nodes: Canonical node map.
        products: Product ID -> product.
        assignments: Canonical node ID -> directly assigned product IDs.

    Returns:
        Node ID -> catalog profile of its whole subtree.
    """
    parent_of = {node_id: node.parent_id for node_id, node in nodes.items()}
    subtree: dict[str, set[str]] = {
        node_id: set(assignments.get(node_id, ())) for node_id in nodes
    }
    for node_id in rollup_order(parent_of):
        parent_id = parent_of[node_id]
        if parent_id in subtree:
            subtree[parent_id] |= subtree[node_id]

    profiles: dict[str, CatalogProfile] = {}
    for node_id, product_ids in subtree.items():
        members = [products[pid] for pid in sorted(product_ids) if pid in products]
        if not members:
            profiles[node_id] = CatalogProfile()
            continue

        prices = [p.price for p in members if p.price is not None and p.price > 0]
        profiles[node_id] = CatalogProfile(
            product_count=len(members),
            in_stock_ratio=round_half_up(
                sum(1 for p in members if p.is_in_stock) / len(members), 4
            ),
            has_images_ratio=round_half_up(
                sum(1 for p in members if p.has_image) / len(members), 4
            ),
            avg_price=round_half_up(sum(prices) / len(prices), 2) if prices else 0.0,
        )
    return profiles


class OpportunityPipeline:
    """
    Orchestrates the taxonomy, aggregation and scoring use cases.

    Each stage runs on the output of the previous one; the run is
    synchronous and touches no I/O.
    """

    def __init__(
        self,
        builder: Optional[TaxonomyBuilder] = None,
        deduplicator: Optional[CategoryDeduplicator] = None,
        aggregator: Optional[MetricsAggregator] = None,
        scorer: Optional[OpportunityScorer] = None,
        stats_limit: int = 10,
    ) -> None:
        """
        Initialize the pipeline.

        Args:
            builder: Taxonomy builder (optional).
            deduplicator: Category deduplicator (optional).
            aggregator: Metrics aggregator (optional).
            scorer: Opportunity scorer (optional).
            stats_limit: Maximum entries in statistics views.
        """
        self._builder = builder or TaxonomyBuilder()
        self._deduplicator = deduplicator or CategoryDeduplicator()
        self._aggregator = aggregator or MetricsAggregator()
        self._scorer = scorer or OpportunityScorer()
        self._stats_limit = stats_limit

    def run(self, snapshot: PipelineInput) -> PipelineResult:
        """
        Run the whole pipeline over a snapshot.

        Args:
            snapshot: Input data.

        Returns:
            Pipeline result with ranked scores.

        Raises:
            TaxonomyIntegrityError: The taxonomy could not be built consistently.
        """
        try:
            result = self._run(snapshot)
        except Exception:
            PIPELINE_RUNS.labels(status='error').inc()
            logger.error("Pipeline run failed", exc_info=True)
            raise

        PIPELINE_RUNS.labels(status='success').inc()
        return result

    def _run(self, snapshot: PipelineInput) -> PipelineResult:
        with _stage("build"):
            built = self._builder.build(snapshot.products)

        PRODUCTS_PROCESSED.labels(status='assigned').inc(built.assigned_count)
        PRODUCTS_PROCESSED.labels(status='unassigned').inc(len(built.unassigned_product_ids))
        PRODUCTS_PROCESSED.labels(status='duplicate').inc(len(built.duplicate_product_ids))
        NODE_ID_COLLISIONS.inc(len(built.id_collisions))
        TAXONOMY_NODES.labels(stage='built').set(len(built.nodes))

        with _stage("merge"):
            merge = self._deduplicator.merge_with_report(built.nodes)
            assignments = merge.remap_assignments(built.product_assignments)

        chained = len(merge.chained_merges)
        CATEGORY_MERGES.labels(kind='direct').inc(merge.total_merges - chained)
        CATEGORY_MERGES.labels(kind='chained').inc(chained)
        TAXONOMY_NODES.labels(stage='canonical').set(len(merge.nodes))

        products = self._products_by_id(snapshot.products)
        explicit = {
            url: merge.merge_map.get(node_id, node_id)
            for url, node_id in (snapshot.url_to_node or {}).items()
        }
        url_to_node = derive_url_map(products, assignments, explicit)

        search_tracker = MatchTracker(family="search")
        with _stage("aggregate_search"):
            search = self._aggregator.aggregate_search(
                merge.nodes, snapshot.search_metrics, url_to_node, search_tracker
            )

        behavioral_tracker = MatchTracker(family="behavioral")
        with _stage("aggregate_behavioral"):
            behavioral = self._aggregator.aggregate_behavioral(
                merge.nodes,
                self._remap_records(
                    resolve_page_paths(snapshot.behavioral_metrics, url_to_node), merge
                ),
                behavioral_tracker,
            )

        for tracker in (search_tracker, behavioral_tracker):
            METRIC_RECORDS.labels(family=tracker.family, status='matched').inc(tracker.matched)
            METRIC_RECORDS.labels(family=tracker.family, status='unmatched').inc(tracker.unmatched)

        profiles = build_catalog_profiles(merge.nodes, products, assignments)
        competitive = self._remap_competitive(snapshot.competitive_data, merge)

        with _stage("score"):
            scores = self._scorer.score_many(
                self._factors(node_id, search, behavioral, profiles, competitive)
                for node_id in sorted(merge.nodes)
            )

        for opportunity_type, count in self._count_types(scores).items():
            OPPORTUNITIES_BY_TYPE.labels(opportunity_type=opportunity_type).set(count)

        logger.info(
            "Pipeline run completed",
            products=len(snapshot.products),
            nodes=len(merge.nodes),
            merges=merge.total_merges,
            search_match_rate=round(search_tracker.match_rate, 4),
            behavioral_match_rate=round(behavioral_tracker.match_rate, 4),
            quick_wins=sum(1 for s in scores if s.is_quick_win),
        )

        return PipelineResult(
            nodes=merge.nodes,
            product_assignments=assignments,
            merge=merge,
            search=search,
            behavioral=behavioral,
            search_tracker=search_tracker,
            behavioral_tracker=behavioral_tracker,
            search_stats=search_statistics(search, self._stats_limit),
            revenue_stats=revenue_statistics(behavioral, self._stats_limit),
            profiles=profiles,
            scores=scores,
            unassigned_product_ids=list(built.unassigned_product_ids),
        )

    def _products_by_id(self, products: list[Product]) -> dict[str, Product]:
        """First occurrence of each product ID, matching the builder."""
        by_id: dict[str, Product] = {}
        for product in products:
            by_id.setdefault(product.id, product)
        return by_id

    def _remap_records(
        self, records: list[BehavioralMetricRecord], merge: MergeResult
    ) -> list[BehavioralMetricRecord]:
        """Point records at surviving nodes when their node was merged away."""
        return [
            replace(record, node_id=merge.merge_map[record.node_id])
            if record.node_id in merge.merge_map
            else record
            for record in records
        ]

    def _remap_competitive(
        self, competitive: dict[str, CompetitiveData], merge: MergeResult
    ) -> dict[str, CompetitiveData]:
        remapped: dict[str, CompetitiveData] = {}
        for node_id in sorted(competitive):
            target = merge.merge_map.get(node_id, node_id)
            # Data keyed by the surviving node itself wins
            if target == node_id or target not in remapped:
                remapped[target] = competitive[node_id]
        return remapped

    def _factors(
        self,
        node_id: str,
        search: dict[str, SearchAggregate],
        behavioral: dict[str, BehavioralAggregate],
        profiles: dict[str, CatalogProfile],
        competitive: dict[str, CompetitiveData],
    ) -> ScoringFactors:
        """
        Combine every signal for one node.

        Args:
            node_id: Canonical node ID.
            search: Search aggregates.
            behavioral: Behavioral aggregates.
            profiles: Catalog profiles.
            competitive: Competitive data.

        Returns:
            Scoring factors; missing signals stay at their zero defaults.
        """
        s = search.get(node_id) or SearchAggregate(node_id=node_id)
        b = behavioral.get(node_id) or BehavioralAggregate(node_id=node_id)
        profile = profiles.get(node_id) or CatalogProfile()
        landscape = competitive.get(node_id) or CompetitiveData()

        return ScoringFactors(
            node_id=node_id,
            impressions=s.impressions,
            clicks=s.clicks,
            ctr=s.ctr,
            position=s.avg_position,
            sessions=b.sessions,
            transactions=b.transactions,
            revenue=b.revenue,
            conversion_rate=b.conversion_rate,
            avg_order_value=b.avg_order_value,
            bounce_rate=b.bounce_rate,
            product_count=profile.product_count,
            in_stock_ratio=profile.in_stock_ratio,
            has_images_ratio=profile.has_images_ratio,
            avg_price=profile.avg_price,
            competitor_count=landscape.competitor_count,
            domain_authority=landscape.domain_authority,
        )

    def _count_types(self, scores: list[OpportunityScore]) -> dict[str, int]:
        counts = {item.value: 0 for item in OpportunityType}
        for score in scores:
            counts[score.opportunity_type.value] += 1
        return counts
