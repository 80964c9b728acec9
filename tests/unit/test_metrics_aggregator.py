"""
Unit tests for MetricsAggregator bottom-up rollup.
"""

import pytest

from internal.domain.errors import TaxonomyCycleError
from internal.domain.metrics import BehavioralMetricRecord, MatchTracker, SearchMetricRecord
from internal.usecase.metrics_aggregator import MetricsAggregator, compute_depths


URL_MAP = {
    "/smartphones": "electronics-phones-smartphones",
    "/feature-phones": "electronics-phones-feature-phones",
    "/phones": "electronics-phones",
}


class TestComputeDepths:
    """Tests for iterative depth computation."""

    def test_depths(self):
        """Test depths along a chain."""
        depths = compute_depths({"a": None, "b": "a", "c": "b"})

        assert depths == {"a": 0, "b": 1, "c": 2}

    def test_unknown_parent_is_implicit_root(self):
        """Test that a parent outside the map counts as a root."""
        assert compute_depths({"d": "outside"}) == {"d": 1}

    def test_cycle_raises(self):
        """Test that a looping chain is rejected."""
        with pytest.raises(TaxonomyCycleError):
            compute_depths({"a": "b", "b": "a"})


class TestSearchAggregation:
    """Tests for search metric rollup."""

    @pytest.fixture
    def aggregator(self):
        """Create aggregator instance."""
        return MetricsAggregator()

    def test_ctr_finalized_from_totals(self, aggregator, tree_nodes):
        """Test impressions=1000, clicks=5 -> ctr 0.005."""
        records = [SearchMetricRecord(url="/smartphones", clicks=5, impressions=1000)]

        result = aggregator.aggregate_search(tree_nodes, records, URL_MAP)

        assert result["electronics-phones-smartphones"].ctr == 0.005
        assert result["electronics"].ctr == 0.005

    def test_rollup_sums_and_weighted_position(
        self, aggregator, tree_nodes, search_records
    ):
        """Test that counts sum up and position is impression-weighted."""
        result = aggregator.aggregate_search(tree_nodes, search_records, URL_MAP)

        phones = result["electronics-phones"]
        assert phones.clicks == 40
        assert phones.impressions == 4000
        assert phones.ctr == 0.01
        assert phones.avg_position == 7.0
        assert phones.url_count == 2
        assert result["electronics-phones-feature-phones"].ctr == 0.0033
        assert result["electronics"].avg_position == 7.0

    def test_direct_records_on_inner_nodes(self, aggregator, tree_nodes, search_records):
        """Test that an inner node's own records are combined with its children's."""
        records = search_records + [
            SearchMetricRecord(url="/phones", clicks=60, impressions=1000, position=2.0)
        ]

        result = aggregator.aggregate_search(tree_nodes, records, URL_MAP)

        phones = result["electronics-phones"]
        assert phones.clicks == 100
        assert phones.impressions == 5000
        assert phones.avg_position == 6.0

    def test_sum_conservation(self, aggregator, tree_nodes, search_records):
        """Test parent counts equal direct records plus children's aggregates."""
        records = search_records + [
            SearchMetricRecord(url="/phones", clicks=7, impressions=70, position=1.0)
        ]

        result = aggregator.aggregate_search(tree_nodes, records, URL_MAP)

        for node_id, aggregate in result.items():
            direct = [r for r in records if URL_MAP[r.url] == node_id]
            children = [a for a in result.values() if a.parent_id == node_id]
            assert aggregate.clicks == sum(r.clicks for r in direct) + sum(
                c.clicks for c in children
            )
            assert aggregate.impressions == sum(r.impressions for r in direct) + sum(
                c.impressions for c in children
            )

    def test_zero_impressions_skip_position(self, aggregator, tree_nodes):
        """Test that entries without impressions or position carry no weight."""
        records = [
            SearchMetricRecord(url="/smartphones", clicks=0, impressions=0, position=50.0),
            SearchMetricRecord(url="/feature-phones", clicks=1, impressions=100, position=0.0),
        ]

        result = aggregator.aggregate_search(tree_nodes, records, URL_MAP)

        assert result["electronics-phones"].avg_position == 0.0
        assert result["electronics-phones-smartphones"].ctr == 0.0

    def test_unmatched_records_tracked(self, aggregator, tree_nodes, search_records):
        """Test that records without a node are dropped and counted."""
        tracker = MatchTracker(family="search")
        records = search_records + [
            SearchMetricRecord(url="/unknown", clicks=99, impressions=99),
            SearchMetricRecord(url="/stale", clicks=1, impressions=1),
        ]
        url_map = {**URL_MAP, "/stale": "deleted-node"}

        result = aggregator.aggregate_search(tree_nodes, records, url_map, tracker)

        assert result["electronics"].clicks == 40
        assert tracker.total == 4
        assert tracker.matched == 2
        assert tracker.unmatched == 2
        assert tracker.unmatched_keys == ["/unknown", "/stale"]
        assert tracker.match_rate == 0.5

    def test_no_records(self, aggregator, tree_nodes):
        """Test that inner nodes still get zeroed aggregates."""
        result = aggregator.aggregate_search(tree_nodes, [], URL_MAP)

        assert result["electronics"].clicks == 0
        assert result["electronics"].ctr == 0.0
        assert "electronics-phones-smartphones" not in result


class TestBehavioralAggregation:
    """Tests for analytics metric rollup."""

    @pytest.fixture
    def aggregator(self):
        """Create aggregator instance."""
        return MetricsAggregator()

    def test_zero_sessions_finalize_to_zero(self, aggregator, tree_nodes):
        """Test that zero sessions give conversion rate and AOV of 0."""
        records = [
            BehavioralMetricRecord(
                page_path="/smartphones",
                node_id="electronics-phones-smartphones",
                page_views=10,
            )
        ]

        result = aggregator.aggregate_behavioral(tree_nodes, records)

        leaf = result["electronics-phones-smartphones"]
        assert leaf.conversion_rate == 0
        assert leaf.avg_order_value == 0
        assert leaf.engagement_rate == 0
        assert leaf.page_views == 10

    def test_rollup(self, aggregator, tree_nodes, behavioral_records):
        """Test sums, derived rates and session-weighted engagement."""
        result = aggregator.aggregate_behavioral(tree_nodes, behavioral_records)

        phones = result["electronics-phones"]
        assert phones.revenue == 600.0
        assert phones.transactions == 10
        assert phones.sessions == 400
        assert phones.users == 330
        assert phones.conversion_rate == 0.025
        assert phones.avg_order_value == 60.0
        assert phones.engagement_rate == 0.3
        assert phones.bounce_rate == 0.7
        assert phones.record_count == 2

        feature = result["electronics-phones-feature-phones"]
        assert feature.conversion_rate == 0.0167
        assert feature.avg_order_value == 20.0

    def test_grandparent_matches_exact_weighted_mean(
        self, aggregator, tree_nodes, behavioral_records
    ):
        """Test that weights carry through more than one level."""
        result = aggregator.aggregate_behavioral(tree_nodes, behavioral_records)

        assert result["electronics"].bounce_rate == 0.7
        assert result["electronics"].sessions == 400

    def test_unmatched_records_tracked(self, aggregator, tree_nodes, behavioral_records):
        """Test that records without a resolvable node are dropped."""
        tracker = MatchTracker(family="behavioral")
        records = behavioral_records + [
            BehavioralMetricRecord(page_path="/blog", revenue=1000.0, sessions=10),
            BehavioralMetricRecord(page_path="/gone", node_id="gone", sessions=10),
        ]

        result = aggregator.aggregate_behavioral(tree_nodes, records, tracker)

        assert result["electronics"].revenue == 600.0
        assert tracker.unmatched == 2
        assert tracker.unmatched_keys == ["/blog", "/gone"]
