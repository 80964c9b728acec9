"""
Unit tests for search and revenue statistics.
"""

from internal.domain.metrics import BehavioralAggregate, SearchAggregate
from internal.usecase.metrics_aggregator import MetricsAggregator
from internal.usecase.metrics_statistics import (
    revenue_statistics,
    search_statistics,
    top_level,
)


URL_MAP = {
    "/smartphones": "electronics-phones-smartphones",
    "/feature-phones": "electronics-phones-feature-phones",
}


class TestSearchStatistics:
    """Tests for search statistics."""

    def test_totals_count_each_click_once(self, tree_nodes, search_records):
        """Test that totals come from top-level aggregates only."""
        aggregates = MetricsAggregator().aggregate_search(
            tree_nodes, search_records, URL_MAP
        )

        stats = search_statistics(aggregates)

        assert stats.total_nodes == 4
        assert stats.total_clicks == 40
        assert stats.total_impressions == 4000
        assert stats.avg_ctr == 0.01
        assert stats.avg_position == 7.0

    def test_ranked_views(self, tree_nodes, search_records):
        """Test top performers and the needs-attention view."""
        aggregates = MetricsAggregator().aggregate_search(
            tree_nodes, search_records, URL_MAP
        )

        stats = search_statistics(aggregates, limit=3)

        assert [m.node_id for m in stats.top_performers] == [
            "electronics",
            "electronics-phones",
            "electronics-phones-smartphones",
        ]
        assert [m.node_id for m in stats.needs_attention] == [
            "electronics",
            "electronics-phones",
            "electronics-phones-feature-phones",
        ]

    def test_empty(self):
        """Test that no aggregates give zeroed statistics."""
        stats = search_statistics({})

        assert stats.total_clicks == 0
        assert stats.avg_ctr == 0.0
        assert stats.avg_position == 0.0
        assert stats.top_performers == []


class TestRevenueStatistics:
    """Tests for revenue statistics."""

    def test_totals(self, tree_nodes, behavioral_records):
        """Test overall revenue, AOV and conversion rate."""
        aggregates = MetricsAggregator().aggregate_behavioral(
            tree_nodes, behavioral_records
        )

        stats = revenue_statistics(aggregates)

        assert stats.total_revenue == 600.0
        assert stats.total_transactions == 10
        assert stats.total_sessions == 400
        assert stats.avg_order_value == 60.0
        assert stats.conversion_rate == 0.025
        assert stats.top_revenue_nodes[0].node_id == "electronics"

    def test_conversion_views(self):
        """Test the high- and low-conversion views."""
        aggregates = {
            "good": BehavioralAggregate(node_id="good", sessions=200, conversion_rate=0.08),
            "bad": BehavioralAggregate(node_id="bad", sessions=500, conversion_rate=0.002),
            "small": BehavioralAggregate(node_id="small", sessions=50, conversion_rate=0.2),
        }

        stats = revenue_statistics(aggregates)

        assert [m.node_id for m in stats.high_conversion_nodes] == ["good"]
        assert [m.node_id for m in stats.low_conversion_nodes] == ["bad"]

    def test_zero_sessions(self):
        """Test that zero traffic gives zero rates."""
        stats = revenue_statistics({"a": BehavioralAggregate(node_id="a")})

        assert stats.conversion_rate == 0.0
        assert stats.avg_order_value == 0.0


class TestTopLevel:
    """Tests for top-level aggregate selection."""

    def test_only_unparented_aggregates(self):
        """Test that aggregates whose parent is aggregated are excluded."""
        aggregates = {
            "root": SearchAggregate(node_id="root"),
            "child": SearchAggregate(node_id="child", parent_id="root"),
            "detached": SearchAggregate(node_id="detached", parent_id="not-aggregated"),
        }

        assert [m.node_id for m in top_level(aggregates)] == ["detached", "root"]
