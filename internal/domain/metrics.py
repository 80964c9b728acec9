"""
Domain model for search and behavioral metrics.

Raw metric records arrive already fetched from the search-metrics and
analytics collaborators; aggregates hold the per-node rollup.
"""

from dataclasses import dataclass, field
from typing import Optional

from .value_objects import WeightedValue


@dataclass
class SearchMetricRecord:
    """
    Search-engine metrics for one URL over the snapshot date range.

    Attributes:
        url: Landing page URL.
        clicks: Clicks from search results.
        impressions: Search result impressions.
        ctr: Click-through rate reported by the source.
        position: Average search position.
    """

    url: str
    clicks: int = 0
    impressions: int = 0
    ctr: float = 0.0
    position: float = 0.0


@dataclass
class BehavioralMetricRecord:
    """
    On-site behavioral and revenue metrics for one page.

    Attributes:
        page_path: Page path reported by analytics.
        node_id: Resolved taxonomy node (None when matching failed).
        revenue: Revenue attributed to the page.
        transactions: Completed transactions.
        sessions: Sessions landing on the page.
        users: Distinct users.
        page_views: Page views.
        conversion_rate: Conversion rate reported by the source.
        avg_order_value: Average order value reported by the source.
        engagement_rate: Engaged sessions share.
        bounce_rate: Bounced sessions share.
    """

    page_path: str
    node_id: Optional[str] = None
    revenue: float = 0.0
    transactions: int = 0
    sessions: int = 0
    users: int = 0
    page_views: int = 0
    conversion_rate: float = 0.0
    avg_order_value: float = 0.0
    engagement_rate: float = 0.0
    bounce_rate: float = 0.0


@dataclass
class SearchAggregate:
    """Search metrics rolled up for one taxonomy node."""

    node_id: str
    parent_id: Optional[str] = None
    clicks: int = 0
    impressions: int = 0
    ctr: float = 0.0
    avg_position: float = 0.0
    url_count: int = 0
    positions: list[WeightedValue] = field(default_factory=list, repr=False)

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "node_id": self.node_id,
            "parent_id": self.parent_id,
            "clicks": self.clicks,
            "impressions": self.impressions,
            "ctr": self.ctr,
            "avg_position": self.avg_position,
            "url_count": self.url_count,
        }


@dataclass
class BehavioralAggregate:
    """Behavioral and revenue metrics rolled up for one taxonomy node."""

    node_id: str
    parent_id: Optional[str] = None
    revenue: float = 0.0
    transactions: int = 0
    sessions: int = 0
    users: int = 0
    page_views: int = 0
    conversion_rate: float = 0.0
    avg_order_value: float = 0.0
    engagement_rate: float = 0.0
    bounce_rate: float = 0.0
    record_count: int = 0
    engagement: list[WeightedValue] = field(default_factory=list, repr=False)
    bounce: list[WeightedValue] = field(default_factory=list, repr=False)

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "node_id": self.node_id,
            "parent_id": self.parent_id,
            "revenue": self.revenue,
            "transactions": self.transactions,
            "sessions": self.sessions,
            "users": self.users,
            "page_views": self.page_views,
            "conversion_rate": self.conversion_rate,
            "avg_order_value": self.avg_order_value,
            "engagement_rate": self.engagement_rate,
            "bounce_rate": self.bounce_rate,
            "record_count": self.record_count,
        }


@dataclass
class MatchTracker:
    """
    Counts how many metric records could be attributed to a node.

    Attributes:
        family: Metric family name ("search" or "behavioral").
        total: Records seen.
        matched: Records attributed to a node.
        unmatched: Records dropped because no node could be resolved.
        unmatched_keys: URLs or page paths of dropped records.
    """

    family: str
    total: int = 0
    matched: int = 0
    unmatched: int = 0
    unmatched_keys: list[str] = field(default_factory=list)

    def record(self, matched: bool, key: str = "") -> None:
        """
        Record the outcome for one metric record.

        Args:
            matched: Whether the record was attributed to a node.
            key: URL or page path of the record.
        """
        self.total += 1
        if matched:
            self.matched += 1
        else:
            self.unmatched += 1
            if key:
                self.unmatched_keys.append(key)

    @property
    def match_rate(self) -> float:
        """Share of records that were matched."""
        if self.total == 0:
            return 0.0
        return self.matched / self.total

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "family": self.family,
            "total": self.total,
            "matched": self.matched,
            "unmatched": self.unmatched,
            "match_rate": round(self.match_rate, 4),
        }


@dataclass
class SearchStatistics:
    """Summary view over search aggregates."""

    total_nodes: int
    total_clicks: int
    total_impressions: int
    avg_ctr: float
    avg_position: float
    top_performers: list[SearchAggregate]
    needs_attention: list[SearchAggregate]


@dataclass
class RevenueStatistics:
    """Summary view over behavioral aggregates."""

    total_nodes: int
    total_revenue: float
    total_transactions: int
    total_sessions: int
    avg_order_value: float
    conversion_rate: float
    top_revenue_nodes: list[BehavioralAggregate]
    high_conversion_nodes: list[BehavioralAggregate]
    low_conversion_nodes: list[BehavioralAggregate]
