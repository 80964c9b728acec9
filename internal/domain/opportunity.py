"""
Domain model for opportunity scoring.

Scoring factors combine search, behavioral and catalog signals for one node;
the resulting score is a snapshot recomputed on every run.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class OpportunityType(str, Enum):
    """Mutually exclusive opportunity classification."""

    QUICK_WIN = "quick_win"
    HIGH_VALUE = "high_value"
    SEO_OPPORTUNITY = "seo_opportunity"
    CRO_OPPORTUNITY = "cro_opportunity"
    MAINTENANCE = "maintenance"


@dataclass
class ScoringFactors:
    """
    Combined inputs for scoring one taxonomy node.

    Attributes:
        node_id: Node being scored.
        impressions: Search impressions (subtree total).
        clicks: Search clicks (subtree total).
        ctr: Click-through rate (0-1).
        position: Impression-weighted average position (0 = no data).
        sessions: Sessions (subtree total).
        transactions: Transactions (subtree total).
        revenue: Revenue (subtree total).
        conversion_rate: Transactions per session (0-1).
        avg_order_value: Revenue per transaction.
        bounce_rate: Session-weighted bounce rate (0-1).
        product_count: Products in the subtree.
        in_stock_ratio: Share of products in stock (0-1).
        has_images_ratio: Share of products with images (0-1).
        avg_price: Average product price.
        competitor_count: Competitors ranking for the category, if known.
        domain_authority: Our domain authority (0-100), if known.
    """

    node_id: str
    impressions: int = 0
    clicks: int = 0
    ctr: float = 0.0
    position: float = 0.0
    sessions: int = 0
    transactions: int = 0
    revenue: float = 0.0
    conversion_rate: float = 0.0
    avg_order_value: float = 0.0
    bounce_rate: float = 0.0
    product_count: int = 0
    in_stock_ratio: float = 0.0
    has_images_ratio: float = 0.0
    avg_price: float = 0.0
    competitor_count: Optional[int] = None
    domain_authority: Optional[float] = None


@dataclass
class ComponentScores:
    """Named component scores, each normalized to 0-100."""

    search_potential: float = 0.0
    conversion_potential: float = 0.0
    revenue_impact: float = 0.0
    content_quality: float = 0.0
    competition: float = 50.0

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "search_potential": self.search_potential,
            "conversion_potential": self.conversion_potential,
            "revenue_impact": self.revenue_impact,
            "content_quality": self.content_quality,
            "competition": self.competition,
        }


@dataclass
class OpportunityScore:
    """
    Opportunity score for one taxonomy node.

    Attributes:
        node_id: Node the score belongs to.
        total_score: Weighted total (0-100).
        components: Component scores behind the total.
        opportunity_type: Classification label.
        recommendations: Ordered, human-readable actions.
        confidence: Share of data-volume gates satisfied (0-1).
    """

    node_id: str
    total_score: int
    components: ComponentScores
    opportunity_type: OpportunityType
    recommendations: list[str] = field(default_factory=list)
    confidence: float = 0.0

    @property
    def is_quick_win(self) -> bool:
        """Whether the node is classified as a quick win."""
        return self.opportunity_type == OpportunityType.QUICK_WIN

    def diff(self, previous: Optional["OpportunityScore"]) -> dict:
        """
        Compare this score with a previously computed one.

        Args:
            previous: Score from an earlier run, or None.

        Returns:
            Dictionary with total delta and type change.
        """
        if previous is None:
            return {
                "node_id": self.node_id,
                "total_delta": self.total_score,
                "previous_type": None,
                "type_changed": True,
            }

        return {
            "node_id": self.node_id,
            "total_delta": self.total_score - previous.total_score,
            "previous_type": previous.opportunity_type.value,
            "type_changed": previous.opportunity_type != self.opportunity_type,
        }

    def to_dict(self) -> dict:
        """
        Convert to dictionary representation.

        Returns:
            Dictionary with all score data.
        """
        return {
            "node_id": self.node_id,
            "total_score": self.total_score,
            "components": self.components.to_dict(),
            "opportunity_type": self.opportunity_type.value,
            "recommendations": list(self.recommendations),
            "confidence": self.confidence,
        }
