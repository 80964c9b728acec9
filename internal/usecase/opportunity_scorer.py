"""
Opportunity Scorer Use Case.

Turns the combined search, behavioral and catalog factors of one taxonomy
node into a bounded opportunity score, a classification and a list of
recommended actions. Scoring is a pure function of its input.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Iterable

from internal.domain.opportunity import (
    ComponentScores,
    OpportunityScore,
    OpportunityType,
    ScoringFactors,
)
from internal.domain.value_objects import round_half_up

# Search potential
IMPRESSIONS_CAP = 10_000
TARGET_CTR = 0.05
POSITION_SHORTFALL_SPAN = 5.0  # ranks below #1 that count as a full shortfall

# Conversion potential
SESSIONS_CAP = 1_000
TARGET_CONVERSION_RATE = 0.03

# Revenue impact
REVENUE_GAP_SPAN = 10_000.0

# Content quality
MIN_PRODUCTS_FOR_DEPTH = 10

# Competition
NEUTRAL_COMPETITION = 50.0
TARGET_DOMAIN_AUTHORITY = 70.0

WEIGHTS = {
    "search_potential": 0.30,
    "conversion_potential": 0.25,
    "revenue_impact": 0.25,
    "content_quality": 0.10,
    "competition": 0.10,
}

# Confidence gates
MIN_IMPRESSIONS = 100
MIN_SESSIONS = 50
MIN_PRODUCTS = 5


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def _shortfall(target: float, actual: float) -> float:
    """Relative shortfall of actual below target, as 0-100."""
    if target <= 0:
        return 0.0
    return _clamp((target - actual) / target * 100)


@dataclass(frozen=True)
class RecommendationRule:
    """
    Threshold rule producing one recommendation.

    Attributes:
        message: Recommendation text.
        applies: Predicate on (component scores, raw factors).
    """
    message: str
    applies: Callable[[ComponentScores, ScoringFactors], bool]


RECOMMENDATION_RULES: tuple[RecommendationRule, ...] = (
    RecommendationRule(
        "Improve on-page SEO and internal linking to reach a top-3 search position",
        lambda c, f: c.search_potential > 70 and f.position > 3,
    ),
    RecommendationRule(
        "Rewrite title tag and meta description to lift click-through rate",
        lambda c, f: c.search_potential > 50
        and f.impressions > MIN_IMPRESSIONS
        and f.ctr < TARGET_CTR / 2,
    ),
    RecommendationRule(
        "Expand category content to target related long-tail queries",
        lambda c, f: c.search_potential > 60 and f.impressions >= IMPRESSIONS_CAP / 2,
    ),
    RecommendationRule(
        "Reduce bounce rate with clearer above-the-fold content and faster pages",
        lambda c, f: c.conversion_potential > 70 and f.bounce_rate > 0.7,
    ),
    RecommendationRule(
        "Optimize the conversion path: review pricing, shipping costs and calls to action",
        lambda c, f: c.conversion_potential > 70
        and f.sessions > MIN_SESSIONS
        and f.conversion_rate < TARGET_CONVERSION_RATE,
    ),
    RecommendationRule(
        "Prioritize this category: closing the traffic and conversion gap has large revenue upside",
        lambda c, f: c.revenue_impact > 50,
    ),
    RecommendationRule(
        "Add products to deepen the assortment in this category",
        lambda c, f: f.product_count < MIN_PRODUCTS_FOR_DEPTH,
    ),
    RecommendationRule(
        "Add images to product listings that are missing them",
        lambda c, f: f.product_count > 0 and f.has_images_ratio < 0.8,
    ),
    RecommendationRule(
        "Restock or hide out-of-stock products",
        lambda c, f: f.product_count > 0 and f.in_stock_ratio < 0.5,
    ),
    RecommendationRule(
        "Competitive results page: focus on long-tail variations and build authority",
        lambda c, f: c.competition < 40,
    ),
)

MAINTAIN_RECOMMENDATION = "Maintain current performance and monitor for changes"


class OpportunityScorer:
    """
    Weighted opportunity scoring for taxonomy nodes.

    Component scores are normalized to 0-100:
    - search potential: volume, CTR shortfall, ranking shortfall
    - conversion potential: volume, conversion shortfall, engagement
    - revenue impact: revenue gap at target CTR and conversion rate
    - content quality: catalog completeness
    - competition: competitor count and domain authority gap
    """

    def __init__(
        self,
        rules: tuple[RecommendationRule, ...] = RECOMMENDATION_RULES,
    ) -> None:
        """
        Initialize the scorer.

        Args:
            rules: Ordered recommendation rules.
        """
        self._rules = rules

    def score(self, factors: ScoringFactors) -> OpportunityScore:
        """
        Score one node.

        Args:
            factors: Combined inputs for the node.

        Returns:
            Opportunity score with components, type and recommendations.
        """
        components = ComponentScores(
            search_potential=self._round(self.search_potential(factors)),
            conversion_potential=self._round(self.conversion_potential(factors)),
            revenue_impact=self._round(self.revenue_impact(factors)),
            content_quality=self._round(self.content_quality(factors)),
            competition=self._round(self.competition(factors)),
        )

        weighted = sum(
            getattr(components, name) * weight for name, weight in WEIGHTS.items()
        )
        total = int(
            Decimal(str(_clamp(weighted))).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        )

        return OpportunityScore(
            node_id=factors.node_id,
            total_score=total,
            components=components,
            opportunity_type=self.classify(components),
            recommendations=self.recommend(components, factors),
            confidence=self.confidence(factors),
        )

    def score_many(self, factors: Iterable[ScoringFactors]) -> list[OpportunityScore]:
        """
        Score several nodes and rank them.

        Args:
            factors: Inputs for each node.

        Returns:
            Scores ordered by total score (desc), then node ID.
        """
        return rank([self.score(item) for item in factors])

    def search_potential(self, factors: ScoringFactors) -> float:
        """Search potential from volume, CTR shortfall and ranking shortfall."""
        volume = min(factors.impressions / IMPRESSIONS_CAP, 1.0) * 100
        ctr_gap = _shortfall(TARGET_CTR, factors.ctr)
        if factors.position > 0:
            position_gap = _clamp((factors.position - 1) / POSITION_SHORTFALL_SPAN * 100)
        else:
            position_gap = 0.0
        return 0.4 * volume + 0.3 * ctr_gap + 0.3 * position_gap

    def conversion_potential(self, factors: ScoringFactors) -> float:
        """Conversion potential from volume, conversion shortfall and engagement."""
        volume = min(factors.sessions / SESSIONS_CAP, 1.0) * 100
        conversion_gap = _shortfall(TARGET_CONVERSION_RATE, factors.conversion_rate)
        engagement = _clamp((1 - factors.bounce_rate) * 100)
        return 0.4 * volume + 0.4 * conversion_gap + 0.2 * engagement

    def revenue_impact(self, factors: ScoringFactors) -> float:
        """Revenue gap between target performance and current revenue."""
        target_revenue = (
            factors.impressions
            * TARGET_CTR
            * TARGET_CONVERSION_RATE
            * factors.avg_order_value
        )
        gap = max(target_revenue - factors.revenue, 0.0)
        return min(gap / REVENUE_GAP_SPAN, 1.0) * 100

    def content_quality(self, factors: ScoringFactors) -> float:
        """Mean of four catalog-completeness indicators."""
        indicators = (
            1.0 if factors.product_count >= MIN_PRODUCTS_FOR_DEPTH else 0.0,
            _clamp(factors.in_stock_ratio, 0.0, 1.0),
            _clamp(factors.has_images_ratio, 0.0, 1.0),
            1.0 if factors.avg_price > 0 else 0.0,
        )
        return sum(indicators) / len(indicators) * 100

    def competition(self, factors: ScoringFactors) -> float:
        """Competition score, neutral when no competitive data is known."""
        if factors.competitor_count is None and factors.domain_authority is None:
            return NEUTRAL_COMPETITION

        if factors.competitor_count is None:
            crowding = NEUTRAL_COMPETITION
        else:
            crowding = _clamp(100 - 10 * factors.competitor_count)

        if factors.domain_authority is None:
            authority_gap = NEUTRAL_COMPETITION
        else:
            authority_gap = _shortfall(TARGET_DOMAIN_AUTHORITY, factors.domain_authority)

        return 0.6 * crowding + 0.4 * authority_gap

    def classify(self, components: ComponentScores) -> OpportunityType:
        """
        Classify a node; the first matching rule wins.

        Args:
            components: Component scores.

        Returns:
            Opportunity type.
        """
        if components.search_potential > 70 and components.conversion_potential > 70:
            return OpportunityType.QUICK_WIN
        if components.revenue_impact > 80:
            return OpportunityType.HIGH_VALUE
        if components.search_potential > 80:
            return OpportunityType.SEO_OPPORTUNITY
        if components.conversion_potential > 80:
            return OpportunityType.CRO_OPPORTUNITY
        return OpportunityType.MAINTENANCE

    def recommend(
        self, components: ComponentScores, factors: ScoringFactors
    ) -> list[str]:
        """
        Collect recommendations from every rule that fires.

        Args:
            components: Component scores.
            factors: Raw inputs.

        Returns:
            Recommendations in rule order, or the maintenance advice when
            no rule fires.
        """
        recommendations = [
            rule.message for rule in self._rules if rule.applies(components, factors)
        ]
        return recommendations or [MAINTAIN_RECOMMENDATION]

    def confidence(self, factors: ScoringFactors) -> float:
        """Share of the three data-volume gates that are satisfied."""
        gates = (
            factors.impressions > MIN_IMPRESSIONS,
            factors.sessions > MIN_SESSIONS,
            factors.product_count > MIN_PRODUCTS,
        )
        return round_half_up(sum(gates) / len(gates), 2)

    def _round(self, value: float) -> float:
        return round_half_up(_clamp(value), 2)


def rank(scores: Iterable[OpportunityScore]) -> list[OpportunityScore]:
    """
    Order scores by total score (desc), then node ID.

    Args:
        scores: Scores to rank.

    Returns:
        Ranked list.
    """
    return sorted(scores, key=lambda s: (-s.total_score, s.node_id))


def top(scores: Iterable[OpportunityScore], limit: int = 10) -> list[OpportunityScore]:
    """Highest-scoring nodes."""
    return rank(scores)[:limit]


def quick_wins(scores: Iterable[OpportunityScore]) -> list[OpportunityScore]:
    """Ranked scores classified as quick wins."""
    return [score for score in rank(scores) if score.is_quick_win]
