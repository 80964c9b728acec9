"""
Domain package for the taxonomy engine.

Contains domain entities, value objects, and domain errors.
"""
from .taxonomy import (
    NodeSource,
    Product,
    TaxonomyNode,
    TaxonomyBuildResult,
    MergeResult,
)
from .metrics import (
    SearchMetricRecord,
    BehavioralMetricRecord,
    SearchAggregate,
    BehavioralAggregate,
    MatchTracker,
    SearchStatistics,
    RevenueStatistics,
)
from .opportunity import (
    OpportunityType,
    ScoringFactors,
    ComponentScores,
    OpportunityScore,
)
from .value_objects import (
    WeightedValue,
    CompetitiveData,
    CatalogProfile,
    weighted_mean,
    round_half_up,
)
from .errors import (
    DomainError,
    DomainValidationError,
    TaxonomyIntegrityError,
    DanglingParentError,
    TaxonomyCycleError,
    NodeNotFoundError,
)

__all__ = [
    "NodeSource",
    "Product",
    "TaxonomyNode",
    "TaxonomyBuildResult",
    "MergeResult",
    # Metrics
    "SearchMetricRecord",
    "BehavioralMetricRecord",
    "SearchAggregate",
    "BehavioralAggregate",
    "MatchTracker",
    "SearchStatistics",
    "RevenueStatistics",
    # Scoring
    "OpportunityType",
    "ScoringFactors",
    "ComponentScores",
    "OpportunityScore",
    "WeightedValue",
    "CompetitiveData",
    "CatalogProfile",
    "weighted_mean",
    "round_half_up",
    "DomainError",
    "DomainValidationError",
    "TaxonomyIntegrityError",
    "DanglingParentError",
    "TaxonomyCycleError",
    "NodeNotFoundError",
]
