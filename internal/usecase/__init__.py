"""
Use case package for the taxonomy engine.

Contains taxonomy construction, deduplication, metrics rollup and scoring.
"""
from .taxonomy_builder import TaxonomyBuilder, propagate_counts
from .category_matcher import CategoryMatcher
from .category_deduplicator import CategoryDeduplicator
from .metrics_aggregator import MetricsAggregator
from .metrics_statistics import search_statistics, revenue_statistics
from .opportunity_scorer import OpportunityScorer
from .opportunity_pipeline import (
    OpportunityPipeline,
    PipelineInput,
    PipelineResult,
)

__all__ = [
    "TaxonomyBuilder",
    "propagate_counts",
    "CategoryMatcher",
    "CategoryDeduplicator",
    "MetricsAggregator",
    "search_statistics",
    "revenue_statistics",
    "OpportunityScorer",
    "OpportunityPipeline",
    "PipelineInput",
    "PipelineResult",
]
