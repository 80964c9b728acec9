"""
Batch transport: snapshot DTOs and tabular exports.
"""
from .dto import (
    ProductDTO,
    SearchMetricDTO,
    BehavioralMetricDTO,
    CompetitiveDataDTO,
    SnapshotDTO,
)
from .export import (
    export_search_metrics,
    export_behavioral_metrics,
    export_scores,
    write_exports,
)

__all__ = [
    "ProductDTO",
    "SearchMetricDTO",
    "BehavioralMetricDTO",
    "CompetitiveDataDTO",
    "SnapshotDTO",
    "export_search_metrics",
    "export_behavioral_metrics",
    "export_scores",
    "write_exports",
]
