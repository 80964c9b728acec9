"""
Metrics package for the taxonomy pipeline.
"""
from .prometheus import (
    PRODUCTS_PROCESSED,
    TAXONOMY_NODES,
    NODE_ID_COLLISIONS,
    CATEGORY_MERGES,
    METRIC_RECORDS,
    OPPORTUNITIES_BY_TYPE,
    PIPELINE_STAGE_DURATION,
    PIPELINE_RUNS,
)

__all__ = [
    "PRODUCTS_PROCESSED",
    "TAXONOMY_NODES",
    "NODE_ID_COLLISIONS",
    "CATEGORY_MERGES",
    "METRIC_RECORDS",
    "OPPORTUNITIES_BY_TYPE",
    "PIPELINE_STAGE_DURATION",
    "PIPELINE_RUNS",
]
