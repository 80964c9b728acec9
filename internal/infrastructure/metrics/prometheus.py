"""
Prometheus Metrics for the taxonomy pipeline.

Defines all metrics for monitoring pipeline runs and data quality.
"""

from prometheus_client import Counter, Histogram, Gauge

# Taxonomy construction
PRODUCTS_PROCESSED = Counter(
    'taxonomy_products_processed_total',
    'Products processed by the taxonomy builder',
    ['status']  # assigned, unassigned, duplicate
)

TAXONOMY_NODES = Gauge(
    'taxonomy_nodes',
    'Taxonomy nodes in the last pipeline run',
    ['stage']  # built, canonical
)

NODE_ID_COLLISIONS = Counter(
    'taxonomy_node_id_collisions_total',
    'Category sub-paths whose derived node ID was taken by another node'
)

# Deduplication
CATEGORY_MERGES = Counter(
    'category_merges_total',
    'Near-duplicate categories merged away',
    ['kind']  # direct, chained
)

# Metrics rollup
METRIC_RECORDS = Counter(
    'metric_records_total',
    'Metric records seen by the aggregator',
    ['family', 'status']  # family: search, behavioral; status: matched, unmatched
)

# Scoring
OPPORTUNITIES_BY_TYPE = Gauge(
    'opportunities_by_type',
    'Scored nodes by opportunity type in the last run',
    ['opportunity_type']
)

# Pipeline
PIPELINE_STAGE_DURATION = Histogram(
    'pipeline_stage_duration_seconds',
    'Duration of pipeline stages',
    ['stage'],  # build, merge, aggregate_search, aggregate_behavioral, score
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0]
)

PIPELINE_RUNS = Counter(
    'pipeline_runs_total',
    'Pipeline runs',
    ['status']  # success, error
)
