"""
Prometheus metrics for group directory operations.

These complement the HTTP metrics provided by
prometheus-fastapi-instrumentator.
"""

from prometheus_client import Counter, Gauge, Histogram

# ============================================================================
# Listing Metrics
# ============================================================================

listings_created_total = Counter(
    'groupdir_listings_created_total',
    'Total number of group listings created'
)

listing_validation_failures_total = Counter(
    'groupdir_listing_validation_failures_total',
    'Total number of rejected listing submissions',
    ['reason']
)

listings_stored = Gauge(
    'groupdir_listings_stored',
    'Number of listings in the JSON document after the last read or write'
)

# ============================================================================
# Upload Metrics
# ============================================================================

uploads_stored_total = Counter(
    'groupdir_uploads_stored_total',
    'Total number of uploaded images written to disk'
)

# ============================================================================
# Storage Metrics
# ============================================================================

storage_faults_total = Counter(
    'groupdir_storage_faults_total',
    'Total number of storage faults surfaced to clients',
    ['operation']
)

store_operation_duration_seconds = Histogram(
    'groupdir_store_operation_duration_seconds',
    'Duration of JSON document operations in seconds',
    ['operation'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)
