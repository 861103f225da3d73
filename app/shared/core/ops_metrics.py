"""
Operational Metrics for kube-ttl-reaper

Prometheus collectors tracking reconciliation health, deletion outcomes
and cluster API trouble.
"""

from prometheus_client import Counter, Gauge, Histogram

# --- Reconciliation Pass Metrics ---
RECONCILIATION_PASSES_TOTAL = Counter(
    "ttl_reaper_passes_total",
    "Total number of reconciliation passes",
    ["status"],  # 'success', 'failure', 'timeout'
)

RECONCILIATION_PASS_DURATION = Histogram(
    "ttl_reaper_pass_duration_seconds",
    "Duration of completed reconciliation passes",
    buckets=(1, 5, 10, 30, 60, 120, 300, 600, 1200),
)

CONSECUTIVE_FAILED_PASSES = Gauge(
    "ttl_reaper_consecutive_failures",
    "Current number of consecutive failed reconciliation passes",
)

# --- Resource Metrics ---
DELETIONS_TOTAL = Counter(
    "ttl_reaper_deletions_total",
    "Total number of delete attempts on expired resources",
    ["resource", "result"],  # 'deleted', 'failed', 'already_deleted'
)

LIST_ERRORS_TOTAL = Counter(
    "ttl_reaper_list_errors_total",
    "Total number of failed list requests",
    ["resource"],
)

MALFORMED_ANNOTATIONS_TOTAL = Counter(
    "ttl_reaper_malformed_annotations_total",
    "Total number of unparseable TTL or refreshed-at annotations seen",
    ["annotation"],  # 'ttl', 'refreshed_at', 'creation_timestamp'
)
