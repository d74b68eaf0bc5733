"""
Prometheus Metrics Module

Engine metrics using the prometheus_client library.
Metrics are exposed at /metrics endpoint for Prometheus scraping.
"""

from prometheus_client import Counter, Gauge, Histogram, Info

# =============================================================================
# Application Info
# =============================================================================

APP_INFO = Info("homepage_cms_app", "Homepage CMS application information")


def set_app_info(version: str, environment: str) -> None:
    """Set application info labels."""
    APP_INFO.info({"version": version, "environment": environment})


# =============================================================================
# Publication & Schedule Metrics
# =============================================================================

PUBLISHES_TOTAL = Counter(
    "homepage_cms_publishes_total",
    "Section versions made live",
    ["trigger"],  # manual, scheduled
)

SCHEDULE_TRANSITIONS_TOTAL = Counter(
    "homepage_cms_schedule_transitions_total",
    "Schedule transitions performed by the sweep",
    ["action"],  # published, expired
)

SCHEDULE_FAILURES_TOTAL = Counter(
    "homepage_cms_schedule_failures_total",
    "Schedules that failed to transition during a sweep",
    ["action"],
)

SWEEP_DURATION_SECONDS = Histogram(
    "homepage_cms_schedule_sweep_duration_seconds",
    "Schedule sweep duration in seconds",
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# =============================================================================
# Cache Metrics
# =============================================================================

REDIS_CONNECTED = Gauge(
    "homepage_cms_redis_connected",
    "Whether the cache is connected to Redis (1) or not (0)",
)

CACHE_HITS_TOTAL = Counter(
    "homepage_cms_cache_hits_total",
    "Total cache hits",
    ["cache_type"],
)

CACHE_MISSES_TOTAL = Counter(
    "homepage_cms_cache_misses_total",
    "Total cache misses",
    ["cache_type"],
)

INVALIDATION_FAILURES_TOTAL = Counter(
    "homepage_cms_invalidation_failures_total",
    "Cache purges that failed after a successful write",
    ["event"],
)

INVALIDATION_QUEUE_SIZE = Gauge(
    "homepage_cms_invalidation_queue_size",
    "Failed invalidation targets waiting for retry",
)


def record_cache_hit(cache_type: str = "default") -> None:
    """Record a cache hit."""
    CACHE_HITS_TOTAL.labels(cache_type=cache_type).inc()


def record_cache_miss(cache_type: str = "default") -> None:
    """Record a cache miss."""
    CACHE_MISSES_TOTAL.labels(cache_type=cache_type).inc()


def record_publish(trigger: str) -> None:
    PUBLISHES_TOTAL.labels(trigger=trigger).inc()


def record_schedule_transition(action: str) -> None:
    SCHEDULE_TRANSITIONS_TOTAL.labels(action=action).inc()


def record_schedule_failure(action: str) -> None:
    SCHEDULE_FAILURES_TOTAL.labels(action=action).inc()


def record_invalidation_failure(event: str) -> None:
    INVALIDATION_FAILURES_TOTAL.labels(event=event).inc()
