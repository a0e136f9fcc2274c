"""
Transient Cache Metrics

Prometheus instruments for reads, regenerations, invalidations and
compute latency. Instruments live on a package-level registry so the host
application decides whether and where to expose them.
"""

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

registry = CollectorRegistry()

transient_reads_total = Counter(
    "transient_reads_total",
    "Transient reads by outcome",
    ["result"],  # hit, stale, miss
    registry=registry,
)

transient_regenerations_scheduled_total = Counter(
    "transient_regenerations_scheduled_total",
    "Background regeneration scheduling attempts",
    ["outcome"],  # scheduled, already_pending
    registry=registry,
)

transient_regeneration_jobs_total = Counter(
    "transient_regeneration_jobs_total",
    "Background regeneration jobs run",
    ["status"],  # success, failure
    registry=registry,
)

transient_invalidations_total = Counter(
    "transient_invalidations_total",
    "Transient invalidations by trigger",
    ["reason"],
    registry=registry,
)

transient_compute_duration_seconds = Histogram(
    "transient_compute_duration_seconds",
    "Time spent computing fresh transient values",
    ["kind"],
    buckets=(0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
    registry=registry,
)


def render_metrics() -> bytes:
    """Render the registry in the Prometheus text exposition format."""
    return generate_latest(registry)
