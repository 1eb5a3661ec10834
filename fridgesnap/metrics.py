from prometheus_client import Counter, Histogram
# Prometheus metrics definitions

# Requests reaching the recipe endpoints, labelled by endpoint
recipe_requests_total = Counter(
    "recipe_requests_total", "Total recipe requests", ["endpoint"]
)

# latency histogram for the upload + generation round trip
_generation_latency_buckets = (
    1.0,
    2.0,
    4.0,
    8.0,
    16.0,
    32.0,
)

generation_latency_seconds = Histogram(
    "generation_latency_seconds",
    "Recipe generation latency",
    buckets=_generation_latency_buckets,
)

# Entitlement rejects: cooldown, weekly cap, regeneration cap
quota_reject_total = Counter(
    "quota_reject_total", "Number of quota rejected requests", ["reason"]
)

# Generation outcomes other than a recipe (no food, bad output, service error)
generation_failures_total = Counter(
    "generation_failures_total", "Total failed generations", ["kind"]
)

# Scans removed by the retention sweep
scans_evicted_total = Counter(
    "scans_evicted_total", "Total scans evicted after the retention horizon"
)

__all__ = [
    "recipe_requests_total",
    "generation_latency_seconds",
    "quota_reject_total",
    "generation_failures_total",
    "scans_evicted_total",
]
