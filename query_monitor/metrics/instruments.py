from shared.metrics import get_counter, get_gauge, get_histogram

SERVICE = "query_monitor"

# Backend fetches
FETCH_ATTEMPTS_TOTAL = get_counter(
    "fetch_attempts_total", "Outbound query-stats fetches started.", SERVICE
)
FETCH_SKIPPED_TOTAL = get_counter(
    "fetch_skipped_total",
    "Refresh calls answered without a fetch.",
    SERVICE,
    labelnames=("reason",),
)
FETCH_FAILURES_TOTAL = get_counter(
    "fetch_failures_total",
    "Failed query-stats fetches by error kind.",
    SERVICE,
    labelnames=("kind",),
)
FETCH_CANCELLED_TOTAL = get_counter(
    "fetch_cancelled_total", "Fetches superseded or cancelled on shutdown.", SERVICE
)
FETCH_LATENCY_SECONDS = get_histogram(
    "fetch_latency_seconds", "Latency of successful query-stats fetches.", SERVICE
)
RESETS_TOTAL = get_counter(
    "resets_total",
    "Reset requests by outcome.",
    SERVICE,
    labelnames=("outcome",),
)

# Snapshot contents
SNAPSHOT_SAMPLES = get_gauge(
    "snapshot_samples", "Samples held in the current snapshot.", SERVICE
)
SAMPLES_DROPPED_TOTAL = get_counter(
    "samples_dropped_total", "Backend samples rejected during parsing.", SERVICE
)
FINGERPRINT_FALLBACKS_TOTAL = get_counter(
    "fingerprint_fallbacks_total",
    "Queries that could not be serialized and were fingerprinted via str().",
    SERVICE,
)
