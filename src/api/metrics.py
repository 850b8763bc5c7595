import time

from prometheus_client import Counter, Histogram, Gauge, REGISTRY


# we check if they are already registered to avoid errors during hot reloads or test runs
def get_or_create_metric(name, documentation, metric_type, **kwargs):
    try:
        # Try to create it
        return metric_type(name, documentation, **kwargs)
    except ValueError:
        # If it already exists, retrieve it from the registry
        return REGISTRY._names_to_collectors[name]


REQUESTS_TOTAL = get_or_create_metric(
    "makemyday_requests_total",
    "Total requests",
    Counter,
    labelnames=["endpoint", "status"],
)

REQUEST_LATENCY_SECONDS = get_or_create_metric(
    "makemyday_request_latency_seconds",
    "Request latency",
    Histogram,
    labelnames=["endpoint"],
)

EVENTS_CREATED_TOTAL = get_or_create_metric(
    "makemyday_events_created_total",
    "Events created",
    Counter,
    labelnames=["source"],
)

DRAG_MUTATIONS_TOTAL = get_or_create_metric(
    "makemyday_drag_mutations_total",
    "Store mutations caused by drag gestures",
    Counter,
    labelnames=["kind"],
)

LLM_STREAM_TOKENS_TOTAL = get_or_create_metric(
    "makemyday_llm_stream_tokens_total", "Tokens received from streamed completions", Counter
)

LLM_FAILURES_TOTAL = get_or_create_metric(
    "makemyday_llm_failures_total",
    "Failed planner calls",
    Counter,
    labelnames=["reason"],
)

EVENTS_GAUGE = get_or_create_metric(
    "makemyday_events", "Current number of events", Gauge
)


def observe_request(endpoint: str, status: str, started: float) -> None:
    # best-effort: metrics must never fail a request
    try:
        REQUESTS_TOTAL.labels(endpoint=endpoint, status=status).inc()
        REQUEST_LATENCY_SECONDS.labels(endpoint=endpoint).observe(time.time() - started)
    except Exception:
        pass
