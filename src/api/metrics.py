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
    "todo_requests_total",
    "Total requests",
    Counter,
    labelnames=["endpoint", "status"],
)

REQUEST_LATENCY_SECONDS = get_or_create_metric(
    "todo_request_latency_seconds",
    "Request latency",
    Histogram,
    labelnames=["endpoint"],
)

LLM_REQUESTS_TOTAL = get_or_create_metric(
    "todo_llm_requests_total",
    "Language model relay calls",
    Counter,
    labelnames=["relay", "outcome"],
)

CALENDAR_EVENTS_TOTAL = get_or_create_metric(
    "todo_calendar_events_total",
    "Calendar events pushed to Google",
    Counter,
    labelnames=["outcome"],
)

TASKS_CREATED_TOTAL = get_or_create_metric(
    "todo_tasks_created_total", "Tasks created through this service", Counter
)

ACTIVE_SESSIONS = get_or_create_metric(
    "todo_active_sessions", "Sessions currently held in memory", Gauge
)
