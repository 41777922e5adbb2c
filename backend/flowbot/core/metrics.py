"""
Prometheus metrics for the assistant API.

Metrics Categories:
- RED Metrics: HTTP request rate, errors, duration
- Pipeline Metrics: routes taken, metadata tags assigned, degraded stages
- Generation Metrics: latency, errors and token usage per external service
- Persistence Metrics: writes and failures per table
- Resource Metrics: process CPU and memory

Naming follows Prometheus conventions (_total counters, _seconds durations).
"""
from typing import Optional

import psutil
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from flowbot.core.logging import get_logger

logger = get_logger(__name__)

registry = REGISTRY

# ============================================================================
# RED METRICS
# ============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    ["method", "endpoint", "status"],
    registry=registry,
)

http_errors_total = Counter(
    "http_errors_total",
    "Total number of HTTP errors",
    ["method", "endpoint", "status_code"],
    registry=registry,
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
    registry=registry,
)

# ============================================================================
# PIPELINE METRICS
# ============================================================================

assistant_requests_total = Counter(
    "assistant_requests_total",
    "Assistant requests that produced a response envelope",
    ["route", "metadata_type"],
    registry=registry,
)

assistant_rejected_total = Counter(
    "assistant_rejected_total",
    "Assistant requests rejected before any work was done",
    ["reason"],  # "validation_error", "configuration_error"
    registry=registry,
)

assistant_degraded_total = Counter(
    "assistant_degraded_total",
    "Pipeline stages that fell back to degraded mode",
    ["stage"],  # "file_load", "image_generation", "text_generation"
    registry=registry,
)

assistant_file_bytes = Histogram(
    "assistant_file_bytes",
    "Size of downloaded files before truncation",
    buckets=[1_000, 4_000, 16_000, 64_000, 256_000, 1_000_000, 10_000_000],
    registry=registry,
)

# ============================================================================
# GENERATION METRICS
# ============================================================================

generation_requests_total = Counter(
    "generation_requests_total",
    "Calls to external generation services",
    ["service", "model"],
    registry=registry,
)

generation_errors_total = Counter(
    "generation_errors_total",
    "Failed calls to external generation services",
    ["service", "error_type"],
    registry=registry,
)

generation_latency_seconds = Histogram(
    "generation_latency_seconds",
    "External generation call latency in seconds",
    ["service"],
    buckets=[0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 60.0],
    registry=registry,
)

llm_tokens_total = Counter(
    "llm_tokens_total",
    "Tokens consumed by text completion",
    ["model", "direction"],  # direction: "input" | "output"
    registry=registry,
)

# ============================================================================
# PERSISTENCE METRICS
# ============================================================================

persistence_writes_total = Counter(
    "persistence_writes_total",
    "Rows written to the conversation store",
    ["table"],
    registry=registry,
)

persistence_failures_total = Counter(
    "persistence_failures_total",
    "Failed writes to the conversation store",
    ["table"],
    registry=registry,
)

persistence_timeouts_total = Counter(
    "persistence_timeouts_total",
    "Writes abandoned after the database timeout; the row may still be committed",
    ["table"],
    registry=registry,
)

# ============================================================================
# RESOURCE METRICS
# ============================================================================

process_cpu_usage_percent = Gauge(
    "process_cpu_usage_percent",
    "Process CPU usage percentage",
    registry=registry,
)

process_memory_rss_bytes = Gauge(
    "process_memory_rss_bytes",
    "Process resident memory in bytes",
    registry=registry,
)


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def normalize_endpoint(path: str) -> str:
    """
    Collapse dynamic path segments to keep label cardinality bounded.

    Examples:
        /assistant/history/user123 -> /assistant/history/{user_id}
        /assistant -> /assistant
    """
    path = path.split("?")[0]
    if path.startswith("/assistant/history/"):
        return "/assistant/history/{user_id}"
    return path


def record_http_request(
    method: str,
    endpoint: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    normalized_endpoint = normalize_endpoint(endpoint)
    http_requests_total.labels(
        method=method,
        endpoint=normalized_endpoint,
        status=str(status_code),
    ).inc()
    if status_code >= 400:
        http_errors_total.labels(
            method=method,
            endpoint=normalized_endpoint,
            status_code=str(status_code),
        ).inc()
    http_request_duration_seconds.labels(
        method=method,
        endpoint=normalized_endpoint,
    ).observe(duration_seconds)


def record_assistant_response(route: str, metadata_type: str) -> None:
    assistant_requests_total.labels(route=route, metadata_type=metadata_type).inc()


def record_assistant_rejected(reason: str) -> None:
    assistant_rejected_total.labels(reason=reason).inc()


def record_degraded(stage: str) -> None:
    assistant_degraded_total.labels(stage=stage).inc()


def record_file_size(size_bytes: int) -> None:
    assistant_file_bytes.observe(size_bytes)


def record_generation_request(service: str, model: str, duration_seconds: float) -> None:
    """
    Record one call to a generation service, successful or not.

    Args:
        service: "text" or "image"
        model: Model name sent to the provider
        duration_seconds: Wall time of the HTTP round trip
    """
    generation_requests_total.labels(service=service, model=model).inc()
    generation_latency_seconds.labels(service=service).observe(duration_seconds)


def record_generation_error(service: str, error_type: str) -> None:
    generation_errors_total.labels(service=service, error_type=error_type).inc()


def record_llm_tokens(model: str, input_tokens: int, output_tokens: int) -> None:
    if input_tokens:
        llm_tokens_total.labels(model=model, direction="input").inc(input_tokens)
    if output_tokens:
        llm_tokens_total.labels(model=model, direction="output").inc(output_tokens)


def record_persistence_write(table: str, success: bool) -> None:
    if success:
        persistence_writes_total.labels(table=table).inc()
    else:
        persistence_failures_total.labels(table=table).inc()


def record_persistence_timeout(table: str) -> None:
    persistence_timeouts_total.labels(table=table).inc()


def update_resource_metrics(process: Optional[psutil.Process] = None) -> None:
    """Refresh process CPU and memory gauges; called when metrics are scraped."""
    try:
        proc = process or psutil.Process()
        process_cpu_usage_percent.set(proc.cpu_percent(interval=None))
        process_memory_rss_bytes.set(proc.memory_info().rss)
    except Exception as e:
        logger.warning(
            "metrics_resource_update_failed",
            error=str(e),
            error_type=type(e).__name__,
        )


def get_metrics() -> bytes:
    update_resource_metrics()
    return generate_latest(registry)


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
