"""Prometheus metrics for the upload, transcode and streaming pipeline."""

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    Info,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST,
    multiprocess,
)
import os

REGISTRY = CollectorRegistry()

# Several uvicorn/gunicorn workers share one exposition through the multiprocess dir.
if os.environ.get("PROMETHEUS_MULTIPROC_DIR") or os.environ.get("prometheus_multiproc_dir"):
    multiprocess.MultiProcessCollector(REGISTRY)


# ============================================
# Application Info
# ============================================
APP_INFO = Info(
    "video_hosting_app",
    "Application information",
    registry=REGISTRY,
)


# ============================================
# HTTP Request Metrics
# ============================================
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=REGISTRY,
)

HTTP_REQUESTS_IN_PROGRESS = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests currently in progress",
    ["method", "endpoint"],
    registry=REGISTRY,
)


# ============================================
# Upload Metrics
# ============================================
UPLOADS_TOTAL = Counter(
    "video_uploads_total",
    "Video uploads by outcome",
    ["outcome"],
    registry=REGISTRY,
)

UPLOAD_BYTES_TOTAL = Counter(
    "video_upload_bytes_total",
    "Bytes of raw video persisted to storage",
    registry=REGISTRY,
)


# ============================================
# Transcode Metrics
# ============================================
TRANSCODE_TASKS_TOTAL = Counter(
    "transcode_tasks_total",
    "Per-profile transcode tasks by outcome",
    ["profile", "outcome"],
    registry=REGISTRY,
)

TRANSCODE_TASK_DURATION_SECONDS = Histogram(
    "transcode_task_duration_seconds",
    "Per-profile transcode task duration in seconds",
    ["profile"],
    buckets=[1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0, 1800.0],
    registry=REGISTRY,
)

ORCHESTRATIONS_TOTAL = Counter(
    "transcode_orchestrations_total",
    "Completed orchestrations by terminal status",
    ["status"],
    registry=REGISTRY,
)

ORCHESTRATIONS_IN_PROGRESS = Gauge(
    "transcode_orchestrations_in_progress",
    "Orchestrations currently running in this process",
    registry=REGISTRY,
)


# ============================================
# Streaming Metrics
# ============================================
STREAM_RESPONSES_TOTAL = Counter(
    "video_stream_responses_total",
    "Streaming responses by status code",
    ["status_code"],
    registry=REGISTRY,
)


def get_metrics() -> bytes:
    """Generate latest metrics in Prometheus format.

    Returns:
        bytes: Prometheus-formatted metrics
    """
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    """Get the content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST


def set_app_info(version: str, environment: str) -> None:
    """Set application info metrics.

    Args:
        version: Application version
        environment: Deployment environment
    """
    APP_INFO.info({
        "version": version,
        "environment": environment,
    })
