"""Prometheus metrics for the HTTP surface and the media pipeline."""

import os

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
    multiprocess,
)

REGISTRY = CollectorRegistry()

# Running under a multi-process server (e.g. gunicorn workers)
if "PROMETHEUS_MULTIPROC_DIR" in os.environ or "prometheus_multiproc_dir" in os.environ:
    multiprocess.MultiProcessCollector(REGISTRY)


# ============================================
# Application Info
# ============================================
APP_INFO = Info(
    "vodstream_app",
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
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 60.0, 300.0],
    registry=REGISTRY,
)

HTTP_REQUESTS_IN_PROGRESS = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests currently in progress",
    ["method", "endpoint"],
    registry=REGISTRY,
)


# ============================================
# Transcoding Metrics
# ============================================
TRANSCODE_JOBS_TOTAL = Counter(
    "transcode_jobs_total",
    "Transcode jobs by final status",
    ["status"],
    registry=REGISTRY,
)

TRANSCODE_DURATION_SECONDS = Histogram(
    "transcode_duration_seconds",
    "Wall-clock time of a full HLS ladder encode",
    buckets=[5.0, 15.0, 30.0, 60.0, 120.0, 300.0, 600.0, 1800.0, 3600.0],
    registry=REGISTRY,
)

TRANSCODES_IN_PROGRESS = Gauge(
    "transcodes_in_progress",
    "Number of ffmpeg encodes currently running in this process",
    registry=REGISTRY,
)


# ============================================
# External Tool Metrics
# ============================================
MEDIA_TOOL_INVOCATIONS_TOTAL = Counter(
    "media_tool_invocations_total",
    "ffmpeg/ffprobe invocations by purpose and outcome",
    ["tool", "outcome"],
    registry=REGISTRY,
)

PROBE_TIMEOUTS_TOTAL = Counter(
    "probe_timeouts_total",
    "ffprobe invocations killed after exceeding the probe timeout",
    registry=REGISTRY,
)

DURATION_RESOLUTIONS_TOTAL = Counter(
    "duration_resolutions_total",
    "Duration lookups by the strategy that produced the answer",
    ["strategy"],
    registry=REGISTRY,
)


# ============================================
# Delivery / Lifecycle Metrics
# ============================================
RANGE_REQUESTS_TOTAL = Counter(
    "range_requests_total",
    "Legacy byte-range requests by outcome",
    ["outcome"],
    registry=REGISTRY,
)

ARTIFACT_DELETION_FAILURES_TOTAL = Counter(
    "artifact_deletion_failures_total",
    "Files or directories that could not be removed during video deletion",
    registry=REGISTRY,
)


def get_metrics() -> bytes:
    """Generate latest metrics in Prometheus format."""
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
