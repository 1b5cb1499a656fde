"""
Metrics for the Log Shipper.

This module defines the Prometheus metrics recorded by the pipeline and a
helper for exposing them over HTTP.
"""

import structlog
from prometheus_client import Counter, Gauge, Histogram, start_http_server

logger = structlog.get_logger(__name__)

FILE_EVENTS = Counter(
    "log_shipper_file_events_total",
    "Total number of new files detected in the watched directory",
)
UPLOADS = Counter(
    "log_shipper_uploads_total",
    "Total number of upload attempts",
    ["provider", "status"],
)
UPLOAD_TIME = Histogram(
    "log_shipper_upload_seconds",
    "Upload time in seconds",
    ["provider"],
)
UPLOADS_IN_FLIGHT = Gauge(
    "log_shipper_uploads_in_flight",
    "Number of uploads currently running",
)


def start_metrics_server(port: int) -> None:
    """
    Expose the metrics endpoint.

    Args:
        port: Port to listen on, 0 disables the endpoint
    """
    if port <= 0:
        return
    start_http_server(port)
    logger.info("Metrics endpoint started", port=port)
