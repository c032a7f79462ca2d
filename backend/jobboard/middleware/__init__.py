"""
Middleware Package

Contains FastAPI middleware for:
- Prometheus metrics collection
- Ad lifecycle counters shared by services and periodic jobs
"""

from jobboard.middleware.metrics import (
    PrometheusMiddleware,
    setup_metrics,
    REQUEST_LATENCY,
    REQUEST_COUNT,
    ACTIVE_REQUESTS,
    JUMPS_TOTAL,
    PAYMENT_APPROVALS,
    HOUSEKEEPING_ROWS,
)

__all__ = [
    "PrometheusMiddleware",
    "setup_metrics",
    "REQUEST_LATENCY",
    "REQUEST_COUNT",
    "ACTIVE_REQUESTS",
    "JUMPS_TOTAL",
    "PAYMENT_APPROVALS",
    "HOUSEKEEPING_ROWS",
]
