"""
Prometheus metrics for API traffic.

Each client owns its own :class:`prometheus_client.CollectorRegistry`
so that several clients (or several tests) can coexist in one process
without duplicate-registration errors.  Call :meth:`ApiMetrics.serve`
to expose a registry over HTTP.

Metrics
-------

* ``medclient_api_requests_total{method,status}`` - completed requests.
* ``medclient_api_request_seconds{method}`` - request latency.
* ``medclient_api_errors_total{method,kind}`` - failed calls by error kind.
* ``medclient_token_refresh_total{outcome}`` - refresh attempts.
* ``medclient_refresh_pending`` - requests waiting on an in-flight refresh.
"""

from __future__ import annotations

import logging
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server

logger = logging.getLogger(__name__)


class ApiMetrics:
    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()
        self.requests = Counter(
            "medclient_api_requests_total",
            "Completed API requests",
            labelnames=["method", "status"],
            registry=self.registry,
        )
        self.latency = Histogram(
            "medclient_api_request_seconds",
            "API request latency in seconds",
            labelnames=["method"],
            registry=self.registry,
        )
        self.errors = Counter(
            "medclient_api_errors_total",
            "Failed API calls by error kind",
            labelnames=["method", "kind"],
            registry=self.registry,
        )
        self.refreshes = Counter(
            "medclient_token_refresh_total",
            "Token refresh attempts by outcome",
            labelnames=["outcome"],
            registry=self.registry,
        )
        self.pending = Gauge(
            "medclient_refresh_pending",
            "Requests queued behind an in-flight token refresh",
            registry=self.registry,
        )

    def record_call(self, method: str, status: int, seconds: float) -> None:
        self.requests.labels(method=method, status=str(status)).inc()
        self.latency.labels(method=method).observe(seconds)

    def record_error(self, method: str, kind: str) -> None:
        self.errors.labels(method=method, kind=kind).inc()

    def record_refresh(self, outcome: str) -> None:
        self.refreshes.labels(outcome=outcome).inc()

    def serve(self, port: int) -> None:
        """Expose this registry on ``port``."""
        start_http_server(port, registry=self.registry)
        logger.info("Serving client metrics on port %d", port)
