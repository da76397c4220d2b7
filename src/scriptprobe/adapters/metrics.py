"""Self-instrumentation metrics of the exporter.

All metrics live on an explicit ``CollectorRegistry`` owned by an
``ExporterMetrics`` instance, so several apps (or tests) never share state.
The ``scripts`` namespace keeps them apart from the ``script`` namespace
used by probe results.
"""

import platform

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Summary,
    generate_latest,
)
from prometheus_client.exposition import CONTENT_TYPE_LATEST

from scriptprobe import __version__

# 0.1 * 1.5^k for k = 0..4
HTTP_DURATION_BUCKETS = (0.1, 0.15, 0.225, 0.3375, 0.50625)


class ExporterMetrics:
    """Request metrics recorded by ASGIInstrumentationMiddleware."""

    content_type = CONTENT_TYPE_LATEST

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()
        self.http_requests = Counter(
            "http_requests_total",
            "Total requests by HTTP result code and method.",
            ["code", "method"],
            registry=self.registry,
        )
        self.http_duration = Histogram(
            "http_requests_duration_seconds",
            "A histogram of request durations by HTTP result code and method.",
            ["code", "method"],
            buckets=HTTP_DURATION_BUCKETS,
            registry=self.registry,
        )
        self.script_requests = Counter(
            "scripts_requests_total",
            "Total requests to a script",
            ["script"],
            registry=self.registry,
        )
        self.script_inflight = Gauge(
            "scripts_requests_inflight",
            "Number of requests in flight to a script",
            ["script"],
            registry=self.registry,
        )
        self.script_duration = Summary(
            "scripts_duration_seconds",
            "A summary of request durations to a script",
            ["script"],
            registry=self.registry,
        )
        self.build_info = Gauge(
            "scripts_build_info",
            "A metric with a constant '1' value labeled by build information.",
            ["version", "python_version"],
            registry=self.registry,
        )
        self.build_info.labels(__version__, platform.python_version()).set(1)

    def script_started(self, script: str) -> None:
        self.script_requests.labels(script).inc()
        self.script_inflight.labels(script).inc()

    def script_finished(self, script: str, duration: float) -> None:
        self.script_inflight.labels(script).dec()
        self.script_duration.labels(script).observe(duration)

    def request_finished(self, method: str, code: int, duration: float) -> None:
        self.http_requests.labels(str(code), method.lower()).inc()
        self.http_duration.labels(str(code), method.lower()).observe(duration)

    def render(self) -> str:
        """Return the registry in text exposition format."""
        return generate_latest(self.registry).decode("utf-8")
