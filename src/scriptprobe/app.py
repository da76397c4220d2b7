"""Application factory wiring configuration, adapters and core services."""

from scriptprobe.adapters.frameworks.asgi import (
    ASGIApp,
    ASGIInstrumentationMiddleware,
    create_asgi_app,
)
from scriptprobe.adapters.metrics import ExporterMetrics
from scriptprobe.adapters.process import SubprocessRunner
from scriptprobe.adapters.prometheus import PrometheusRulesClient
from scriptprobe.config import ExporterConfig
from scriptprobe.core.ports import ProcessRunnerPort, RulesBackendPort
from scriptprobe.core.probe_status import ProbeAggregator
from scriptprobe.core.script_probe import ScriptProber
from scriptprobe.core.status import StatusClassifier


def create_aggregator(
    config: ExporterConfig, backend: RulesBackendPort | None = None
) -> ProbeAggregator | None:
    """Build the probe status aggregator, None without a Prometheus section."""
    prometheus = config.prometheus
    if prometheus is None:
        return None
    if backend is None:
        backend = PrometheusRulesClient(
            prometheus.url, timeout=prometheus.rules_timeout
        )
    return ProbeAggregator(
        backend,
        classifier=StatusClassifier(prometheus.state_mapping),
        keep_labels=prometheus.keep_labels,
        external_labels=prometheus.external_labels,
        external_url=prometheus.url,
        query_timeout=prometheus.query_timeout,
        rules_timeout=prometheus.rules_timeout,
    )


def create_app(
    config: ExporterConfig,
    runner: ProcessRunnerPort | None = None,
    backend: RulesBackendPort | None = None,
    metrics: ExporterMetrics | None = None,
) -> ASGIApp:
    """Create the instrumented exporter ASGI app.

    Args:
        config: Loaded exporter configuration.
        runner: Process runner (SubprocessRunner if omitted).
        backend: Rules backend (PrometheusRulesClient from config if omitted).
        metrics: Exporter metrics (fresh registry if omitted).
    """
    metrics = metrics or ExporterMetrics()
    prober = ScriptProber(config, runner or SubprocessRunner())
    app = create_asgi_app(prober, create_aggregator(config, backend), metrics)
    return ASGIInstrumentationMiddleware(app, metrics)
