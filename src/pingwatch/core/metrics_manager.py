import logging
from datetime import timedelta
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, start_http_server

logger = logging.getLogger(__name__)

# Probe latencies cluster well below the one-second cadence floor
PROBE_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)


class MetricsManager:
    """
    Manager for collecting and exposing probe, round and persistence metrics.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """
        Initialize the MetricsManager and set up Prometheus metrics.

        Args:
            registry: Collector registry to register the metrics on. A private registry
                is created when omitted so several managers can coexist in one process.
        """
        self.registry = registry or CollectorRegistry()
        self.PROBE_DURATION = Histogram(
            "pingwatch_probe_duration_seconds",
            "Duration of successful probes in seconds",
            ["endpoint"],
            buckets=PROBE_BUCKETS,
            registry=self.registry,
        )
        self.PROBE_FAILURES = Counter(
            "pingwatch_probe_failures_total",
            "Number of failed probes",
            ["endpoint"],
            registry=self.registry,
        )
        self.ROUNDS = Counter(
            "pingwatch_rounds_total", "Number of completed rounds", registry=self.registry
        )
        self.ROUND_DURATION = Histogram(
            "pingwatch_round_duration_seconds",
            "Wall-clock duration of a round including the cadence floor",
            registry=self.registry,
        )
        self.INSERT_FAILURES = Counter(
            "pingwatch_insert_failures_total",
            "Number of outcomes that could not be stored",
            registry=self.registry,
        )
        logger.info("MetricsManager initialized.")

    def observe_probe(self, endpoint: str, duration: Optional[timedelta]):
        """
        Record one probe result. A missing duration counts as a failure.
        """
        if duration is None:
            self.PROBE_FAILURES.labels(endpoint=endpoint).inc()
        else:
            self.PROBE_DURATION.labels(endpoint=endpoint).observe(duration.total_seconds())

    def observe_round(self, elapsed_seconds: float):
        self.ROUNDS.inc()
        self.ROUND_DURATION.observe(elapsed_seconds)

    def record_insert_failure(self):
        self.INSERT_FAILURES.inc()

    def get_value(self, name: str, labels: Optional[dict] = None) -> float:
        """
        Return the current value of a sample, or 0.0 if it was never recorded.
        """
        value = self.registry.get_sample_value(name, labels or {})
        return value if value is not None else 0.0

    def start_server(self, port: int):
        """
        Expose the metrics over HTTP on ``port``.
        """
        start_http_server(port, registry=self.registry)
        logger.info(f"Metrics server listening on port {port}")
