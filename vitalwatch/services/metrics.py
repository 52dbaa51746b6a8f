"""
Prometheus metrics for the VitalWatch alert engine.
"""

import logging
from typing import Optional

from prometheus_client import Counter, Histogram, Gauge, CollectorRegistry


class AlertEngineMetrics:
    """
    Prometheus metrics collection for ingestion and alert evaluation.

    Each instance owns a registry unless one is passed in, so several engines
    can live in one process (and one test session) without name clashes.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self.logger = logging.getLogger(__name__)

        self._setup_prometheus_metrics()

    def _setup_prometheus_metrics(self):
        """Initialize Prometheus metrics."""
        self.records_ingested_total = Counter(
            'vitalwatch_records_ingested_total',
            'Total number of measurement records appended to the store',
            ['record_type'],
            registry=self.registry
        )

        self.alerts_triggered_total = Counter(
            'vitalwatch_alerts_triggered_total',
            'Total number of alerts added to the triggered-alert log',
            ['category', 'priority'],
            registry=self.registry
        )

        self.alerts_suppressed_total = Counter(
            'vitalwatch_alerts_suppressed_total',
            'Total number of alerts dropped inside the suppression window',
            ['category'],
            registry=self.registry
        )

        self.strategy_errors_total = Counter(
            'vitalwatch_strategy_errors_total',
            'Total number of strategy failures during evaluation',
            ['strategy'],
            registry=self.registry
        )

        self.evaluation_duration = Histogram(
            'vitalwatch_evaluation_duration_seconds',
            'Time spent evaluating one patient',
            buckets=[0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0],
            registry=self.registry
        )

        self.suppression_entries = Gauge(
            'vitalwatch_suppression_entries',
            'Number of distinct suppression keys currently tracked',
            registry=self.registry
        )

    def record_ingested(self, record_type: str):
        self.records_ingested_total.labels(record_type=record_type).inc()

    def alert_triggered(self, category: str, priority: str):
        self.alerts_triggered_total.labels(category=category, priority=priority).inc()

    def alert_suppressed(self, category: str):
        self.alerts_suppressed_total.labels(category=category).inc()

    def strategy_failed(self, strategy: str):
        self.strategy_errors_total.labels(strategy=strategy).inc()

    def observe_evaluation(self, duration_seconds: float):
        self.evaluation_duration.observe(duration_seconds)

    def set_suppression_entries(self, count: int):
        self.suppression_entries.set(count)

    def get_sample(self, name: str, labels: Optional[dict] = None) -> float:
        """Current value of a sample, 0.0 when it has not been recorded yet."""
        value = self.registry.get_sample_value(name, labels or {})
        return value if value is not None else 0.0
