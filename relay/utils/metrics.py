"""
Prometheus Metrics Collector

In-process counters, gauges and histograms for the relay, exported in
Prometheus text exposition format (text/plain; version=0.0.4).
"""
import time
import threading
from typing import Dict, List, Optional
from dataclasses import dataclass, field


@dataclass
class MetricValue:
    """Single sample with its labels."""
    value: float
    labels: Dict[str, str] = field(default_factory=dict)


class _LabeledMetric:
    """Shared storage for metrics keyed by label combination."""

    kind = "untyped"

    def __init__(self, name: str, description: str, labels: Optional[List[str]] = None):
        self.name = name
        self.description = description
        self.label_names = labels or []
        self._values: Dict[tuple, float] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(labels: Dict[str, str]) -> tuple:
        return tuple(sorted(labels.items()))

    def _add(self, amount: float, labels: Dict[str, str]) -> None:
        key = self._key(labels)
        with self._lock:
            self._values[key] = self._values.get(key, 0.0) + amount

    def value(self, **labels: str) -> float:
        """Current value for one label combination (0 if never touched)."""
        with self._lock:
            return self._values.get(self._key(labels), 0.0)

    def collect(self) -> List[MetricValue]:
        with self._lock:
            return [MetricValue(value=v, labels=dict(k)) for k, v in self._values.items()]

    def samples(self) -> List[tuple]:
        """(sample name, labels, value) triples for export."""
        return [(self.name, mv.labels, mv.value) for mv in self.collect()]


class Counter(_LabeledMetric):
    """Monotonic count: messages, attempts, escalations."""

    kind = "counter"

    def inc(self, amount: float = 1.0, **labels: str) -> None:
        self._add(amount, labels)


class Gauge(_LabeledMetric):
    """Point-in-time level: queue depth, in-flight messages."""

    kind = "gauge"

    def set(self, value: float, **labels: str) -> None:
        with self._lock:
            self._values[self._key(labels)] = value

    def inc(self, amount: float = 1.0, **labels: str) -> None:
        self._add(amount, labels)

    def dec(self, amount: float = 1.0, **labels: str) -> None:
        self._add(-amount, labels)


class Histogram(_LabeledMetric):
    """
    Bucketed observations with running sum and count.

    Buckets are cumulative, as Prometheus expects.
    """

    kind = "histogram"
    DEFAULT_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)

    def __init__(
        self,
        name: str,
        description: str,
        labels: Optional[List[str]] = None,
        buckets: Optional[tuple] = None
    ):
        super().__init__(name, description, labels)
        self.buckets = tuple(sorted(buckets or self.DEFAULT_BUCKETS))
        self._series: Dict[tuple, Dict] = {}

    def observe(self, value: float, **labels: str) -> None:
        key = self._key(labels)
        with self._lock:
            series = self._series.setdefault(
                key, {"buckets": [0] * len(self.buckets), "sum": 0.0, "count": 0}
            )
            series["sum"] += value
            series["count"] += 1
            for i, bound in enumerate(self.buckets):
                if value <= bound:
                    series["buckets"][i] += 1

    def count(self, **labels: str) -> int:
        with self._lock:
            series = self._series.get(self._key(labels))
            return series["count"] if series else 0

    def samples(self) -> List[tuple]:
        result = []
        with self._lock:
            for key, series in self._series.items():
                labels = dict(key)
                for bound, hits in zip(self.buckets, series["buckets"]):
                    result.append((f"{self.name}_bucket", {**labels, "le": str(bound)}, hits))
                result.append((f"{self.name}_bucket", {**labels, "le": "+Inf"}, series["count"]))
                result.append((f"{self.name}_sum", labels, series["sum"]))
                result.append((f"{self.name}_count", labels, series["count"]))
        return result


class Timer:
    """Context manager recording elapsed seconds into a histogram."""

    def __init__(self, histogram: Histogram, **labels: str):
        self.histogram = histogram
        self.labels = labels
        self.start_time: Optional[float] = None

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args) -> None:
        if self.start_time is not None:
            self.histogram.observe(time.perf_counter() - self.start_time, **self.labels)


class MetricsRegistry:
    """
    Process-wide registry of relay metrics.

    Singleton; every module shares the same counters.
    """

    _instance: Optional["MetricsRegistry"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "MetricsRegistry":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._metrics: Dict[str, _LabeledMetric] = {}
        self._initialized = True
        self._setup_metrics()

    def _setup_metrics(self) -> None:
        """Initialize all application metrics."""

        # ============================================
        # INGESTION METRICS
        # ============================================
        self.events_ingested = self.counter(
            "relay_events_ingested_total",
            "Events accepted by the ingestion API by event type",
            ["event_type"]
        )

        self.ingestion_rejected = self.counter(
            "relay_ingestion_rejected_total",
            "Events rejected by the ingestion API by reason",
            ["reason"]
        )

        # ============================================
        # QUEUE METRICS
        # ============================================
        self.queue_pending = self.gauge(
            "relay_queue_pending",
            "Number of messages pending in the broker"
        )

        self.queue_in_flight = self.gauge(
            "relay_queue_in_flight",
            "Number of messages handed to the handler and not yet resolved"
        )

        self.dead_letter_depth = self.gauge(
            "relay_dead_letter_depth",
            "Messages waiting on dead-letter topics",
            ["topic"]
        )

        # ============================================
        # HANDLER METRICS
        # ============================================
        self.messages_received = self.counter(
            "relay_messages_received_total",
            "Messages delivered to the handler by topic",
            ["topic"]
        )

        self.dispositions = self.counter(
            "relay_dispositions_total",
            "Handler dispositions by outcome",
            ["outcome"]
        )

        self.dead_letters = self.counter(
            "relay_dead_letters_total",
            "Dead-letter escalations by source topic and result",
            ["topic", "result"]
        )

        # ============================================
        # DELIVERY METRICS
        # ============================================
        self.deliveries = self.counter(
            "relay_deliveries_total",
            "Notification deliveries by event type and result",
            ["event_type", "result"]
        )

        self.delivery_attempts = self.counter(
            "relay_delivery_attempts_total",
            "Outbound HTTP attempts by event type",
            ["event_type"]
        )

        self.delivery_duration = self.histogram(
            "relay_delivery_duration_seconds",
            "Delivery duration across all local attempts",
            ["event_type"],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)
        )

    def _register(self, metric: _LabeledMetric) -> _LabeledMetric:
        self._metrics[metric.name] = metric
        return metric

    def counter(self, name: str, description: str, labels: Optional[List[str]] = None) -> Counter:
        """Create and register a counter."""
        return self._register(Counter(name, description, labels))

    def gauge(self, name: str, description: str, labels: Optional[List[str]] = None) -> Gauge:
        """Create and register a gauge."""
        return self._register(Gauge(name, description, labels))

    def histogram(
        self,
        name: str,
        description: str,
        labels: Optional[List[str]] = None,
        buckets: Optional[tuple] = None
    ) -> Histogram:
        """Create and register a histogram."""
        return self._register(Histogram(name, description, labels, buckets))

    def export(self) -> str:
        """
        Export all metrics in Prometheus text exposition format.

        Format specification:
        https://prometheus.io/docs/instrumenting/exposition_formats/
        """
        lines = []
        for name, metric in self._metrics.items():
            lines.append(f"# HELP {name} {metric.description}")
            lines.append(f"# TYPE {name} {metric.kind}")
            for sample_name, labels, value in metric.samples():
                lines.append(f"{sample_name}{self._format_labels(labels)} {value}")
            lines.append("")

        return "\n".join(lines)

    @staticmethod
    def _format_labels(labels: Dict[str, str]) -> str:
        if not labels:
            return ""
        parts = [f'{k}="{v}"' for k, v in sorted(labels.items())]
        return "{" + ",".join(parts) + "}"

    def reset(self) -> None:
        """Reset all metrics. Useful for testing."""
        self._metrics.clear()
        self._setup_metrics()


# Global metrics instance
metrics = MetricsRegistry()
