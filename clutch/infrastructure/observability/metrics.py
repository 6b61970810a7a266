"""
Metrics Collection for Clutch

In-process counters, gauges and histograms describing control loop activity,
with Prometheus text export.
"""

import time
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from threading import Lock
from typing import Any, Dict, List, Optional, Union


class MetricType(Enum):
    """Types of metrics supported by the collector"""
    COUNTER = "counter"
    GAUGE = "gauge"
    HISTOGRAM = "histogram"


@dataclass
class MetricSample:
    """A metric reading for one label combination"""
    value: Union[int, float, Dict[str, Any]]
    labels: Dict[str, str] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Metric(ABC):
    """Abstract base class for all metrics"""

    def __init__(self, name: str, description: str, labels: Optional[List[str]] = None):
        self.name = name
        self.description = description
        self.labels = labels or []
        self._lock = Lock()

    @staticmethod
    def _get_key(labels: Optional[Dict[str, str]] = None) -> str:
        if not labels:
            return ""
        return "|".join(f"{k}={v}" for k, v in sorted(labels.items()))

    @staticmethod
    def _parse_key(key: str) -> Dict[str, str]:
        if not key:
            return {}
        return dict(pair.split("=", 1) for pair in key.split("|"))

    @abstractmethod
    def get_value(self, labels: Optional[Dict[str, str]] = None) -> MetricSample:
        pass

    @abstractmethod
    def samples(self) -> List[MetricSample]:
        """All recorded label combinations"""
        pass

    @abstractmethod
    def get_type(self) -> MetricType:
        pass


class Counter(Metric):
    """Counter metric that only increases"""

    def __init__(self, name: str, description: str, labels: Optional[List[str]] = None):
        super().__init__(name, description, labels)
        self._values: Dict[str, float] = defaultdict(float)

    def increment(self, amount: float = 1.0, labels: Optional[Dict[str, str]] = None) -> None:
        if amount < 0:
            raise ValueError("Counter can only be incremented with positive values")

        key = self._get_key(labels)
        with self._lock:
            self._values[key] += amount

    def get_value(self, labels: Optional[Dict[str, str]] = None) -> MetricSample:
        with self._lock:
            value = self._values.get(self._get_key(labels), 0.0)
        return MetricSample(value=value, labels=labels or {})

    def samples(self) -> List[MetricSample]:
        with self._lock:
            return [MetricSample(value=v, labels=self._parse_key(k)) for k, v in self._values.items()]

    def get_type(self) -> MetricType:
        return MetricType.COUNTER


class Gauge(Metric):
    """Gauge metric that can increase or decrease"""

    def __init__(self, name: str, description: str, labels: Optional[List[str]] = None):
        super().__init__(name, description, labels)
        self._values: Dict[str, float] = defaultdict(float)

    def set(self, value: float, labels: Optional[Dict[str, str]] = None) -> None:
        key = self._get_key(labels)
        with self._lock:
            self._values[key] = value

    def increment(self, amount: float = 1.0, labels: Optional[Dict[str, str]] = None) -> None:
        key = self._get_key(labels)
        with self._lock:
            self._values[key] += amount

    def decrement(self, amount: float = 1.0, labels: Optional[Dict[str, str]] = None) -> None:
        self.increment(-amount, labels)

    def get_value(self, labels: Optional[Dict[str, str]] = None) -> MetricSample:
        with self._lock:
            value = self._values.get(self._get_key(labels), 0.0)
        return MetricSample(value=value, labels=labels or {})

    def samples(self) -> List[MetricSample]:
        with self._lock:
            return [MetricSample(value=v, labels=self._parse_key(k)) for k, v in self._values.items()]

    def get_type(self) -> MetricType:
        return MetricType.GAUGE


class Histogram(Metric):
    """Histogram metric for tracking value distributions"""

    DEFAULT_BUCKETS = [0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0]

    def __init__(self, name: str, description: str, buckets: Optional[List[float]] = None, labels: Optional[List[str]] = None):
        super().__init__(name, description, labels)
        self.buckets = sorted(buckets or self.DEFAULT_BUCKETS)
        self._counts: Dict[str, List[int]] = {}
        self._sums: Dict[str, float] = defaultdict(float)
        self._totals: Dict[str, int] = defaultdict(int)

    def observe(self, value: float, labels: Optional[Dict[str, str]] = None) -> None:
        key = self._get_key(labels)
        with self._lock:
            counts = self._counts.setdefault(key, [0] * len(self.buckets))
            for i, upper_bound in enumerate(self.buckets):
                if value <= upper_bound:
                    counts[i] += 1
            self._sums[key] += value
            self._totals[key] += 1

    def _sample(self, key: str) -> MetricSample:
        counts = self._counts.get(key, [0] * len(self.buckets))
        return MetricSample(
            value={
                "buckets": dict(zip(self.buckets, counts)),
                "count": self._totals.get(key, 0),
                "sum": self._sums.get(key, 0.0)
            },
            labels=self._parse_key(key)
        )

    def get_value(self, labels: Optional[Dict[str, str]] = None) -> MetricSample:
        with self._lock:
            return self._sample(self._get_key(labels))

    def samples(self) -> List[MetricSample]:
        with self._lock:
            return [self._sample(key) for key in self._counts]

    def get_type(self) -> MetricType:
        return MetricType.HISTOGRAM


class Timer:
    """Context manager observing elapsed seconds into a histogram"""

    def __init__(self, histogram: Histogram, labels: Optional[Dict[str, str]] = None):
        self.histogram = histogram
        self.labels = labels
        self.start_time: Optional[float] = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is not None:
            self.histogram.observe(time.perf_counter() - self.start_time, self.labels)


class ClutchMetricsCollector:
    """
    Central metrics collector for control loops.

    Every core metric is labelled by the tracked ``metric`` so several loops
    can share one collector.
    """

    def __init__(self):
        self._metrics: Dict[str, Metric] = {}
        self._lock = Lock()
        self._initialize_core_metrics()

    def _initialize_core_metrics(self) -> None:
        self.register_counter(
            "clutch_events_received_total",
            "Events delivered to a control loop",
            ["metric"]
        )
        self.register_counter(
            "clutch_events_filtered_total",
            "Events dropped because they carry another metric",
            ["metric"]
        )
        self.register_counter(
            "clutch_actuations_total",
            "Sizes sent to the actuator",
            ["metric"]
        )
        self.register_counter(
            "clutch_cooldown_suppressed_total",
            "Ticks that re-emitted the cached size during cooldown",
            ["metric"]
        )
        self.register_counter(
            "clutch_actuation_failures_total",
            "Actuator calls that raised",
            ["metric"]
        )
        self.register_gauge(
            "clutch_pool_size",
            "Last realized resource pool size",
            ["metric"]
        )
        self.register_histogram(
            "clutch_actuation_duration_seconds",
            "Time spent waiting for the actuator",
            labels=["metric"]
        )

    def register_counter(self, name: str, description: str, labels: Optional[List[str]] = None) -> Counter:
        return self._register(Counter(name, description, labels))

    def register_gauge(self, name: str, description: str, labels: Optional[List[str]] = None) -> Gauge:
        return self._register(Gauge(name, description, labels))

    def register_histogram(self, name: str, description: str, buckets: Optional[List[float]] = None, labels: Optional[List[str]] = None) -> Histogram:
        return self._register(Histogram(name, description, buckets, labels))

    def _register(self, metric):
        with self._lock:
            if metric.name in self._metrics:
                raise ValueError(f"Metric {metric.name} already exists")
            self._metrics[metric.name] = metric
            return metric

    def get_metric(self, name: str) -> Optional[Metric]:
        return self._metrics.get(name)

    def get_all_metrics(self) -> Dict[str, Metric]:
        return dict(self._metrics)

    def increment_counter(self, name: str, labels: Optional[Dict[str, str]] = None) -> None:
        """Increment a counter by name; unknown names are ignored."""
        metric = self.get_metric(name)
        if isinstance(metric, Counter):
            metric.increment(labels=labels or {})

    def set_gauge(self, name: str, value: float, labels: Optional[Dict[str, str]] = None) -> None:
        metric = self.get_metric(name)
        if isinstance(metric, Gauge):
            metric.set(value, labels=labels or {})

    def time_actuation(self, metric: str) -> Timer:
        histogram = self.get_metric("clutch_actuation_duration_seconds")
        return Timer(histogram, labels={"metric": metric})


class MetricsExporter(ABC):
    """Abstract base class for metrics exporters"""

    @abstractmethod
    def export(self, metrics: Dict[str, Metric]) -> str:
        pass


class PrometheusExporter(MetricsExporter):
    """Prometheus text format exporter"""

    def export(self, metrics: Dict[str, Metric]) -> str:
        lines = []

        for name, metric in metrics.items():
            lines.append(f"# HELP {name} {metric.description}")
            lines.append(f"# TYPE {name} {metric.get_type().value}")

            for sample in metric.samples():
                if isinstance(metric, Histogram):
                    for bucket, count in sample.value["buckets"].items():
                        bucket_labels = {**sample.labels, 'le': str(bucket)}
                        lines.append(f"{name}_bucket{self._format_labels(bucket_labels)} {count}")
                    bucket_labels = {**sample.labels, 'le': '+Inf'}
                    lines.append(f"{name}_bucket{self._format_labels(bucket_labels)} {sample.value['count']}")
                    lines.append(f"{name}_count{self._format_labels(sample.labels)} {sample.value['count']}")
                    lines.append(f"{name}_sum{self._format_labels(sample.labels)} {sample.value['sum']}")
                else:
                    lines.append(f"{name}{self._format_labels(sample.labels)} {sample.value}")

        return '\n'.join(lines)

    def _format_labels(self, labels: Dict[str, str]) -> str:
        if not labels:
            return ""
        label_pairs = [f'{k}="{v}"' for k, v in sorted(labels.items())]
        return "{" + ",".join(label_pairs) + "}"


# Global metrics collector instance
_metrics_collector: Optional[ClutchMetricsCollector] = None


def get_metrics_collector() -> ClutchMetricsCollector:
    """Get the global metrics collector instance"""
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = ClutchMetricsCollector()
    return _metrics_collector


def reset_metrics_collector() -> None:
    """Drop the global collector so the next call starts from zero."""
    global _metrics_collector
    _metrics_collector = None
