"""In-process metric primitives for ticket lifecycle instrumentation."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from threading import Lock
from time import perf_counter
from typing import Callable, Iterable, Iterator, Mapping, TypeVar

LabelValues = tuple[str, ...]
Labels = Mapping[str, str]

_M = TypeVar("_M", bound="Metric")


class Metric:
    kind = "untyped"

    def __init__(self, name: str, *, description: str = "", label_names: Iterable[str] | None = None) -> None:
        self.name = name
        self.description = description
        self.label_names: LabelValues = tuple(label_names or ())
        self._lock = Lock()

    def label_values(self, labels: Labels | None) -> LabelValues:
        """Order ``labels`` by the declared label names, rejecting unknown or missing ones."""

        labels = labels or {}
        unknown = sorted(set(labels) - set(self.label_names))
        if unknown:
            raise ValueError(f"Metric '{self.name}' got unexpected labels {unknown}")
        missing = [name for name in self.label_names if name not in labels]
        if missing:
            raise ValueError(f"Metric '{self.name}' is missing labels {missing}")
        return tuple(str(labels[name]) for name in self.label_names)

    def snapshot(self) -> dict[LabelValues, dict[str, float]]:
        raise NotImplementedError


class CounterMetric(Metric):
    kind = "counter"

    def __init__(self, name: str, *, description: str = "", label_names: Iterable[str] | None = None) -> None:
        super().__init__(name, description=description, label_names=label_names)
        self._counts: dict[LabelValues, float] = {}

    def inc(self, amount: float = 1.0, *, labels: Labels | None = None) -> None:
        if amount < 0:
            raise ValueError("Counters can only increase")
        key = self.label_values(labels)
        with self._lock:
            self._counts[key] = self._counts.get(key, 0.0) + amount

    def value(self, labels: Labels | None = None) -> float:
        key = self.label_values(labels)
        with self._lock:
            return self._counts.get(key, 0.0)

    def snapshot(self) -> dict[LabelValues, dict[str, float]]:
        with self._lock:
            return {key: {"value": count} for key, count in self._counts.items()}


@dataclass
class _Observations:
    count: int = 0
    total: float = 0.0
    low: float | None = None
    high: float | None = None

    def add(self, value: float) -> None:
        self.count += 1
        self.total += value
        self.low = value if self.low is None else min(self.low, value)
        self.high = value if self.high is None else max(self.high, value)

    def as_dict(self) -> dict[str, float]:
        return {
            "count": float(self.count),
            "sum": self.total,
            "min": self.low if self.low is not None else 0.0,
            "max": self.high if self.high is not None else 0.0,
        }


class DistributionMetric(Metric):
    """Summary over observed values such as durations."""

    kind = "summary"

    def __init__(self, name: str, *, description: str = "", label_names: Iterable[str] | None = None) -> None:
        super().__init__(name, description=description, label_names=label_names)
        self._series: dict[LabelValues, _Observations] = {}

    def observe(self, value: float, *, labels: Labels | None = None) -> None:
        key = self.label_values(labels)
        with self._lock:
            self._series.setdefault(key, _Observations()).add(value)

    def snapshot(self) -> dict[LabelValues, dict[str, float]]:
        with self._lock:
            return {key: series.as_dict() for key, series in self._series.items()}


class MetricsRegistry:
    """Metrics keyed by name; asking for an existing name returns the same instance."""

    def __init__(self) -> None:
        self._metrics: dict[str, Metric] = {}
        self._lock = Lock()

    def _register(self, name: str, metric_type: type[_M], build: Callable[[], _M]) -> _M:
        with self._lock:
            metric = self._metrics.get(name)
            if metric is None:
                metric = self._metrics[name] = build()
        if not isinstance(metric, metric_type):
            raise TypeError(f"Metric '{name}' is already registered as a {metric.kind}")
        return metric

    def counter(self, name: str, *, description: str = "", label_names: Iterable[str] | None = None) -> CounterMetric:
        return self._register(
            name, CounterMetric, lambda: CounterMetric(name, description=description, label_names=label_names)
        )

    def distribution(
        self, name: str, *, description: str = "", label_names: Iterable[str] | None = None
    ) -> DistributionMetric:
        return self._register(
            name, DistributionMetric, lambda: DistributionMetric(name, description=description, label_names=label_names)
        )

    def metrics(self) -> tuple[Metric, ...]:
        with self._lock:
            return tuple(self._metrics.values())

    def snapshot(self) -> dict[str, dict[LabelValues, dict[str, float]]]:
        return {metric.name: metric.snapshot() for metric in self.metrics()}

    @contextmanager
    def time_distribution(self, name: str, *, labels: Labels | None = None) -> Iterator[None]:
        """Observe the wall time spent inside the block, including when it raises."""

        metric = self.distribution(name)
        started = perf_counter()
        try:
            yield
        finally:
            metric.observe(perf_counter() - started, labels=labels)
