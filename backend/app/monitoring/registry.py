"""Lightweight metrics registry for Prometheus compatible exports."""

from __future__ import annotations

from threading import Lock
from typing import Sequence


def _format_value(value: float) -> str:
    if value.is_integer():
        return str(int(value))
    return f"{value:.6f}".rstrip("0").rstrip(".")


def _format_labels(names: Sequence[str], values: Sequence[str]) -> str:
    if not names:
        return ""
    pairs = []
    for name, value in zip(names, values, strict=False):
        escaped = value.replace("\\", r"\\").replace("\n", r"\n").replace('"', r"\"")
        pairs.append(f'{name}="{escaped}"')
    return "{" + ",".join(pairs) + "}"


class _Metric:
    metric_type = "untyped"

    def __init__(self, name: str, description: str, label_names: Sequence[str]) -> None:
        self.name = name
        self.description = description
        self.label_names = tuple(label_names)
        self._samples: dict[tuple[str, ...], float] = {}
        self._lock = Lock()

    def labels(self, *values: object) -> "_BoundMetric":
        if len(values) != len(self.label_names):
            raise ValueError(
                f"Metric '{self.name}' expected {len(self.label_names)} label values "
                f"but received {len(values)}"
            )
        return _BoundMetric(self, tuple(str(value) for value in values))

    def value(self, *values: object) -> float:
        with self._lock:
            return self._samples.get(tuple(str(value) for value in values), 0.0)

    def clear(self) -> None:
        with self._lock:
            self._samples.clear()

    def _add(self, key: tuple[str, ...], amount: float) -> None:
        with self._lock:
            self._samples[key] = self._samples.get(key, 0.0) + amount

    def _set(self, key: tuple[str, ...], value: float) -> None:
        with self._lock:
            self._samples[key] = float(value)

    def render(self) -> list[str]:
        lines = [f"# HELP {self.name} {self.description}", f"# TYPE {self.name} {self.metric_type}"]
        with self._lock:
            samples = sorted(self._samples.items())
        if not samples:
            lines.append(f"{self.name} 0")
            return lines
        for labels, value in samples:
            lines.append(f"{self.name}{_format_labels(self.label_names, labels)} {_format_value(value)}")
        return lines


class CounterMetric(_Metric):
    metric_type = "counter"


class GaugeMetric(_Metric):
    metric_type = "gauge"


class _BoundMetric:
    """Metric bound to a concrete label tuple, used like ``metric.labels("x").inc()``."""

    def __init__(self, metric: _Metric, key: tuple[str, ...]) -> None:
        self._metric = metric
        self._key = key

    def inc(self, amount: float = 1.0) -> None:
        if amount < 0:
            raise ValueError("Increment amount must be non-negative")
        self._metric._add(self._key, amount)

    def dec(self, amount: float = 1.0) -> None:
        if not isinstance(self._metric, GaugeMetric):
            raise AttributeError("Only gauges support dec()")
        self._metric._add(self._key, -amount)

    def set(self, value: float) -> None:
        if not isinstance(self._metric, GaugeMetric):
            raise AttributeError("Only gauges support set()")
        self._metric._set(self._key, value)


class MetricsRegistry:
    """In-memory registry that collects metric samples."""

    def __init__(self) -> None:
        self._metrics: dict[str, _Metric] = {}
        self._lock = Lock()

    def _register(self, metric: _Metric) -> None:
        with self._lock:
            if metric.name in self._metrics:
                raise ValueError(f"Metric '{metric.name}' already registered")
            self._metrics[metric.name] = metric

    def counter(self, name: str, description: str, *, label_names: Sequence[str] = ()) -> CounterMetric:
        metric = CounterMetric(name, description, label_names)
        self._register(metric)
        return metric

    def gauge(self, name: str, description: str, *, label_names: Sequence[str] = ()) -> GaugeMetric:
        metric = GaugeMetric(name, description, label_names)
        self._register(metric)
        return metric

    def render(self) -> str:
        """Render all registered metrics using the Prometheus text format."""

        lines: list[str] = []
        for name in sorted(self._metrics):
            lines.extend(self._metrics[name].render())
        return "\n".join(lines) + "\n"


# Shared registry instance used across the backend.
registry = MetricsRegistry()
